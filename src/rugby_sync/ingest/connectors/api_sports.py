"""api-sports.io rugby connector backed by httpx.

The :class:`ApiSportsConnector` talks to the rugby v1 API
(``https://v1.rugby.api-sports.io``).  Every endpoint wraps its payload in
the same envelope::

    {"get": "...", "parameters": {...}, "errors": [] | {...},
     "results": N, "paging": {...}, "response": [...]}

A non-empty ``errors`` value is the API's way of reporting failures such as
a bad key or an exhausted daily quota, usually with HTTP 200.  Transport
failures (timeouts, connection errors, non-2xx) are retried with a linear
back-off and then reported the same way: as :attr:`FetchResult.error`.

Requests are paced by a minimum-interval :class:`RateLimiter` because the
upstream free tier allows only a handful of requests per minute.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from rugby_sync.ingest.connectors.base import (
    AuthenticationError,
    Connector,
    ConnectorError,
    DataFormatError,
    FetchResult,
    NetworkError,
    RateLimitError,
)
from rugby_sync.ingest.connectors.records import (
    AccountStatus,
    CountryRecord,
    GameRecord,
    LeagueRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://v1.rugby.api-sports.io"
MEDIA_HOST = "media.api-sports.io"
CDN_HOST = "bl-media-api-sports.b-cdn.net"

_API_KEY_HEADER = "x-apisports-key"

RecordT = TypeVar("RecordT", bound=BaseModel)


def to_cdn_url(url: str | None, media_host: str = MEDIA_HOST, cdn_host: str = CDN_HOST) -> str | None:
    """Rewrite an upstream media URL so it points at the CDN host.

    Returns ``None`` for a missing or empty URL so that the repository treats
    it as "no information" rather than overwriting a stored value.

    Example:
        >>> to_cdn_url("https://media.api-sports.io/rugby/teams/1.png")
        'https://bl-media-api-sports.b-cdn.net/rugby/teams/1.png'
    """
    if not url:
        return None
    return url.replace(media_host, cdn_host)


def _error_message(errors: object) -> str | None:
    """Flatten the envelope's ``errors`` value (list or mapping) to one message."""
    if not errors:
        return None
    if isinstance(errors, dict):
        return "; ".join(str(v) for v in errors.values())
    if isinstance(errors, list):
        return "; ".join(str(v) for v in errors)
    return str(errors)


class RateLimiter:
    """Minimum-interval limiter shared by all calls of one connector."""

    def __init__(self, requests_per_minute: int = 10) -> None:
        self.delay = 60.0 / requests_per_minute if requests_per_minute > 0 else 0.0
        self._last_request = 0.0
        self._lock = threading.Lock()

    def acquire(self) -> None:
        """Block until the next request may be sent."""
        with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request
            if self._last_request and elapsed < self.delay:
                time.sleep(self.delay - elapsed)
            self._last_request = time.monotonic()


class ApiSportsConnector(Connector):
    """Connector for the api-sports.io rugby API.

    Args:
        api_key: Subscription key sent in the ``x-apisports-key`` header.
        base_url: API root; override for tests or a proxy.
        timeout: Per-request timeout in seconds (httpx transport).
        requests_per_minute: Upper bound on request rate; ``0`` disables pacing.
        max_retries: Attempts per request for 429/5xx/transport failures.
        client: Pre-built ``httpx.Client`` (e.g. with a mock transport).
            The connector does not close a client it did not create.

    Raises:
        AuthenticationError: If *api_key* is empty.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        requests_per_minute: int = 10,
        max_retries: int = 3,
        client: httpx.Client | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise AuthenticationError("api-sports: an API key is required")
        self._max_retries = max(1, max_retries)
        self._rate_limiter = RateLimiter(requests_per_minute)
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)
        self._client.headers[_API_KEY_HEADER] = api_key

    def __enter__(self) -> ApiSportsConnector:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # -- Connector interface ------------------------------------------------

    def fetch_countries(self) -> FetchResult[CountryRecord]:
        return self._fetch_records("/countries", CountryRecord)

    def fetch_seasons(self) -> FetchResult[int]:
        try:
            payload = self._request("/seasons")
        except ConnectorError as exc:
            return FetchResult.failure(str(exc))
        raw = payload.get("response")
        years = [y for y in raw if isinstance(y, int) and not isinstance(y, bool)] if isinstance(raw, list) else None
        return FetchResult(records=years, error=_error_message(payload.get("errors")))

    def fetch_leagues(self) -> FetchResult[LeagueRecord]:
        return self._fetch_records("/leagues", LeagueRecord)

    def fetch_games(self, league_id: int, season: int) -> FetchResult[GameRecord]:
        return self._fetch_records("/games", GameRecord, {"league": league_id, "season": season})

    # -- extras -------------------------------------------------------------

    def fetch_status(self) -> FetchResult[AccountStatus]:
        """Fetch account, subscription and daily quota information."""
        try:
            payload = self._request("/status")
        except ConnectorError as exc:
            return FetchResult.failure(str(exc))
        error = _error_message(payload.get("errors"))
        body = payload.get("response")
        if not isinstance(body, dict):
            return FetchResult(records=None, error=error)
        flat: dict[str, Any] = {}
        for section in ("account", "subscription", "requests"):
            part = body.get(section)
            if isinstance(part, dict):
                flat.update(part)
        try:
            status = AccountStatus.model_validate(flat)
        except ValidationError as exc:
            return FetchResult.failure(f"api-sports: malformed /status response: {exc}")
        return FetchResult(records=[status], error=error)

    # -- internal -----------------------------------------------------------

    def _fetch_records(
        self,
        path: str,
        record_type: type[RecordT],
        params: dict[str, Any] | None = None,
    ) -> FetchResult[RecordT]:
        try:
            payload = self._request(path, params)
        except ConnectorError as exc:
            return FetchResult.failure(str(exc))

        error = _error_message(payload.get("errors"))
        raw = payload.get("response")
        if raw is None:
            return FetchResult(records=None, error=error)
        if not isinstance(raw, list):
            return FetchResult.failure(f"api-sports: {path} returned a non-list response")

        records: list[RecordT] = []
        for item in raw:
            try:
                records.append(record_type.model_validate(item))
            except ValidationError:
                logger.debug("api-sports: dropping malformed %s item from %s", record_type.__name__, path)
        return FetchResult(records=records, error=error)

    def _request(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET *path* with pacing and retries; return the decoded envelope.

        Retries wait 2s, 4s, ... between attempts; a 429 carrying a numeric
        ``Retry-After`` header waits that many seconds instead.

        Raises:
            AuthenticationError: HTTP 401/403.
            RateLimitError: HTTP 429 after all retries.
            NetworkError: Transport failure or other non-2xx status after all retries.
            DataFormatError: Body is not a JSON object.
        """
        last_error: ConnectorError | None = None

        for attempt in range(self._max_retries):
            self._rate_limiter.acquire()
            try:
                response = self._client.get(path, params=params)
            except httpx.RequestError as exc:
                last_error = NetworkError(f"api-sports: request to {path} failed: {exc}")
            else:
                status = response.status_code
                if status in (401, 403):
                    raise AuthenticationError(f"api-sports: authentication failed ({status})")
                if status == 429:
                    retry_after = response.headers.get("Retry-After")
                    last_error = RateLimitError(
                        "api-sports: rate limit exceeded",
                        retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                    )
                elif status >= 500:
                    last_error = NetworkError(f"api-sports: {path} returned HTTP {status}")
                elif status >= 400:
                    raise NetworkError(f"api-sports: {path} returned HTTP {status}")
                else:
                    return self._decode(response, path)

            if attempt < self._max_retries - 1:
                wait = (attempt + 1) * 2
                if isinstance(last_error, RateLimitError) and last_error.retry_after is not None:
                    wait = last_error.retry_after
                logger.warning("%s; retrying in %ds", last_error, wait)
                time.sleep(wait)

        raise last_error or NetworkError(f"api-sports: request to {path} failed")

    @staticmethod
    def _decode(response: httpx.Response, path: str) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise DataFormatError(f"api-sports: {path} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise DataFormatError(f"api-sports: {path} returned a non-object body")
        return payload
