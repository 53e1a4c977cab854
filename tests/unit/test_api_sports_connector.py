"""Unit tests for ApiSportsConnector against an httpx mock transport."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from rugby_sync.ingest.connectors.api_sports import (
    CDN_HOST,
    ApiSportsConnector,
    RateLimiter,
    to_cdn_url,
)
from rugby_sync.ingest.connectors.base import AuthenticationError, RateLimitError

Handler = Callable[[httpx.Request], httpx.Response]


def _envelope(response: Any, errors: Any = None) -> dict[str, Any]:
    return {"get": "test", "parameters": {}, "errors": errors if errors is not None else [], "response": response}


def _connector(handler: Handler, max_retries: int = 1) -> ApiSportsConnector:
    client = httpx.Client(base_url="https://rugby.test", transport=httpx.MockTransport(handler))
    return ApiSportsConnector("secret", client=client, requests_per_minute=0, max_retries=max_retries)


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace time.sleep in the connector module; return the recorded waits."""
    waits: list[float] = []
    monkeypatch.setattr("rugby_sync.ingest.connectors.api_sports.time.sleep", waits.append)
    return waits


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    """Credential handling."""

    @pytest.mark.smoke
    @pytest.mark.parametrize("key", ["", "   "])
    def test_blank_key_rejected(self, key: str) -> None:
        with pytest.raises(AuthenticationError):
            ApiSportsConnector(key)

    def test_key_sent_in_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_envelope([]))

        _connector(handler).fetch_countries()
        assert seen[0].headers["x-apisports-key"] == "secret"
        assert seen[0].url.path == "/countries"


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestEndpoints:
    """Envelope unwrapping per endpoint."""

    def test_fetch_countries(self) -> None:
        body = _envelope([
            {"id": 1, "name": "France", "code": "FR", "flag": "https://media.api-sports.io/flags/fr.svg"},
            {"id": 2, "name": "World", "code": None, "flag": None},
        ])
        result = _connector(lambda _: httpx.Response(200, json=body)).fetch_countries()
        assert result.ok
        assert result.records is not None
        assert [c.name for c in result.records] == ["France", "World"]
        assert result.records[0].code == "FR"

    def test_fetch_seasons_keeps_integers_only(self) -> None:
        body = _envelope([2022, 2023, "2024", True])
        result = _connector(lambda _: httpx.Response(200, json=body)).fetch_seasons()
        assert result.records == [2022, 2023]

    def test_fetch_leagues_nested_country(self) -> None:
        body = _envelope([
            {"id": 16, "name": "Top 14", "logo": "l.png", "country": {"name": "France", "code": "FR"}},
        ])
        result = _connector(lambda _: httpx.Response(200, json=body)).fetch_leagues()
        assert result.records is not None
        league = result.records[0]
        assert league.country is not None
        assert league.country.code == "FR"

    def test_fetch_games_sends_league_and_season(self) -> None:
        seen: list[httpx.Request] = []
        game = {
            "id": 500,
            "date": "2023-09-09T15:00:00+00:00",
            "status": {"long": "Finished", "short": "FT"},
            "league": {"id": 16, "season": 2023},
            "teams": {"home": {"id": 1, "name": "Toulouse"}, "away": {"id": 2, "name": "Clermont"}},
            "scores": {"home": 20, "away": 17},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_envelope([game]))

        result = _connector(handler).fetch_games(16, 2023)
        assert seen[0].url.params["league"] == "16"
        assert seen[0].url.params["season"] == "2023"
        assert result.records is not None
        record = result.records[0]
        assert record.home is not None and record.home.name == "Toulouse"
        assert record.status_short == "FT"
        assert record.home_score == 20
        assert record.league_id == 16

    def test_malformed_items_dropped(self) -> None:
        body = _envelope([{"id": "not-an-int", "name": "Bad"}, {"id": 3, "name": "Good"}])
        result = _connector(lambda _: httpx.Response(200, json=body)).fetch_countries()
        assert result.records is not None
        assert [c.id for c in result.records] == [3]

    def test_fetch_status_flattens_sections(self) -> None:
        body = _envelope({
            "account": {"firstname": "A", "email": "a@example.com"},
            "subscription": {"plan": "Free", "end": "2026-12-31T00:00:00+00:00", "active": True},
            "requests": {"current": 12, "limit_day": 100},
        })
        result = _connector(lambda _: httpx.Response(200, json=body)).fetch_status()
        assert result.records is not None
        status = result.records[0]
        assert status.plan == "Free"
        assert status.active is True
        assert status.requests_current == 12
        assert status.requests_limit_day == 100


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    """API and transport failures become FetchResult errors."""

    def test_error_mapping_joined(self) -> None:
        body = _envelope([], errors={"token": "Error/Missing application key.", "plan": "Upgrade"})
        result = _connector(lambda _: httpx.Response(200, json=body)).fetch_countries()
        assert result.error == "Error/Missing application key.; Upgrade"

    def test_error_list_joined(self) -> None:
        body = _envelope([], errors=["first", "second"])
        result = _connector(lambda _: httpx.Response(200, json=body)).fetch_leagues()
        assert result.error == "first; second"

    def test_empty_errors_is_success(self) -> None:
        result = _connector(lambda _: httpx.Response(200, json=_envelope([]))).fetch_countries()
        assert result.ok
        assert result.records == []

    def test_non_list_response_is_error(self) -> None:
        result = _connector(lambda _: httpx.Response(200, json=_envelope({"oops": 1}))).fetch_countries()
        assert result.error is not None
        assert result.records is None

    def test_invalid_json_is_error(self) -> None:
        result = _connector(lambda _: httpx.Response(200, content=b"<html>")).fetch_countries()
        assert result.error is not None
        assert "invalid JSON" in result.error

    def test_unauthorized_is_error_without_retry(self, no_sleep: list[float]) -> None:
        calls: list[int] = []

        def handler(_: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(401)

        result = _connector(handler, max_retries=3).fetch_countries()
        assert result.error is not None
        assert "authentication" in result.error
        assert len(calls) == 1
        assert no_sleep == []

    def test_client_error_is_not_retried(self, no_sleep: list[float]) -> None:
        result = _connector(lambda _: httpx.Response(404), max_retries=3).fetch_leagues()
        assert result.error is not None
        assert "404" in result.error
        assert no_sleep == []

    def test_server_error_retried_then_succeeds(self, no_sleep: list[float]) -> None:
        responses = iter([httpx.Response(503), httpx.Response(200, json=_envelope([2023]))])
        result = _connector(lambda _: next(responses), max_retries=3).fetch_seasons()
        assert result.records == [2023]
        assert no_sleep == [2]

    def test_rate_limited_until_retries_exhausted(self, no_sleep: list[float]) -> None:
        result = _connector(lambda _: httpx.Response(429), max_retries=3).fetch_countries()
        assert result.error == "api-sports: rate limit exceeded"
        assert no_sleep == [2, 4]

    def test_rate_limit_waits_for_retry_after(self, no_sleep: list[float]) -> None:
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json=_envelope([2023])),
        ])
        result = _connector(lambda _: next(responses), max_retries=3).fetch_seasons()
        assert result.records == [2023]
        assert no_sleep == [7]

    def test_exhausted_retries_raise_last_error(self, no_sleep: list[float]) -> None:
        connector = _connector(lambda _: httpx.Response(429, headers={"Retry-After": "3"}), max_retries=2)
        with pytest.raises(RateLimitError) as info:
            connector._request("/countries")
        assert info.value.retry_after == 3
        assert no_sleep == [3]

    def test_unparseable_retry_after_uses_linear_backoff(self, no_sleep: list[float]) -> None:
        headers = {"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}
        result = _connector(lambda _: httpx.Response(429, headers=headers), max_retries=2).fetch_countries()
        assert result.error == "api-sports: rate limit exceeded"
        assert no_sleep == [2]

    def test_transport_error_reported(self, no_sleep: list[float]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        result = _connector(handler, max_retries=2).fetch_games(16, 2023)
        assert result.error is not None
        assert "failed" in result.error
        assert no_sleep == [2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestCdnRewrite:
    """Tests for to_cdn_url."""

    def test_media_host_replaced(self) -> None:
        url = to_cdn_url("https://media.api-sports.io/rugby/teams/1.png")
        assert url == f"https://{CDN_HOST}/rugby/teams/1.png"

    def test_other_host_untouched(self) -> None:
        assert to_cdn_url("https://example.com/a.png") == "https://example.com/a.png"

    @pytest.mark.parametrize("url", [None, ""])
    def test_empty_is_none(self, url: str | None) -> None:
        assert to_cdn_url(url) is None

    def test_custom_hosts(self) -> None:
        assert to_cdn_url("https://a/x.png", "a", "b") == "https://b/x.png"


class TestRateLimiter:
    """Tests for RateLimiter pacing."""

    def test_disabled_when_zero(self) -> None:
        assert RateLimiter(0).delay == 0.0

    def test_first_call_not_delayed(self, no_sleep: list[float]) -> None:
        RateLimiter(10).acquire()
        assert no_sleep == []

    def test_second_call_waits(self, no_sleep: list[float]) -> None:
        limiter = RateLimiter(60)
        limiter.acquire()
        limiter.acquire()
        assert len(no_sleep) == 1
        assert 0 < no_sleep[0] <= 1.0
