"""Abstract base class for remote data sources and shared exception hierarchy.

A :class:`Connector` fetches raw records from the upstream rugby API.  Fetch
methods return a :class:`FetchResult` rather than raising for ordinary
API-level failures (an error payload, a non-2xx status, a timeout): the sync
engine decides how a failure affects the rest of a batch.  The exception
hierarchy is still the uniform contract for connector internals and for
callers that construct connectors (missing credentials, for instance).
"""

from __future__ import annotations

import abc
import dataclasses
from typing import Generic, TypeVar

from rugby_sync.ingest.connectors.records import CountryRecord, GameRecord, LeagueRecord

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------


class ConnectorError(Exception):
    """Base exception for all connector errors."""


class AuthenticationError(ConnectorError):
    """Credentials missing, invalid, or expired."""


class DataFormatError(ConnectorError):
    """API response does not match the expected envelope."""


class NetworkError(ConnectorError):
    """Connection failure, timeout, or HTTP error."""


class RateLimitError(NetworkError):
    """The upstream API rejected the request with HTTP 429."""

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


# ---------------------------------------------------------------------------
# Fetch result
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of one remote call: the records (if any) and an error message (if any).

    Both may be set at once; the upstream API can return a partial response
    alongside an ``errors`` payload.
    """

    records: list[T] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str) -> FetchResult[T]:
        return cls(records=None, error=error)


# ---------------------------------------------------------------------------
# Abstract Connector
# ---------------------------------------------------------------------------


class Connector(abc.ABC):
    """Abstract base class for rugby data sources.

    Implementations must not raise for API-level failures; they report them
    through :attr:`FetchResult.error`.
    """

    @abc.abstractmethod
    def fetch_countries(self) -> FetchResult[CountryRecord]:
        """Fetch every country known to the source."""

    @abc.abstractmethod
    def fetch_seasons(self) -> FetchResult[int]:
        """Fetch the available season years."""

    @abc.abstractmethod
    def fetch_leagues(self) -> FetchResult[LeagueRecord]:
        """Fetch every league known to the source."""

    @abc.abstractmethod
    def fetch_games(self, league_id: int, season: int) -> FetchResult[GameRecord]:
        """Fetch the games of *league_id* for a single *season* year."""
