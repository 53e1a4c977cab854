"""Remote data source connectors for rugby data ingestion."""

from __future__ import annotations

from rugby_sync.ingest.connectors.api_sports import ApiSportsConnector, to_cdn_url
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
    TeamRecord,
)

__all__ = [
    "AccountStatus",
    "ApiSportsConnector",
    "AuthenticationError",
    "Connector",
    "ConnectorError",
    "CountryRecord",
    "DataFormatError",
    "FetchResult",
    "GameRecord",
    "LeagueRecord",
    "NetworkError",
    "RateLimitError",
    "TeamRecord",
    "to_cdn_url",
]
