"""Data ingestion module."""

from __future__ import annotations

from rugby_sync.ingest.completeness import (
    CompletionStats,
    EntityCompletion,
    PolicyDecision,
    compute_completion_stats,
    evaluate_fetch_policy,
)
from rugby_sync.ingest.connectors import (
    ApiSportsConnector,
    AuthenticationError,
    Connector,
    ConnectorError,
    DataFormatError,
    FetchResult,
    NetworkError,
    RateLimitError,
)
from rugby_sync.ingest.repository import (
    ParquetRepository,
    ReferentialIntegrityError,
    Repository,
    StorageError,
)
from rugby_sync.ingest.schema import Country, Game, League, Season, Team
from rugby_sync.ingest.sync import SyncEngine, SyncResult, SyncStatus

__all__ = [
    "ApiSportsConnector",
    "AuthenticationError",
    "CompletionStats",
    "Connector",
    "ConnectorError",
    "Country",
    "DataFormatError",
    "EntityCompletion",
    "FetchResult",
    "Game",
    "League",
    "NetworkError",
    "ParquetRepository",
    "PolicyDecision",
    "RateLimitError",
    "ReferentialIntegrityError",
    "Repository",
    "Season",
    "StorageError",
    "SyncEngine",
    "SyncResult",
    "SyncStatus",
    "Team",
    "compute_completion_stats",
    "evaluate_fetch_policy",
]
