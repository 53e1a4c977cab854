"""Shared pytest fixtures for the rugby_sync test suite.

Fixtures defined here are available to all tests without explicit imports.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

from rugby_sync.ingest.connectors.base import Connector, FetchResult
from rugby_sync.ingest.connectors.records import (
    AccountStatus,
    CountryRecord,
    GameRecord,
    LeagueRecord,
)
from rugby_sync.ingest.repository import ParquetRepository


class FakeConnector(Connector):
    """In-memory connector that records every call it receives.

    Each ``fetch_*`` returns the :class:`FetchResult` configured for it;
    games are configured per season and default to an empty success.
    """

    def __init__(
        self,
        countries: FetchResult[CountryRecord] | None = None,
        seasons: FetchResult[int] | None = None,
        leagues: FetchResult[LeagueRecord] | None = None,
        games: dict[int, FetchResult[GameRecord]] | None = None,
        status: FetchResult[AccountStatus] | None = None,
    ) -> None:
        self.countries = countries or FetchResult(records=[])
        self.seasons = seasons or FetchResult(records=[])
        self.leagues = leagues or FetchResult(records=[])
        self.games = games or {}
        self.status = status or FetchResult(records=[AccountStatus(plan="Free")])
        self.calls: list[tuple[Any, ...]] = []
        self.closed = False

    def fetch_countries(self) -> FetchResult[CountryRecord]:
        self.calls.append(("countries",))
        return self.countries

    def fetch_seasons(self) -> FetchResult[int]:
        self.calls.append(("seasons",))
        return self.seasons

    def fetch_leagues(self) -> FetchResult[LeagueRecord]:
        self.calls.append(("leagues",))
        return self.leagues

    def fetch_games(self, league_id: int, season: int) -> FetchResult[GameRecord]:
        self.calls.append(("games", league_id, season))
        return self.games.get(season, FetchResult(records=[]))

    def fetch_status(self) -> FetchResult[AccountStatus]:
        self.calls.append(("status",))
        return self.status

    def close(self) -> None:
        self.closed = True


class CountingRepository(ParquetRepository):
    """ParquetRepository that records the kind of every table it saves."""

    def __init__(self, base_path: Path) -> None:
        super().__init__(base_path)
        self.saved: list[str] = []

    def save_table(self, kind: Any, records: Any) -> None:
        self.saved.append(kind)
        super().save_table(kind, records)


def make_game(
    game_id: int,
    home: tuple[int, str | None],
    away: tuple[int, str | None],
    *,
    league_id: int | None = 10,
    season: int | None = 2023,
    date: str | None = "2023-09-09T15:00:00+00:00",
    status: str | None = "FT",
    scores: tuple[int | None, int | None] = (None, None),
) -> GameRecord:
    """Build a GameRecord shaped like an upstream ``/games`` item."""
    payload: dict[str, Any] = {
        "id": game_id,
        "date": date,
        "status": {"long": None, "short": status},
        "league": {"id": league_id, "season": season},
        "teams": {
            "home": {"id": home[0], "name": home[1]},
            "away": {"id": away[0], "name": away[1]},
        },
        "scores": {"home": scores[0], "away": scores[1]},
    }
    return GameRecord.model_validate(payload)


def records(items: Iterable[Any]) -> FetchResult[Any]:
    return FetchResult(records=list(items))


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Provide an isolated temporary directory for test data.

    Args:
        tmp_path: pytest built-in temporary directory fixture.

    Returns:
        Path: A temporary directory that exists for the duration of the test.
    """
    data_dir = tmp_path / "test_data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def repo(temp_data_dir: Path) -> ParquetRepository:
    """Return a ParquetRepository rooted at a temporary directory."""
    return ParquetRepository(temp_data_dir)
