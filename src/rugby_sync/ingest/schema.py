"""Pydantic v2 schema models for the locally cached rugby entities.

Defines the stored representation of Country, Season, League, Team and
Game.  These are the shapes the repository persists and the sync engine
reasons about; upstream payloads are parsed into separate record models
(see :mod:`rugby_sync.ingest.connectors.records`) before being mapped onto
these.

Every entity carries an ``is_data_complete`` flag that the repository
recomputes on each upsert from :meth:`check_complete`.  The flag is never
taken from upstream data.
"""

from __future__ import annotations

import datetime

from pydantic import BaseModel, ConfigDict


def _has_text(value: str | None) -> bool:
    return value is not None and value.strip() != ""


class _Entity(BaseModel):
    """Fields shared by every cached entity."""

    model_config = ConfigDict(validate_assignment=True)

    id: int
    is_data_complete: bool = False
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    def check_complete(self) -> bool:
        """Return whether the entity carries enough data to be considered complete."""
        raise NotImplementedError


class Country(_Entity):
    """A country as reported by the upstream API."""

    name: str | None = None
    code: str | None = None
    flag_url: str | None = None

    def check_complete(self) -> bool:
        return _has_text(self.name) and _has_text(self.code)


class Season(_Entity):
    """A season, keyed by its year (``id == year``)."""

    year: int | None = None
    start_date: datetime.date | None = None
    end_date: datetime.date | None = None
    is_current: bool = False

    def check_complete(self) -> bool:
        return self.year is not None


class League(_Entity):
    """A rugby competition."""

    name: str | None = None
    type: str | None = None
    logo_url: str | None = None
    country_name: str | None = None
    country_code: str | None = None
    country_flag_url: str | None = None
    is_favorite: bool = False

    def check_complete(self) -> bool:
        return _has_text(self.name)


class Team(_Entity):
    """A team, discovered through the home/away payloads of games."""

    name: str | None = None
    code: str | None = None
    flag_url: str | None = None
    logo_url: str | None = None
    is_favorite: bool = False

    def check_complete(self) -> bool:
        return _has_text(self.name)


class Game(_Entity):
    """A single fixture between two stored teams."""

    league_id: int | None = None
    season: int | None = None
    home_team_id: int
    away_team_id: int
    date: datetime.datetime | None = None
    status: str | None = None
    venue: str | None = None
    home_score: int | None = None
    away_score: int | None = None
    is_favorite: bool = False

    def check_complete(self) -> bool:
        return (
            self.league_id is not None
            and self.season is not None
            and self.date is not None
            and _has_text(self.status)
        )


Entity = Country | Season | League | Team | Game
