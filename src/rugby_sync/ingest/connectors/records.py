"""Pydantic models for the payloads returned by the upstream rugby API.

Every field is optional: the upstream service omits or nulls fields freely
and deciding what is required is the sync engine's job, not the parser's.
Unknown keys are ignored.
"""

from __future__ import annotations

import datetime

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CountryRecord(_Record):
    id: int | None = None
    name: str | None = None
    code: str | None = None
    flag: str | None = None


class LeagueRecord(_Record):
    id: int | None = None
    name: str | None = None
    type: str | None = None
    logo: str | None = None
    country: CountryRecord | None = None


class TeamRecord(_Record):
    id: int | None = None
    name: str | None = None
    code: str | None = None
    flag: str | None = None
    logo: str | None = None


class GameStatusRecord(_Record):
    long: str | None = None
    short: str | None = None


class GameLeagueRecord(_Record):
    id: int | None = None
    season: int | None = None


class GameTeamsRecord(_Record):
    home: TeamRecord | None = None
    away: TeamRecord | None = None


class GameScoresRecord(_Record):
    home: int | None = None
    away: int | None = None


class GameRecord(_Record):
    """A game payload with its nested league, teams, status and scores."""

    id: int | None = None
    date: datetime.datetime | None = None
    venue: str | None = None
    status: GameStatusRecord | None = None
    league: GameLeagueRecord | None = None
    teams: GameTeamsRecord | None = None
    scores: GameScoresRecord | None = None

    @property
    def home(self) -> TeamRecord | None:
        return self.teams.home if self.teams is not None else None

    @property
    def away(self) -> TeamRecord | None:
        return self.teams.away if self.teams is not None else None

    @property
    def league_id(self) -> int | None:
        return self.league.id if self.league is not None else None

    @property
    def season(self) -> int | None:
        return self.league.season if self.league is not None else None

    @property
    def status_short(self) -> str | None:
        return self.status.short if self.status is not None else None

    @property
    def home_score(self) -> int | None:
        return self.scores.home if self.scores is not None else None

    @property
    def away_score(self) -> int | None:
        return self.scores.away if self.scores is not None else None


class AccountStatus(_Record):
    """Subscription and quota information from the ``/status`` endpoint."""

    email: str | None = None
    plan: str | None = None
    active: bool | None = None
    subscription_end: datetime.datetime | None = Field(default=None, alias="end")
    requests_current: int | None = Field(default=None, alias="current")
    requests_limit_day: int | None = Field(default=None, alias="limit_day")
