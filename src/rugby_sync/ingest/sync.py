"""Sync engine for mirroring the upstream rugby API into the local repository.

`SyncEngine` drives one synchronization step per entity type.  Countries,
seasons and leagues are all-or-nothing: a remote error stores nothing.
Games are fetched per (league, season) pair across a year range with
best-effort semantics: a failing season is remembered and skipped, the
rest are still stored.  Teams are never fetched directly; they are created
from the home/away payloads of games, always before the game that
references them.

Every remote call and store write happens sequentially on the calling
thread.  The writes of one step share a repository batch, so each table
the step touches is saved once.  The engine keeps no state between calls;
everything lives in the repository.
"""

from __future__ import annotations

import dataclasses
import enum
import functools
import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

from rugby_sync.ingest.completeness import evaluate_fetch_policy
from rugby_sync.ingest.connectors.api_sports import CDN_HOST, MEDIA_HOST, to_cdn_url
from rugby_sync.ingest.connectors.base import Connector, ConnectorError, FetchResult
from rugby_sync.ingest.connectors.records import GameRecord, TeamRecord
from rugby_sync.ingest.repository import Repository, StorageError
from rugby_sync.ingest.schema import Entity, League

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncStatus(enum.Enum):
    """Observable end state of a sync operation."""

    STORED = "stored"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclasses.dataclass
class SyncResult:
    """Summary of a single sync operation.

    ``error`` may be set on a ``STORED`` result: the games range fetch keeps
    the last per-season error while still reporting what it stored.
    ``fatal`` marks a storage failure after which the store's integrity
    cannot be assumed.
    """

    entity: str
    status: SyncStatus = SyncStatus.STORED
    retrieved: int = 0
    stored: int = 0
    teams_created: int = 0
    leagues_processed: int = 0
    league_id: int | None = None
    reason: str | None = None
    error: str | None = None
    fatal: bool = False

    def summary(self) -> str:
        """Return a one-line, human-readable outcome."""
        label = self.entity if self.league_id is None else f"{self.entity} (league {self.league_id})"
        if self.status is SyncStatus.FAILED:
            return f"{label}: failed: {self.error}"
        if self.status is SyncStatus.SKIPPED:
            return f"{label}: skipped ({self.reason})"
        text = f"{label}: stored {self.stored} of {self.retrieved} retrieved"
        if self.entity == "games":
            text += f", {self.teams_created} new teams"
        if self.leagues_processed:
            text += f", {self.leagues_processed} leagues"
        if self.error is not None:
            text += f" (last error: {self.error})"
        return text


class SyncEngine:
    """Orchestrates data sync from a remote connector into the local repository.

    Args:
        repository: Repository used for reading and writing entities.
        connector: Remote source of countries, seasons, leagues and games.
        media_host: Upstream media host rewritten in stored image URLs.
        cdn_host: CDN host substituted for *media_host*.
    """

    def __init__(
        self,
        repository: Repository,
        connector: Connector,
        *,
        media_host: str = MEDIA_HOST,
        cdn_host: str = CDN_HOST,
    ) -> None:
        self._repo = repository
        self._connector = connector
        self._media_host = media_host
        self._cdn_host = cdn_host

    # -- helpers ------------------------------------------------------------

    def _cdn(self, url: str | None) -> str | None:
        return to_cdn_url(url, self._media_host, self._cdn_host)

    @staticmethod
    def _call(fetch: Callable[[], FetchResult[T]]) -> FetchResult[T]:
        """Invoke a connector method, folding raised connector errors into the result."""
        try:
            return fetch()
        except ConnectorError as exc:
            return FetchResult.failure(str(exc))

    @staticmethod
    def _gate(entity: str, records: Sequence[Entity], force_refresh: bool) -> SyncResult | None:
        """Return a SKIPPED result when the completeness policy says not to fetch."""
        decision = evaluate_fetch_policy(records)
        if decision.should_fetch:
            return None
        if force_refresh:
            logger.info("%s: %s, fetching anyway (force refresh)", entity, decision.reason)
            return None
        if decision.reason == "already_attempted":
            reason = f"{decision.incomplete} incomplete {entity} already stored"
        else:
            reason = f"all {decision.total} {entity} already complete"
        logger.info("%s: skipping remote call, %s", entity, reason)
        return SyncResult(entity=entity, status=SyncStatus.SKIPPED, reason=reason)

    @staticmethod
    def _storage_failure(result: SyncResult, exc: StorageError) -> SyncResult:
        logger.error("%s: storage failure: %s", result.entity, exc)
        result.status = SyncStatus.FAILED
        result.error = f"storage failure: {exc}"
        result.fatal = True
        return result

    @staticmethod
    def _remote_failure(entity: str, error: str) -> SyncResult:
        logger.warning("%s: API error: %s", entity, error)
        return SyncResult(entity=entity, status=SyncStatus.FAILED, error=error)

    # -- countries / seasons / leagues ---------------------------------------

    def sync_countries(self, force_refresh: bool = False) -> SyncResult:
        """Fetch and store countries unless the completeness policy skips them.

        Args:
            force_refresh: Fetch even when countries are already stored.

        Returns:
            SyncResult with retrieved/stored counts, a skip reason, or the error.
        """
        result = SyncResult(entity="countries")
        try:
            skipped = self._gate("countries", self._repo.list_countries(), force_refresh)
            if skipped is not None:
                return skipped

            fetched = self._call(self._connector.fetch_countries)
            if fetched.error is not None:
                return self._remote_failure("countries", fetched.error)
            if not fetched.records:
                return SyncResult(entity="countries", status=SyncStatus.SKIPPED, reason="no countries retrieved")

            result.retrieved = len(fetched.records)
            with self._repo.batch():
                for record in fetched.records:
                    if record.id is None or record.name is None:
                        logger.debug("countries: skipping record without id or name: %r", record)
                        continue
                    self._repo.upsert_country(record.id, record.name, record.code, self._cdn(record.flag))
                    result.stored += 1
        except StorageError as exc:
            return self._storage_failure(result, exc)

        logger.info("countries: stored %d of %d", result.stored, result.retrieved)
        return result

    def sync_seasons(self, force_refresh: bool = False) -> SyncResult:
        """Fetch and store season years unless the completeness policy skips them.

        The upstream API returns bare years; each becomes a season keyed by
        its year with no start/end dates.
        """
        result = SyncResult(entity="seasons")
        try:
            skipped = self._gate("seasons", self._repo.list_seasons(), force_refresh)
            if skipped is not None:
                return skipped

            fetched = self._call(self._connector.fetch_seasons)
            if fetched.error is not None:
                return self._remote_failure("seasons", fetched.error)
            if not fetched.records:
                return SyncResult(entity="seasons", status=SyncStatus.SKIPPED, reason="no seasons retrieved")

            result.retrieved = len(fetched.records)
            with self._repo.batch():
                for year in fetched.records:
                    self._repo.upsert_season(year, year, start_date=None, end_date=None, is_current=False)
                    result.stored += 1
        except StorageError as exc:
            return self._storage_failure(result, exc)

        logger.info("seasons: stored %d of %d", result.stored, result.retrieved)
        return result

    def sync_leagues(self, force_refresh: bool = False) -> SyncResult:
        """Fetch and store leagues unless the completeness policy skips them."""
        result = SyncResult(entity="leagues")
        try:
            skipped = self._gate("leagues", self._repo.list_leagues(), force_refresh)
            if skipped is not None:
                return skipped

            fetched = self._call(self._connector.fetch_leagues)
            if fetched.error is not None:
                return self._remote_failure("leagues", fetched.error)
            if not fetched.records:
                return SyncResult(entity="leagues", status=SyncStatus.SKIPPED, reason="no leagues retrieved")

            result.retrieved = len(fetched.records)
            with self._repo.batch():
                for record in fetched.records:
                    if record.id is None or record.name is None:
                        logger.debug("leagues: skipping record without id or name: %r", record)
                        continue
                    country = record.country
                    self._repo.upsert_league(
                        record.id,
                        record.name,
                        record.type,
                        self._cdn(record.logo),
                        country.name if country is not None else None,
                        country.code if country is not None else None,
                        self._cdn(country.flag) if country is not None else None,
                    )
                    result.stored += 1
        except StorageError as exc:
            return self._storage_failure(result, exc)

        logger.info("leagues: stored %d of %d", result.stored, result.retrieved)
        return result

    # -- games and teams ----------------------------------------------------

    def sync_games_for_league_and_years(self, league: League | int, start_year: int, end_year: int) -> SyncResult:
        """Fetch games of one league for every season in ``[start_year, end_year]``.

        Reversed bounds are swapped.  Seasons are fetched one after another;
        a failing season does not stop the others and the last error seen is
        reported alongside whatever was stored.  Teams referenced by a game
        are created before the game itself.

        Args:
            league: League (or league id) to fetch games for.
            start_year: First season year (inclusive).
            end_year: Last season year (inclusive).

        Returns:
            SyncResult with games retrieved/stored, teams created and the
            last per-season error, if any.
        """
        league_id = league.id if isinstance(league, League) else league
        if start_year > end_year:
            start_year, end_year = end_year, start_year

        result = SyncResult(entity="games", league_id=league_id)
        fetched_games: list[tuple[int, GameRecord]] = []
        for season in range(start_year, end_year + 1):
            fetched = self._call(functools.partial(self._connector.fetch_games, league_id, season))
            if fetched.error is not None:
                logger.warning("games: league %d season %d: API error: %s", league_id, season, fetched.error)
                result.error = fetched.error
            fetched_games.extend((season, game) for game in fetched.records or [])

        result.retrieved = len(fetched_games)
        if not fetched_games:
            if result.error is not None:
                result.status = SyncStatus.FAILED
            else:
                result.status = SyncStatus.SKIPPED
                result.reason = f"no games retrieved for {start_year}-{end_year}"
            return result

        try:
            with self._repo.batch():
                for season, game in fetched_games:
                    self._store_game(game, league_id, season, result)
        except StorageError as exc:
            return self._storage_failure(result, exc)

        logger.info(
            "games: league %d %d-%d: stored %d of %d, %d new teams",
            league_id,
            start_year,
            end_year,
            result.stored,
            result.retrieved,
            result.teams_created,
        )
        return result

    def _ensure_team(self, team_id: int, team: TeamRecord, result: SyncResult) -> bool:
        """Create *team* if it is not stored yet; return whether it is stored afterwards."""
        if self._repo.team_exists(team_id):
            return True
        if team.name is None:
            logger.debug("games: team %d has no name, not creating it", team_id)
            return False
        self._repo.upsert_team(team_id, team.name, team.code, self._cdn(team.flag), self._cdn(team.logo))
        result.teams_created += 1
        return True

    def _store_game(self, game: GameRecord, league_id: int, season: int, result: SyncResult) -> None:
        home, away = game.home, game.away
        if game.id is None or home is None or home.id is None or away is None or away.id is None:
            logger.debug("games: skipping record without game or team ids: %r", game.id)
            return

        home_ok = self._ensure_team(home.id, home, result)
        away_ok = self._ensure_team(away.id, away, result)
        if not (home_ok and away_ok):
            logger.warning("games: skipping game %d, its teams could not be stored", game.id)
            return

        self._repo.upsert_game(
            game.id,
            game.league_id if game.league_id is not None else league_id,
            game.season if game.season is not None else season,
            home.id,
            away.id,
            date=game.date,
            status=game.status_short,
            venue=game.venue,
            home_score=game.home_score,
            away_score=game.away_score,
        )
        result.stored += 1

    def sync_all_games_and_teams(self) -> SyncResult:
        """Fetch games (and discover teams) for every stored league.

        The year range spans the earliest to the latest stored season.  A
        league whose fetch fails is logged and skipped; a storage failure
        stops the sweep.

        Returns:
            Aggregated SyncResult; FAILED without any remote call when no
            league or no season is stored.
        """
        result = SyncResult(entity="games")
        try:
            leagues = self._repo.list_leagues()
            years = sorted({s.year for s in self._repo.list_seasons() if s.year is not None})
        except StorageError as exc:
            return self._storage_failure(result, exc)

        if not leagues:
            return self._precondition_failure(result, "no leagues stored; sync leagues first")
        if not years:
            return self._precondition_failure(result, "no seasons stored; sync seasons first")

        start_year, end_year = years[0], years[-1]
        logger.info("games: sweeping %d leagues from %d to %d", len(leagues), start_year, end_year)

        failed_leagues = 0
        for league in leagues:
            league_result = self.sync_games_for_league_and_years(league, start_year, end_year)
            result.retrieved += league_result.retrieved
            result.stored += league_result.stored
            result.teams_created += league_result.teams_created
            if league_result.fatal:
                result.status = SyncStatus.FAILED
                result.error = league_result.error
                result.fatal = True
                return result
            if league_result.status is SyncStatus.FAILED:
                failed_leagues += 1
                result.error = f"{league.name or league.id}: {league_result.error}"
                logger.warning("games: league %s failed: %s", league.name or league.id, league_result.error)
                continue
            if league_result.status is SyncStatus.STORED:
                result.leagues_processed += 1

        if failed_leagues == len(leagues):
            result.status = SyncStatus.FAILED
        logger.info(
            "games: %d games from %d leagues, %d new teams, %d leagues failed",
            result.stored,
            result.leagues_processed,
            result.teams_created,
            failed_leagues,
        )
        return result

    @staticmethod
    def _precondition_failure(result: SyncResult, message: str) -> SyncResult:
        logger.warning("%s: %s", result.entity, message)
        result.status = SyncStatus.FAILED
        result.error = message
        return result

    def auto_fetch_all_incomplete(self) -> list[SyncResult]:
        """Run countries, seasons, leagues, then the games sweep, in that order.

        Games depend on leagues and seasons being stored, so the steps never
        overlap.  A fatal storage failure stops the remaining steps.

        Returns:
            One SyncResult per step that ran.
        """
        steps: list[Callable[[], SyncResult]] = [
            self.sync_countries,
            self.sync_seasons,
            self.sync_leagues,
            self.sync_all_games_and_teams,
        ]
        results: list[SyncResult] = []
        for step in steps:
            result = step()
            results.append(result)
            if result.fatal:
                logger.error("auto-fetch stopped after %s: %s", result.entity, result.error)
                break
        return results
