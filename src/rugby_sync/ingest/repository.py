"""Repository pattern for the local rugby entity cache.

Defines an abstract ``Repository`` that owns the upsert/reconciliation
algorithm and a concrete ``ParquetRepository`` backed by one Parquet file
per entity type.  The abstraction keeps the sync engine storage-agnostic: a
backend only has to load, save and clear whole tables.

Upsert semantics (shared by every entity type):

1. Look the record up by id.
2. If absent, build a new record stamped with ``created_at``.
3. Apply the provided fields.  ``None`` means "no information" and keeps an
   existing value, except for fields declared authoritative for that type
   (season start/end dates), which are always written.
4. Recompute ``is_data_complete`` from the entity's predicate.
5. Stamp ``updated_at`` (strictly later than the previous stamp), persist,
   and return the record.

Inside :meth:`Repository.batch` step 5 only updates an in-memory working
table; every table touched by the batch is written once when it ends.
"""

from __future__ import annotations

import abc
import contextlib
import datetime
import os
import shutil
import threading
import uuid
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Literal, TypeVar, cast

import pyarrow as pa  # type: ignore[import-untyped]
import pyarrow.parquet as pq  # type: ignore[import-untyped]
from pydantic import ValidationError

from rugby_sync.ingest.schema import Country, Entity, Game, League, Season, Team

EntityKind = Literal["countries", "seasons", "leagues", "teams", "games"]

ENTITY_KINDS: tuple[EntityKind, ...] = ("countries", "seasons", "leagues", "teams", "games")

_MODELS: dict[EntityKind, type[Entity]] = {
    "countries": Country,
    "seasons": Season,
    "leagues": League,
    "teams": Team,
    "games": Game,
}

# Fields written even when the incoming value is None.
_AUTHORITATIVE: dict[EntityKind, frozenset[str]] = {
    "countries": frozenset(),
    "seasons": frozenset({"start_date", "end_date", "is_current"}),
    "leagues": frozenset(),
    "teams": frozenset(),
    "games": frozenset(),
}

E = TypeVar("E", bound=Entity)


class StorageError(Exception):
    """The local store could not be read or written."""


class ReferentialIntegrityError(StorageError):
    """A write would leave a record pointing at an entity that is not stored."""


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=datetime.timezone.utc)


# ---------------------------------------------------------------------------
# Abstract Repository
# ---------------------------------------------------------------------------


class Repository(abc.ABC):
    """Abstract base class for the entity store.

    Subclasses implement whole-table persistence (:meth:`load_table`,
    :meth:`save_table`, :meth:`clear_all`); reads, existence checks and the
    upsert algorithm are provided here.  A re-entrant lock serializes
    writers so each upsert is atomic with respect to other writers.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._pending: dict[EntityKind, dict[int, Entity]] | None = None
        self._dirty: set[EntityKind] = set()

    # -- storage backend ----------------------------------------------------

    @abc.abstractmethod
    def load_table(self, kind: EntityKind) -> dict[int, Entity]:
        """Return every stored record of *kind*, keyed by id.

        Raises:
            StorageError: The table exists but cannot be read.
        """

    @abc.abstractmethod
    def save_table(self, kind: EntityKind, records: Mapping[int, Entity]) -> None:
        """Replace the stored table of *kind* with *records* atomically.

        Raises:
            StorageError: The table cannot be written.
        """

    @abc.abstractmethod
    def clear_all(self) -> None:
        """Delete every stored record of every type, all or nothing.

        Raises:
            StorageError: Nothing was deleted.
        """

    # -- batching -----------------------------------------------------------

    @contextlib.contextmanager
    def batch(self) -> Iterator[None]:
        """Group upserts so each table they touch is saved once, on exit.

        The lock is held for the whole block.  Reads inside the block see its
        pending writes.  Tables are saved in ``ENTITY_KINDS`` order, so teams
        reach the store before the games that reference them.  If the block
        raises, its pending writes are discarded.  Nested batches join the
        outermost one.

        Raises:
            StorageError: A table could not be saved on exit.
        """
        with self._lock:
            if self._pending is not None:
                yield
                return
            pending: dict[EntityKind, dict[int, Entity]] = {}
            dirty: set[EntityKind] = set()
            self._pending, self._dirty = pending, dirty
            try:
                yield
            finally:
                self._pending, self._dirty = None, set()
            for kind in ENTITY_KINDS:
                if kind in dirty:
                    self.save_table(kind, pending[kind])

    def _table(self, kind: EntityKind) -> dict[int, Entity]:
        """Return the working table of *kind*: the batch copy when batching."""
        if self._pending is None:
            return self.load_table(kind)
        if kind not in self._pending:
            self._pending[kind] = self.load_table(kind)
        return self._pending[kind]

    def _commit(self, kind: EntityKind, table: dict[int, Entity]) -> None:
        if self._pending is None:
            self.save_table(kind, table)
        else:
            self._dirty.add(kind)

    # -- reads --------------------------------------------------------------

    def _list(self, kind: EntityKind, model: type[E]) -> list[E]:
        with self._lock:
            table = self._table(kind)
        return [cast(E, table[key]).model_copy() for key in sorted(table)]

    def _get(self, kind: EntityKind, model: type[E], entity_id: int) -> E | None:
        with self._lock:
            record = self._table(kind).get(entity_id)
        return cast(E, record).model_copy() if record is not None else None

    def _exists(self, kind: EntityKind, entity_id: int) -> bool:
        with self._lock:
            return entity_id in self._table(kind)

    def list_countries(self) -> list[Country]:
        return self._list("countries", Country)

    def get_country(self, country_id: int) -> Country | None:
        return self._get("countries", Country, country_id)

    def country_exists(self, country_id: int) -> bool:
        return self._exists("countries", country_id)

    def list_seasons(self) -> list[Season]:
        return self._list("seasons", Season)

    def get_season(self, season_id: int) -> Season | None:
        return self._get("seasons", Season, season_id)

    def season_exists(self, season_id: int) -> bool:
        return self._exists("seasons", season_id)

    def get_current_season(self) -> Season | None:
        """Return the season flagged as current, if any."""
        return next((s for s in self.list_seasons() if s.is_current), None)

    def list_leagues(self) -> list[League]:
        return self._list("leagues", League)

    def get_league(self, league_id: int) -> League | None:
        return self._get("leagues", League, league_id)

    def league_exists(self, league_id: int) -> bool:
        return self._exists("leagues", league_id)

    def list_teams(self) -> list[Team]:
        return self._list("teams", Team)

    def get_team(self, team_id: int) -> Team | None:
        return self._get("teams", Team, team_id)

    def team_exists(self, team_id: int) -> bool:
        return self._exists("teams", team_id)

    def list_games(self, league_id: int | None = None, season: int | None = None) -> list[Game]:
        """Return stored games, optionally filtered by league and/or season."""
        return [
            g
            for g in self._list("games", Game)
            if (league_id is None or g.league_id == league_id) and (season is None or g.season == season)
        ]

    def get_game(self, game_id: int) -> Game | None:
        return self._get("games", Game, game_id)

    def game_exists(self, game_id: int) -> bool:
        return self._exists("games", game_id)

    # -- writes -------------------------------------------------------------

    def upsert_country(
        self,
        country_id: int,
        name: str | None,
        code: str | None = None,
        flag_url: str | None = None,
    ) -> Country:
        fields = {"name": name, "code": code, "flag_url": flag_url}
        return cast(Country, self._upsert("countries", country_id, fields))

    def upsert_season(
        self,
        season_id: int,
        year: int | None,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
        is_current: bool = False,
    ) -> Season:
        fields = {"year": year, "start_date": start_date, "end_date": end_date, "is_current": is_current}
        return cast(Season, self._upsert("seasons", season_id, fields))

    def upsert_league(  # noqa: PLR0913
        self,
        league_id: int,
        name: str | None,
        type: str | None = None,  # noqa: A002
        logo_url: str | None = None,
        country_name: str | None = None,
        country_code: str | None = None,
        country_flag_url: str | None = None,
    ) -> League:
        fields = {
            "name": name,
            "type": type,
            "logo_url": logo_url,
            "country_name": country_name,
            "country_code": country_code,
            "country_flag_url": country_flag_url,
        }
        return cast(League, self._upsert("leagues", league_id, fields))

    def upsert_team(
        self,
        team_id: int,
        name: str | None,
        code: str | None = None,
        flag_url: str | None = None,
        logo_url: str | None = None,
    ) -> Team:
        fields = {"name": name, "code": code, "flag_url": flag_url, "logo_url": logo_url}
        return cast(Team, self._upsert("teams", team_id, fields))

    def upsert_game(  # noqa: PLR0913
        self,
        game_id: int,
        league_id: int | None,
        season: int | None,
        home_team_id: int,
        away_team_id: int,
        date: datetime.datetime | None = None,
        status: str | None = None,
        venue: str | None = None,
        home_score: int | None = None,
        away_score: int | None = None,
    ) -> Game:
        """Insert or update a game.

        Raises:
            ReferentialIntegrityError: The home or away team is not stored.
        """
        fields = {
            "league_id": league_id,
            "season": season,
            "home_team_id": home_team_id,
            "away_team_id": away_team_id,
            "date": _as_utc(date),
            "status": status,
            "venue": venue,
            "home_score": home_score,
            "away_score": away_score,
        }
        with self._lock:
            teams = self._table("teams")
            missing = [tid for tid in (home_team_id, away_team_id) if tid not in teams]
            if missing:
                msg = f"game {game_id} references unknown team(s) {missing}"
                raise ReferentialIntegrityError(msg)
            return cast(Game, self._upsert("games", game_id, fields))

    def _upsert(self, kind: EntityKind, entity_id: int, fields: Mapping[str, Any]) -> Entity:
        model = _MODELS[kind]
        authoritative = _AUTHORITATIVE[kind]
        with self._lock:
            table = self._table(kind)
            existing = table.get(entity_id)
            now = _utcnow()

            if existing is None:
                data: dict[str, Any] = {"id": entity_id, "created_at": now}
            else:
                data = existing.model_dump()
                if existing.updated_at is not None and now <= existing.updated_at:
                    now = existing.updated_at + datetime.timedelta(microseconds=1)

            for key, value in fields.items():
                if value is None and key not in authoritative and data.get(key) is not None:
                    continue
                data[key] = value

            record = model.model_validate(data)
            record = record.model_copy(update={"is_data_complete": record.check_complete(), "updated_at": now})
            table[entity_id] = record
            self._commit(kind, table)
            return record.model_copy()


# ---------------------------------------------------------------------------
# Parquet Repository
# ---------------------------------------------------------------------------

# Explicit PyArrow schemas for deterministic column types across reads/writes.

_TS = pa.timestamp("us", tz="UTC")

_COMMON_FIELDS = [
    ("id", pa.int64()),
    ("is_data_complete", pa.bool_()),
    ("created_at", _TS),
    ("updated_at", _TS),
]

_SCHEMAS: dict[EntityKind, pa.Schema] = {
    "countries": pa.schema([
        *_COMMON_FIELDS,
        ("name", pa.string()),
        ("code", pa.string()),
        ("flag_url", pa.string()),
    ]),
    "seasons": pa.schema([
        *_COMMON_FIELDS,
        ("year", pa.int64()),
        ("start_date", pa.date32()),
        ("end_date", pa.date32()),
        ("is_current", pa.bool_()),
    ]),
    "leagues": pa.schema([
        *_COMMON_FIELDS,
        ("name", pa.string()),
        ("type", pa.string()),
        ("logo_url", pa.string()),
        ("country_name", pa.string()),
        ("country_code", pa.string()),
        ("country_flag_url", pa.string()),
        ("is_favorite", pa.bool_()),
    ]),
    "teams": pa.schema([
        *_COMMON_FIELDS,
        ("name", pa.string()),
        ("code", pa.string()),
        ("flag_url", pa.string()),
        ("logo_url", pa.string()),
        ("is_favorite", pa.bool_()),
    ]),
    "games": pa.schema([
        *_COMMON_FIELDS,
        ("league_id", pa.int64()),
        ("season", pa.int64()),
        ("home_team_id", pa.int64()),
        ("away_team_id", pa.int64()),
        ("date", _TS),
        ("status", pa.string()),
        ("venue", pa.string()),
        ("home_score", pa.int64()),
        ("away_score", pa.int64()),
        ("is_favorite", pa.bool_()),
    ]),
}


class ParquetRepository(Repository):
    """Repository implementation backed by Parquet files.

    Directory layout::

        {base_path}/
            countries.parquet
            seasons.parquet
            leagues.parquet
            teams.parquet
            games.parquet

    Each write goes to a temporary sibling file that is then renamed over
    the table, so readers (including other processes) always see a whole
    table.  Loaded tables are cached in memory and reloaded when the file
    on disk changes.
    """

    def __init__(self, base_path: Path) -> None:
        super().__init__()
        self._base_path = base_path
        self._cache: dict[EntityKind, tuple[tuple[int, int], dict[int, Entity]]] = {}

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _path(self, kind: EntityKind) -> Path:
        return self._base_path / f"{kind}.parquet"

    # -- backend ------------------------------------------------------------

    def load_table(self, kind: EntityKind) -> dict[int, Entity]:
        path = self._path(kind)
        with self._lock:
            try:
                stat = path.stat()
            except FileNotFoundError:
                self._cache.pop(kind, None)
                return {}
            except OSError as exc:
                raise StorageError(f"cannot access {path}: {exc}") from exc

            stamp = (stat.st_mtime_ns, stat.st_size)
            cached = self._cache.get(kind)
            if cached is not None and cached[0] == stamp:
                return dict(cached[1])

            model = _MODELS[kind]
            try:
                rows = pq.read_table(path).to_pylist()
                records = {int(row["id"]): model.model_validate(row) for row in rows}
            except (OSError, pa.ArrowException, ValidationError, KeyError) as exc:
                raise StorageError(f"cannot read {path}: {exc}") from exc

            self._cache[kind] = (stamp, records)
            return dict(records)

    def save_table(self, kind: EntityKind, records: Mapping[int, Entity]) -> None:
        path = self._path(kind)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        schema = _SCHEMAS[kind]
        rows = [records[key].model_dump() for key in sorted(records)]
        with self._lock:
            try:
                self._base_path.mkdir(parents=True, exist_ok=True)
                table = pa.Table.from_pylist(rows, schema=schema)
                pq.write_table(table, tmp_path)
                os.replace(tmp_path, path)
                stat = path.stat()
            except (OSError, pa.ArrowException) as exc:
                tmp_path.unlink(missing_ok=True)
                self._cache.pop(kind, None)
                raise StorageError(f"cannot write {path}: {exc}") from exc
            self._cache[kind] = ((stat.st_mtime_ns, stat.st_size), dict(records))

    def clear_all(self) -> None:
        with self._lock:
            existing = [self._path(kind) for kind in ENTITY_KINDS if self._path(kind).exists()]
            if not existing:
                self._cache.clear()
                return

            staging = self._base_path / f".clearing-{uuid.uuid4().hex}"
            moved: list[Path] = []
            try:
                staging.mkdir()
                for path in existing:
                    os.replace(path, staging / path.name)
                    moved.append(path)
            except OSError as exc:
                for path in moved:
                    os.replace(staging / path.name, path)
                shutil.rmtree(staging, ignore_errors=True)
                raise StorageError(f"cannot clear {self._base_path}: {exc}") from exc

            self._cache.clear()
            shutil.rmtree(staging, ignore_errors=True)
