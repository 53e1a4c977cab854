"""Completeness policy and completion statistics.

The policy decides whether an unfiltered entity type (countries, seasons,
leagues) needs a remote fetch at all:

    ==========================  ==========  ===================
    Local state                 Decision    Reason
    ==========================  ==========  ===================
    no records                  fetch       empty
    any incomplete record       skip        already attempted
    only complete records       skip        already satisfied
    ==========================  ==========  ===================

An incomplete record is taken as evidence that an earlier fetch ran and
came back partial; fetching again would only repeat the same remote call.
The type stays blocked until its data is cleared or a caller forces a
refresh.

:func:`compute_completion_stats` is a pure read used for reporting; it is
recomputed on every call and never divides by zero.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator, Sequence
from typing import Literal

from rugby_sync.ingest.repository import Repository
from rugby_sync.ingest.schema import Entity

Reason = Literal["empty", "already_attempted", "already_satisfied"]


@dataclasses.dataclass(frozen=True)
class PolicyDecision:
    """Whether to fetch an entity type, and why."""

    should_fetch: bool
    reason: Reason
    total: int
    incomplete: int


def evaluate_fetch_policy(records: Sequence[Entity]) -> PolicyDecision:
    """Apply the completeness policy to the stored records of one entity type."""
    total = len(records)
    incomplete = sum(1 for r in records if not r.is_data_complete)
    if total == 0:
        return PolicyDecision(should_fetch=True, reason="empty", total=0, incomplete=0)
    if incomplete > 0:
        return PolicyDecision(should_fetch=False, reason="already_attempted", total=total, incomplete=incomplete)
    return PolicyDecision(should_fetch=False, reason="already_satisfied", total=total, incomplete=0)


@dataclasses.dataclass(frozen=True)
class EntityCompletion:
    """Completion counts for a single entity type."""

    total: int = 0
    complete: int = 0

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return self.complete * 100.0 / self.total

    @classmethod
    def from_records(cls, records: Sequence[Entity]) -> EntityCompletion:
        return cls(total=len(records), complete=sum(1 for r in records if r.is_data_complete))

    def __str__(self) -> str:
        return f"{self.complete:03d}/{self.total:03d} ({self.percent:.1f}%)"


@dataclasses.dataclass(frozen=True)
class CompletionStats:
    """Completion counts for every cached entity type."""

    countries: EntityCompletion
    seasons: EntityCompletion
    leagues: EntityCompletion
    teams: EntityCompletion
    games: EntityCompletion

    def rows(self) -> Iterator[tuple[str, EntityCompletion]]:
        """Yield ``(label, completion)`` pairs in display order."""
        for field in dataclasses.fields(self):
            yield field.name.capitalize(), getattr(self, field.name)

    def __str__(self) -> str:
        return "\n".join(f"{label + ':':<11} {completion}" for label, completion in self.rows())


def compute_completion_stats(repository: Repository) -> CompletionStats:
    """Compute completion counts from the current contents of *repository*."""
    return CompletionStats(
        countries=EntityCompletion.from_records(repository.list_countries()),
        seasons=EntityCompletion.from_records(repository.list_seasons()),
        leagues=EntityCompletion.from_records(repository.list_leagues()),
        teams=EntityCompletion.from_records(repository.list_teams()),
        games=EntityCompletion.from_records(repository.list_games()),
    )
