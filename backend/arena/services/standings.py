"""Standings computation for an arena.

Standings are never stored. Every request rebuilds them from the arena's
completed matches and orders teams with the organizer's tie-break chain.
Only teams that appear in at least one completed match are ranked; teams
that have not finished a match yet are left out of the table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import cmp_to_key
from typing import Callable, Iterable, Sequence

from ..scoring.engine import (
    MatchRules,
    MatchScore,
    evaluate_match_outcome,
    evaluate_set_outcome,
    validate_reachable_score,
)
from .validation import ValidationError

logger = logging.getLogger(__name__)


class RankingCriterion(str, Enum):
    MATCHES_WON = "MATCHES_WON"
    SETS_WON = "SETS_WON"
    POINTS_DIFF = "POINTS_DIFF"
    HEAD_TO_HEAD = "HEAD_TO_HEAD"


DEFAULT_RANKING_CRITERIA: tuple[RankingCriterion, ...] = (
    RankingCriterion.MATCHES_WON,
    RankingCriterion.SETS_WON,
    RankingCriterion.POINTS_DIFF,
    RankingCriterion.HEAD_TO_HEAD,
)


@dataclass(frozen=True)
class MatchRecord:
    """A completed match as seen by the standings computation."""

    match_id: str
    participants: tuple[str, ...]
    rules: MatchRules
    score: MatchScore
    winner_id: str | None = None


@dataclass(frozen=True)
class RejectedMatch:
    match_id: str
    reason: str


@dataclass
class HeadToHead:
    wins: int = 0
    losses: int = 0


@dataclass
class TeamStanding:
    team_id: str
    played: int = 0
    won: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    points_scored: int = 0
    points_conceded: int = 0
    head_to_head: dict[str, HeadToHead] = field(default_factory=dict)

    @property
    def lost(self) -> int:
        return self.played - self.won

    @property
    def points_diff(self) -> int:
        return self.points_scored - self.points_conceded


Comparator = Callable[[TeamStanding, TeamStanding], int]


def _cmp(a: int, b: int) -> int:
    return (a > b) - (a < b)


def _by_matches_won(a: TeamStanding, b: TeamStanding) -> int:
    return _cmp(a.won, b.won)


def _by_sets_won(a: TeamStanding, b: TeamStanding) -> int:
    return _cmp(a.sets_won, b.sets_won)


def _by_points_diff(a: TeamStanding, b: TeamStanding) -> int:
    return _cmp(a.points_diff, b.points_diff)


def _by_head_to_head(a: TeamStanding, b: TeamStanding) -> int:
    record = a.head_to_head.get(b.team_id)
    if record is None:
        return 0
    return _cmp(record.wins, record.losses)


COMPARATORS: dict[RankingCriterion, Comparator] = {
    RankingCriterion.MATCHES_WON: _by_matches_won,
    RankingCriterion.SETS_WON: _by_sets_won,
    RankingCriterion.POINTS_DIFF: _by_points_diff,
    RankingCriterion.HEAD_TO_HEAD: _by_head_to_head,
}


def parse_ranking_criteria(raw: Iterable[str] | None) -> list[RankingCriterion]:
    """Turn a stored criteria order into ``RankingCriterion`` values.

    ``None`` or an empty list falls back to the default order. Any other
    value must be a permutation of every criterion.
    """

    if not raw:
        return list(DEFAULT_RANKING_CRITERIA)
    if isinstance(raw, (str, bytes)):
        raise ValidationError("ranking criteria must be a list.")

    criteria: list[RankingCriterion] = []
    for value in raw:
        try:
            criteria.append(RankingCriterion(str(value).strip().upper()))
        except ValueError:
            raise ValidationError(f"unknown ranking criterion: {value!r}")

    if len(criteria) != len(RankingCriterion) or set(criteria) != set(
        RankingCriterion
    ):
        raise ValidationError(
            "ranking criteria must list every criterion exactly once."
        )
    return criteria


def move_criterion(
    criteria: Sequence[RankingCriterion], index: int, direction: str
) -> list[RankingCriterion]:
    """Swap the criterion at ``index`` one place ``"up"`` or ``"down"``."""

    if direction not in ("up", "down"):
        raise ValidationError("direction must be 'up' or 'down'.")
    reordered = list(criteria)
    target = index - 1 if direction == "up" else index + 1
    if index < 0 or index >= len(reordered) or target < 0 or target >= len(reordered):
        return reordered
    reordered[index], reordered[target] = reordered[target], reordered[index]
    return reordered


def _check_record(record: MatchRecord) -> tuple[str, str, str] | str:
    """Return ``(team_a, team_b, winner)`` or the reason the record is unusable."""

    parts = tuple(record.participants or ())
    if len(parts) != 2 or not all(parts):
        return "match must have exactly two participants"
    team_a, team_b = parts
    if team_a == team_b:
        return "match participants must be different teams"

    try:
        validate_reachable_score(record.score, record.rules)
    except ValidationError as exc:
        return f"match score is not reachable: {exc.detail}"

    decided = evaluate_match_outcome(record.score, record.rules)
    if decided is None:
        return "match score does not decide a winner"
    derived = team_a if decided == "A" else team_b
    winner = record.winner_id or derived
    if winner not in parts:
        return "winner is not a participant of the match"
    if winner != derived:
        return "recorded winner disagrees with the score"
    return team_a, team_b, winner


def compute_standings(
    matches: Iterable[MatchRecord],
    criteria: Sequence[RankingCriterion] = DEFAULT_RANKING_CRITERIA,
    *,
    rejected: list[RejectedMatch] | None = None,
) -> list[TeamStanding]:
    """Aggregate completed matches and order teams by ``criteria``.

    Ties on every criterion keep the order in which teams first appear in
    ``matches``. Malformed records are skipped and, when ``rejected`` is
    given, reported there.
    """

    table: dict[str, TeamStanding] = {}

    for record in matches:
        checked = _check_record(record)
        if isinstance(checked, str):
            logger.warning("Skipping match %s in standings: %s", record.match_id, checked)
            if rejected is not None:
                rejected.append(RejectedMatch(match_id=record.match_id, reason=checked))
            continue

        team_a, team_b, winner = checked
        for team_id, side, opponent in ((team_a, "A", team_b), (team_b, "B", team_a)):
            standing = table.setdefault(team_id, TeamStanding(team_id=team_id))
            other = "B" if side == "A" else "A"
            standing.played += 1
            for set_score in record.score.sets:
                outcome = evaluate_set_outcome(set_score, record.rules)
                if outcome == side:
                    standing.sets_won += 1
                elif outcome == other:
                    standing.sets_lost += 1
                standing.points_scored += set_score.points(side)
                standing.points_conceded += set_score.points(other)

            h2h = standing.head_to_head.setdefault(opponent, HeadToHead())
            if winner == team_id:
                standing.won += 1
                h2h.wins += 1
            else:
                h2h.losses += 1

    chain: list[Comparator] = []
    for criterion in criteria:
        comparator = COMPARATORS[RankingCriterion(criterion)]
        if comparator not in chain:
            chain.append(comparator)

    def _compare(a: TeamStanding, b: TeamStanding) -> int:
        for comparator in chain:
            result = comparator(a, b)
            if result:
                return -result
        return 0

    return sorted(table.values(), key=cmp_to_key(_compare))
