"""Live match state machine.

A match moves ``scheduled -> in_progress -> completed`` and never back. The
first applied point starts it; the point that gives one side the required
number of sets completes it and fixes the winner. Completed matches reject
any further point updates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum

from .engine import (
    MatchRules,
    MatchScore,
    PointUpdate,
    Side,
    apply_point_delta,
    evaluate_set_outcome,
    evaluate_match_outcome,
    validate_reachable_score,
)

logger = logging.getLogger(__name__)


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MatchAlreadyCompleted(Exception):
    """Raised when a point update targets a completed match."""

    def __init__(self, winner: Side | None) -> None:
        super().__init__(f"match already completed (winner {winner})")
        self.winner = winner


@dataclass(frozen=True)
class LiveMatch:
    rules: MatchRules
    score: MatchScore
    status: MatchStatus = MatchStatus.SCHEDULED
    winner: Side | None = None
    active_set: int = 0

    @classmethod
    def start(cls, rules: MatchRules) -> "LiveMatch":
        return cls(rules=rules, score=MatchScore.blank(rules.best_of))

    @classmethod
    def restore(
        cls,
        rules: MatchRules,
        score: MatchScore,
        status: MatchStatus = MatchStatus.SCHEDULED,
    ) -> "LiveMatch":
        """Rebuild a live match from a stored score.

        Status is derived from the score: a decided score is completed, a
        stored ``in_progress`` status is kept, anything else is scheduled.
        The active set is the first open set.
        """

        winner = evaluate_match_outcome(score, rules)
        if winner is not None:
            status = MatchStatus.COMPLETED
        elif status is MatchStatus.COMPLETED:
            status = MatchStatus.IN_PROGRESS
        return cls(
            rules=rules,
            score=score,
            status=status,
            winner=winner,
            active_set=_first_open_set(score, rules),
        )

    @property
    def is_completed(self) -> bool:
        return self.status is MatchStatus.COMPLETED

    def score_point(
        self, set_index: int, side: Side, delta: int
    ) -> tuple["LiveMatch", PointUpdate]:
        if self.is_completed:
            raise MatchAlreadyCompleted(self.winner)

        update = apply_point_delta(self.score, set_index, side, delta, self.rules)
        if not update.accepted:
            return self, update

        winner = evaluate_match_outcome(update.score, self.rules)
        active_set = self.active_set
        if update.set_decided_now and winner is None:
            active_set = min(
                max(active_set, set_index + 1), len(update.score.sets) - 1
            )

        if winner is not None:
            status = MatchStatus.COMPLETED
            logger.info("Match decided for side %s", winner)
        else:
            status = MatchStatus.IN_PROGRESS

        return (
            replace(
                self,
                score=update.score,
                status=status,
                winner=winner,
                active_set=active_set,
            ),
            update,
        )

    def replace_score(self, score: MatchScore) -> "LiveMatch":
        """Overwrite the whole score sheet of an open match.

        Raises ``ValidationError`` for a sheet live scoring could not produce.
        """

        if self.is_completed:
            raise MatchAlreadyCompleted(self.winner)
        validate_reachable_score(score, self.rules)
        status = self.status
        if any(s.a or s.b for s in score.sets):
            status = MatchStatus.IN_PROGRESS
        return LiveMatch.restore(self.rules, score, status)


def _first_open_set(score: MatchScore, rules: MatchRules) -> int:
    for index, s in enumerate(score.sets):
        if evaluate_set_outcome(s, rules) is None:
            return index
    return max(len(score.sets) - 1, 0)
