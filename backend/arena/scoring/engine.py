"""Rally scoring engine for set-based matches.

Sets are played to ``target_points`` with a win-by-2 requirement and an
absolute ``golden_point_cap``: the first side to reach the cap takes the set
even with a one point lead (30-29). Matches are best-of-1, 3 or 5 sets.

Every function here is pure. Scores are immutable values and each operation
returns a new value, so outcomes can be recomputed from any stored score.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Mapping, Sequence

from ..services.validation import ValidationError

Side = Literal["A", "B"]
SIDES: tuple[Side, Side] = ("A", "B")

WIN_MARGIN = 2
DEFAULT_TARGET_POINTS = 21
DEFAULT_GOLDEN_POINT_CAP = 30
DEFAULT_BEST_OF = 3
SUPPORTED_BEST_OF = (1, 3, 5)


def _other(side: Side) -> Side:
    return "B" if side == "A" else "A"


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def required_wins(best_of: int) -> int:
    """Sets needed to clinch a best-of-``best_of`` match."""

    return math.ceil((best_of + 1) / 2)


@dataclass(frozen=True)
class MatchRules:
    target_points: int = DEFAULT_TARGET_POINTS
    golden_point_cap: int = DEFAULT_GOLDEN_POINT_CAP
    best_of: int = DEFAULT_BEST_OF
    win_margin: int = field(default=WIN_MARGIN, init=False)

    def __post_init__(self) -> None:
        if not _is_int(self.target_points) or self.target_points <= 0:
            raise ValidationError("target points must be a positive integer.")
        if not _is_int(self.golden_point_cap):
            raise ValidationError("golden point cap must be an integer.")
        if self.golden_point_cap < self.target_points:
            raise ValidationError(
                "golden point cap must be greater than or equal to target points."
            )
        if self.best_of not in SUPPORTED_BEST_OF or not _is_int(self.best_of):
            raise ValidationError("best of must be 1, 3, or 5.")

    @classmethod
    def from_config(cls, config: Mapping[str, object] | None) -> "MatchRules":
        """Build rules from a ``{pointsTo, maxPoint, bestOf}`` style mapping."""

        config = config or {}
        return cls(
            target_points=config.get("pointsTo", DEFAULT_TARGET_POINTS),  # type: ignore[arg-type]
            golden_point_cap=config.get("maxPoint", DEFAULT_GOLDEN_POINT_CAP),  # type: ignore[arg-type]
            best_of=config.get("bestOf", DEFAULT_BEST_OF),  # type: ignore[arg-type]
        )

    @property
    def sets_needed(self) -> int:
        return required_wins(self.best_of)

    def to_config(self) -> dict[str, int]:
        return {
            "pointsTo": self.target_points,
            "winBy": self.win_margin,
            "maxPoint": self.golden_point_cap,
            "bestOf": self.best_of,
        }


@dataclass(frozen=True)
class SetScore:
    a: int = 0
    b: int = 0

    def points(self, side: Side) -> int:
        return self.a if side == "A" else self.b

    def with_points(self, side: Side, value: int) -> "SetScore":
        if side == "A":
            return SetScore(a=value, b=self.b)
        return SetScore(a=self.a, b=value)

    def as_dict(self) -> dict[str, int]:
        return {"A": self.a, "B": self.b}


@dataclass(frozen=True)
class MatchScore:
    sets: tuple[SetScore, ...]

    @classmethod
    def blank(cls, best_of: int) -> "MatchScore":
        return cls(sets=tuple(SetScore() for _ in range(best_of)))

    @classmethod
    def from_sets(
        cls, sets: Sequence[Mapping[str, int]] | None, best_of: int
    ) -> "MatchScore":
        """Load stored ``[{"A": .., "B": ..}]`` sets, padding to ``best_of``.

        Missing counters read as 0. Stored sheets longer than ``best_of``
        are a data error.
        """

        entries = list(sets or [])
        if len(entries) > best_of:
            raise ValidationError(
                f"Too many sets. Max allowed is {best_of}."
            )
        loaded = [
            SetScore(a=int(entry.get("A") or 0), b=int(entry.get("B") or 0))
            for entry in entries
        ]
        loaded.extend(SetScore() for _ in range(best_of - len(loaded)))
        return cls(sets=tuple(loaded))

    def replace_set(self, index: int, value: SetScore) -> "MatchScore":
        sets = list(self.sets)
        sets[index] = value
        return MatchScore(sets=tuple(sets))

    def totals(self) -> dict[str, int]:
        return {
            "A": sum(s.a for s in self.sets),
            "B": sum(s.b for s in self.sets),
        }

    def as_list(self) -> list[dict[str, int]]:
        return [s.as_dict() for s in self.sets]


def _side_wins(score: SetScore, side: Side, rules: MatchRules) -> bool:
    mine = score.points(side)
    theirs = score.points(_other(side))
    if mine >= rules.golden_point_cap:
        return True
    return mine >= rules.target_points and mine - theirs >= rules.win_margin


def evaluate_set_outcome(score: SetScore, rules: MatchRules) -> Side | None:
    """Return the side that has won ``score`` or ``None`` while it is open.

    Reaching ``golden_point_cap`` wins the set regardless of margin.
    """

    for side in SIDES:
        if _side_wins(score, side, rules):
            return side
    return None


def set_outcomes(score: MatchScore, rules: MatchRules) -> list[Side | None]:
    return [evaluate_set_outcome(s, rules) for s in score.sets]


def sets_won(score: MatchScore, rules: MatchRules) -> dict[str, int]:
    tally = {"A": 0, "B": 0}
    for outcome in set_outcomes(score, rules):
        if outcome is not None:
            tally[outcome] += 1
    return tally


def evaluate_match_outcome(score: MatchScore, rules: MatchRules) -> Side | None:
    """Return the side holding the required number of set wins, if any."""

    tally = sets_won(score, rules)
    needed = rules.sets_needed
    for side in SIDES:
        if tally[side] >= needed:
            return side
    return None


def validate_reachable_score(score: MatchScore, rules: MatchRules) -> None:
    """Raise ``ValidationError`` unless rally scoring could end at ``score``.

    A decided set must stop on its winning point (or on the golden point
    cap), only one side can hold the win, and no set after the clinching
    one may carry points.
    """

    needed = rules.sets_needed
    tally = {"A": 0, "B": 0}
    clinched_in: int | None = None
    for index, s in enumerate(score.sets, start=1):
        if clinched_in is not None:
            if s.a or s.b:
                raise ValidationError(
                    f"Set #{index} has points after the match was decided in set #{clinched_in}."
                )
            continue
        if s.a > rules.golden_point_cap or s.b > rules.golden_point_cap:
            raise ValidationError(
                f"Set #{index} exceeds the golden point cap of {rules.golden_point_cap}."
            )
        if _side_wins(s, "A", rules) and _side_wins(s, "B", rules):
            raise ValidationError(f"Set #{index} cannot be won by both sides.")
        outcome = evaluate_set_outcome(s, rules)
        if outcome is None:
            continue
        winner_points = s.points(outcome)
        loser_points = s.points(_other(outcome))
        closing_point = max(rules.target_points, loser_points + rules.win_margin)
        if winner_points != rules.golden_point_cap and winner_points > closing_point:
            raise ValidationError(
                f"Set #{index} continues past its winning point ({s.a}-{s.b})."
            )
        tally[outcome] += 1
        if tally[outcome] >= needed:
            clinched_in = index


class PointStatus(str, Enum):
    APPLIED = "applied"
    CLAMPED = "clamped"
    REJECTED_SET_DECIDED = "set_decided"


@dataclass(frozen=True)
class PointUpdate:
    """Result of a single point delta."""

    score: MatchScore
    status: PointStatus
    set_outcome: Side | None
    set_decided_now: bool = False

    @property
    def accepted(self) -> bool:
        return self.status is PointStatus.APPLIED


def apply_point_delta(
    score: MatchScore,
    set_index: int,
    side: Side,
    delta: int,
    rules: MatchRules,
) -> PointUpdate:
    """Add ``delta`` (``+1`` or ``-1``) to ``side`` in set ``set_index``.

    Scoring into a decided set is rejected and decrements below zero are
    clamped; both leave ``score`` untouched.
    """

    if side not in SIDES:
        raise ValueError(f"invalid side: {side!r}")
    if delta not in (1, -1) or isinstance(delta, bool):
        raise ValueError("delta must be +1 or -1")
    if not 0 <= set_index < len(score.sets):
        raise ValueError(f"set index {set_index} out of range")

    current = score.sets[set_index]
    before = evaluate_set_outcome(current, rules)

    if before is not None and delta > 0:
        return PointUpdate(
            score=score,
            status=PointStatus.REJECTED_SET_DECIDED,
            set_outcome=before,
        )

    value = current.points(side) + delta
    if value < 0:
        return PointUpdate(score=score, status=PointStatus.CLAMPED, set_outcome=before)

    updated = current.with_points(side, value)
    after = evaluate_set_outcome(updated, rules)
    return PointUpdate(
        score=score.replace_set(set_index, updated),
        status=PointStatus.APPLIED,
        set_outcome=after,
        set_decided_now=before is None and after is not None,
    )


def summary(score: MatchScore, rules: MatchRules) -> dict:
    return {
        "sets": score.as_list(),
        "setWinners": set_outcomes(score, rules),
        "setsWon": sets_won(score, rules),
        "totals": score.totals(),
        "requiredWins": rules.sets_needed,
        "winner": evaluate_match_outcome(score, rules),
        "config": rules.to_config(),
    }
