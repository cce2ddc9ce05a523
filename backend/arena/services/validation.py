from typing import Any, Dict, List, Optional, Sequence

SCORER_PIN_LENGTH = 4
MIN_COURT = 1
MAX_COURT = 6


class ValidationError(ValueError):
    """Raised when match rules, scores or arena settings are invalid."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


def validate_set_scores(
    sets: List[Dict[str, Any]],
    *,
    max_sets: Optional[int] = 5,
    max_points_per_side: Optional[int] = None,
) -> List[Dict[str, int]]:
    """Validate and normalise a submitted score sheet.

    Rules:
    - At least one set is required
    - Number of sets must be <= ``max_sets`` (if provided)
    - Each set must be an object ``{A, B}``
    - ``A`` and ``B`` must be integers >= 0 (booleans are rejected)
    - Neither side may exceed ``max_points_per_side`` (the golden point cap)

    Unplayed sets are sent as ``{A: 0, B: 0}`` so level scores are allowed.
    """

    if not isinstance(sets, list) or len(sets) == 0:
        raise ValidationError("At least one set is required.")
    if max_sets is not None and len(sets) > max_sets:
        raise ValidationError(f"Too many sets. Max allowed is {max_sets}.")

    normalized: List[Dict[str, int]] = []
    for i, s in enumerate(sets, start=1):
        if not isinstance(s, dict):
            raise ValidationError(f"Set #{i} must be an object with fields A and B.")
        if "A" not in s or "B" not in s:
            raise ValidationError(f"Set #{i} must include both A and B.")

        vA, vB = s["A"], s["B"]

        # bool is a subclass of int
        if isinstance(vA, bool) or isinstance(vB, bool):
            raise ValidationError(f"Set #{i} scores must be integers (not booleans).")

        try:
            a = int(vA)
            b = int(vB)
        except (TypeError, ValueError):
            raise ValidationError(f"Set #{i} scores must be integers.")

        if a < 0 or b < 0:
            raise ValidationError(f"Set #{i} scores must be >= 0.")
        if max_points_per_side is not None and (
            a > max_points_per_side or b > max_points_per_side
        ):
            raise ValidationError(
                f"Set #{i} scores must be <= {max_points_per_side}."
            )
        normalized.append({"A": a, "B": b})

    return normalized


def validate_scorer_pin(pin: Any) -> str:
    if not isinstance(pin, str):
        raise ValidationError("PIN must be a string of digits.")
    value = pin.strip()
    if len(value) != SCORER_PIN_LENGTH or not value.isdigit():
        raise ValidationError(f"PIN must be {SCORER_PIN_LENGTH} digits.")
    return value


def validate_court(court: Any) -> int:
    if isinstance(court, bool):
        raise ValidationError("Court must be an integer.")
    try:
        value = int(court)
    except (TypeError, ValueError):
        raise ValidationError("Court must be an integer.")
    if value < MIN_COURT or value > MAX_COURT:
        raise ValidationError(f"Court must be between {MIN_COURT} and {MAX_COURT}.")
    return value


def validate_team_pair(team_a_id: str, team_b_id: str, known: Sequence[str]) -> None:
    if not team_a_id or not team_b_id:
        raise ValidationError("Select two teams.")
    if team_a_id == team_b_id:
        raise ValidationError("Select two different teams.")
    missing = sorted({team_a_id, team_b_id} - set(known))
    if missing:
        raise ValidationError(f"unknown teams: {', '.join(missing)}")
