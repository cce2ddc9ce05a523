"""Internal application services.

Only dependency-free helpers are re-exported here; ``standings`` and
``tournaments`` build on the scoring engine and are imported directly.
"""

from .validation import (
    ValidationError,
    validate_court,
    validate_scorer_pin,
    validate_set_scores,
)
from .access import (
    ScoreWriteDenied,
    ScoreWriteGrant,
    can_write_score,
    grant_score_write,
)

__all__ = [
    "ValidationError",
    "validate_court",
    "validate_scorer_pin",
    "validate_set_scores",
    "ScoreWriteDenied",
    "ScoreWriteGrant",
    "can_write_score",
    "grant_score_write",
]
