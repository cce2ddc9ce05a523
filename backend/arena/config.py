import os

from .scoring.engine import (
    DEFAULT_BEST_OF,
    DEFAULT_GOLDEN_POINT_CAP,
    DEFAULT_TARGET_POINTS,
)


def _canon_prefix(val):
    """
    Normalize the API prefix to look like '/api': default when unset, a single
    leading slash and no trailing slash.
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

SCORE_RATE_LIMIT = os.getenv("SCORE_RATE_LIMIT") or "120/minute"

MATCH_DEFAULTS = {
    "pointsTo": DEFAULT_TARGET_POINTS,
    "maxPoint": DEFAULT_GOLDEN_POINT_CAP,
    "bestOf": DEFAULT_BEST_OF,
}


def load_allowed_origins(raw=None):
    """Parse ``ALLOWED_ORIGINS`` into a list of explicit origins.

    Raises ``ValueError`` when nothing usable is configured or a wildcard is
    present.
    """
    if raw is None:
        raw = os.getenv("ALLOWED_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if not origins:
        raise ValueError(
            "ALLOWED_ORIGINS must be a comma-separated list of trusted origins."
        )
    if "*" in origins:
        raise ValueError(
            "ALLOWED_ORIGINS cannot include '*' (wildcard). Specify explicit, trusted origins."
        )
    return origins


def allow_credentials():
    return os.getenv("ALLOW_CREDENTIALS", "true").lower() == "true"
