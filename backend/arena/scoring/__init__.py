"""Set/match scoring engine and the live match state machine."""

from . import engine, live

__all__ = [
    "engine",
    "live",
]
