"""Score-write capability.

Writing a score needs an explicit ``ScoreWriteGrant``. Organizers and admins
get one from their identity; anyone else has to present the arena's scorer
PIN. Scoring helpers take the grant as an argument instead of re-deriving
roles from user objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Protocol

import bcrypt

logger = logging.getLogger(__name__)

GrantBasis = Literal["organizer", "admin", "pin"]


class Actor(Protocol):
    id: str
    is_admin: bool


class ScoringArena(Protocol):
    id: str
    organizer_id: str | None
    scorer_pin_hash: str | None


class ScoreWriteDenied(Exception):
    """Raised when an actor may not write scores for an arena."""


@dataclass(frozen=True)
class ScoreWriteGrant:
    actor_id: str
    tournament_id: str
    basis: GrantBasis

    def covers(self, tournament_id: str) -> bool:
        return self.tournament_id == tournament_id


def hash_pin(pin: str) -> str:
    if not isinstance(pin, str):
        raise TypeError("pin must be a string")
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_pin(pin: str | None, hashed: str | None) -> bool:
    if not isinstance(pin, str) or not isinstance(hashed, str) or not pin:
        return False
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def is_organizer(actor: Actor, tournament: ScoringArena) -> bool:
    return bool(actor.is_admin) or (
        tournament.organizer_id is not None and actor.id == tournament.organizer_id
    )


def grant_score_write(
    actor: Actor, tournament: ScoringArena, pin: str | None = None
) -> ScoreWriteGrant:
    if actor.is_admin:
        return ScoreWriteGrant(actor.id, tournament.id, "admin")
    if tournament.organizer_id is not None and actor.id == tournament.organizer_id:
        return ScoreWriteGrant(actor.id, tournament.id, "organizer")
    if verify_pin(pin, tournament.scorer_pin_hash):
        return ScoreWriteGrant(actor.id, tournament.id, "pin")

    logger.warning(
        "Score write denied for user %s on tournament %s", actor.id, tournament.id
    )
    raise ScoreWriteDenied("Invalid scorer PIN. Access denied.")


def can_write_score(
    actor: Actor, tournament: ScoringArena, pin: str | None = None
) -> bool:
    try:
        grant_score_write(actor, tournament, pin)
    except ScoreWriteDenied:
        return False
    return True
