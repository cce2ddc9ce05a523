"""Arena membership through invite codes.

Anyone holding an arena's invite code can join a public arena directly. For a
private arena the code files a join request that the organizer approves or
rejects; approval adds the requester to the participant list.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import JoinRequest, Tournament, User
from ..time_utils import utcnow
from .access import is_organizer

logger = logging.getLogger(__name__)


class JoinStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class JoinOutcome(str, Enum):
    MEMBER = "member"
    JOINED = "joined"
    REQUESTED = "requested"


class JoinRequestPending(Exception):
    """Raised when the user already has an open request for the arena."""


class JoinRequestResolved(Exception):
    """Raised when resolving a request that is no longer pending."""


def is_member(user: User, tournament: Tournament) -> bool:
    return is_organizer(user, tournament) or user.id in (tournament.participants or [])


def add_participant(tournament: Tournament, user_id: str) -> bool:
    current = list(tournament.participants or [])
    if user_id in current:
        return False
    # assign a new list so the JSON column is flagged dirty
    tournament.participants = current + [user_id]
    return True


async def find_by_invite_code(code: str, session: AsyncSession) -> Tournament | None:
    return (
        await session.execute(
            select(Tournament).where(Tournament.unique_id == code.strip())
        )
    ).scalars().first()


async def pending_request_for(
    tournament_id: str, user_id: str, session: AsyncSession
) -> JoinRequest | None:
    return (
        await session.execute(
            select(JoinRequest).where(
                JoinRequest.tournament_id == tournament_id,
                JoinRequest.user_id == user_id,
                JoinRequest.status == JoinStatus.PENDING.value,
            )
        )
    ).scalars().first()


async def join_with_code(
    tournament: Tournament, user: User, session: AsyncSession
) -> tuple[JoinOutcome, JoinRequest | None]:
    """Join ``tournament`` or ask to join it, depending on its visibility.

    Raises ``JoinRequestPending`` when a private arena already holds an open
    request from ``user``.
    """

    if is_member(user, tournament):
        return JoinOutcome.MEMBER, None

    if tournament.is_public:
        add_participant(tournament, user.id)
        logger.info("User %s joined tournament %s", user.id, tournament.id)
        return JoinOutcome.JOINED, None

    if await pending_request_for(tournament.id, user.id, session):
        raise JoinRequestPending("A join request is already pending.")

    request = JoinRequest(
        id=uuid.uuid4().hex,
        tournament_id=tournament.id,
        user_id=user.id,
        status=JoinStatus.PENDING.value,
        created_at=utcnow().replace(tzinfo=None),
    )
    session.add(request)
    await session.flush()
    logger.info("User %s requested to join tournament %s", user.id, tournament.id)
    return JoinOutcome.REQUESTED, request


def resolve_join_request(
    tournament: Tournament, request: JoinRequest, approved: bool
) -> JoinRequest:
    if request.status != JoinStatus.PENDING.value:
        raise JoinRequestResolved(f"Join request is already {request.status}.")
    request.status = (JoinStatus.APPROVED if approved else JoinStatus.REJECTED).value
    request.resolved_at = utcnow().replace(tzinfo=None)
    if approved:
        add_participant(tournament, request.user_id)
    return request


async def list_join_requests(
    tournament_id: str, session: AsyncSession, status: JoinStatus | None = None
) -> list[tuple[JoinRequest, str]]:
    stmt = (
        select(JoinRequest, User.username)
        .join(User, User.id == JoinRequest.user_id)
        .where(JoinRequest.tournament_id == tournament_id)
        .order_by(JoinRequest.created_at, JoinRequest.id)
    )
    if status is not None:
        stmt = stmt.where(JoinRequest.status == status.value)
    return [(req, username) for req, username in (await session.execute(stmt)).all()]
