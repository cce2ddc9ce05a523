"""Glue between stored arenas/matches and the pure scoring and standings code."""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import JoinRequest, Match, Team, Tournament
from ..scoring.engine import MatchRules, MatchScore
from ..scoring.live import LiveMatch, MatchStatus
from ..time_utils import utcnow
from .access import ScoreWriteDenied, ScoreWriteGrant
from .standings import (
    MatchRecord,
    RankingCriterion,
    RejectedMatch,
    TeamStanding,
    compute_standings,
    parse_ranking_criteria,
)
from .validation import ValidationError, validate_court, validate_team_pair

logger = logging.getLogger(__name__)

INVITE_CODE_BYTES = 6


class TournamentNotLocked(Exception):
    """Raised when scheduling in an arena whose roster is still open."""


def generate_invite_code() -> str:
    return secrets.token_urlsafe(INVITE_CODE_BYTES)


def match_rules_for(match: Match) -> MatchRules:
    return MatchRules(
        target_points=match.target_points,
        golden_point_cap=match.golden_point_cap,
        best_of=match.best_of,
    )


def _status_of(match: Match) -> MatchStatus:
    try:
        return MatchStatus(match.status)
    except ValueError:
        return MatchStatus.SCHEDULED


def live_match_for(match: Match) -> LiveMatch:
    rules = match_rules_for(match)
    score = MatchScore.from_sets(match.scores, rules.best_of)
    return LiveMatch.restore(rules, score, _status_of(match))


def side_team_id(match: Match, side: str | None) -> str | None:
    if side == "A":
        return match.team_a_id
    if side == "B":
        return match.team_b_id
    return None


def save_live_match(match: Match, live: LiveMatch, grant: ScoreWriteGrant) -> None:
    """Copy score, status and winner of ``live`` onto the stored match.

    ``grant`` must have been issued for the match's tournament.
    """

    if not grant.covers(match.tournament_id):
        raise ScoreWriteDenied(
            f"grant for tournament {grant.tournament_id} does not cover match {match.id}"
        )
    was_completed = match.status == MatchStatus.COMPLETED.value
    match.scores = live.score.as_list()
    match.status = live.status.value
    match.winner_id = side_team_id(match, live.winner)
    if live.is_completed and not was_completed:
        match.completed_at = utcnow().replace(tzinfo=None)
        logger.info("Match %s completed; winner %s", match.id, match.winner_id)


def match_record_for(match: Match) -> MatchRecord:
    rules = match_rules_for(match)
    return MatchRecord(
        match_id=match.id,
        participants=tuple(pid for pid in (match.team_a_id, match.team_b_id) if pid),
        rules=rules,
        score=MatchScore.from_sets(match.scores, rules.best_of),
        winner_id=match.winner_id,
    )


async def load_completed_matches(
    tournament_id: str, session: AsyncSession
) -> list[Match]:
    return list(
        (
            await session.execute(
                select(Match)
                .where(
                    Match.tournament_id == tournament_id,
                    Match.status == MatchStatus.COMPLETED.value,
                )
                .order_by(Match.scheduled_at.asc().nullslast(), Match.id)
            )
        )
        .scalars()
        .all()
    )


def load_ranking_criteria(tournament: Tournament) -> list[RankingCriterion]:
    try:
        return parse_ranking_criteria(tournament.ranking_criteria)
    except ValidationError:
        logger.warning(
            "Tournament %s has an invalid ranking order %r; using the default",
            tournament.id,
            tournament.ranking_criteria,
        )
        return parse_ranking_criteria(None)


async def tournament_standings(
    tournament: Tournament, session: AsyncSession
) -> tuple[list[TeamStanding], list[RejectedMatch]]:
    rows = await load_completed_matches(tournament.id, session)
    rejected: list[RejectedMatch] = []
    records: list[MatchRecord] = []
    for row in rows:
        try:
            records.append(match_record_for(row))
        except (ValidationError, TypeError, ValueError) as exc:
            logger.warning("Skipping match %s in standings: %s", row.id, exc)
            rejected.append(RejectedMatch(match_id=row.id, reason=str(exc)))
    standings = compute_standings(
        records, load_ranking_criteria(tournament), rejected=rejected
    )
    return standings, rejected


async def team_names(tournament_id: str, session: AsyncSession) -> dict[str, str]:
    rows = (
        await session.execute(
            select(Team.id, Team.name).where(Team.tournament_id == tournament_id)
        )
    ).all()
    return {tid: name for tid, name in rows}


async def schedule_match(
    tournament: Tournament,
    session: AsyncSession,
    *,
    team_a_id: str,
    team_b_id: str,
    rules: MatchRules,
    court: int = 1,
    umpire_name: str | None = None,
    scheduled_at: datetime | None = None,
) -> Match:
    """Create a scheduled match between two teams of a locked arena.

    Raises ``TournamentNotLocked`` while the roster is open and
    ``ValidationError`` for unknown or identical teams and bad courts.
    """

    if not tournament.is_locked:
        raise TournamentNotLocked("Tournament must be locked first.")

    known = (
        await session.execute(
            select(Team.id).where(Team.tournament_id == tournament.id)
        )
    ).scalars().all()
    validate_team_pair(team_a_id, team_b_id, known)
    court_number = validate_court(court)

    match = Match(
        id=uuid.uuid4().hex,
        tournament_id=tournament.id,
        team_a_id=team_a_id,
        team_b_id=team_b_id,
        target_points=rules.target_points,
        golden_point_cap=rules.golden_point_cap,
        best_of=rules.best_of,
        status=MatchStatus.SCHEDULED.value,
        winner_id=None,
        scores=MatchScore.blank(rules.best_of).as_list(),
        court=court_number,
        umpire_name=(umpire_name or "").strip() or None,
        scheduled_at=scheduled_at.replace(tzinfo=None) if scheduled_at else None,
    )
    session.add(match)
    await session.flush()
    return match


async def team_has_matches(team_id: str, session: AsyncSession) -> bool:
    found = (
        await session.execute(
            select(Match.id).where(
                (Match.team_a_id == team_id) | (Match.team_b_id == team_id)
            )
        )
    ).scalars().first()
    return found is not None


async def delete_tournament_cascade(
    tournament: Tournament, session: AsyncSession
) -> None:
    await session.execute(delete(Match).where(Match.tournament_id == tournament.id))
    await session.execute(delete(Team).where(Team.tournament_id == tournament.id))
    await session.execute(
        delete(JoinRequest).where(JoinRequest.tournament_id == tournament.id)
    )
    await session.delete(tournament)


def criteria_names(criteria: Sequence[RankingCriterion]) -> list[str]:
    return [c.value for c in criteria]
