import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Match, Tournament, User
from ..schemas import (
    MatchCreate,
    MatchIdOut,
    MatchOut,
    PointIn,
    PointOut,
    ScoreSheetIn,
)
from ..scoring.engine import MatchRules, MatchScore, summary
from ..scoring.live import LiveMatch, MatchAlreadyCompleted
from ..services.access import (
    ScoreWriteDenied,
    ScoreWriteGrant,
    grant_score_write,
    is_organizer,
)
from ..services.tournaments import (
    TournamentNotLocked,
    live_match_for,
    save_live_match,
    schedule_match,
)
from ..services.validation import ValidationError, validate_set_scores
from ..exceptions import (
    MatchCompleted,
    MatchDataInvalid,
    MatchNotFound,
    TournamentNotFound,
    http_problem,
)
from .auth import get_current_user, limiter, score_rate_limit
from ..time_utils import coerce_utc

logger = logging.getLogger(__name__)

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


def _match_out(match: Match, live: LiveMatch | None = None) -> MatchOut:
    live = live or _stored_live_match(match)
    details = summary(live.score, live.rules)
    return MatchOut(
        id=match.id,
        tournamentId=match.tournament_id,
        teamAId=match.team_a_id,
        teamBId=match.team_b_id,
        status=match.status,
        winnerId=match.winner_id,
        pointsTo=live.rules.target_points,
        winBy=live.rules.win_margin,
        maxPoint=live.rules.golden_point_cap,
        bestOf=live.rules.best_of,
        requiredWins=details["requiredWins"],
        sets=details["sets"],
        setWinners=details["setWinners"],
        setsWon=details["setsWon"],
        activeSet=live.active_set,
        court=match.court,
        umpireName=match.umpire_name,
        startTime=coerce_utc(match.scheduled_at),
        completedAt=coerce_utc(match.completed_at),
    )


def _stored_live_match(match: Match) -> LiveMatch:
    try:
        return live_match_for(match)
    except (ValidationError, TypeError, ValueError) as exc:
        logger.error("Match %s has unreadable stored data: %s", match.id, exc)
        raise MatchDataInvalid(match.id, str(exc))


async def _get_match(mid: str, session: AsyncSession) -> Match:
    m = await session.get(Match, mid)
    if not m:
        raise MatchNotFound(mid)
    return m


async def _score_grant(
    match: Match, user: User, pin: str | None, session: AsyncSession
) -> ScoreWriteGrant:
    tournament = await session.get(Tournament, match.tournament_id)
    if not tournament:
        raise TournamentNotFound(match.tournament_id)
    try:
        return grant_score_write(user, tournament, pin)
    except ScoreWriteDenied as exc:
        raise http_problem(
            status_code=403,
            detail=str(exc),
            code="score_forbidden",
        )


@router.post("", response_model=MatchIdOut)
async def create_match(
    body: MatchCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await session.get(Tournament, body.tournamentId)
    if not tournament:
        raise TournamentNotFound(body.tournamentId)
    if not is_organizer(user, tournament):
        raise http_problem(
            status_code=403,
            detail="forbidden",
            code="tournament_forbidden",
        )

    try:
        rules = MatchRules(
            target_points=body.pointsTo,
            golden_point_cap=body.maxPoint,
            best_of=body.bestOf,
        )
    except ValidationError as exc:
        raise http_problem(
            status_code=422,
            detail=exc.detail,
            code="match_rules_invalid",
        )

    try:
        match = await schedule_match(
            tournament,
            session,
            team_a_id=body.teamAId,
            team_b_id=body.teamBId,
            rules=rules,
            court=body.court,
            umpire_name=body.umpireName,
            scheduled_at=body.startTime,
        )
    except TournamentNotLocked as exc:
        raise http_problem(
            status_code=409,
            detail=str(exc),
            code="tournament_not_locked",
        )
    except ValidationError as exc:
        raise http_problem(
            status_code=400,
            detail=exc.detail,
            code="match_teams_invalid",
        )

    await session.commit()
    return MatchIdOut(id=match.id)


@router.get("", response_model=list[MatchOut])
async def list_matches(
    tournament_id: str = Query(..., alias="tournamentId"),
    session: AsyncSession = Depends(get_session),
):
    rows = (
        await session.execute(
            select(Match)
            .where(Match.tournament_id == tournament_id)
            .order_by(Match.scheduled_at.asc().nullslast(), Match.id)
        )
    ).scalars().all()
    out = []
    for m in rows:
        try:
            out.append(_match_out(m))
        except MatchDataInvalid:
            continue
    return out


@router.get("/{mid}", response_model=MatchOut)
async def get_match(mid: str, session: AsyncSession = Depends(get_session)):
    return _match_out(await _get_match(mid, session))


# POST /api/v0/matches/{mid}/points
async def apply_point(
    mid: str,
    body: PointIn,
    session: AsyncSession,
    user: User,
) -> PointOut:
    m = await _get_match(mid, session)
    grant = await _score_grant(m, user, body.pin, session)
    live = _stored_live_match(m)

    try:
        live, update = live.score_point(body.setIndex, body.side, body.delta)
    except MatchAlreadyCompleted:
        raise MatchCompleted(mid)
    except ValueError as exc:
        raise http_problem(
            status_code=422,
            detail=str(exc),
            code="match_score_invalid",
        )

    if update.accepted:
        save_live_match(m, live, grant)
        await session.commit()
        logger.debug(
            "Point %+d for side %s in set %d of match %s (%s)",
            body.delta,
            body.side,
            body.setIndex,
            mid,
            grant.basis,
        )

    return PointOut(
        accepted=update.accepted,
        result=update.status.value,
        setOutcome=update.set_outcome,
        match=_match_out(m, live),
    )


@router.post("/{mid}/points", response_model=PointOut)
@limiter.limit(score_rate_limit)
async def apply_point_route(
    request: Request,
    mid: str,
    body: PointIn,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await apply_point(mid, body, session, user)


# PUT /api/v0/matches/{mid}/score
async def save_score_sheet(
    mid: str,
    body: ScoreSheetIn,
    session: AsyncSession,
    user: User,
) -> MatchOut:
    m = await _get_match(mid, session)
    grant = await _score_grant(m, user, body.pin, session)
    live = _stored_live_match(m)

    try:
        sets = validate_set_scores(
            [s.model_dump() for s in body.sets],
            max_sets=live.rules.best_of,
            max_points_per_side=live.rules.golden_point_cap,
        )
        score = MatchScore.from_sets(sets, live.rules.best_of)
        live = live.replace_score(score)
    except MatchAlreadyCompleted:
        raise MatchCompleted(mid)
    except ValidationError as exc:
        raise http_problem(
            status_code=422,
            detail=exc.detail,
            code="match_score_invalid",
        )

    save_live_match(m, live, grant)
    await session.commit()
    return _match_out(m, live)


@router.put("/{mid}/score", response_model=MatchOut)
@limiter.limit(score_rate_limit)
async def save_score_sheet_route(
    request: Request,
    mid: str,
    body: ScoreSheetIn,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await save_score_sheet(mid, body, session, user)
