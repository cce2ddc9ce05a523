import uuid
from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import JoinRequest, Tournament, Team, User
from ..schemas import (
    TournamentCreate,
    TournamentOut,
    TournamentUpdate,
    JoinOut,
    JoinRequestOut,
    JoinRequestResolve,
    RankingCriteriaIn,
    RankingCriterionMove,
    PoolPlayerIn,
    PoolImportIn,
    PoolImportOut,
    PoolPlayerOut,
    TeamCreate,
    TeamOut,
    StandingOut,
    StandingsOut,
)
from ..exceptions import TournamentNotFound, http_problem
from ..services.access import hash_pin, is_organizer
from ..services.membership import (
    JoinRequestPending,
    JoinRequestResolved,
    JoinStatus,
    find_by_invite_code,
    join_with_code,
    list_join_requests,
    resolve_join_request,
)
from ..services.player_pool import (
    is_duplicate,
    merge_import,
    pool_entry,
    roster_csv,
)
from ..services.standings import move_criterion, parse_ranking_criteria
from ..services.tournaments import (
    criteria_names,
    delete_tournament_cascade,
    generate_invite_code,
    load_ranking_criteria,
    team_has_matches,
    team_names,
    tournament_standings,
)
from ..services.validation import ValidationError
from ..time_utils import coerce_utc
from .auth import get_current_user

router = APIRouter(tags=["tournaments"])


def _tournament_out(t: Tournament) -> TournamentOut:
    return TournamentOut(
        id=t.id,
        name=t.name,
        uniqueId=t.unique_id,
        organizerId=t.organizer_id,
        isLocked=bool(t.is_locked),
        isPublic=bool(t.is_public),
        hasScorerPin=bool(t.scorer_pin_hash),
        rankingCriteria=criteria_names(load_ranking_criteria(t)),
        participants=list(t.participants or []),
    )


async def _get_tournament(tournament_id: str, session: AsyncSession) -> Tournament:
    t = await session.get(Tournament, tournament_id)
    if not t:
        raise TournamentNotFound(tournament_id)
    return t


def _require_organizer(user: User, tournament: Tournament) -> None:
    if not is_organizer(user, tournament):
        raise http_problem(
            status_code=403,
            detail="forbidden",
            code="tournament_forbidden",
        )


def _require_open_roster(tournament: Tournament) -> None:
    if tournament.is_locked:
        raise http_problem(
            status_code=409,
            detail="tournament is locked; unlock it to change players or teams",
            code="tournament_locked",
        )


@router.post("/tournaments", response_model=TournamentOut)
async def create_tournament(
    body: TournamentCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    t = Tournament(
        id=uuid.uuid4().hex,
        name=body.name,
        organizer_id=user.id,
        unique_id=generate_invite_code(),
        is_locked=False,
        is_public=body.isPublic,
        scorer_pin_hash=hash_pin(body.scorerPin) if body.scorerPin else None,
        ranking_criteria=None,
        player_pool=[],
        participants=[],
    )
    session.add(t)
    await session.commit()
    return _tournament_out(t)


@router.get("/tournaments", response_model=list[TournamentOut])
async def list_tournaments(session: AsyncSession = Depends(get_session)):
    rows = (
        await session.execute(select(Tournament).order_by(Tournament.name))
    ).scalars().all()
    return [_tournament_out(t) for t in rows]


@router.get("/tournaments/{tournament_id}", response_model=TournamentOut)
async def get_tournament(
    tournament_id: str, session: AsyncSession = Depends(get_session)
):
    return _tournament_out(await _get_tournament(tournament_id, session))


@router.patch("/tournaments/{tournament_id}", response_model=TournamentOut)
async def update_tournament(
    tournament_id: str,
    body: TournamentUpdate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    payload = body.model_dump(exclude_unset=True)
    if not payload:
        return _tournament_out(tournament)

    _require_organizer(user, tournament)

    if "name" in payload:
        new_name = (payload["name"] or "").strip()
        if not new_name:
            raise http_problem(
                status_code=400,
                detail="tournament name is required",
                code="tournament_invalid",
            )
        tournament.name = new_name

    if payload.get("isLocked") is not None:
        tournament.is_locked = payload["isLocked"]

    if payload.get("isPublic") is not None:
        tournament.is_public = payload["isPublic"]

    if payload.get("scorerPin"):
        tournament.scorer_pin_hash = hash_pin(payload["scorerPin"])

    await session.commit()
    await session.refresh(tournament)
    return _tournament_out(tournament)


@router.put(
    "/tournaments/{tournament_id}/ranking-criteria", response_model=TournamentOut
)
async def set_ranking_criteria(
    tournament_id: str,
    body: RankingCriteriaIn,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    try:
        criteria = parse_ranking_criteria(body.criteria)
    except ValidationError as exc:
        raise http_problem(
            status_code=422,
            detail=exc.detail,
            code="ranking_criteria_invalid",
        )
    tournament.ranking_criteria = criteria_names(criteria)
    await session.commit()
    return _tournament_out(tournament)


@router.post(
    "/tournaments/{tournament_id}/ranking-criteria/move",
    response_model=TournamentOut,
)
async def move_ranking_criterion(
    tournament_id: str,
    body: RankingCriterionMove,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    current = load_ranking_criteria(tournament)
    tournament.ranking_criteria = criteria_names(
        move_criterion(current, body.index, body.direction)
    )
    await session.commit()
    return _tournament_out(tournament)


@router.delete("/tournaments/{tournament_id}", status_code=204)
async def delete_tournament(
    tournament_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    await delete_tournament_cascade(tournament, session)
    await session.commit()
    return Response(status_code=204)


# -----------------------------------------------------------------------------
# Membership
# -----------------------------------------------------------------------------
def _join_request_out(req: JoinRequest, username: str) -> JoinRequestOut:
    return JoinRequestOut(
        id=req.id,
        tournamentId=req.tournament_id,
        userId=req.user_id,
        username=username,
        status=req.status,
        createdAt=coerce_utc(req.created_at),
        resolvedAt=coerce_utc(req.resolved_at),
    )


@router.post("/tournaments/join/{code}", response_model=JoinOut)
async def join_tournament(
    code: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await find_by_invite_code(code, session)
    if not tournament:
        raise http_problem(
            status_code=404,
            detail="no tournament matches this invite code",
            code="invite_code_invalid",
        )
    try:
        outcome, request = await join_with_code(tournament, user, session)
    except JoinRequestPending as exc:
        raise http_problem(
            status_code=409,
            detail=str(exc),
            code="join_request_pending",
        )
    await session.commit()
    return JoinOut(
        status=outcome.value,
        tournament=_tournament_out(tournament),
        requestId=request.id if request else None,
    )


@router.get(
    "/tournaments/{tournament_id}/join-requests",
    response_model=list[JoinRequestOut],
)
async def list_pending_join_requests(
    tournament_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    rows = await list_join_requests(tournament.id, session, JoinStatus.PENDING)
    return [_join_request_out(req, username) for req, username in rows]


@router.post(
    "/tournaments/{tournament_id}/join-requests/{request_id}",
    response_model=JoinRequestOut,
)
async def resolve_join(
    tournament_id: str,
    request_id: str,
    body: JoinRequestResolve,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    req = await session.get(JoinRequest, request_id)
    if not req or req.tournament_id != tournament.id:
        raise http_problem(
            status_code=404,
            detail="join request not found",
            code="join_request_not_found",
        )
    try:
        resolve_join_request(tournament, req, body.approved)
    except JoinRequestResolved as exc:
        raise http_problem(
            status_code=409,
            detail=str(exc),
            code="join_request_resolved",
        )
    requester = await session.get(User, req.user_id)
    await session.commit()
    return _join_request_out(req, requester.username if requester else req.user_id)


# -----------------------------------------------------------------------------
# Player pool
# -----------------------------------------------------------------------------
@router.get(
    "/tournaments/{tournament_id}/players", response_model=list[PoolPlayerOut]
)
async def list_pool(tournament_id: str, session: AsyncSession = Depends(get_session)):
    tournament = await _get_tournament(tournament_id, session)
    return [PoolPlayerOut(**entry) for entry in tournament.player_pool or []]


async def _user_by_username(username: str, session: AsyncSession) -> dict | None:
    found = (
        await session.execute(select(User).where(User.username == username.lower()))
    ).scalars().first()
    if not found:
        return None
    return {"id": found.id, "name": found.name or found.username, "username": found.username}


@router.post(
    "/tournaments/{tournament_id}/players", response_model=list[PoolPlayerOut]
)
async def add_pool_player(
    tournament_id: str,
    body: PoolPlayerIn,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    _require_open_roster(tournament)

    query = body.query
    by_username = query.startswith("@")
    term = query[1:] if by_username else query
    found = await _user_by_username(term, session)
    entry = pool_entry(term, user=found) if found else pool_entry(term)

    pool = list(tournament.player_pool or [])
    if is_duplicate(pool, entry["name"], entry.get("username")):
        raise http_problem(
            status_code=409,
            detail="player is already in the list",
            code="player_pool_duplicate",
        )
    pool.append(entry)
    tournament.player_pool = pool
    await session.commit()
    return [PoolPlayerOut(**e) for e in pool]


@router.post(
    "/tournaments/{tournament_id}/players/import", response_model=PoolImportOut
)
async def import_pool_players(
    tournament_id: str,
    body: PoolImportIn,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    _require_open_roster(tournament)

    users = {
        u.username: {"id": u.id, "name": u.name or u.username, "username": u.username}
        for u in (await session.execute(select(User))).scalars().all()
    }
    pool, added = merge_import(tournament.player_pool or [], body.text, users.get)
    tournament.player_pool = pool
    await session.commit()
    return PoolImportOut(added=added, players=[PoolPlayerOut(**e) for e in pool])


@router.delete(
    "/tournaments/{tournament_id}/players/{index}",
    response_model=list[PoolPlayerOut],
)
async def remove_pool_player(
    tournament_id: str,
    index: int,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    _require_open_roster(tournament)
    pool = list(tournament.player_pool or [])
    if index < 0 or index >= len(pool):
        raise http_problem(
            status_code=404,
            detail="player not found",
            code="player_not_found",
        )
    pool.pop(index)
    tournament.player_pool = pool
    await session.commit()
    return [PoolPlayerOut(**e) for e in pool]


@router.get("/tournaments/{tournament_id}/players.csv")
async def export_pool_csv(
    tournament_id: str, session: AsyncSession = Depends(get_session)
):
    tournament = await _get_tournament(tournament_id, session)
    filename = f"{tournament.name}_Players.csv".replace('"', "")
    return Response(
        content=roster_csv(tournament.player_pool or []),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# -----------------------------------------------------------------------------
# Teams
# -----------------------------------------------------------------------------
def _team_out(team: Team) -> TeamOut:
    return TeamOut(
        id=team.id,
        tournamentId=team.tournament_id,
        name=team.name,
        playerNames=list(team.player_names or []),
    )


@router.get("/tournaments/{tournament_id}/teams", response_model=list[TeamOut])
async def list_teams(tournament_id: str, session: AsyncSession = Depends(get_session)):
    await _get_tournament(tournament_id, session)
    rows = (
        await session.execute(
            select(Team).where(Team.tournament_id == tournament_id).order_by(Team.name)
        )
    ).scalars().all()
    return [_team_out(t) for t in rows]


@router.post("/tournaments/{tournament_id}/teams", response_model=TeamOut)
async def create_team(
    tournament_id: str,
    body: TeamCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    _require_open_roster(tournament)

    pool_names = {(e.get("name") or "") for e in tournament.player_pool or []}
    unknown = [n for n in body.playerNames if n not in pool_names]
    if unknown:
        raise http_problem(
            status_code=400,
            detail=f"players not in the arena list: {', '.join(unknown)}",
            code="team_invalid",
        )

    team = Team(
        id=uuid.uuid4().hex,
        tournament_id=tournament.id,
        name=body.name,
        player_names=list(dict.fromkeys(body.playerNames)),
    )
    session.add(team)
    await session.commit()
    return _team_out(team)


@router.delete("/tournaments/{tournament_id}/teams/{team_id}", status_code=204)
async def delete_team(
    tournament_id: str,
    team_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    tournament = await _get_tournament(tournament_id, session)
    _require_organizer(user, tournament)
    team = await session.get(Team, team_id)
    if not team or team.tournament_id != tournament_id:
        raise http_problem(
            status_code=404,
            detail="team not found",
            code="team_not_found",
        )
    if await team_has_matches(team_id, session):
        raise http_problem(
            status_code=409,
            detail="team has scheduled matches",
            code="team_in_use",
        )
    await session.delete(team)
    await session.commit()
    return Response(status_code=204)


# -----------------------------------------------------------------------------
# Standings
# -----------------------------------------------------------------------------
@router.get(
    "/tournaments/{tournament_id}/standings", response_model=StandingsOut
)
async def get_standings(
    tournament_id: str, session: AsyncSession = Depends(get_session)
):
    tournament = await _get_tournament(tournament_id, session)
    standings, rejected = await tournament_standings(tournament, session)
    names = await team_names(tournament_id, session)

    return StandingsOut(
        tournamentId=tournament.id,
        criteria=criteria_names(load_ranking_criteria(tournament)),
        standings=[
            StandingOut(
                rank=index + 1,
                teamId=row.team_id,
                name=names.get(row.team_id),
                played=row.played,
                won=row.won,
                lost=row.lost,
                setsWon=row.sets_won,
                setsLost=row.sets_lost,
                pointsScored=row.points_scored,
                pointsConceded=row.points_conceded,
                pointsDiff=row.points_diff,
            )
            for index, row in enumerate(standings)
        ],
        rejectedMatchIds=[r.match_id for r in rejected],
    )
