"""Scoring for casual matches that are never stored.

The client sends the rules and the sheet it holds with every point and gets
the next state back, so nothing here touches the database.
"""

import logging

from fastapi import APIRouter, Request

from ..exceptions import http_problem
from ..schemas import QuickMatchOut, QuickPointIn, QuickPointOut
from ..scoring.engine import MatchRules, MatchScore, summary, validate_reachable_score
from ..scoring.live import LiveMatch, MatchAlreadyCompleted, MatchStatus
from ..services.validation import ValidationError, validate_set_scores
from .auth import limiter, score_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quick-match", tags=["quick-match"])


def _quick_match_out(live: LiveMatch) -> QuickMatchOut:
    details = summary(live.score, live.rules)
    return QuickMatchOut(
        status=live.status.value,
        winner=live.winner,
        pointsTo=live.rules.target_points,
        winBy=live.rules.win_margin,
        maxPoint=live.rules.golden_point_cap,
        bestOf=live.rules.best_of,
        requiredWins=details["requiredWins"],
        sets=details["sets"],
        setWinners=details["setWinners"],
        setsWon=details["setsWon"],
        totals=details["totals"],
        activeSet=live.active_set,
    )


def _restore(body: QuickPointIn) -> LiveMatch:
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

    if not body.sets:
        return LiveMatch.start(rules)

    try:
        sets = validate_set_scores(
            [s.model_dump() for s in body.sets],
            max_sets=rules.best_of,
            max_points_per_side=rules.golden_point_cap,
        )
        score = MatchScore.from_sets(sets, rules.best_of)
        validate_reachable_score(score, rules)
    except ValidationError as exc:
        raise http_problem(
            status_code=422,
            detail=exc.detail,
            code="match_score_invalid",
        )
    started = any(s.a or s.b for s in score.sets)
    return LiveMatch.restore(
        rules, score, MatchStatus.IN_PROGRESS if started else MatchStatus.SCHEDULED
    )


@router.post("/points", response_model=QuickPointOut)
@limiter.limit(score_rate_limit)
async def quick_point(request: Request, body: QuickPointIn):
    live = _restore(body)
    try:
        live, update = live.score_point(body.setIndex, body.side, body.delta)
    except MatchAlreadyCompleted:
        raise http_problem(
            status_code=409,
            detail="match is already completed",
            code="match_completed",
        )
    except ValueError as exc:
        raise http_problem(
            status_code=422,
            detail=str(exc),
            code="match_score_invalid",
        )

    if update.accepted and live.is_completed:
        logger.debug("Quick match decided for side %s", live.winner)

    return QuickPointOut(
        accepted=update.accepted,
        result=update.status.value,
        setOutcome=update.set_outcome,
        match=_quick_match_out(live),
    )
