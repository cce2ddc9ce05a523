from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for errors rendered as problem documents."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class TournamentNotFound(DomainException):
    def __init__(self, tournament_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Tournament not found",
            detail=f"tournament '{tournament_id}' not found",
            code="tournament_not_found",
        )


class MatchNotFound(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Match not found",
            detail=f"match '{match_id}' not found",
            code="match_not_found",
        )


class MatchCompleted(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=409,
            title="Match completed",
            detail=f"match '{match_id}' is already completed",
            code="match_completed",
        )


class MatchDataInvalid(DomainException):
    def __init__(self, match_id: str, reason: str) -> None:
        super().__init__(
            status_code=500,
            title="Match data invalid",
            detail=f"stored match '{match_id}' cannot be read: {reason}",
            code="match_data_invalid",
        )


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
