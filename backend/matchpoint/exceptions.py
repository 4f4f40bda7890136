from typing import Optional

from pydantic import BaseModel, Field


class FailureDetail(BaseModel):
    """Body returned for every failed request, matching the settlement result shape."""

    success: bool = False
    message: str
    code: str
    status: int
    warnings: list[str] = Field(default_factory=list)


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.code = code

    @property
    def message(self) -> str:
        return self.detail or self.title


class Unauthorized(DomainException):
    def __init__(self, detail: str = "missing credentials", *, code: str = "auth_missing") -> None:
        super().__init__(
            status_code=401,
            title="Unauthorized",
            detail=detail,
            code=code,
        )


class Forbidden(Unauthorized):
    def __init__(self, detail: str = "forbidden", *, code: str = "admin_forbidden") -> None:
        super().__init__(detail, code=code)
        self.status_code = 403
        self.title = "Forbidden"


class NotFound(DomainException):
    def __init__(self, kind: str, identifier: str, *, code: Optional[str] = None) -> None:
        super().__init__(
            status_code=404,
            title=f"{kind.capitalize()} not found",
            detail=f"{kind} '{identifier}' not found",
            code=code or f"{kind}_not_found",
        )
        self.identifier = identifier


class MatchNotFound(NotFound):
    def __init__(self, match_id: str) -> None:
        super().__init__("match", match_id)


class PlayerNotFound(NotFound):
    def __init__(self, player_id: str) -> None:
        super().__init__("player", player_id)


class TournamentNotFound(NotFound):
    def __init__(self, tournament_id: str) -> None:
        super().__init__("tournament", tournament_id)


class ChallengeNotFound(NotFound):
    def __init__(self, challenge_id: str) -> None:
        super().__init__("challenge", challenge_id)


class InscriptionNotFound(NotFound):
    def __init__(self, player_id: str, event_id: str) -> None:
        super().__init__(
            "inscription",
            f"{player_id}@{event_id}",
        )
        self.detail = f"no inscription for player '{player_id}' in event '{event_id}'"


class AlreadySettled(DomainException):
    """Terminal: the match already reached ``Completado``. Do not retry."""

    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=409,
            title="Match already settled",
            detail=f"match '{match_id}' already has a recorded result",
            code="match_already_settled",
        )


class InvalidMatchResult(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=400,
            title="Invalid match result",
            detail=detail,
            code="match_result_invalid",
        )


class InconsistentState(DomainException):
    """Derived data disagrees with the committed match result."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=409,
            title="Inconsistent state",
            detail=detail,
            code="inconsistent_state",
        )


class TransientStoreFailure(DomainException):
    """The transaction could not commit; retrying from scratch is safe."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            status_code=503,
            title="Store unavailable",
            detail=f"{operation} could not be committed; please retry",
            code="store_transient_failure",
        )
