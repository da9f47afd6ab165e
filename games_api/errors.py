"""Errors raised by the games service.

Every error carries the HTTP status it maps to, so the application can
render all of them with a single exception handler.
"""

from typing import Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError


class GameServiceError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"detail": self.detail, "errors": []}


class ValidationError(GameServiceError):
    """Raised when input fields are missing or malformed.

    Carries every violation found, not only the first one.
    """

    status_code = 422

    def __init__(self, errors: List[Dict[str, str]], detail: str = "Validation failed"):
        super().__init__(detail)
        self.errors = errors

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]) or "__root__",
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        return cls(errors)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "errors": self.errors}


class NotFoundError(GameServiceError):
    status_code = 404

    def __init__(self, detail: str = "Game not found"):
        super().__init__(detail)


class ForbiddenError(GameServiceError):
    """The actor is authenticated but does not own the game."""

    status_code = 403

    def __init__(self, detail: str = "Only the creator may modify this game"):
        super().__init__(detail)


class UnauthenticatedError(GameServiceError):
    status_code = 401

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or "Authentication required")
