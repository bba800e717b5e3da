"""Result types shared by the borrowing and list services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FailureReason(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    INVALID_STATE = "invalid_state"


@dataclass(frozen=True)
class Outcome:
    """Success, or a failure carrying a reason and a human-readable message.

    Truthy only on success so callers can write ``if not outcome: ...``.
    """

    reason: Optional[FailureReason] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> "Outcome":
        return cls()

    @classmethod
    def failure(cls, reason: FailureReason, message: str) -> "Outcome":
        return cls(reason=reason, message=message)


class InvalidIdentityError(ValueError):
    """Raised when a service is handed an empty or blank user identity."""


def normalize_user_id(user_id: Optional[str]) -> str:
    """Lower-cased lookup key for a user identity.

    Raises InvalidIdentityError for None or blank identities.
    """
    if user_id is None or not user_id.strip():
        raise InvalidIdentityError("User identity must be a non-empty string.")
    return user_id.strip().lower()
