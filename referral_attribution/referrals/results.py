from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import ERROR_MESSAGES, ReferralErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class ReferralResult(Generic[T]):
    """Outcome of a referral operation: either a value or a named error kind.

    Expected business failures are returned, never raised, so callers can
    branch on ``error`` without exception handling.
    """

    value: T | None = None
    error: ReferralErrorKind | None = None
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, value: T, message: str = "") -> ReferralResult[T]:
        return cls(value=value, error=None, message=message)

    @classmethod
    def failure(cls, error: ReferralErrorKind) -> ReferralResult[T]:
        return cls(value=None, error=error, message=ERROR_MESSAGES[error])
