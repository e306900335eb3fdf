"""
Result pattern for service-level outcomes.

Auth flows have several expected failures (bad password, unverified email,
throttled caller) that are not exceptional. Services return a ``Result``
instead of raising so HTTP handlers can map each failure to a status code.

Example:
    result = await auth_service.verify_credentials(email, password, ip)
    match result:
        case Success(user):
            ...
        case Failure(error):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """Represents a successful operation result."""

    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Failure(Generic[E]):
    """Represents a failed operation result."""

    error: E

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raises the error when trying to extract value."""
        if isinstance(self.error, Exception):
            raise self.error
        raise RuntimeError(f"Operation failed: {self.error}")


Result = Union[Success[T], Failure[E]]


def success(value: T) -> Success[T]:
    return Success(value)


def failure(error: E) -> Failure[E]:
    return Failure(error)


@dataclass(frozen=True, slots=True)
class AuthError:
    """Expected authentication failure.

    ``code`` is a stable machine-readable reason (``invalid_credentials``,
    ``rate_limited``, ``invalid_otp`` ...). ``retry_after`` is set for
    throttling codes only.
    """

    code: str
    message: str
    retry_after: Optional[int] = None

    def __str__(self) -> str:
        return self.message



__all__ = ["AuthError", "Failure", "Result", "Success", "failure", "success"]
