"""User, session and OTP records shared by the auth services."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class UserSnapshot:
    """Public projection of a user row; this is what gets cached."""

    id: str
    email: str
    name: Optional[str] = None
    image: Optional[str] = None
    credits: int = 0
    subscription_status: str = "free"
    is_verified: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UserSnapshot":
        return cls(
            id=str(payload["id"]),
            email=str(payload["email"]),
            name=payload.get("name"),
            image=payload.get("image"),
            credits=int(payload.get("credits") or 0),
            subscription_status=str(payload.get("subscription_status") or "free"),
            is_verified=bool(payload.get("is_verified", False)),
        )


@dataclass(frozen=True)
class UserRecord:
    """Full user row as the directory stores it."""

    id: str
    email: str
    hashed_password: Optional[str]
    name: Optional[str] = None
    image: Optional[str] = None
    credits: int = 0
    subscription_status: str = "free"
    is_verified: bool = False

    def snapshot(self) -> UserSnapshot:
        return UserSnapshot(
            id=self.id,
            email=self.email,
            name=self.name,
            image=self.image,
            credits=self.credits,
            subscription_status=self.subscription_status or "free",
            is_verified=self.is_verified,
        )

    def with_changes(self, **changes: Any) -> "UserRecord":
        return replace(self, **changes)


@dataclass(frozen=True)
class SessionRecord:
    """Cached session: owner snapshot, token and epoch-ms expiry."""

    user: UserSnapshot
    session_token: str
    expires_at: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user.to_dict(),
            "session_token": self.session_token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SessionRecord":
        return cls(
            user=UserSnapshot.from_dict(payload["user"]),
            session_token=str(payload["session_token"]),
            expires_at=int(payload["expires_at"]),
        )


@dataclass(frozen=True)
class OtpRecord:
    user_id: str
    code: str
    created_at: int  # epoch ms
    expires_at: int  # epoch ms

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at


@dataclass(frozen=True)
class UserStatistics:
    """Raw dashboard numbers; formatting happens in the statistics service."""

    ats_scores: list[int] = field(default_factory=list)
    completed_interviews: int = 0
    interviews_last_week: int = 0
    total_practice_seconds: int = 0
    weekly_practice_seconds: int = 0
    last_week_practice_seconds: int = 0
    credits: int = 0


__all__ = ["OtpRecord", "SessionRecord", "UserRecord", "UserSnapshot", "UserStatistics"]
