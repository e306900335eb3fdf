"""User directory: the authoritative source behind the caches.

Production wires this to the relational database. ``InMemoryUserDirectory``
serves local development and tests.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from genie.core.store import Clock
from genie.domain.users import OtpRecord, SessionRecord, UserRecord, UserStatistics


class UserExistsError(ValueError):
    """Raised when creating a user whose email is already registered."""


class UnknownUserError(LookupError):
    """Raised when updating a user that does not exist."""


class UserDirectory(Protocol):
    async def get_user(self, user_id: str) -> Optional[UserRecord]: ...

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]: ...

    async def create_user(
        self, *, email: str, name: Optional[str], hashed_password: str
    ) -> UserRecord: ...

    async def update_user(self, user_id: str, **changes: Any) -> UserRecord: ...

    async def get_session(self, token: str) -> Optional[SessionRecord]: ...

    async def save_session(self, record: SessionRecord) -> None: ...

    async def delete_session(self, token: str) -> None: ...

    async def save_otp(self, record: OtpRecord) -> None: ...

    async def latest_otp(self, user_id: str) -> Optional[OtpRecord]: ...

    async def clear_otps(self, user_id: str) -> None: ...

    async def get_statistics(self, user_id: str) -> UserStatistics: ...


@dataclass
class InMemoryUserDirectory:
    """Dict-backed directory with the same semantics as the database one."""

    users: Dict[str, UserRecord] = field(default_factory=dict)
    sessions: Dict[str, SessionRecord] = field(default_factory=dict)
    otps: Dict[str, List[OtpRecord]] = field(default_factory=dict)
    statistics: Dict[str, UserStatistics] = field(default_factory=dict)
    clock: Optional[Clock] = field(default=None, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def _now_ms(self) -> int:
        return int((self.clock or time.time)() * 1000)

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        needle = email.strip().lower()
        for user in self.users.values():
            if user.email.lower() == needle:
                return user
        return None

    async def create_user(
        self, *, email: str, name: Optional[str], hashed_password: str
    ) -> UserRecord:
        async with self._lock:
            if await self.get_user_by_email(email) is not None:
                raise UserExistsError(email)
            user = UserRecord(
                id=uuid.uuid4().hex,
                email=email.strip().lower(),
                name=name,
                hashed_password=hashed_password,
                credits=10,
            )
            self.users[user.id] = user
            return user

    async def update_user(self, user_id: str, **changes: Any) -> UserRecord:
        async with self._lock:
            user = self.users.get(user_id)
            if user is None:
                raise UnknownUserError(user_id)
            updated = user.with_changes(**changes)
            self.users[user_id] = updated
            return updated

    async def get_session(self, token: str) -> Optional[SessionRecord]:
        record = self.sessions.get(token)
        if record is None:
            return None
        if record.is_expired(self._now_ms()):
            self.sessions.pop(token, None)
            return None
        return record

    async def save_session(self, record: SessionRecord) -> None:
        self.sessions[record.session_token] = record

    async def delete_session(self, token: str) -> None:
        self.sessions.pop(token, None)

    async def save_otp(self, record: OtpRecord) -> None:
        # One live code per user.
        self.otps[record.user_id] = [record]

    async def latest_otp(self, user_id: str) -> Optional[OtpRecord]:
        records = self.otps.get(user_id) or []
        return records[-1] if records else None

    async def clear_otps(self, user_id: str) -> None:
        self.otps.pop(user_id, None)

    async def get_statistics(self, user_id: str) -> UserStatistics:
        stats = self.statistics.get(user_id)
        if stats is not None:
            return stats
        user = self.users.get(user_id)
        return UserStatistics(credits=user.credits if user else 0)


__all__ = [
    "InMemoryUserDirectory",
    "UnknownUserError",
    "UserDirectory",
    "UserExistsError",
]
