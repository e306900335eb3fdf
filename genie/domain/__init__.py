"""Domain records shared across services."""

from .users import OtpRecord, SessionRecord, UserRecord, UserSnapshot, UserStatistics

__all__ = ["OtpRecord", "SessionRecord", "UserRecord", "UserSnapshot", "UserStatistics"]
