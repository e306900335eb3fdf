"""Credential, session and email-verification flows.

Every flow that can be brute-forced is throttled through ``AuthCache`` and
fails closed when the store is down. Expected failures come back as
``Failure(AuthError)``; only programming and directory errors raise.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from genie.core.passwords import generate_otp, hash_password, new_session_token, verify_password
from genie.core.rate_limit import FailMode
from genie.core.result import AuthError, Result, failure, success
from genie.domain.users import OtpRecord, SessionRecord, UserSnapshot
from genie.services.auth_cache import AuthCache
from genie.services.directory import UserDirectory, UserExistsError
from genie.services.mailer import Mailer, otp_email
from genie.services.users import UserCache

logger = logging.getLogger(__name__)

LOGIN_MAX_ATTEMPTS = 5
LOGIN_WINDOW_SECONDS = 300
RESEND_MAX_ATTEMPTS = 3
RESEND_WINDOW_SECONDS = 300
VERIFY_MAX_ATTEMPTS = 5
VERIFY_WINDOW_SECONDS = 300
OTP_TTL_MS = 5 * 60 * 1000
OTP_COOLDOWN_MS = 60 * 1000


def _rate_limited(retry_after: int) -> AuthError:
    return AuthError(
        code="rate_limited",
        message="Too many attempts. Please try again later.",
        retry_after=retry_after,
    )


class AuthService:
    def __init__(
        self,
        auth_cache: AuthCache,
        user_cache: UserCache,
        directory: UserDirectory,
        mailer: Mailer,
        *,
        session_ttl_seconds: int,
        fail_mode: FailMode = FailMode.CLOSED,
    ) -> None:
        self.auth_cache = auth_cache
        self.user_cache = user_cache
        self.directory = directory
        self.mailer = mailer
        self.session_ttl_seconds = session_ttl_seconds
        self.fail_mode = fail_mode

    def _now_ms(self) -> int:
        return self.auth_cache.cache.now_ms()

    async def verify_credentials(
        self, email: str, password: str, ip: str
    ) -> Result[UserSnapshot, AuthError]:
        email = email.strip().lower()
        rate_key = f"login:{email}:{ip}"
        decision = await self.auth_cache.hit_rate_limit(
            rate_key, LOGIN_MAX_ATTEMPTS, LOGIN_WINDOW_SECONDS, fail_mode=self.fail_mode
        )
        if not decision.allowed:
            return failure(_rate_limited(decision.retry_after))

        user = await self.directory.get_user_by_email(email)
        if user is None or not user.hashed_password:
            return failure(AuthError("invalid_credentials", "Invalid credentials"))
        if not user.is_verified:
            return failure(AuthError("unverified", "Please verify your email before logging in"))
        if not verify_password(password, user.hashed_password):
            return failure(AuthError("invalid_credentials", "Invalid credentials"))

        await self.auth_cache.clear_rate_limit(rate_key)
        return success(user.snapshot())

    async def sign_in(self, email: str, password: str, ip: str) -> Result[SessionRecord, AuthError]:
        result = await self.verify_credentials(email, password, ip)
        if result.is_failure():
            return result
        user = result.unwrap()
        record = SessionRecord(
            user=user,
            session_token=new_session_token(),
            expires_at=self._now_ms() + self.session_ttl_seconds * 1000,
        )
        await self.directory.save_session(record)
        await self.auth_cache.set_session(record.session_token, record)
        await self.auth_cache.set_user(user.id, user)
        logger.info("User signed in", extra={"user_id": user.id})
        return success(record)

    async def sign_out(self, session_token: str) -> None:
        await self.directory.delete_session(session_token)
        await self.auth_cache.remove_session(session_token)

    async def current_session(self, session_token: str) -> Optional[SessionRecord]:
        return await self.auth_cache.get_session(session_token)

    async def sign_up(
        self, *, name: str, email: str, password: str
    ) -> Result[UserSnapshot, AuthError]:
        try:
            user = await self.directory.create_user(
                email=email, name=name, hashed_password=hash_password(password)
            )
        except UserExistsError:
            return failure(AuthError("exists", "An account with this email already exists"))

        code = await self._issue_otp(user.id)
        sent = await self.mailer.send(otp_email(user.email, user.name, code))
        if not sent:
            logger.error("Verification email was not delivered", extra={"user_id": user.id})
        return success(user.snapshot())

    async def resend_otp(self, email: str, ip: str) -> Result[None, AuthError]:
        decision = await self.auth_cache.hit_rate_limit(
            f"resend-otp:{ip}", RESEND_MAX_ATTEMPTS, RESEND_WINDOW_SECONDS, fail_mode=self.fail_mode
        )
        if not decision.allowed:
            return failure(_rate_limited(decision.retry_after))

        user = await self.directory.get_user_by_email(email.strip().lower())
        if user is None:
            return failure(AuthError("not_found", "User not found"))
        if user.is_verified:
            return failure(AuthError("already_verified", "Email is already verified"))

        last = await self.directory.latest_otp(user.id)
        if last is not None:
            elapsed = self._now_ms() - last.created_at
            if elapsed < OTP_COOLDOWN_MS:
                return failure(
                    AuthError(
                        "cooldown",
                        "Please wait before requesting another code",
                        retry_after=-(-(OTP_COOLDOWN_MS - elapsed) // 1000),
                    )
                )

        code = await self._issue_otp(user.id)
        if not await self.mailer.send(otp_email(user.email, user.name, code, resend=True)):
            return failure(AuthError("delivery_failed", "Failed to send verification code"))
        return success(None)

    async def verify_otp(self, user_id: str, code: str) -> Result[UserSnapshot, AuthError]:
        rate_key = f"verify-otp:{user_id}"
        decision = await self.auth_cache.hit_rate_limit(
            rate_key, VERIFY_MAX_ATTEMPTS, VERIFY_WINDOW_SECONDS, fail_mode=self.fail_mode
        )
        if not decision.allowed:
            return failure(_rate_limited(decision.retry_after))

        record = await self.directory.latest_otp(user_id)
        if (
            record is None
            or record.is_expired(self._now_ms())
            or not hmac.compare_digest(record.code.encode("utf-8"), code.encode("utf-8"))
        ):
            return failure(AuthError("invalid_otp", "Invalid or expired OTP"))

        user = await self.user_cache.update_user(user_id, is_verified=True)
        await self.directory.clear_otps(user_id)
        await self.auth_cache.clear_rate_limit(rate_key)
        await self.auth_cache.invalidate_user_sessions(user_id)
        logger.info("Email verified", extra={"user_id": user_id})
        return success(user)

    async def _issue_otp(self, user_id: str) -> str:
        code = generate_otp()
        now = self._now_ms()
        await self.directory.save_otp(
            OtpRecord(user_id=user_id, code=code, created_at=now, expires_at=now + OTP_TTL_MS)
        )
        return code


__all__ = ["AuthService"]
