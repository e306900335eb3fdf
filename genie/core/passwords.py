from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets

PBKDF2_ITERATIONS = 120_000
SALT_BYTES = 16
OTP_DIGITS = 6


def _pbkdf2(password: str, salt: bytes, iterations: int, dklen: int = 32) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=dklen)


def hash_password(password: str) -> str:
    """Return salted PBKDF2 hash in the format pbkdf2$<iters>$<salt_b64>$<hash_b64>."""
    salt = os.urandom(SALT_BYTES)
    digest = _pbkdf2(password, salt, PBKDF2_ITERATIONS)
    return "pbkdf2${}${}${}".format(
        PBKDF2_ITERATIONS,
        base64.b64encode(salt).decode("ascii"),
        base64.b64encode(digest).decode("ascii"),
    )


def verify_password(password: str, stored: str | None) -> bool:
    if not stored or not stored.startswith("pbkdf2$"):
        return False
    try:
        _, iter_s, salt_b64, hash_b64 = stored.split("$", 3)
        salt = base64.b64decode(salt_b64.encode("ascii"))
        expected = base64.b64decode(hash_b64.encode("ascii"))
        computed = _pbkdf2(password, salt, int(iter_s), dklen=len(expected))
    except (ValueError, TypeError):
        return False
    return hmac.compare_digest(expected, computed)


def generate_otp(digits: int = OTP_DIGITS) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(digits))


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


__all__ = ["generate_otp", "hash_password", "new_session_token", "verify_password"]
