from __future__ import annotations

from pydantic import BaseModel, Field

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class SignupRequest(BaseModel):
    name: str = Field(min_length=2)
    email: str = Field(pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    email: str = Field(pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=1)


class ResendOtpRequest(BaseModel):
    email: str = Field(pattern=_EMAIL_PATTERN)


class VerifyOtpRequest(BaseModel):
    userId: str = Field(min_length=1)
    otp: str = Field(pattern=r"^[0-9]{6}$")
