import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from genie.apps.api.schemas import LoginRequest, ResendOtpRequest, SignupRequest, VerifyOtpRequest
from genie.apps.api.security import get_client_ip, limiter, optional_session
from genie.core.result import AuthError
from genie.domain.users import SessionRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

_STATUS_BY_CODE = {
    "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
    "unverified": status.HTTP_403_FORBIDDEN,
    "rate_limited": status.HTTP_429_TOO_MANY_REQUESTS,
    "cooldown": status.HTTP_429_TOO_MANY_REQUESTS,
    "not_found": status.HTTP_404_NOT_FOUND,
    "already_verified": status.HTTP_400_BAD_REQUEST,
    "invalid_otp": status.HTTP_400_BAD_REQUEST,
    "exists": status.HTTP_409_CONFLICT,
    "delivery_failed": status.HTTP_502_BAD_GATEWAY,
}


def _error_response(error: AuthError) -> JSONResponse:
    body: dict = {"error": error.message}
    headers: dict = {}
    if error.retry_after is not None:
        body["remainingSeconds"] = error.retry_after
        headers["Retry-After"] = str(error.retry_after)
    return JSONResponse(
        body,
        status_code=_STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST),
        headers=headers,
    )


@router.post("/signup", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def signup(request: Request, payload: SignupRequest):
    result = await request.app.state.auth_service.sign_up(
        name=payload.name, email=payload.email, password=payload.password
    )
    if result.is_failure():
        return _error_response(result.error)
    user = result.unwrap()
    return {
        "success": True,
        "message": "Account created. Check your email for the verification code.",
        "userId": user.id,
    }


@router.post("/login")
async def login(request: Request, payload: LoginRequest):
    result = await request.app.state.auth_service.sign_in(
        payload.email, payload.password, get_client_ip(request)
    )
    if result.is_failure():
        return _error_response(result.error)
    record: SessionRecord = result.unwrap()
    return {
        "sessionToken": record.session_token,
        "expiresAt": record.expires_at,
        "user": record.user.to_dict(),
    }


@router.post("/logout")
async def logout(request: Request, session: SessionRecord | None = Depends(optional_session)):
    if session is not None:
        await request.app.state.auth_service.sign_out(session.session_token)
    return {"success": True}


@router.post("/verify/resend")
async def resend_verification(request: Request, payload: ResendOtpRequest):
    result = await request.app.state.auth_service.resend_otp(payload.email, get_client_ip(request))
    if result.is_failure():
        return _error_response(result.error)
    return {"success": True, "message": "New verification code sent"}


@router.post("/verify-otp")
async def verify_otp(request: Request, payload: VerifyOtpRequest):
    result = await request.app.state.auth_service.verify_otp(payload.userId, payload.otp)
    if result.is_failure():
        return _error_response(result.error)
    return {"success": True, "message": "Email verified successfully"}
