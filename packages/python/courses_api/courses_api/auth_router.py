"""FastAPI router for signup, OTP verification, login and password reset."""

from __future__ import annotations

from accounts import AuthResult, SignupRequest, TokenPurpose
from fastapi import APIRouter, Depends, Request, Response
from pydantic import AliasChoices, BaseModel, Field

from .container import ServiceContainer
from .cookies import clear_cookie, set_session_cookie, set_token_cookie
from .dependencies import get_container
from .responses import envelope

router = APIRouter(prefix="/api/v1/user", tags=["auth"])


class OtpPayload(BaseModel):
    otp: str


class LoginPayload(BaseModel):
    identifier: str = Field(validation_alias=AliasChoices("identifier", "email", "mobile_number"))
    password: str


class IdentifierPayload(BaseModel):
    identifier: str = Field(validation_alias=AliasChoices("identifier", "email", "mobile_number"))


class NewPasswordPayload(BaseModel):
    password: str


def _apply_result(response: Response, container: ServiceContainer, result: AuthResult) -> None:
    """Store the token of ``result`` in the cookie matching its purpose."""

    api = container.settings.api
    otp_ttl = container.settings.sessions.otp_token_ttl
    if result.purpose is TokenPurpose.SESSION:
        set_session_cookie(response, container, result.token)
        clear_cookie(response, container, api.signup_cookie)
    elif result.purpose is TokenPurpose.SIGNUP_OTP:
        set_token_cookie(response, container, api.signup_cookie, result.token, otp_ttl)
    elif result.purpose is TokenPurpose.PASSWORD_RESET:
        set_token_cookie(response, container, api.reset_cookie, result.token, otp_ttl)
    elif result.purpose is TokenPurpose.PASSWORD_RESET_VERIFIED:
        set_token_cookie(response, container, api.reset_verified_cookie, result.token, otp_ttl)
        clear_cookie(response, container, api.reset_cookie)


@router.post("/signup")
async def signup(
    payload: SignupRequest,
    response: Response,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.auth.signup(payload)
    _apply_result(response, container, result)
    return envelope(result.user, "OTP sent to your email")


@router.post("/resend-otp")
async def resend_otp(
    request: Request,
    response: Response,
    container: ServiceContainer = Depends(get_container),
):
    token = request.cookies.get(container.settings.api.signup_cookie)
    result = await container.auth.resend_otp(token)
    _apply_result(response, container, result)
    return envelope(None, "OTP resent to your email")


@router.post("/verify-otp")
async def verify_otp(
    payload: OtpPayload,
    request: Request,
    response: Response,
    container: ServiceContainer = Depends(get_container),
):
    api = container.settings.api
    result = await container.auth.verify_otp(
        payload.otp,
        signup_token=request.cookies.get(api.signup_cookie),
        reset_token=request.cookies.get(api.reset_cookie),
    )
    _apply_result(response, container, result)
    if result.purpose is TokenPurpose.SESSION:
        return envelope(result.user, "Email verified successfully")
    return envelope(None, "OTP verified. You can now set a new password")


@router.post("/login")
async def login(
    payload: LoginPayload,
    response: Response,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.auth.login(payload.identifier, payload.password)
    _apply_result(response, container, result)
    if result.purpose is TokenPurpose.SESSION:
        return envelope(result.user, "Logged in successfully")
    return envelope(
        {"requires_verification": True},
        "Please verify your email. A new OTP has been sent",
    )


@router.post("/logout")
async def logout(response: Response, container: ServiceContainer = Depends(get_container)):
    clear_cookie(response, container, container.settings.api.session_cookie)
    return envelope(None, "Logged out successfully")


@router.post("/forgot-password")
async def forgot_password(
    payload: IdentifierPayload,
    response: Response,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.auth.forgot_password(payload.identifier)
    _apply_result(response, container, result)
    return envelope(None, "OTP sent to your email")


@router.post("/new-password")
async def new_password(
    payload: NewPasswordPayload,
    request: Request,
    response: Response,
    container: ServiceContainer = Depends(get_container),
):
    api = container.settings.api
    await container.auth.reset_password(request.cookies.get(api.reset_verified_cookie), payload.password)
    clear_cookie(response, container, api.reset_verified_cookie)
    return envelope(None, "Password updated successfully. Please login")
