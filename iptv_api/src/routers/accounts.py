"""
Account endpoints.

Registration, verification, login, password recovery and username recovery.
Service errors are translated to HTTP errors here.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from iptv_api.src.dependencies import get_account_service, get_client_ip, get_reset_user_id
from iptv_api.src.middleware.rate_limit import auth_rate_limit, limiter
from iptv_api.src.models.auth import (
    EmailRequest,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    ResetTokenResponse,
    TokenResponse,
    VerifyAccountRequest,
    VerifyResetCodeRequest,
)
from iptv_api.src.services.account_service import AccountService, AccountServiceError

logger = structlog.get_logger(__name__)

router = APIRouter(
    tags=["Accounts"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        403: {"model": ErrorResponse, "description": "Invalid API key"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    }
)


def to_http_error(error: AccountServiceError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.detail)


@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account"
)
async def register(
    body: RegisterRequest,
    service: AccountService = Depends(get_account_service)
) -> MessageResponse:
    """
    Create an unverified account and email a six-digit verification code.

    Returns 400 when the username or email is taken and 500 when the
    verification email cannot be sent (the account is then removed).
    """
    try:
        await service.register(body)
    except AccountServiceError as e:
        raise to_http_error(e) from e
    return MessageResponse(message="User registered. Check your email to verify your account.")


@router.post("/verify", response_model=MessageResponse, summary="Verify an account")
async def verify(
    body: VerifyAccountRequest,
    service: AccountService = Depends(get_account_service)
) -> MessageResponse:
    try:
        await service.verify_account(body.code)
    except AccountServiceError as e:
        raise to_http_error(e) from e
    return MessageResponse(message="Account verified successfully")


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
    summary="Send a new verification code"
)
async def resend_verification(
    body: EmailRequest,
    service: AccountService = Depends(get_account_service)
) -> MessageResponse:
    try:
        await service.resend_verification(body.email)
    except AccountServiceError as e:
        raise to_http_error(e) from e
    return MessageResponse(message="Verification code resent. Check your email.")


@router.post("/login", response_model=TokenResponse, summary="Log in")
@limiter.limit(auth_rate_limit)
async def login(
    request: Request,
    body: LoginRequest,
    service: AccountService = Depends(get_account_service),
    client_ip: str = Depends(get_client_ip)
) -> TokenResponse:
    """
    Exchange username and password for an access token.

    Unverified accounts cannot log in.
    """
    try:
        return await service.login(body.username, body.password)
    except AccountServiceError as e:
        logger.warning("login_rejected", username=body.username, client_ip=client_ip, reason=e.detail)
        raise to_http_error(e) from e


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
    summary="Email a password recovery code"
)
@limiter.limit(auth_rate_limit)
async def forgot_password(
    request: Request,
    body: EmailRequest,
    service: AccountService = Depends(get_account_service)
) -> MessageResponse:
    try:
        await service.forgot_password(body.email)
    except AccountServiceError as e:
        raise to_http_error(e) from e
    return MessageResponse(message="Recovery code sent. Check your email.")


@router.post(
    "/verify-reset-code",
    response_model=ResetTokenResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown code"}},
    summary="Exchange a recovery code for a reset token"
)
@limiter.limit(auth_rate_limit)
async def verify_reset_code(
    request: Request,
    body: VerifyResetCodeRequest,
    service: AccountService = Depends(get_account_service)
) -> ResetTokenResponse:
    try:
        reset_token = await service.verify_reset_code(body.verification_code)
    except AccountServiceError as e:
        raise to_http_error(e) from e
    return ResetTokenResponse(message="Code verified", reset_token=reset_token)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Missing token"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
    summary="Set a new password"
)
async def reset_password(
    body: ResetPasswordRequest,
    user_id: str = Depends(get_reset_user_id),
    service: AccountService = Depends(get_account_service)
) -> MessageResponse:
    """Requires the reset token from /verify-reset-code as a bearer token."""
    try:
        await service.reset_password(user_id, body.new_password)
    except AccountServiceError as e:
        raise to_http_error(e) from e
    return MessageResponse(message="Password reset successfully")


@router.post(
    "/recover-username",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
    summary="Email the account username"
)
async def recover_username(
    body: EmailRequest,
    service: AccountService = Depends(get_account_service)
) -> MessageResponse:
    try:
        await service.recover_username(body.email)
    except AccountServiceError as e:
        raise to_http_error(e) from e
    return MessageResponse(message="Your username has been sent to your email.")
