"""
Account lifecycle service.

Implements registration, email verification, login, password recovery and
username recovery. Each flow raises AccountServiceError with the HTTP status
the router should return, so routers stay a thin translation layer.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from iptv_api.src.config import Settings
from iptv_api.src.models.auth import RegisterRequest, TokenResponse, UserDB
from iptv_api.src.repositories.user_repo import UserAlreadyExistsError, UserRepository
from iptv_api.src.services.auth_service import AuthService
from iptv_api.src.services.email_service import EmailDeliveryError, EmailService

logger = structlog.get_logger(__name__)

CODE_MIN = 100000
CODE_MAX = 999999
MAX_CODE_ATTEMPTS = 50


class AccountServiceError(Exception):
    """Account flow failure carrying the HTTP status to report."""

    def __init__(self, detail: str, status_code: int = 400):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


def generate_verification_code() -> str:
    """Six decimal digits with a non-zero first digit."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def is_expired(expires: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """A code without an expiry never expires."""
    if expires is None:
        return False
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return (now or datetime.now(timezone.utc)) > expires


class AccountService:
    """Service for account operations."""

    def __init__(
        self,
        user_repo: UserRepository,
        auth_service: AuthService,
        email_service: EmailService,
        settings: Settings
    ):
        """
        Initialize account service.

        Args:
            user_repo: User repository
            auth_service: Password hashing and token issuing
            email_service: Transactional email sender
            settings: Application settings
        """
        self.user_repo = user_repo
        self.auth_service = auth_service
        self.email_service = email_service
        self.settings = settings

    async def unique_verification_code(self) -> str:
        """
        Generate a code no user currently holds.

        Raises:
            RuntimeError: If no free code was found after MAX_CODE_ATTEMPTS tries
        """
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_verification_code()
            if not await self.user_repo.verification_code_exists(code):
                return code
        raise RuntimeError("Could not generate a unique verification code")

    def code_expiry(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(
            minutes=self.settings.verification_code_expire_minutes
        )

    async def _issue_code(self, user: UserDB) -> str:
        code = await self.unique_verification_code()
        await self.user_repo.set_verification_code(user.id, code, self.code_expiry())
        return code

    async def _require_user_by_email(self, email: str) -> UserDB:
        user = await self.user_repo.get_user_by_email(email)
        if not user:
            logger.warning("account_email_not_found")
            raise AccountServiceError("User not found", 404)
        return user

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    async def register(self, request: RegisterRequest) -> UserDB:
        """
        Register an unverified user and email the verification code.

        Raises:
            AccountServiceError: 400 on duplicates, 500 if the email cannot be sent
        """
        if await self.user_repo.get_user_by_username(request.username):
            logger.warning("register_failed_duplicate_username", username=request.username)
            raise AccountServiceError("Username already exists", 400)

        if await self.user_repo.get_user_by_email(request.email):
            logger.warning("register_failed_duplicate_email", username=request.username)
            raise AccountServiceError("Email already registered", 400)

        code = await self.unique_verification_code()

        try:
            user = await self.user_repo.create_user(
                first_name=request.first_name,
                last_name=request.last_name,
                username=request.username,
                email=request.email,
                password_hash=self.auth_service.hash_password(request.password),
                verification_code=code,
                verification_expires=self.code_expiry(),
            )
        except UserAlreadyExistsError as e:
            detail = "Email already registered" if e.field == "email" else "Username already exists"
            raise AccountServiceError(detail, 400) from e

        try:
            await self.email_service.send_verification(user, code)
        except EmailDeliveryError as e:
            # No verified path exists for an account whose code never arrived
            await self.user_repo.delete_user(user.id)
            logger.error("register_rolled_back", user_id=user.id)
            raise AccountServiceError("Error sending verification email", 500) from e

        logger.info("user_registered", user_id=user.id, username=user.username)
        return user

    async def verify_account(self, code: str) -> UserDB:
        """
        Verify the account holding ``code``.

        Raises:
            AccountServiceError: 400 if the code is unknown or expired
        """
        user = await self.user_repo.get_user_by_verification_code(code)

        if not user or user.is_verified:
            logger.warning("verify_failed_invalid_code")
            raise AccountServiceError("Invalid verification code", 400)

        if is_expired(user.verification_expires):
            logger.warning("verify_failed_expired_code", user_id=user.id)
            raise AccountServiceError("Verification code has expired", 400)

        await self.user_repo.mark_verified(user.id)
        logger.info("user_verified", user_id=user.id)

        try:
            await self.email_service.send_congratulations(user)
        except EmailDeliveryError:
            logger.warning("congratulations_email_not_sent", user_id=user.id)

        return user

    async def resend_verification(self, email: str) -> None:
        """
        Issue a new verification code and email it.

        Raises:
            AccountServiceError: 404 unknown email, 400 already verified, 500 on email failure
        """
        user = await self._require_user_by_email(email)

        if user.is_verified:
            logger.warning("resend_verification_already_verified", user_id=user.id)
            raise AccountServiceError("Account is already verified", 400)

        code = await self._issue_code(user)

        try:
            await self.email_service.send_verification(user, code)
        except EmailDeliveryError as e:
            raise AccountServiceError("Error sending verification email", 500) from e

        logger.info("verification_resent", user_id=user.id)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> TokenResponse:
        """
        Exchange credentials for an access token.

        Raises:
            AccountServiceError: 400 on bad credentials or an unverified account
        """
        user = await self.auth_service.authenticate_user(username, password)

        if not user:
            raise AccountServiceError("Invalid credentials", 400)

        if not user.is_verified:
            logger.warning("login_failed_unverified", user_id=user.id)
            raise AccountServiceError("Account is not verified", 400)

        token = self.auth_service.create_access_token(user.id)
        logger.info("login_success", user_id=user.id, username=user.username)

        return TokenResponse(
            token=token,
            token_type="bearer",
            expires_in=int(self.auth_service.access_token_lifetime.total_seconds())
        )

    # ------------------------------------------------------------------
    # Password and username recovery
    # ------------------------------------------------------------------

    async def forgot_password(self, email: str) -> None:
        """
        Email a password recovery code.

        Raises:
            AccountServiceError: 404 unknown email, 500 on email failure
        """
        user = await self._require_user_by_email(email)
        code = await self._issue_code(user)

        try:
            await self.email_service.send_recovery(user, code)
        except EmailDeliveryError as e:
            raise AccountServiceError("Error sending recovery email", 500) from e

        logger.info("password_recovery_requested", user_id=user.id)

    async def verify_reset_code(self, code: str) -> str:
        """
        Check a recovery code and issue a reset token.

        The code stays valid until the password is actually reset.

        Returns:
            Reset JWT

        Raises:
            AccountServiceError: 404 unknown code, 400 expired code
        """
        user = await self.user_repo.get_user_by_verification_code(code)

        if not user:
            logger.warning("reset_code_not_found")
            raise AccountServiceError("Invalid verification code", 404)

        if is_expired(user.verification_expires):
            logger.warning("reset_code_expired", user_id=user.id)
            raise AccountServiceError("Verification code has expired", 400)

        logger.info("reset_code_verified", user_id=user.id)
        return self.auth_service.create_reset_token(user.id)

    async def reset_password(self, user_id: str, new_password: str) -> None:
        """
        Store a new password for the user a reset token was issued to.

        Raises:
            AccountServiceError: 404 unknown user, 400 if the code was already used
        """
        user = await self.user_repo.get_user_by_id(user_id)

        if not user:
            raise AccountServiceError("User not found", 404)

        if not user.verification_code:
            logger.warning("reset_password_already_used", user_id=user.id)
            raise AccountServiceError("Password has already been changed", 400)

        await self.user_repo.update_password(user.id, self.auth_service.hash_password(new_password))
        logger.info("password_reset", user_id=user.id)

        try:
            await self.email_service.send_password_reset_success(user)
        except EmailDeliveryError:
            logger.warning("password_reset_email_not_sent", user_id=user.id)

    async def recover_username(self, email: str) -> None:
        """
        Email the username registered with ``email``.

        Raises:
            AccountServiceError: 404 unknown email, 500 on email failure
        """
        user = await self._require_user_by_email(email)

        try:
            await self.email_service.send_username_recovery(user)
        except EmailDeliveryError as e:
            raise AccountServiceError("Error sending username recovery email", 500) from e

        logger.info("username_recovery_sent", user_id=user.id)
