"""
Authentication service for password hashing and JWT token management.

Provides:
- Password hashing and verification (passlib + bcrypt)
- JWT creation and validation for access and password reset tokens
- Credential checks and current user resolution
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError

from iptv_api.src.config import Settings
from iptv_api.src.models.auth import CurrentUser, TokenPayload, TokenType, UserDB
from iptv_api.src.repositories.user_repo import UserRepository

logger = structlog.get_logger(__name__)


class AuthService:
    """Service for authentication operations."""

    def __init__(self, user_repo: UserRepository, settings: Settings):
        """
        Initialize auth service.

        Args:
            user_repo: User repository
            settings: Application settings
        """
        self.user_repo = user_repo
        self.settings = settings

        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=self.settings.password_bcrypt_rounds
        )

    def hash_password(self, password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password
        """
        hashed = self.pwd_context.hash(password)
        logger.debug("password_hashed")
        return hashed

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Args:
            plain_password: Plain text password
            hashed_password: Hashed password

        Returns:
            True if password matches, False otherwise
        """
        try:
            verified = self.pwd_context.verify(plain_password, hashed_password)
            logger.debug("password_verified", verified=verified)
            return verified
        except (ValueError, TypeError) as e:
            logger.error("password_verify_failed", error=str(e))
            return False

    @property
    def access_token_lifetime(self) -> timedelta:
        return timedelta(minutes=self.settings.jwt_access_token_expire_minutes)

    @property
    def reset_token_lifetime(self) -> timedelta:
        return timedelta(minutes=self.settings.jwt_reset_token_expire_minutes)

    def create_access_token(self, user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """
        Create JWT access token.

        Args:
            user_id: User ID
            expires_delta: Custom expiration time (optional)

        Returns:
            JWT token string
        """
        return self._create_token(user_id, TokenType.ACCESS, expires_delta or self.access_token_lifetime)

    def create_reset_token(self, user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """
        Create the short-lived token that authorizes one password reset.

        Args:
            user_id: User ID
            expires_delta: Custom expiration time (optional)

        Returns:
            JWT token string
        """
        return self._create_token(user_id, TokenType.RESET, expires_delta or self.reset_token_lifetime)

    def _create_token(self, user_id: str, token_type: TokenType, expires_delta: timedelta) -> str:
        now = datetime.now(timezone.utc)
        expire = now + expires_delta

        payload = {
            "sub": user_id,
            "type": token_type.value,
            "exp": int(expire.timestamp()),
            "iat": int(now.timestamp())
        }

        token = jwt.encode(
            payload,
            self.settings.jwt_secret_key,
            algorithm=self.settings.jwt_algorithm
        )

        logger.info(
            "token_created",
            user_id=user_id,
            token_type=token_type.value,
            expires_in=expires_delta.total_seconds()
        )
        return token

    def decode_token(self, token: str, expected_type: TokenType = TokenType.ACCESS) -> Optional[TokenPayload]:
        """
        Decode and validate JWT token.

        Args:
            token: JWT token string
            expected_type: Purpose the token must have been issued for

        Returns:
            Token payload or None if invalid, expired, or of another type
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm]
            )
            token_payload = TokenPayload(**payload)
        except JWTError as e:
            logger.warning("token_decode_failed", error=str(e))
            return None
        except ValidationError as e:
            logger.warning("token_claims_invalid", error=str(e))
            return None

        if token_payload.type != expected_type:
            logger.warning(
                "token_type_mismatch",
                expected=expected_type.value,
                actual=token_payload.type.value
            )
            return None

        logger.debug("token_decoded", user_id=token_payload.sub)
        return token_payload

    async def authenticate_user(self, username: str, password: str) -> Optional[UserDB]:
        """
        Authenticate user with username and password.

        Verification status is not checked here.

        Args:
            username: Username
            password: Plain text password

        Returns:
            User if the credentials match, None otherwise
        """
        user = await self.user_repo.get_user_by_username(username)

        if not user:
            logger.warning("authentication_failed_user_not_found", username=username)
            return None

        if not self.verify_password(password, user.password_hash):
            logger.warning("authentication_failed_invalid_password", username=username)
            return None

        logger.info("user_authenticated", user_id=user.id, username=user.username)
        return user

    async def get_current_user(self, token: str) -> Optional[CurrentUser]:
        """
        Get current user from an access token.

        Args:
            token: JWT token string

        Returns:
            Current user or None if the token is invalid or the user is gone
        """
        payload = self.decode_token(token, TokenType.ACCESS)

        if not payload:
            logger.warning("get_current_user_failed_invalid_token")
            return None

        user = await self.user_repo.get_user_by_id(payload.sub)

        if not user:
            logger.warning("get_current_user_failed_user_not_found", user_id=payload.sub)
            return None

        return CurrentUser(
            id=user.id,
            username=user.username,
            email=user.email,
            is_verified=user.is_verified
        )
