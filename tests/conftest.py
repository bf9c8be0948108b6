"""
Shared fixtures for unit and contract tests.

Provides in-memory test doubles for the MongoDB repositories, the SMTP
sender and the upstream Xtream client, plus a FastAPI app wired to them
through ``app.dependency_overrides``.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from iptv_api.src.config import Settings
from iptv_api.src.dependencies import (
    get_email_service,
    get_profile_repository,
    get_user_repository,
    get_xtream_client,
)
from iptv_api.src.main import create_app
from iptv_api.src.models.auth import UserDB
from iptv_api.src.models.profile import ProfileDB, ProviderCredentials
from iptv_api.src.repositories.profile_repo import ProfileAlreadyExistsError
from iptv_api.src.repositories.user_repo import UserAlreadyExistsError, to_object_id
from iptv_api.src.services.auth_service import AuthService
from iptv_api.src.services.email_service import (
    EmailDeliveryError,
    EmailMessageType,
    EmailService,
    render_email,
)
from iptv_api.src.services.xtream_client import UpstreamError, XtreamClient

TEST_API_KEY = "test-api-key"


# ============================================================================
# TEST DOUBLES
# ============================================================================


class FakeUserRepository:
    """In-memory stand-in for UserRepository."""

    def __init__(self):
        self.users: Dict[str, UserDB] = {}

    async def create_user(self, **fields: Any) -> UserDB:
        return self.add_user(**fields)

    def add_user(
        self,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        password_hash: str,
        verification_code: Optional[str],
        verification_expires: Optional[datetime],
        is_verified: bool = False
    ) -> UserDB:
        if any(u.username == username for u in self.users.values()):
            raise UserAlreadyExistsError("username")
        if any(u.email == email for u in self.users.values()):
            raise UserAlreadyExistsError("email")

        now = datetime.now(timezone.utc)
        user = UserDB(
            id=str(ObjectId()),
            first_name=first_name,
            last_name=last_name,
            username=username,
            email=email,
            password_hash=password_hash,
            verification_code=verification_code,
            verification_expires=verification_expires,
            is_verified=is_verified,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

    async def get_user_by_id(self, user_id: str) -> Optional[UserDB]:
        return self.users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[UserDB]:
        return next((u for u in self.users.values() if u.username == username), None)

    async def get_user_by_email(self, email: str) -> Optional[UserDB]:
        return next((u for u in self.users.values() if u.email == email), None)

    async def get_user_by_verification_code(self, code: str) -> Optional[UserDB]:
        return next((u for u in self.users.values() if u.verification_code == code), None)

    async def verification_code_exists(self, code: str) -> bool:
        return await self.get_user_by_verification_code(code) is not None

    async def set_verification_code(self, user_id: str, code: str, expires: datetime) -> None:
        self._update(user_id, verification_code=code, verification_expires=expires)

    async def mark_verified(self, user_id: str) -> None:
        self._update(user_id, is_verified=True, verification_code=None, verification_expires=None)

    async def update_password(self, user_id: str, password_hash: str) -> None:
        self._update(user_id, password_hash=password_hash, verification_code=None, verification_expires=None)

    async def delete_user(self, user_id: str) -> bool:
        return self.users.pop(user_id, None) is not None

    def _update(self, user_id: str, **fields: Any) -> None:
        if user_id in self.users:
            fields["updated_at"] = datetime.now(timezone.utc)
            self.users[user_id] = self.users[user_id].model_copy(update=fields)


class FakeProfileRepository:
    """In-memory stand-in for ProfileRepository."""

    def __init__(self):
        self.profiles: Dict[str, ProfileDB] = {}

    async def create_profile(self, **fields: Any) -> ProfileDB:
        return self.add_profile(**fields)

    def add_profile(self, user_id: str, name: str, url: str, username: str, password: str) -> ProfileDB:
        if any(p.user_id == user_id and p.name == name for p in self.profiles.values()):
            raise ProfileAlreadyExistsError(name)
        profile = ProfileDB(
            id=str(ObjectId()),
            user_id=user_id,
            name=name,
            url=url,
            username=username,
            password=password,
            created_at=datetime.now(timezone.utc),
        )
        self.profiles[profile.id] = profile
        return profile

    async def get_profile_by_name(self, user_id: str, name: str) -> Optional[ProfileDB]:
        return next(
            (p for p in self.profiles.values() if p.user_id == user_id and p.name == name),
            None
        )

    async def list_profiles(self, user_id: str) -> List[ProfileDB]:
        return [p for p in self.profiles.values() if p.user_id == user_id]

    async def get_profile(self, profile_id: str, user_id: str) -> Optional[ProfileDB]:
        if to_object_id(profile_id) is None:
            return None
        profile = self.profiles.get(profile_id)
        return profile if profile and profile.user_id == user_id else None


class FakeEmailService(EmailService):
    """Renders every email but records it instead of speaking SMTP."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.sent: List[Tuple[str, EmailMessageType, Dict[str, str]]] = []
        self.fail = False

    async def send(self, recipient: str, message_type: EmailMessageType, context: Dict[str, str]) -> None:
        render_email(message_type, context, self.settings.email_team_name)
        if self.fail:
            raise EmailDeliveryError("Error sending email")
        self.sent.append((recipient, message_type, dict(context)))

    def last(self, message_type: EmailMessageType) -> Tuple[str, EmailMessageType, Dict[str, str]]:
        return [entry for entry in self.sent if entry[1] == message_type][-1]


class FakeXtreamClient(XtreamClient):
    """Serves canned player API responses keyed by action."""

    def __init__(self):
        super().__init__(session=None)
        self.responses: Dict[str, Any] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.fail = False

    async def call(self, credentials: ProviderCredentials, action: str, **params: Any) -> Any:
        self.calls.append((action, params))
        if self.fail:
            raise UpstreamError("Error communicating with the IPTV provider", action=action)
        response = self.responses.get(action, [])
        if callable(response):
            return response(**params)
        return response


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture(scope="session")
def settings() -> Settings:
    return Settings(
        environment="test",
        api_key=TEST_API_KEY,
        jwt_secret_key="test-jwt-secret-key-with-at-least-32-chars",
        profile_secret="test-profile-secret",
        password_bcrypt_rounds=4,
        rate_limit_enabled=False,
        log_level="WARNING",
        log_format="text",
    )


@pytest.fixture(scope="session")
def app(settings):
    return create_app(settings)


@pytest.fixture
def user_repo() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def profile_repo() -> FakeProfileRepository:
    return FakeProfileRepository()


@pytest.fixture
def email_service(settings) -> FakeEmailService:
    return FakeEmailService(settings)


@pytest.fixture
def xtream() -> FakeXtreamClient:
    return FakeXtreamClient()


@pytest.fixture
def auth_service(user_repo, settings) -> AuthService:
    return AuthService(user_repo, settings)


@pytest.fixture
def client(app, user_repo, profile_repo, email_service, xtream):
    """TestClient sending the API key, with every external dependency faked."""
    app.dependency_overrides[get_user_repository] = lambda: user_repo
    app.dependency_overrides[get_profile_repository] = lambda: profile_repo
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_xtream_client] = lambda: xtream

    yield TestClient(app, headers={"X-API-Key": TEST_API_KEY})

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(user_repo, auth_service):
    """Factory for users stored directly in the fake repository."""

    def _make_user(
        username: str = "jdoe",
        password: str = "s3cret-pass",
        email: str = "jdoe@mail.com",
        verified: bool = True,
        code: Optional[str] = None,
        expires_in: timedelta = timedelta(minutes=10)
    ) -> UserDB:
        return user_repo.add_user(
            first_name="John",
            last_name="Doe",
            username=username,
            email=email,
            password_hash=auth_service.hash_password(password),
            verification_code=code,
            verification_expires=datetime.now(timezone.utc) + expires_in if code else None,
            is_verified=verified,
        )

    return _make_user


@pytest.fixture
def bearer(auth_service):
    """Authorization header for a user id."""

    def _bearer(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {auth_service.create_access_token(user_id)}"}

    return _bearer
