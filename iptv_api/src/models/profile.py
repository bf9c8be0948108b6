"""Profile models: saved credentials for one upstream IPTV provider account."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProviderCredentials(BaseModel):
    """What the upstream client needs to call a provider's player API."""
    url: str
    username: str
    password: str

    model_config = ConfigDict(frozen=True)


class ProfileDB(ProviderCredentials):
    """
    Profile as returned by the repository.

    ``password`` is already decrypted; it is encrypted only inside MongoDB.
    """
    id: str
    user_id: str
    name: str
    created_at: Optional[datetime] = None

    def credentials(self) -> ProviderCredentials:
        return ProviderCredentials(url=self.url, username=self.username, password=self.password)


class ProfileCreateRequest(BaseModel):
    """Create profile request schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Profile name")
    url: str = Field(..., min_length=1, max_length=2048, description="Provider base URL")
    username: str = Field(..., min_length=1, max_length=255, description="Provider username")
    password: str = Field(..., min_length=1, max_length=255, description="Provider password")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Living room",
                "url": "http://provider.example:8080",
                "username": "line-user",
                "password": "line-pass"
            }
        }
    )

    @field_validator("name", "url", mode="before")
    @classmethod
    def strip_name_and_url(cls, v: Any) -> Any:
        """Provider credentials are kept byte-exact; only these two are trimmed."""
        return v.strip() if isinstance(v, str) else v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL and drop trailing slashes."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v.rstrip("/")


class ProfileResponse(BaseModel):
    """Profile response schema."""
    id: str
    user_id: str = Field(..., alias="userId")
    name: str
    url: str
    username: str
    password: str

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_db(cls, profile: ProfileDB) -> "ProfileResponse":
        return cls(
            id=profile.id,
            user_id=profile.user_id,
            name=profile.name,
            url=profile.url,
            username=profile.username,
            password=profile.password,
        )
