"""
Profile repository.

Profiles are stored in the ``profiles`` collection with the provider
password encrypted; the repository decrypts on read so callers only see
plaintext models.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from pymongo import ASCENDING
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from iptv_api.src.models.profile import ProfileDB
from iptv_api.src.repositories.user_repo import to_object_id
from shared.security import SecretBox

logger = structlog.get_logger(__name__)

PROFILES_COLLECTION = "profiles"


class ProfileAlreadyExistsError(ValueError):
    """Raised when the owner already has a profile with the same name."""


class ProfileRepository:
    """Repository for profile database operations."""

    def __init__(self, db: AsyncDatabase, secret_box: SecretBox):
        """
        Initialize profile repository.

        Args:
            db: pymongo async database handle
            secret_box: Encrypts provider passwords at rest
        """
        self.collection = db[PROFILES_COLLECTION]
        self.secret_box = secret_box

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(
            [("user_id", ASCENDING), ("name", ASCENDING)],
            unique=True
        )
        logger.info("profile_indexes_ensured", collection=PROFILES_COLLECTION)

    async def create_profile(
        self,
        user_id: str,
        name: str,
        url: str,
        username: str,
        password: str
    ) -> ProfileDB:
        """
        Create a profile for the given owner.

        Args:
            user_id: Owner user ID
            name: Profile name, unique per owner
            url: Provider base URL without trailing slash
            username: Provider username
            password: Provider password (plaintext)

        Returns:
            Created profile

        Raises:
            ProfileAlreadyExistsError: If the owner already uses this name
        """
        document = {
            "user_id": user_id,
            "name": name,
            "url": url,
            "username": username,
            "password": self.secret_box.encrypt(password),
            "created_at": datetime.now(timezone.utc),
        }

        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            logger.warning("profile_create_failed_duplicate", user_id=user_id, name=name)
            raise ProfileAlreadyExistsError(name) from e

        document["_id"] = result.inserted_id
        logger.info("profile_created", profile_id=str(result.inserted_id), user_id=user_id)
        return self._to_model(document)

    async def get_profile_by_name(self, user_id: str, name: str) -> Optional[ProfileDB]:
        document = await self.collection.find_one({"user_id": user_id, "name": name})
        return self._to_model(document) if document else None

    async def list_profiles(self, user_id: str) -> List[ProfileDB]:
        """List the owner's profiles in creation order."""
        cursor = self.collection.find({"user_id": user_id}).sort("_id", ASCENDING)
        return [self._to_model(document) async for document in cursor]

    async def get_profile(self, profile_id: str, user_id: str) -> Optional[ProfileDB]:
        """
        Get a profile owned by the given user.

        Returns:
            Profile, or None if the id is malformed, unknown, or owned by someone else
        """
        oid = to_object_id(profile_id)
        if oid is None:
            return None

        document = await self.collection.find_one({"_id": oid, "user_id": user_id})
        return self._to_model(document) if document else None

    def _to_model(self, document: Dict[str, Any]) -> ProfileDB:
        return ProfileDB(
            id=str(document["_id"]),
            user_id=document["user_id"],
            name=document["name"],
            url=document["url"],
            username=document["username"],
            password=self.secret_box.decrypt(document["password"]),
            created_at=document.get("created_at"),
        )
