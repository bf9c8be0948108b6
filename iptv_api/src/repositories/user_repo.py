"""
User repository for database operations.

Provides async CRUD operations for users on the ``users`` collection using
pymongo's asyncio client. Usernames and emails are unique through indexes,
so duplicate inserts surface as UserAlreadyExistsError.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from iptv_api.src.models.auth import UserDB

logger = structlog.get_logger(__name__)

USERS_COLLECTION = "users"


class UserAlreadyExistsError(ValueError):
    """Raised when a username or email is already registered."""

    def __init__(self, field: str):
        super().__init__(f"{field} already exists")
        self.field = field


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a hex id, returning None when it is malformed."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class UserRepository:
    """Repository for user database operations."""

    def __init__(self, db: AsyncDatabase):
        """
        Initialize user repository.

        Args:
            db: pymongo async database handle
        """
        self.collection = db[USERS_COLLECTION]

    async def ensure_indexes(self) -> None:
        """Create the unique and lookup indexes the queries rely on."""
        await self.collection.create_index([("username", ASCENDING)], unique=True)
        await self.collection.create_index([("email", ASCENDING)], unique=True)
        await self.collection.create_index([("verification_code", ASCENDING)], sparse=True)
        logger.info("user_indexes_ensured", collection=USERS_COLLECTION)

    async def create_user(
        self,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        password_hash: str,
        verification_code: str,
        verification_expires: datetime
    ) -> UserDB:
        """
        Create a new unverified user.

        Args:
            first_name: First name
            last_name: Last name
            username: Username
            email: Email address
            password_hash: Hashed password
            verification_code: Pending verification code
            verification_expires: When the code stops being accepted

        Returns:
            Created user

        Raises:
            UserAlreadyExistsError: If username or email already exists
        """
        now = datetime.now(timezone.utc)
        document = {
            "first_name": first_name,
            "last_name": last_name,
            "username": username,
            "email": email,
            "password_hash": password_hash,
            "verification_code": verification_code,
            "verification_expires": verification_expires,
            "is_verified": False,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            key_pattern = (e.details or {}).get("keyPattern", {})
            field = "email" if "email" in key_pattern else "username"
            logger.warning("user_create_failed_duplicate", username=username, field=field)
            raise UserAlreadyExistsError(field) from e

        document["_id"] = result.inserted_id
        logger.info("user_created", user_id=str(result.inserted_id), username=username)
        return self._to_model(document)

    async def get_user_by_id(self, user_id: str) -> Optional[UserDB]:
        """
        Get user by ID.

        Args:
            user_id: User ID (ObjectId hex)

        Returns:
            User or None if not found or the id is malformed
        """
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return await self._find_one({"_id": oid})

    async def get_user_by_username(self, username: str) -> Optional[UserDB]:
        return await self._find_one({"username": username})

    async def get_user_by_email(self, email: str) -> Optional[UserDB]:
        return await self._find_one({"email": email})

    async def get_user_by_verification_code(self, code: str) -> Optional[UserDB]:
        return await self._find_one({"verification_code": code})

    async def verification_code_exists(self, code: str) -> bool:
        """Check whether any user currently holds the given code."""
        count = await self.collection.count_documents({"verification_code": code}, limit=1)
        return count > 0

    async def set_verification_code(
        self,
        user_id: str,
        code: str,
        expires: datetime
    ) -> None:
        """Replace the user's outstanding code."""
        await self._update(user_id, {
            "verification_code": code,
            "verification_expires": expires,
        })

    async def mark_verified(self, user_id: str) -> None:
        """Mark the account verified and consume its code."""
        await self._update(user_id, {
            "is_verified": True,
            "verification_code": None,
            "verification_expires": None,
        })

    async def update_password(self, user_id: str, password_hash: str) -> None:
        """Store a new password hash and consume the recovery code."""
        await self._update(user_id, {
            "password_hash": password_hash,
            "verification_code": None,
            "verification_expires": None,
        })

    async def delete_user(self, user_id: str) -> bool:
        """
        Delete user by ID.

        Args:
            user_id: User ID

        Returns:
            True if deleted, False if not found
        """
        oid = to_object_id(user_id)
        if oid is None:
            return False

        result = await self.collection.delete_one({"_id": oid})
        deleted = result.deleted_count > 0
        logger.info("user_deleted", user_id=user_id, deleted=deleted)
        return deleted

    async def _find_one(self, query: Dict[str, Any]) -> Optional[UserDB]:
        document = await self.collection.find_one(query)
        return self._to_model(document) if document else None

    async def _update(self, user_id: str, fields: Dict[str, Any]) -> None:
        oid = to_object_id(user_id)
        if oid is None:
            return

        fields["updated_at"] = datetime.now(timezone.utc)
        # Unset rather than store nulls so the sparse code index stays small
        unset = {k: "" for k, v in fields.items() if v is None}
        update: Dict[str, Any] = {"$set": {k: v for k, v in fields.items() if v is not None}}
        if unset:
            update["$unset"] = unset

        await self.collection.update_one({"_id": oid}, update)
        logger.debug("user_updated", user_id=user_id, fields=sorted(fields))

    @staticmethod
    def _to_model(document: Dict[str, Any]) -> UserDB:
        return UserDB(
            id=str(document["_id"]),
            first_name=document["first_name"],
            last_name=document["last_name"],
            username=document["username"],
            email=document["email"],
            password_hash=document["password_hash"],
            verification_code=document.get("verification_code"),
            verification_expires=document.get("verification_expires"),
            is_verified=document.get("is_verified", False),
            created_at=document["created_at"],
            updated_at=document.get("updated_at"),
        )
