"""
MongoDB repository for user accounts.

Documents keep the field names the web client already understands
(`avatarUrl`, `createdAt`, ...). The repository translates them to the
User domain model so nothing above this layer sees raw documents.
"""

import logging
from typing import Iterable, Optional

from pymongo.errors import DuplicateKeyError

from src.core.errors import Conflict, UserNotFound
from src.core.media.models import ProfileChanges, Role, User, utcnow

from ..client import DocumentDatabase, parse_object_id

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

_PROFILE_FIELDS = {
    "username": "username",
    "email": "email",
    "password_hash": "password",
    "bio": "bio",
    "location": "location",
    "avatar_url": "avatarUrl",
}


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository:
    """
    Repository for user persistence.

    Email is unique across all users. The check happens before the
    insert for a friendly error, and the unique index catches the race
    between two concurrent signups.
    """

    def __init__(self, database: DocumentDatabase) -> None:
        self._users = database[USERS_COLLECTION]

    def ensure_indexes(self) -> None:
        self._users.create_index("email", unique=True)

    def create_user(
        self,
        username: str,
        email: str,
        password_hash: str,
        role: Role = Role.USER,
    ) -> User:
        email = normalize_email(email)
        if self._users.find_one({"email": email}) is not None:
            raise Conflict()

        now = utcnow()
        document = {
            "username": username.strip(),
            "email": email,
            "password": password_hash,
            "role": role.value,
            "bio": None,
            "location": None,
            "avatarUrl": None,
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            self._users.insert_one(document)
        except DuplicateKeyError:
            raise Conflict()

        logger.info(
            "Created user",
            extra={"user_id": str(document["_id"]), "role": role.value}
        )

        return self._to_user(document)

    def get_by_email(self, email: str) -> Optional[User]:
        document = self._users.find_one({"email": normalize_email(email)})
        return self._to_user(document) if document else None

    def get_by_id(self, user_id: str) -> User:
        object_id = parse_object_id(user_id)
        document = self._users.find_one({"_id": object_id}) if object_id else None
        if document is None:
            raise UserNotFound()
        return self._to_user(document)

    def get_display_names(self, user_ids: Iterable[str]) -> dict[str, str]:
        """
        Map user ids to usernames in one query.

        Ids that don't resolve are simply absent from the result; callers
        decide how to render an unknown author.
        """
        object_ids = [oid for oid in (parse_object_id(u) for u in set(user_ids)) if oid]
        if not object_ids:
            return {}

        cursor = self._users.find({"_id": {"$in": object_ids}}, {"username": 1})
        return {str(doc["_id"]): doc.get("username") for doc in cursor if doc.get("username")}

    def ensure_email_available(self, email: str, user_id: str) -> None:
        """Raise Conflict if another account already uses this email."""
        owner = self._users.find_one({"email": normalize_email(email)}, {"_id": 1})
        if owner is not None and str(owner["_id"]) != user_id:
            raise Conflict()

    def update_profile(self, user_id: str, changes: ProfileChanges) -> User:
        """
        Apply a partial update. Fields left as None keep their value.

        Concurrent updates to the same user are last-write-wins.
        """
        user = self.get_by_id(user_id)

        updates = {
            document_field: getattr(changes, attribute)
            for attribute, document_field in _PROFILE_FIELDS.items()
            if getattr(changes, attribute) is not None
        }

        if "email" in updates:
            updates["email"] = normalize_email(updates["email"])
            self.ensure_email_available(updates["email"], user.id)

        updates["updatedAt"] = utcnow()

        try:
            self._users.update_one({"_id": parse_object_id(user.id)}, {"$set": updates})
        except DuplicateKeyError:
            raise Conflict()

        logger.info(
            "Updated user profile",
            extra={"user_id": user.id, "fields": sorted(k for k in updates if k != "updatedAt")}
        )

        return self.get_by_id(user.id)

    @staticmethod
    def _to_user(document: dict) -> User:
        return User(
            id=str(document["_id"]),
            username=document.get("username", ""),
            email=document.get("email", ""),
            password_hash=document.get("password", ""),
            role=Role(document.get("role", Role.USER.value)),
            bio=document.get("bio"),
            location=document.get("location"),
            avatar_url=document.get("avatarUrl"),
            created_at=document.get("createdAt") or utcnow(),
            updated_at=document.get("updatedAt") or utcnow(),
        )
