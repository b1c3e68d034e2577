"""
Password hashing and bearer tokens.

Passwords are hashed with werkzeug's salted KDF. Tokens are HS256 JWTs
carrying the user id and role; the role in the token is what every
authorization decision uses, so a role change takes effect when the
user logs in again.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import InvalidToken, Unauthenticated
from ..media.models import Role

logger = logging.getLogger(__name__)


def hash_password(plaintext: str) -> str:
    """One-way salted hash. The salt is embedded in the result."""
    return generate_password_hash(plaintext)


def verify_password(plaintext: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, plaintext)


@dataclass(frozen=True)
class Principal:
    """The verified identity behind a request."""
    user_id: str
    role: Role


class TokenService:
    """
    Issues and verifies signed bearer tokens.

    The secret is fixed at construction and never changes afterwards.
    Verification is pure: the same token always yields the same
    principal (until it expires).
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expiry: Optional[timedelta] = timedelta(hours=24),
    ) -> None:
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self._expiry = expiry

    def issue_token(self, user_id: str, role: Role) -> str:
        now = datetime.now(timezone.utc)
        claims = {"id": user_id, "role": role.value, "iat": now}
        if self._expiry:
            claims["exp"] = now + self._expiry
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify_token(self, token: Optional[str]) -> Principal:
        """
        Decode and check a token.

        Raises Unauthenticated when no token is given and InvalidToken
        for anything that does not decode under our secret.
        """
        if not token:
            raise Unauthenticated()

        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.InvalidTokenError as e:
            logger.warning("Rejected bearer token", extra={"error": str(e)})
            raise InvalidToken()

        user_id = claims.get("id")
        try:
            role = Role(claims.get("role"))
        except ValueError:
            raise InvalidToken()
        if not isinstance(user_id, str) or not user_id:
            raise InvalidToken()

        return Principal(user_id=user_id, role=role)
