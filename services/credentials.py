"""User registration, password verification and session tokens."""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache
from typing import Optional, Tuple
from uuid import uuid4

import bcrypt
import jwt

from app.schemas import UserRecord
from datastore.document_store import DocumentCollection, build_default_store
from errors import (
    ConflictError,
    InvalidCredentialError,
    InvalidTokenError,
    NotFoundError,
)
from services.clock import utc_now
from settings import get_settings

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
# bcrypt ignores everything past the first 72 bytes of input.
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class CredentialStore:

    def __init__(
        self,
        users: DocumentCollection[UserRecord],
        secret: str,
        token_ttl: timedelta = timedelta(hours=1),
        bcrypt_rounds: int = 10,
    ) -> None:
        self.users = users
        self._secret = secret
        self.token_ttl = token_ttl
        self.bcrypt_rounds = bcrypt_rounds

    def register(self, email: str, password: str, name: Optional[str] = None) -> str:
        """Create a user and return its id; ConflictError if the email is taken."""
        if self.users.get(email) is not None:
            raise ConflictError("User already exists")

        hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=self.bcrypt_rounds))
        user = UserRecord(
            id=uuid4().hex,
            email=email,
            name=name,
            password_hash=hashed.decode("ascii"),
            created_at=utc_now(),
        )
        try:
            self.users.insert(user)
        except ConflictError as exc:
            raise ConflictError("User already exists") from exc
        logger.info("User registered", extra={"user_id": user.id})
        return user.id

    def authenticate(self, email: str, password: str) -> Tuple[str, UserRecord]:
        """Check a password and issue a signed session token."""
        user = self.users.get(email)
        if user is None:
            raise NotFoundError("User not found")
        if not bcrypt.checkpw(_password_bytes(password), user.password_hash.encode("ascii")):
            raise InvalidCredentialError("Invalid password")
        return self.issue_token(user.id), user

    def issue_token(self, user_id: str) -> str:
        issued_at = utc_now()
        claims = {"sub": user_id, "iat": issued_at, "exp": issued_at + self.token_ttl}
        return jwt.encode(claims, self._secret, algorithm=TOKEN_ALGORITHM)

    def verify(self, token: str) -> str:
        """Return the user id bound to ``token``."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[TOKEN_ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError("Invalid token") from exc
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError("Invalid token")
        return subject

    def get_user(self, user_id: str) -> UserRecord:
        matches = self.users.find(lambda user: user.id == user_id)
        if not matches:
            raise NotFoundError(f"User {user_id!r} not found")
        return matches[0]


@lru_cache
def build_default_credentials() -> CredentialStore:
    settings = get_settings()
    store = build_default_store()
    return CredentialStore(
        users=store.collection("users", UserRecord, key_field="email"),
        secret=settings.jwt_secret,
        token_ttl=timedelta(seconds=settings.token_ttl_seconds),
        bcrypt_rounds=settings.bcrypt_rounds,
    )
