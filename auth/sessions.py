"""Registration, login and bearer token handling.

Passwords are stored as salted hashes (werkzeug). Tokens are HS256 JWTs that
carry the user id and email and expire on their own; nothing about issued
tokens is stored server side, so logging in again does not revoke older
tokens.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Tuple

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from data_manager.data_manager import DataManager
from errors.errors import NotFound, Unauthorized, ValidationError
from models.models import User

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as resolved from a verified token."""

    user_id: int
    email: str


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


class SessionIssuer:
    """Verifies credentials and issues/validates signed bearer tokens."""

    def __init__(self, data_manager: DataManager, secret: str, expires_minutes: int = 60 * 24 * 7):
        """Create a new SessionIssuer.

        Args:
            data_manager: Credential store used for users.
            secret: Server-held token signing secret.
            expires_minutes: Lifetime of issued tokens.
        """
        self.data_manager = data_manager
        self.secret = secret
        self.expires_minutes = expires_minutes

    def register(self, email: str, password: str) -> Tuple[str, User]:
        """Create an account and return a token for it.

        Raises:
            ValidationError: If the email is malformed or the password too short.
            Conflict: If the email is already registered.
        """
        email = normalize_email(email)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please provide a valid email address")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        user = self.data_manager.create_user(email, generate_password_hash(password))
        logger.info("Registered user %s", user.id)
        return self.issue(user), user

    def login(self, email: str, password: str) -> Tuple[str, User]:
        """Check credentials and return a fresh token.

        Unknown emails and wrong passwords fail the same way.

        Raises:
            Unauthorized: If the credentials do not match a user.
        """
        user = self.data_manager.get_user_by_email(normalize_email(email))
        if user is None or not check_password_hash(user.password_hash, str(password or "")):
            logger.info("Failed login attempt")
            raise Unauthorized("Invalid email or password")
        return self.issue(user), user

    def issue(self, user: User) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=self.expires_minutes)).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Identity:
        """Validate a token's signature and expiry and return its identity.

        Raises:
            Unauthorized: If the token is expired, tampered with or malformed.
        """
        try:
            payload = jwt.decode(
                token, self.secret, algorithms=[ALGORITHM], options={"require": ["exp", "sub"]}
            )
        except jwt.ExpiredSignatureError:
            raise Unauthorized("Token has expired")
        except jwt.InvalidTokenError:
            raise Unauthorized("Invalid token")

        try:
            return Identity(user_id=int(payload["sub"]), email=payload["email"])
        except (KeyError, TypeError, ValueError):
            raise Unauthorized("Invalid token")

    def current_user(self, identity: Identity) -> User:
        user = self.data_manager.get_user(identity.user_id)
        if user is None:
            raise NotFound("User not found")
        return user
