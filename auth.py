"""
Authentication & authorization.

Passwords are hashed with bcrypt (passlib). Sessions are HS256 JWTs carrying
the user id as "sub" and the email, valid for seven days. Google sign-in
verifies the ID token with google-auth. The get_current_* functions are
FastAPI dependencies for protected routes.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from passlib.context import CryptContext

import errors
from database import Database, find_user_by_email
from deps import get_db, get_settings
from schemas import User
from settings import Settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

GOOGLE_PROVIDER = "google"


# Passwords

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password or not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


# Session tokens

def create_token(user: dict, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user["id"],
        "email": user["email"],
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expiry_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
                          options={"require": ["sub", "exp"]})
    except jwt.InvalidTokenError as exc:
        raise errors.AuthenticationError("Invalid token") from exc


def public_user(user: dict) -> dict:
    """A user document without its password hash."""
    return {k: v for k, v in user.items() if k != "password_hash"}


def session_response(user: dict, settings: Settings) -> dict:
    return {"token": create_token(user, settings), "user": public_user(user)}


# Accounts

def create_user(db: Database, email: str, name: str = "", password_hash: Optional[str] = None,
                provider: Optional[str] = None) -> dict:
    """
    Store a new account. The very first account becomes an admin.

    The email check and the insert run under the user collection lock so two
    signups for the same address cannot both succeed.
    """
    with db.collection_lock("user"):
        if find_user_by_email(db, email):
            raise errors.ConflictError("Email already registered")
        is_first_user = not db.get_documents("user", limit=1)
        user = User(email=email, name=name or "", password_hash=password_hash,
                    is_admin=is_first_user, provider=provider)
        user_id = db.create_document("user", user)
    logger.info("Created account %s (admin=%s, provider=%s)", user_id, is_first_user, provider or "password")
    return db.get_document_by_id("user", user_id)


class GoogleTokenVerifier:
    """Checks Google ID tokens. An empty client id skips the audience check."""

    def __init__(self, client_id: str = ""):
        self.client_id = client_id
        self._request = google_requests.Request()

    def verify(self, token: str) -> dict:
        try:
            return id_token.verify_oauth2_token(token, self._request, self.client_id or None)
        except (ValueError, google_exceptions.GoogleAuthError) as exc:
            logger.warning("Google token rejected: %s", exc)
            raise errors.AuthenticationError("Google verification failed") from exc


# Request dependencies

def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> dict:
    if credentials is None or not credentials.credentials:
        raise errors.AuthenticationError("No token")
    return decode_token(credentials.credentials, settings)


def get_current_user(claims: dict = Depends(get_current_claims), db: Database = Depends(get_db)) -> dict:
    user = db.get_document_by_id("user", claims["sub"])
    if not user:
        raise errors.NotFoundError()
    return user


def require_admin(claims: dict = Depends(get_current_claims), db: Database = Depends(get_db)) -> dict:
    user = db.get_document_by_id("user", claims["sub"])
    if not user or not user.get("is_admin"):
        raise errors.AuthorizationError("Admin access required")
    return user
