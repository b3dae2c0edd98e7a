from __future__ import annotations

import hashlib
import hmac
import secrets
import threading
import time
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from encore.models.backend_models import AuthUser, UserProfile
from encore.schemas.auth import SignUpRequest
from encore.schemas.records import UserRole


SESSION_TTL_SECONDS = 60 * 60
PASSWORD_HASH_ITERATIONS = 120000
MIN_PASSWORD_LENGTH = 6

_LOCK = threading.Lock()
_SESSIONS: dict[str, dict[str, Any]] = {}


class BackendAuthError(ValueError):
    def __init__(self, error: str, description: str):
        super().__init__(description)
        self.error = error
        self.description = description


def _normalize_email(raw: str | None) -> str:
    return (raw or "").strip().lower()


def _password_hash(password: str, salt: str) -> str:
    raw = hashlib.pbkdf2_hmac(
        "sha256",
        (password or "").encode("utf-8"),
        salt.encode("utf-8"),
        PASSWORD_HASH_ITERATIONS,
    )
    return raw.hex()


def _get_auth_user(db: Session, email: str) -> AuthUser | None:
    return db.execute(select(AuthUser).where(AuthUser.email == email)).scalars().first()


def register_user(db: Session, request: SignUpRequest, require_confirmation: bool = False) -> AuthUser:
    email = _normalize_email(request.email)
    if "@" not in email:
        raise BackendAuthError("validation_failed", "Unable to validate email address: invalid format")
    if len(request.password or "") < MIN_PASSWORD_LENGTH:
        raise BackendAuthError("weak_password", f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
    if _get_auth_user(db, email) is not None:
        raise BackendAuthError("user_already_exists", "User already registered")

    role = UserRole.parse(request.data.role)
    salt = secrets.token_hex(16)
    user = AuthUser(
        id=str(uuid.uuid4()),
        email=email,
        password_hash=_password_hash(request.password, salt),
        password_salt=salt,
        user_metadata={"name": request.data.name, "role": role.value},
        confirmed=not require_confirmation,
    )
    db.add(user)
    db.add(UserProfile(id=user.id, name=request.data.name, email=email, role=role.value))
    db.commit()
    return user


def authenticate(db: Session, email: str, password: str) -> AuthUser:
    user = _get_auth_user(db, _normalize_email(email))
    if user is None:
        raise BackendAuthError("invalid_grant", "Invalid login credentials")
    expected = _password_hash(password, user.password_salt)
    if not hmac.compare_digest(expected, user.password_hash):
        raise BackendAuthError("invalid_grant", "Invalid login credentials")
    if not user.confirmed:
        raise BackendAuthError("invalid_grant", "Email not confirmed")
    return user


def confirm_user(db: Session, email: str) -> AuthUser:
    user = _get_auth_user(db, _normalize_email(email))
    if user is None:
        raise BackendAuthError("user_not_found", "User not found")
    user.confirmed = True
    db.commit()
    return user


def auth_user_payload(user: AuthUser) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "user_metadata": dict(user.user_metadata or {}),
    }


def create_access_token(user_id: str) -> str:
    token = secrets.token_urlsafe(32)
    with _LOCK:
        _SESSIONS[token] = {"userID": user_id, "expiresAt": time.time() + SESSION_TTL_SECONDS}
    return token


def get_token_user_id(token: str | None) -> str | None:
    if not token:
        return None
    now = time.time()
    with _LOCK:
        session = _SESSIONS.get(token)
        if session is None:
            return None
        if now >= session["expiresAt"]:
            _SESSIONS.pop(token, None)
            return None
        return session["userID"]


def revoke_all_tokens() -> None:
    with _LOCK:
        _SESSIONS.clear()
