from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from encore.schemas.auth import (
    AuthUserPayload,
    PasswordGrantRequest,
    SignUpMetadata,
    SignUpRequest,
    SignUpResponse,
    TokenResponse,
)
from encore.schemas.records import User, UserRole
from encore.services.backend_gateway import BackendGateway
from encore.services.errors import AuthFailure, DecodeFailure, EncoreError


AUTH_LOGGER = logging.getLogger("encore.auth")

DEFAULT_DISPLAY_NAME = "User"
CONFIRMATION_PENDING_MESSAGE = "Check your email to confirm your account, then sign in."


class AuthOutcomeKind(str, Enum):
    SIGNED_IN = "signed_in"
    CONFIRMATION_PENDING = "confirmation_pending"
    FAILED = "failed"


@dataclass(frozen=True)
class ActiveSession:
    user: User
    access_token: str


@dataclass(frozen=True)
class AuthOutcome:
    kind: AuthOutcomeKind
    session: ActiveSession | None = None
    error: EncoreError | None = None
    message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind == AuthOutcomeKind.SIGNED_IN

    @classmethod
    def signed_in(cls, session: ActiveSession) -> "AuthOutcome":
        return cls(kind=AuthOutcomeKind.SIGNED_IN, session=session)

    @classmethod
    def confirmation_pending(cls) -> "AuthOutcome":
        return cls(kind=AuthOutcomeKind.CONFIRMATION_PENDING, message=CONFIRMATION_PENDING_MESSAGE)

    @classmethod
    def failed(cls, error: EncoreError) -> "AuthOutcome":
        return cls(kind=AuthOutcomeKind.FAILED, error=error, message=error.display_message())


def _profile_from_metadata(
    payload: AuthUserPayload | None,
    *,
    fallback_name: str,
    fallback_role: UserRole | str | None,
    fallback_email: str,
) -> User:
    metadata: dict[str, Any] = dict(payload.user_metadata) if payload else {}
    name = str(metadata.get("name") or "").strip() or fallback_name
    role = UserRole.parse(metadata.get("role") or fallback_role)
    user_id = (payload.id if payload else None) or str(uuid.uuid4())
    email = (payload.email if payload else None) or fallback_email
    return User(id=user_id, name=name, email=email, role=role)


class SessionManager:
    """Signs the single local user in and out through the gateway's auth endpoints."""

    def __init__(self, gateway: BackendGateway):
        self.gateway = gateway
        self.context = gateway.session

    @property
    def current_user(self) -> User | None:
        return self.context.user

    @property
    def is_signed_in(self) -> bool:
        return self.context.is_active

    @property
    def role(self) -> UserRole:
        return self.context.user.role if self.context.user else UserRole.RENTER

    async def sign_up(self, email: str, password: str, name: str, role: UserRole | str = UserRole.RENTER) -> AuthOutcome:
        request = SignUpRequest(
            email=email,
            password=password,
            data=SignUpMetadata(name=name, role=UserRole.parse(role)),
        )
        try:
            payload = await self.gateway.post_auth("signup", request)
            response = SignUpResponse.model_validate(payload)
        except ValidationError as exc:
            return self._fail("signup", email, DecodeFailure(f"Invalid sign-up response: {exc.error_count()} error(s)"))
        except EncoreError as exc:
            return self._fail("signup", email, exc)

        if response.error_description:
            return self._fail("signup", email, AuthFailure(response.error_description))
        if response.session is None:
            AUTH_LOGGER.info("Sign-up awaiting confirmation email=%s", email)
            return AuthOutcome.confirmation_pending()

        user = _profile_from_metadata(
            response.user,
            fallback_name=name,
            fallback_role=request.data.role,
            fallback_email=email,
        )
        return self._establish(response.session.access_token, user, "signup")

    async def sign_in(self, email: str, password: str) -> AuthOutcome:
        try:
            payload = await self.gateway.post_auth(
                "token",
                PasswordGrantRequest(email=email, password=password),
                params={"grant_type": "password"},
            )
            response = TokenResponse.model_validate(payload)
        except ValidationError as exc:
            return self._fail("signin", email, DecodeFailure(f"Invalid token response: {exc.error_count()} error(s)"))
        except EncoreError as exc:
            return self._fail("signin", email, exc)

        if response.error_description:
            return self._fail("signin", email, AuthFailure(response.error_description))
        if not response.access_token:
            return self._fail("signin", email, AuthFailure("Invalid credentials"))

        user = _profile_from_metadata(
            response.user,
            fallback_name=DEFAULT_DISPLAY_NAME,
            fallback_role=UserRole.RENTER,
            fallback_email=email,
        )
        return self._establish(response.access_token, user, "signin")

    def sign_out(self) -> None:
        if self.context.is_active:
            AUTH_LOGGER.info("Sign-out user_id=%s", self.context.user.id if self.context.user else None)
        self.context.destroy()

    def _establish(self, token: str, user: User, action: str) -> AuthOutcome:
        self.context.create(token, user)
        AUTH_LOGGER.info("%s success user_id=%s role=%s", action, user.id, user.role.value)
        return AuthOutcome.signed_in(ActiveSession(user=user, access_token=token))

    @staticmethod
    def _fail(action: str, email: str, error: EncoreError) -> AuthOutcome:
        AUTH_LOGGER.warning("%s failed email=%s reason=%s", action, email, error.kind.value)
        return AuthOutcome.failed(error)
