from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from encore.schemas.records import UserRole


class SignUpMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    role: UserRole = UserRole.RENTER


class SignUpRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: str
    password: str
    data: SignUpMetadata


class PasswordGrantRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: str
    password: str


class VerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: str
    type: str = "signup"


class AuthUserPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)


class AuthSessionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    access_token: str
    token_type: Optional[str] = "bearer"


class SignUpResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session: Optional[AuthSessionPayload] = None
    user: Optional[AuthUserPayload] = None
    error_description: Optional[str] = None


class TokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    access_token: Optional[str] = None
    token_type: Optional[str] = None
    user: Optional[AuthUserPayload] = None
    error_description: Optional[str] = None
