from __future__ import annotations

from datetime import datetime
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["patient", "doctor", "admin"]
ROLES: tuple[str, ...] = get_args(Role)

Reason = Literal["unauthenticated", "forbidden", "ok"]
IdentifierKind = Literal["order", "prescription"]
CredentialSource = Literal["bearer", "cookie"]


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    email: str | None = None


class Principal(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    role: Role
    email: str | None = None


class AuthorizationVerdict(BaseModel):
    allowed: bool
    principal: Principal | None = None
    reason: Reason


class GeneratedIdentifier(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: IdentifierKind
    value: str
    generated_at: datetime


# ── Wire models ──────────────────────────────────────────


class AuthorizeRequestV1(BaseModel):
    required_roles: list[Role] = Field(..., min_length=1)
    credential_source: CredentialSource = "bearer"


class UserRoleResponseV1(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    email: str | None = None
    role: Role


class AdminCheckResponseV1(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_admin: bool = Field(..., alias="isAdmin")
    role: Role


class IdentifierResponseV1(BaseModel):
    kind: IdentifierKind
    value: str
    generated_at: datetime
    issued_to: str


class ErrorResponseV1(BaseModel):
    error: str
    detail: str | None = None
