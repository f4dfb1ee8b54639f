"""Authenticated caller context and Role enum."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Closed set of caller roles."""

    Admin = "admin"
    """Elevated operator; may release locks held by others."""

    Operator = "operator"
    """Standard operator; may mutate bookings and spots."""

    Viewer = "viewer"
    """Read-only access."""

    @property
    def is_elevated(self) -> bool:
        return self is Role.Admin


class AuthContext(BaseModel):
    """Identity supplied by the auth provider for one request.

    The core trusts this unconditionally; it only enforces which roles may
    call which operation.
    """

    caller_id: str = Field(..., min_length=1, max_length=128)
    role: Role
    tenant_id: str = Field(..., min_length=1, max_length=128)
    email: str | None = None

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)
