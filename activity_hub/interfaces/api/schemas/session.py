"""Session related schemas."""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class LoginRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Identifier of the authenticated user")
    auth_token: str = Field(..., min_length=1, description="Bearer token issued by the platform")
    tenant_id: str = Field(..., min_length=1, description="Tenant the user belongs to")

    @field_validator("user_id", "tenant_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class SessionRead(BaseModel):
    authenticated: bool
    connected: bool
    user_id: str | None = None
    tenant_id: str | None = None
    online_users: list[Any] = Field(default_factory=list)
    last_error: str | None = None
