from typing import Optional

from pydantic import BaseModel, Field, field_validator

from pickup_plants.app.services.session_manager import AuthState, AuthStatus


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


class Credentials(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip()
        if "@" not in value:
            raise ValueError("A valid email address is required")
        return value


class ResetPasswordRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)


class UpdatePasswordRequest(BaseModel):
    password: str = Field(min_length=6)


class AuthStateRead(BaseModel):
    status: AuthStatus
    user: Optional[CurrentUser] = None
    loading: bool = False
    error: Optional[str] = None
    expires_at: Optional[int] = None

    @classmethod
    def from_state(cls, state: AuthState) -> "AuthStateRead":
        user = None
        if state.user is not None:
            user = CurrentUser(id=state.user.id, email=state.user.email)
        return cls(
            status=state.status,
            user=user,
            loading=state.loading,
            error=state.error,
            expires_at=state.session.expires_at if state.session else None,
        )
