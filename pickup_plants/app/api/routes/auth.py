from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from pickup_plants.app.api.deps import (
    end_session,
    get_or_create_session_manager,
    get_session_manager,
    get_session_registry,
)
from pickup_plants.app.core.config import get_settings
from pickup_plants.app.core.errors import AuthProviderError
from pickup_plants.app.schemas.auth import (
    AuthStateRead,
    Credentials,
    ResetPasswordRequest,
    UpdatePasswordRequest,
)
from pickup_plants.app.services.session_manager import AuthState, SessionManager
from pickup_plants.app.services.session_registry import SessionRegistry

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _provider_http_error(exc: AuthProviderError) -> HTTPException:
    code = exc.status_code if 400 <= exc.status_code < 600 else status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.message)


def _signed_out_state() -> AuthStateRead:
    return AuthStateRead.from_state(AuthState(resolved=True))


@router.get("/state", response_model=AuthStateRead)
async def get_auth_state(manager: Optional[SessionManager] = Depends(get_session_manager)):
    if manager is None:
        return _signed_out_state()
    await manager.wait_until_resolved(get_settings().auth_resolve_timeout_seconds)
    await manager.refresh_if_needed()
    return AuthStateRead.from_state(manager.state)


@router.post("/sign-in", response_model=AuthStateRead)
async def sign_in(payload: Credentials, manager: SessionManager = Depends(get_or_create_session_manager)):
    try:
        await manager.sign_in(payload.email, payload.password)
    except AuthProviderError as exc:
        raise _provider_http_error(exc) from exc
    return AuthStateRead.from_state(manager.state)


@router.post("/sign-up", response_model=AuthStateRead, status_code=status.HTTP_201_CREATED)
async def sign_up(payload: Credentials, manager: SessionManager = Depends(get_or_create_session_manager)):
    try:
        await manager.sign_up(payload.email, payload.password)
    except AuthProviderError as exc:
        raise _provider_http_error(exc) from exc
    return AuthStateRead.from_state(manager.state)


@router.post("/sign-out", response_model=AuthStateRead)
async def sign_out(
    request: Request,
    manager: SessionManager = Depends(get_or_create_session_manager),
    registry: SessionRegistry = Depends(get_session_registry),
):
    try:
        await manager.sign_out()
    except AuthProviderError as exc:
        raise _provider_http_error(exc) from exc
    state = manager.state
    end_session(request, registry)
    return AuthStateRead.from_state(state)


@router.post("/reset-password", status_code=status.HTTP_202_ACCEPTED)
async def reset_password(
    payload: ResetPasswordRequest,
    manager: SessionManager = Depends(get_or_create_session_manager),
):
    settings = get_settings()
    try:
        await manager.reset_password(payload.email.strip(), settings.password_reset_redirect_url)
    except AuthProviderError as exc:
        raise _provider_http_error(exc) from exc
    return {"status": "sent"}


@router.post("/update-password", response_model=AuthStateRead)
async def update_password(
    payload: UpdatePasswordRequest,
    manager: SessionManager = Depends(get_or_create_session_manager),
):
    try:
        await manager.update_password(payload.password)
    except AuthProviderError as exc:
        raise _provider_http_error(exc) from exc
    return AuthStateRead.from_state(manager.state)


@router.delete("/error", response_model=AuthStateRead)
async def clear_error(manager: Optional[SessionManager] = Depends(get_session_manager)):
    if manager is None:
        return _signed_out_state()
    return AuthStateRead.from_state(manager.clear_error())
