import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from starlette.responses import Response

from pickup_plants.app.core.config import get_settings
from pickup_plants.app.core.errors import AuthProviderError, LoginRequired, SessionPending
from pickup_plants.app.db.session import get_db
from pickup_plants.app.schemas.auth import CurrentUser
from pickup_plants.app.services.session_manager import SessionManager
from pickup_plants.app.services.session_registry import SessionRegistry
from pickup_plants.app.services.storage.base import StorageProvider
from pickup_plants.app.services.storage.local import LocalStorageProvider
from pickup_plants.app.services.storage.s3 import S3StorageProvider

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_db_session(db: Session = Depends(get_db)) -> Session:
    return db


def get_storage_provider() -> StorageProvider:
    settings = get_settings()
    if settings.storage_backend == "s3":
        return S3StorageProvider(settings)
    return LocalStorageProvider(settings.media_root)


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


def bind_session(request: Request, session_id: str, manager: SessionManager) -> None:
    request.state.session_id = session_id
    request.state.session_manager = manager


def end_session(request: Request, registry: SessionRegistry) -> None:
    registry.discard(getattr(request.state, "session_id", None))
    request.state.session_id = None
    request.state.session_manager = None
    request.state.session_ended = True


async def get_session_manager(
    request: Request,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Optional[SessionManager]:
    """The browser session's manager, restoring it from the refresh cookie if needed."""
    settings = get_settings()
    session_id = request.cookies.get(settings.session_cookie_name)
    manager = registry.get(session_id)
    if manager is None:
        refresh_token = request.cookies.get(settings.refresh_cookie_name)
        if not refresh_token:
            return None
        session_id, manager = registry.create(refresh_token)
    bind_session(request, session_id, manager)
    return manager


async def get_or_create_session_manager(
    request: Request,
    registry: SessionRegistry = Depends(get_session_registry),
    manager: Optional[SessionManager] = Depends(get_session_manager),
) -> SessionManager:
    if manager is None:
        session_id, manager = registry.create()
        bind_session(request, session_id, manager)
    # Proceed even if the restore is slow; its result is discarded once newer changes land.
    await manager.wait_until_resolved(get_settings().auth_resolve_timeout_seconds)
    return manager


def apply_session_cookies(request: Request, response: Response) -> None:
    """Keep the browser's session/refresh cookies in step with its SessionManager."""
    settings = get_settings()
    cookie_kwargs = {"httponly": True, "samesite": "lax", "secure": settings.session_cookie_secure, "path": "/"}
    if getattr(request.state, "session_ended", False):
        response.delete_cookie(settings.session_cookie_name, path="/")
        response.delete_cookie(settings.refresh_cookie_name, path="/")
        return

    session_id = getattr(request.state, "session_id", None)
    manager: Optional[SessionManager] = getattr(request.state, "session_manager", None)
    if not session_id or manager is None:
        return
    if request.cookies.get(settings.session_cookie_name) != session_id:
        response.set_cookie(settings.session_cookie_name, session_id, **cookie_kwargs)
    session = manager.session
    if session is not None and session.refresh_token:
        if request.cookies.get(settings.refresh_cookie_name) != session.refresh_token:
            response.set_cookie(settings.refresh_cookie_name, session.refresh_token, **cookie_kwargs)
    elif manager.state.resolved and request.cookies.get(settings.refresh_cookie_name):
        response.delete_cookie(settings.refresh_cookie_name, path="/")


async def _user_from_bearer(token: str, registry: SessionRegistry) -> CurrentUser:
    settings = get_settings()
    if settings.auth_jwt_secret:
        try:
            payload = jwt.decode(
                token,
                settings.auth_jwt_secret,
                algorithms=[settings.auth_jwt_algorithm],
                audience=settings.auth_jwt_audience,
            )
        except JWTError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
        sub = payload.get("sub")
        if not sub:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
        return CurrentUser(id=str(sub), email=payload.get("email"))

    try:
        user = await registry.new_provider().get_user(token)
    except AuthProviderError as exc:
        if exc.status_code >= 500:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return CurrentUser(id=user.id, email=user.email)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    registry: SessionRegistry = Depends(get_session_registry),
    manager: Optional[SessionManager] = Depends(get_session_manager),
) -> CurrentUser:
    if credentials is not None:
        return await _user_from_bearer(credentials.credentials, registry)
    if manager is not None:
        settings = get_settings()
        if not await manager.wait_until_resolved(settings.auth_resolve_timeout_seconds):
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Session is still loading")
        await manager.refresh_if_needed()
        if manager.user is not None:
            return CurrentUser(id=manager.user.id, email=manager.user.email)
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")


def request_path(request: Request) -> str:
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


def safe_next_path(value: Optional[str]) -> str:
    """Only allow redirects back into this site."""
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return "/"
    if value.startswith("/login"):
        return "/"
    return value


async def require_page_user(
    request: Request,
    manager: Optional[SessionManager] = Depends(get_session_manager),
) -> SessionManager:
    if manager is None:
        raise LoginRequired(request_path(request))
    settings = get_settings()
    if not await manager.wait_until_resolved(settings.auth_resolve_timeout_seconds):
        raise SessionPending()
    await manager.refresh_if_needed()
    if manager.user is None:
        raise LoginRequired(request_path(request))
    return manager
