"""
Per-browser-session view of "who is signed in".

A ``SessionManager`` is owned by the ``SessionRegistry`` and handed to request
handlers through dependencies. User and session are written in exactly one
place, ``_apply``, which accepts a provider change only when its sequence is
newer than the last one applied.
"""
import asyncio
import enum
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from pickup_plants.app.core.errors import AuthProviderError
from pickup_plants.app.services.auth_provider import (
    AuthChange,
    AuthProvider,
    ProviderSession,
    ProviderUser,
    Subscription,
)

logger = logging.getLogger(__name__)


class AuthStatus(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class AuthState:
    user: Optional[ProviderUser] = None
    session: Optional[ProviderSession] = None
    loading: bool = False
    error: Optional[str] = None
    version: int = 0
    resolved: bool = False

    @property
    def status(self) -> AuthStatus:
        if not self.resolved:
            return AuthStatus.LOADING if self.loading else AuthStatus.UNINITIALIZED
        return AuthStatus.AUTHENTICATED if self.user is not None else AuthStatus.UNAUTHENTICATED


StateListener = Callable[[AuthState], None]


class SessionManager:
    def __init__(self, provider: AuthProvider, refresh_margin_seconds: int = 60):
        self.provider = provider
        self.refresh_margin_seconds = refresh_margin_seconds
        self._state = AuthState()
        self._subscription: Optional[Subscription] = None
        self._listeners: List[StateListener] = []
        self._resolved = asyncio.Event()

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def user(self) -> Optional[ProviderUser]:
        return self._state.user

    @property
    def session(self) -> Optional[ProviderSession]:
        return self._state.session

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:  # noqa: BLE001
                logger.exception("session state listener failed")

    def _apply(self, change: AuthChange) -> None:
        if change.sequence <= self._state.version:
            logger.debug(
                "discarding stale auth change %s (sequence %s <= version %s)",
                change.event.value,
                change.sequence,
                self._state.version,
            )
            return
        self._set(user=change.user, session=change.session, version=change.sequence)

    async def start(self, refresh_token: Optional[str] = None) -> AuthState:
        if self._subscription is None:
            self._subscription = self.provider.on_auth_state_change(self._apply)
        self._set(loading=True)
        try:
            change = await self.provider.restore_session(refresh_token)
            self._apply(change)
        except AuthProviderError as exc:
            logger.warning("failed to restore session: %s", exc.message)
            self._set(error=exc.message or "Failed to initialize auth")
        finally:
            self._set(loading=False, resolved=True)
            self._resolved.set()
        return self._state

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._listeners.clear()

    async def wait_until_resolved(self, timeout: Optional[float] = None) -> bool:
        if self._state.resolved:
            return True
        try:
            await asyncio.wait_for(self._resolved.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    @asynccontextmanager
    async def _operation(self, name: str):
        self._set(loading=True, error=None)
        try:
            yield
        except AuthProviderError as exc:
            logger.info("%s failed: %s", name, exc.message)
            self._set(error=exc.message)
            raise
        finally:
            self._set(loading=False)

    async def sign_in(self, email: str, password: str) -> AuthState:
        async with self._operation("sign_in"):
            await self.provider.sign_in_with_password(email, password)
        return self._state

    async def sign_up(self, email: str, password: str) -> AuthState:
        async with self._operation("sign_up"):
            await self.provider.sign_up(email, password)
        return self._state

    async def sign_out(self) -> AuthState:
        async with self._operation("sign_out"):
            await self.provider.sign_out()
        return self._state

    async def reset_password(self, email: str, redirect_to: Optional[str] = None) -> AuthState:
        async with self._operation("reset_password"):
            await self.provider.reset_password_for_email(email, redirect_to)
        return self._state

    async def update_password(self, password: str) -> AuthState:
        async with self._operation("update_password"):
            await self.provider.update_user(password)
        return self._state

    def clear_error(self) -> AuthState:
        self._set(error=None)
        return self._state

    async def refresh_if_needed(self) -> Optional[ProviderSession]:
        """Give the provider a chance to refresh an expiring session before it is used."""
        if self._state.session is None:
            return None
        try:
            await self.provider.get_session(self.refresh_margin_seconds)
        except AuthProviderError as exc:
            logger.warning("session refresh failed: %s", exc.message)
            self._set(error=exc.message)
        return self._state.session
