"""
Interface to the managed authentication provider.

The provider owns identities and token material; this application only keeps
a read-through copy of the current session per browser session. Every change
the provider makes is pushed to subscribers as an ``AuthChange`` carrying a
sequence number reserved when the underlying request *started*, so consumers
can discard results that were overtaken by a later request.
"""
import enum
import itertools
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class AuthChangeEvent(str, enum.Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


@dataclass(frozen=True)
class ProviderUser:
    id: str
    email: Optional[str] = None
    email_confirmed_at: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ProviderUser":
        return cls(
            id=str(data["id"]),
            email=data.get("email"),
            email_confirmed_at=data.get("email_confirmed_at") or data.get("confirmed_at"),
            user_metadata=dict(data.get("user_metadata") or {}),
        )


@dataclass(frozen=True)
class ProviderSession:
    access_token: str
    refresh_token: str
    expires_at: int
    user: ProviderUser
    token_type: str = "bearer"

    @classmethod
    def from_payload(cls, data: Dict[str, Any], now: Optional[float] = None) -> "ProviderSession":
        issued = int(now if now is not None else time.time())
        expires_at = data.get("expires_at")
        if expires_at is None:
            expires_at = issued + int(data.get("expires_in") or 3600)
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or "",
            expires_at=int(expires_at),
            user=ProviderUser.from_payload(data["user"]),
            token_type=data.get("token_type") or "bearer",
        )

    def expires_within(self, seconds: int, now: Optional[float] = None) -> bool:
        current = now if now is not None else time.time()
        return self.expires_at - seconds <= current


@dataclass(frozen=True)
class AuthChange:
    event: AuthChangeEvent
    session: Optional[ProviderSession]
    sequence: int

    @property
    def user(self) -> Optional[ProviderUser]:
        return self.session.user if self.session else None


AuthChangeCallback = Callable[[AuthChange], None]


class Subscription:
    def __init__(self, provider: "AuthProvider", callback: AuthChangeCallback):
        self._provider = provider
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._provider._remove_subscription(self)


class AuthProvider(ABC):
    """One provider client per browser session, like the provider's own SDK."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._sequence = itertools.count(1)
        self._session: Optional[ProviderSession] = None
        self._session_sequence = 0

    @property
    def current_session(self) -> Optional[ProviderSession]:
        return self._session

    def on_auth_state_change(self, callback: AuthChangeCallback) -> Subscription:
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _reserve_sequence(self) -> int:
        return next(self._sequence)

    def _emit(self, event: AuthChangeEvent, session: Optional[ProviderSession], sequence: int) -> AuthChange:
        change = AuthChange(event=event, session=session, sequence=sequence)
        if sequence > self._session_sequence:
            self._session = session
            self._session_sequence = sequence
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(change)
            except Exception:  # noqa: BLE001
                logger.exception("auth state subscriber failed", extra={"event": event.value})
        return change

    @abstractmethod
    async def restore_session(self, refresh_token: Optional[str] = None) -> AuthChange:  # pragma: no cover - interface
        """Resolve the existing session (if any) and emit INITIAL_SESSION."""
        raise NotImplementedError

    @abstractmethod
    async def get_session(self, refresh_margin_seconds: int = 60) -> Optional[ProviderSession]:  # pragma: no cover
        """Return the current session, refreshing it first when it is about to expire."""
        raise NotImplementedError

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthChange:  # pragma: no cover
        raise NotImplementedError

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> Optional[AuthChange]:  # pragma: no cover
        """Returns None when the provider holds the account until email confirmation."""
        raise NotImplementedError

    @abstractmethod
    async def sign_out(self) -> AuthChange:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    async def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:  # pragma: no cover
        raise NotImplementedError

    @abstractmethod
    async def update_user(self, password: str) -> AuthChange:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    async def get_user(self, access_token: str) -> ProviderUser:  # pragma: no cover - interface
        raise NotImplementedError
