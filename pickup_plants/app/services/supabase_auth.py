"""
Client for the Supabase Auth (GoTrue) REST API.

Each instance tracks a single user's session, the same way the provider's
browser SDK does, and pushes every change to its subscribers.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from pickup_plants.app.core.errors import AuthProviderError
from pickup_plants.app.services.auth_provider import (
    AuthChange,
    AuthChangeEvent,
    AuthProvider,
    ProviderSession,
    ProviderUser,
)

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200] or DEFAULT_ERROR_MESSAGE
    if isinstance(data, dict):
        for key in ("error_description", "msg", "message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return DEFAULT_ERROR_MESSAGE


class SupabaseAuthProvider(AuthProvider):
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.anon_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {access_token or self.anon_key}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = f"{self.auth_url}{path}"
        try:
            timeout = httpx.Timeout(self.timeout_seconds, connect=min(self.timeout_seconds, 5.0))
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.request(
                    method, url, json=json, params=params, headers=self._headers(access_token)
                )
        except httpx.TimeoutException as exc:
            logger.warning("auth provider request timed out: %s %s", method, path)
            raise AuthProviderError("The authentication service did not respond in time", 504) from exc
        except httpx.HTTPError as exc:
            logger.warning("auth provider request failed: %s %s: %s", method, path, exc)
            raise AuthProviderError("Unable to reach the authentication service", 502) from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.info(
                "auth provider rejected request",
                extra={"method": method, "path": path, "status_code": resp.status_code},
            )
            code = None
            try:
                body = resp.json()
                if isinstance(body, dict):
                    code = body.get("error_code") or body.get("error")
            except ValueError:
                pass
            raise AuthProviderError(message, resp.status_code, code)

        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()

    async def _refresh(self, refresh_token: str) -> ProviderSession:
        data = await self._request(
            "POST", "/token", params={"grant_type": "refresh_token"}, json={"refresh_token": refresh_token}
        )
        return ProviderSession.from_payload(data)

    async def restore_session(self, refresh_token: Optional[str] = None) -> AuthChange:
        sequence = self._reserve_sequence()
        session = self._session
        if session is None and refresh_token:
            try:
                session = await self._refresh(refresh_token)
            except AuthProviderError as exc:
                if exc.status_code >= 500:
                    raise
                logger.info("stored refresh token rejected; starting signed out")
                session = None
        return self._emit(AuthChangeEvent.INITIAL_SESSION, session, sequence)

    async def get_session(self, refresh_margin_seconds: int = 60) -> Optional[ProviderSession]:
        session = self._session
        if session is None or not session.expires_within(refresh_margin_seconds):
            return session
        sequence = self._reserve_sequence()
        try:
            refreshed = await self._refresh(session.refresh_token)
        except AuthProviderError as exc:
            if exc.status_code >= 500:
                raise
            logger.info("session refresh rejected; signing out locally")
            self._emit(AuthChangeEvent.SIGNED_OUT, None, sequence)
            return None
        self._emit(AuthChangeEvent.TOKEN_REFRESHED, refreshed, sequence)
        return self._session

    async def sign_in_with_password(self, email: str, password: str) -> AuthChange:
        sequence = self._reserve_sequence()
        data = await self._request(
            "POST", "/token", params={"grant_type": "password"}, json={"email": email, "password": password}
        )
        return self._emit(AuthChangeEvent.SIGNED_IN, ProviderSession.from_payload(data), sequence)

    async def sign_up(self, email: str, password: str) -> Optional[AuthChange]:
        sequence = self._reserve_sequence()
        data = await self._request("POST", "/signup", json={"email": email, "password": password})
        if not data.get("access_token"):
            # Email confirmation pending: account exists, no session yet.
            return None
        return self._emit(AuthChangeEvent.SIGNED_IN, ProviderSession.from_payload(data), sequence)

    async def sign_out(self) -> AuthChange:
        sequence = self._reserve_sequence()
        session = self._session
        if session is not None:
            try:
                await self._request("POST", "/logout", access_token=session.access_token)
            except AuthProviderError as exc:
                # Token already revoked or expired upstream; the local session still ends.
                if exc.status_code not in (401, 403, 404):
                    raise
        return self._emit(AuthChangeEvent.SIGNED_OUT, None, sequence)

    async def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._request("POST", "/recover", json={"email": email}, params=params)

    async def update_user(self, password: str) -> AuthChange:
        session = self._session
        if session is None:
            raise AuthProviderError("Auth session missing!", 401, "session_not_found")
        sequence = self._reserve_sequence()
        data = await self._request("PUT", "/user", json={"password": password}, access_token=session.access_token)
        updated = ProviderSession(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=session.expires_at,
            user=ProviderUser.from_payload(data),
            token_type=session.token_type,
        )
        return self._emit(AuthChangeEvent.USER_UPDATED, updated, sequence)

    async def get_user(self, access_token: str) -> ProviderUser:
        data = await self._request("GET", "/user", access_token=access_token)
        return ProviderUser.from_payload(data)
