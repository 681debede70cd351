import json
import time

import httpx
import pytest

from pickup_plants.app.core.errors import AuthProviderError
from pickup_plants.app.services.auth_provider import AuthChangeEvent
from pickup_plants.app.services.supabase_auth import SupabaseAuthProvider

BASE_URL = "https://test-project.supabase.co"


def session_body(access_token="access-1", refresh_token="refresh-1", expires_in=3600):
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": expires_in,
        "refresh_token": refresh_token,
        "user": {"id": "user-1", "email": "cook@example.com"},
    }


def make_provider(handler):
    return SupabaseAuthProvider(BASE_URL, "anon-key", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_sign_in_posts_password_grant_and_emits_signed_in():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=session_body())

    provider = make_provider(handler)
    events = []
    provider.on_auth_state_change(events.append)
    change = await provider.sign_in_with_password("cook@example.com", "green-pass")

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/auth/v1/token"
    assert request.url.params["grant_type"] == "password"
    assert request.headers["apikey"] == "anon-key"
    assert json.loads(request.content) == {"email": "cook@example.com", "password": "green-pass"}
    assert change.event == AuthChangeEvent.SIGNED_IN
    assert change.user.email == "cook@example.com"
    assert events == [change]
    assert provider.current_session.access_token == "access-1"


@pytest.mark.asyncio
async def test_rejected_credentials_raise_provider_message():
    def handler(request):
        return httpx.Response(
            400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"}
        )

    provider = make_provider(handler)
    with pytest.raises(AuthProviderError) as exc_info:
        await provider.sign_in_with_password("cook@example.com", "wrong")
    assert exc_info.value.message == "Invalid login credentials"
    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "invalid_grant"
    assert provider.current_session is None


@pytest.mark.asyncio
async def test_unreadable_error_body_falls_back_to_generic_message():
    def handler(request):
        return httpx.Response(500, json={"unexpected": True})

    provider = make_provider(handler)
    with pytest.raises(AuthProviderError, match="An unexpected error occurred"):
        await provider.sign_in_with_password("cook@example.com", "green-pass")


@pytest.mark.asyncio
async def test_transport_failure_maps_to_bad_gateway():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = make_provider(handler)
    with pytest.raises(AuthProviderError) as exc_info:
        await provider.sign_in_with_password("cook@example.com", "green-pass")
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_sign_up_pending_confirmation_returns_none():
    def handler(request):
        assert request.url.path == "/auth/v1/signup"
        return httpx.Response(200, json={"id": "user-2", "email": "new@example.com"})

    provider = make_provider(handler)
    events = []
    provider.on_auth_state_change(events.append)
    assert await provider.sign_up("new@example.com", "green-pass") is None
    assert events == []


@pytest.mark.asyncio
async def test_restore_with_rejected_refresh_token_starts_signed_out():
    def handler(request):
        assert request.url.params["grant_type"] == "refresh_token"
        return httpx.Response(400, json={"error_description": "Invalid Refresh Token: Refresh Token Not Found"})

    provider = make_provider(handler)
    change = await provider.restore_session("stale")
    assert change.event == AuthChangeEvent.INITIAL_SESSION
    assert change.session is None


@pytest.mark.asyncio
async def test_restore_without_token_makes_no_request():
    def handler(request):
        raise AssertionError("no request expected")

    provider = make_provider(handler)
    change = await provider.restore_session(None)
    assert change.session is None


@pytest.mark.asyncio
async def test_get_session_refreshes_expiring_session():
    calls = []

    def handler(request):
        calls.append(request.url.params["grant_type"])
        if request.url.params["grant_type"] == "password":
            return httpx.Response(200, json=session_body(expires_in=10))
        return httpx.Response(200, json=session_body(access_token="access-2", refresh_token="refresh-2"))

    provider = make_provider(handler)
    events = []
    provider.on_auth_state_change(events.append)
    await provider.sign_in_with_password("cook@example.com", "green-pass")
    session = await provider.get_session(refresh_margin_seconds=60)

    assert calls == ["password", "refresh_token"]
    assert session.access_token == "access-2"
    assert session.expires_at > time.time() + 60
    assert [e.event for e in events] == [AuthChangeEvent.SIGNED_IN, AuthChangeEvent.TOKEN_REFRESHED]
    assert events[1].sequence > events[0].sequence


@pytest.mark.asyncio
async def test_failed_refresh_signs_out():
    def handler(request):
        if request.url.params["grant_type"] == "password":
            return httpx.Response(200, json=session_body(expires_in=10))
        return httpx.Response(400, json={"error_description": "Invalid Refresh Token"})

    provider = make_provider(handler)
    events = []
    provider.on_auth_state_change(events.append)
    await provider.sign_in_with_password("cook@example.com", "green-pass")
    assert await provider.get_session(refresh_margin_seconds=60) is None
    assert events[-1].event == AuthChangeEvent.SIGNED_OUT
    assert provider.current_session is None


@pytest.mark.asyncio
async def test_sign_out_ignores_already_revoked_token():
    def handler(request):
        if request.url.path == "/auth/v1/logout":
            assert request.headers["Authorization"] == "Bearer access-1"
            return httpx.Response(401, json={"msg": "invalid JWT"})
        return httpx.Response(200, json=session_body())

    provider = make_provider(handler)
    await provider.sign_in_with_password("cook@example.com", "green-pass")
    change = await provider.sign_out()
    assert change.event == AuthChangeEvent.SIGNED_OUT
    assert provider.current_session is None


@pytest.mark.asyncio
async def test_update_user_requires_session():
    def handler(request):
        raise AssertionError("no request expected")

    provider = make_provider(handler)
    with pytest.raises(AuthProviderError) as exc_info:
        await provider.update_user("new-secret")
    assert exc_info.value.message == "Auth session missing!"
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_update_user_emits_user_updated():
    def handler(request):
        if request.url.path == "/auth/v1/user":
            assert request.method == "PUT"
            return httpx.Response(200, json={"id": "user-1", "email": "cook@example.com"})
        return httpx.Response(200, json=session_body())

    provider = make_provider(handler)
    await provider.sign_in_with_password("cook@example.com", "green-pass")
    change = await provider.update_user("new-secret")
    assert change.event == AuthChangeEvent.USER_UPDATED
    assert change.session.access_token == "access-1"


@pytest.mark.asyncio
async def test_reset_password_sends_redirect():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    provider = make_provider(handler)
    await provider.reset_password_for_email("cook@example.com", "https://example.com/reset")
    assert seen[0].url.path == "/auth/v1/recover"
    assert seen[0].url.params["redirect_to"] == "https://example.com/reset"
    assert json.loads(seen[0].content) == {"email": "cook@example.com"}


@pytest.mark.asyncio
async def test_subscriber_failure_does_not_block_others():
    def handler(request):
        return httpx.Response(200, json=session_body())

    provider = make_provider(handler)
    received = []

    def broken(change):
        raise RuntimeError("boom")

    provider.on_auth_state_change(broken)
    subscription = provider.on_auth_state_change(received.append)
    await provider.sign_in_with_password("cook@example.com", "green-pass")
    assert len(received) == 1

    subscription.unsubscribe()
    await provider.sign_out()
    assert len(received) == 1
