from pickup_plants.app.services.session_registry import SessionRegistry


def credentials(email="cook@example.com", password="green-pass"):
    return {"email": email, "password": password}


def test_state_starts_unauthenticated(client):
    response = client.get("/api/auth/state")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "unauthenticated"
    assert body["user"] is None
    assert body["loading"] is False


def test_sign_in_and_state(client, auth_backend):
    auth_backend.add_user("cook@example.com", "green-pass")
    response = client.post("/api/auth/sign-in", json=credentials())
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "cook@example.com"

    state = client.get("/api/auth/state").json()
    assert state["status"] == "authenticated"
    assert state["expires_at"] is not None


def test_sign_in_failure_keeps_error_until_cleared(client, auth_backend):
    auth_backend.add_user("cook@example.com", "green-pass")
    response = client.post("/api/auth/sign-in", json=credentials(password="wrong"))
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid login credentials"

    state = client.get("/api/auth/state").json()
    assert state["error"] == "Invalid login credentials"
    assert state["user"] is None

    cleared = client.delete("/api/auth/error").json()
    assert cleared["error"] is None


def test_sign_in_rejects_malformed_email(client):
    response = client.post("/api/auth/sign-in", json=credentials(email="not-an-email"))
    assert response.status_code == 422
    assert response.json()["error_code"] == "validation_error"


def test_sign_up_creates_session(client, auth_backend):
    response = client.post("/api/auth/sign-up", json=credentials(email="new@example.com"))
    assert response.status_code == 201
    assert response.json()["status"] == "authenticated"
    assert "new@example.com" in auth_backend.users


def test_duplicate_sign_up_reports_provider_message(client, auth_backend):
    auth_backend.add_user("cook@example.com", "green-pass")
    response = client.post("/api/auth/sign-up", json=credentials())
    assert response.status_code == 422
    assert response.json()["detail"] == "User already registered"


def test_sign_out_ends_browser_session(client, auth_backend):
    auth_backend.add_user("cook@example.com", "green-pass")
    client.post("/api/auth/sign-in", json=credentials())
    response = client.post("/api/auth/sign-out")
    assert response.status_code == 200
    assert response.json()["status"] == "unauthenticated"
    assert client.get("/api/recipes").status_code == 401


def test_reset_password(client, auth_backend):
    response = client.post("/api/auth/reset-password", json={"email": " cook@example.com "})
    assert response.status_code == 202
    assert response.json() == {"status": "sent"}
    assert auth_backend.reset_requests == [("cook@example.com", None)]


def test_update_password_requires_session(client):
    response = client.post("/api/auth/update-password", json={"password": "new-secret"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Auth session missing!"


def test_update_password(client, auth_backend):
    auth_backend.add_user("cook@example.com", "green-pass")
    client.post("/api/auth/sign-in", json=credentials())
    response = client.post("/api/auth/update-password", json={"password": "new-secret"})
    assert response.status_code == 200
    assert auth_backend.users["cook@example.com"][0] == "new-secret"


def test_cookieless_state_requests_do_not_create_sessions(client, app):
    registry = app.state.session_registry
    before = len(registry)
    for _ in range(25):
        client.cookies.clear()
        assert client.get("/api/auth/state").json()["status"] == "unauthenticated"
        assert client.delete("/api/auth/error").json()["error"] is None
    assert len(registry) == before


def test_repeated_failed_logins_stay_within_session_limit(client, app, auth_backend):
    registry = SessionRegistry(app.state.session_registry.new_provider, max_sessions=5)
    app.state.session_registry = registry
    auth_backend.add_user("cook@example.com", "green-pass")
    for _ in range(20):
        client.cookies.clear()
        client.post("/api/auth/sign-in", json=credentials(password="wrong"))
    assert len(registry) <= 5
