import logging

from fastapi.testclient import TestClient

from citizen_connect.main import create_app
from citizen_connect.models.user import UserRecord
from citizen_connect.services.auth_service import FORGOT_PASSWORD_MESSAGE
from citizen_connect.services.reset_notifier import LoggingResetNotifier
from citizen_connect.utils.clock import utc_now

from conftest import PASSWORD, auth_header, login, register


def test_register_login_verify(client, container):
    body = register(client, "Alice", "alice@example.com")
    assert body["success"] is True
    assert body["user"]["role"] == "citizen"
    assert "password_hash" not in body["user"]

    token = login(client, "alice@example.com")
    identity = container.token_service.validate_session(token)
    assert identity.user_id == body["user"]["id"]
    assert identity.role.value == "citizen"

    verified = client.get("/auth/verify", headers=auth_header(token)).json()
    assert verified["user"]["email"] == "alice@example.com"

    profile = client.get("/auth/profile", headers=auth_header(token)).json()
    assert "created_at" in profile["user"]


def test_password_is_hashed_at_rest(client, credential_store):
    register(client, "Alice", "alice@example.com")
    stored = credential_store.get_by_email("alice@example.com")
    assert stored.password_hash != PASSWORD
    assert stored.password_hash.startswith("$2")


def test_register_validation(client):
    resp = client.post("/auth/register", json={"name": "Bob", "email": "not-an-email", "password": PASSWORD})
    assert resp.status_code == 400
    assert resp.json()["success"] is False

    resp = client.post("/auth/register", json={"name": "Bob", "email": "bob@example.com", "password": "123"})
    assert resp.status_code == 400
    assert "at least 6 characters" in resp.json()["message"]


def test_duplicate_email(client):
    register(client, "Alice", "alice@example.com")
    resp = client.post("/auth/register", json={"name": "Other", "email": "alice@example.com", "password": PASSWORD})
    assert resp.status_code == 400
    assert resp.json()["message"] == "User with this email already exists"


def test_login_failures_share_message(client):
    register(client, "Alice", "alice@example.com")
    wrong_password = client.post("/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"})
    unknown_email = client.post("/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json()["message"] == unknown_email.json()["message"]


def test_legacy_plaintext_account_cannot_login(client, credential_store):
    credential_store.create_user("Legacy", "legacy@example.com", PASSWORD)
    resp = client.post("/auth/login", json={"email": "legacy@example.com", "password": PASSWORD})
    assert resp.status_code == 401


def test_forgot_and_reset_password(client, notifier):
    register(client, "Alice", "alice@example.com")

    unknown = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    known = client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    assert unknown.status_code == known.status_code == 200
    assert unknown.json()["message"] == known.json()["message"] == FORGOT_PASSWORD_MESSAGE
    assert len(notifier.sent) == 1
    assert notifier.sent[0][1].startswith("http://frontend.test/reset-password/")

    token = notifier.last_token
    assert client.post(f"/auth/reset-password/{token}", json={"password": "123"}).status_code == 400

    resp = client.post(f"/auth/reset-password/{token}", json={"password": "new-secret"})
    assert resp.status_code == 200

    again = client.post(f"/auth/reset-password/{token}", json={"password": "other-secret"})
    assert again.status_code == 400
    assert again.json()["message"] == "Invalid or expired reset token"

    login(client, "alice@example.com", "new-secret")


def test_reset_token_expiry_over_http(client, notifier, clock):
    register(client, "Alice", "alice@example.com")
    client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    clock.advance(hours=2)
    resp = client.post(f"/auth/reset-password/{notifier.last_token}", json={"password": "new-secret"})
    assert resp.status_code == 400


def test_notifier_failure_does_not_change_response(client, notifier):
    register(client, "Alice", "alice@example.com")

    def explode(user, reset_url):
        raise RuntimeError("smtp down")

    notifier.send_reset_link = explode
    resp = client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    assert resp.status_code == 200
    assert resp.json()["message"] == FORGOT_PASSWORD_MESSAGE


def test_change_password(client):
    token = register(client, "Alice", "alice@example.com")["token"]

    wrong = client.post(
        "/auth/change-password",
        json={"currentPassword": "not-it", "newPassword": "new-secret"},
        headers=auth_header(token),
    )
    assert wrong.status_code == 400
    assert wrong.json()["message"] == "Current password is incorrect"

    ok = client.post(
        "/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "new-secret"},
        headers=auth_header(token),
    )
    assert ok.status_code == 200
    login(client, "alice@example.com", "new-secret")

    anonymous = client.post("/auth/change-password", json={"currentPassword": "a", "newPassword": "b"})
    assert anonymous.status_code == 401


def test_mixed_case_domain_logs_in_as_registered(client, notifier):
    register(client, "Mixed", "Mixed@Example.COM")

    resp = client.post("/auth/login", json={"email": "Mixed@Example.COM", "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    assert resp.json()["user"]["email"] == "Mixed@example.com"

    client.post("/auth/forgot-password", json={"email": "Mixed@Example.COM"})
    assert [email for email, _ in notifier.sent] == ["Mixed@example.com"]


def test_validation_errors_do_not_echo_password(client, caplog):
    caplog.set_level(logging.INFO)
    resp = client.post("/auth/register", json={"email": "a@b.com", "password": "TopSecretPw99"})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["loc"] == ["body", "name"]
    assert "TopSecretPw99" not in resp.text
    assert "TopSecretPw99" not in caplog.text


def reset_user():
    return UserRecord(
        id="u-1",
        name="Alice",
        email="alice@example.com",
        password_hash="$2b$04$hash",
        created_at=utc_now(),
    )


def test_logging_notifier_hides_link_by_default(caplog):
    caplog.set_level(logging.INFO)
    LoggingResetNotifier().send_reset_link(reset_user(), "http://frontend.test/reset-password/tok123")
    assert "tok123" not in caplog.text
    assert "mail delivery is not configured" in caplog.text


def test_logging_notifier_logs_link_in_debug(caplog):
    caplog.set_level(logging.INFO)
    LoggingResetNotifier(log_links=True).send_reset_link(reset_user(), "http://frontend.test/reset-password/tok123")
    assert "http://frontend.test/reset-password/tok123" in caplog.text


def test_default_notifier_logs_reset_link_when_debug(settings, caplog):
    caplog.set_level(logging.INFO)
    app = create_app(settings.model_copy(update={"DEBUG": True}))
    with TestClient(app) as debug_client:
        register(debug_client, "Alice", "alice@example.com")
        resp = debug_client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    assert resp.status_code == 200
    assert "http://frontend.test/reset-password/" in caplog.text
