import inspect
import logging

from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from citizen_connect.models.user import Role

from conftest import PASSWORD, auth_header, login, register


def submit(client, token, **fields):
    data = {
        "service_type": "road_repair",
        "description": "Pothole near the bus stop",
        "location": "Station Road",
        "priority": "high",
    }
    data.update(fields)
    return client.post("/citizen/requests", data=data, headers=auth_header(token))


def test_root_and_health(client):
    root = client.get("/").json()
    assert root["success"] is True
    assert root["apiVersion"] == "1"
    assert root["service"] == "CitizenConnect"

    assert client.get("/health").json()["status"] == "healthy"

    db = client.get("/health/db")
    assert db.status_code == 200
    assert db.json()["database"] == "memory"


def test_request_lifecycle_scenario(client, admin_token, clock, request_store):
    citizen_a = register(client, "Asha", "asha@example.com")
    token_a = login(client, "asha@example.com")

    created = submit(client, token_a)
    assert created.status_code == 201
    record = created.json()["request"]
    assert record["status"] == "pending"
    assert record["priority"] == "high"
    assert record["image_reference"] is None
    assert record["owner_user_id"] == citizen_a["user"]["id"]

    clock.advance(minutes=10)
    resp = client.put(
        f"/admin/requests/{record['id']}/status",
        json={"status": "in_progress"},
        headers=auth_header(admin_token),
    )
    assert resp.status_code == 200
    updated = resp.json()["request"]
    assert updated["status"] == "in_progress"
    assert updated["updated_at"] != record["updated_at"]
    assert request_store.get(record["id"]).updated_at == clock.now

    own = client.get("/citizen/requests", headers=auth_header(token_a)).json()["requests"]
    assert [(r["id"], r["status"]) for r in own] == [(record["id"], "in_progress")]

    token_b = register(client, "Bala", "bala@example.com")["token"]
    denied = client.get(f"/admin/requests/{record['id']}", headers=auth_header(token_b))
    assert denied.status_code == 403
    assert denied.json()["success"] is False

    hidden = client.get(f"/citizen/requests/{record['id']}", headers=auth_header(token_b))
    assert hidden.status_code == 404


def test_invalid_transition_leaves_record(client, citizen_token, admin_token):
    record = submit(client, citizen_token).json()["request"]
    path = f"/admin/requests/{record['id']}/status"

    assert client.put(path, json={"status": "rejected"}, headers=auth_header(admin_token)).status_code == 200

    resp = client.put(path, json={"status": "completed"}, headers=auth_header(admin_token))
    assert resp.status_code == 400
    body = resp.json()
    assert body["current_status"] == "rejected"
    assert body["allowed_transitions"] == ["pending"]

    details = client.get(f"/admin/requests/{record['id']}", headers=auth_header(admin_token)).json()
    assert details["request"]["status"] == "rejected"
    assert details["request"]["owner_email"] == "alice@example.com"

    bad_value = client.put(path, json={"status": "archived"}, headers=auth_header(admin_token))
    assert bad_value.status_code == 400


def test_allowed_transitions_endpoint(client, citizen_token, admin_token):
    record = submit(client, citizen_token).json()["request"]
    body = client.get(
        f"/admin/requests/{record['id']}/allowed-transitions",
        headers=auth_header(admin_token),
    ).json()
    assert body["allowed_transitions"] == ["in_progress", "completed", "rejected"]


def test_submit_with_image(client, citizen_token):
    resp = client.post(
        "/citizen/requests",
        data={"service_type": "street_light", "description": "Light out", "location": "Park Lane"},
        files={"image": ("lamp.jpg", b"\xff\xd8\xff\xe0fakejpeg", "image/jpeg")},
        headers=auth_header(citizen_token),
    )
    assert resp.status_code == 201
    reference = resp.json()["request"]["image_reference"]
    assert reference.startswith("uploads/")

    served = client.get(f"/{reference}")
    assert served.status_code == 200
    assert served.content == b"\xff\xd8\xff\xe0fakejpeg"


def test_submit_rejects_non_image(client, citizen_token):
    resp = client.post(
        "/citizen/requests",
        data={"service_type": "other", "description": "See file", "location": "Anywhere"},
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=auth_header(citizen_token),
    )
    assert resp.status_code == 400
    assert client.get("/citizen/requests", headers=auth_header(citizen_token)).json()["requests"] == []


def test_upload_extension_follows_content_type(client, citizen_token):
    resp = client.post(
        "/citizen/requests",
        data={"service_type": "other", "description": "Photo", "location": "Market"},
        files={"image": ("x.html", b"<script>alert(1)</script>", "image/png")},
        headers=auth_header(citizen_token),
    )
    assert resp.status_code == 201
    reference = resp.json()["request"]["image_reference"]
    assert reference.endswith(".png")

    served = client.get(f"/{reference}")
    assert served.headers["content-type"].startswith("image/png")


def test_submit_rejects_svg(client, citizen_token):
    resp = client.post(
        "/citizen/requests",
        data={"service_type": "other", "description": "Logo", "location": "Market"},
        files={"image": ("logo.svg", b"<svg onload=\"alert(1)\"/>", "image/svg+xml")},
        headers=auth_header(citizen_token),
    )
    assert resp.status_code == 400


def test_submit_requires_fields(client, citizen_token):
    resp = submit(client, citizen_token, description="")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Service type, description, and location are required"


def test_protected_routes_require_token(client):
    for method, path in [
        ("get", "/auth/verify"),
        ("get", "/citizen/requests"),
        ("get", "/citizen/stats"),
        ("get", "/admin/requests"),
        ("get", "/admin/stats"),
    ]:
        resp = getattr(client, method)(path)
        assert resp.status_code == 401, path
        assert resp.json()["success"] is False

    resp = client.get("/citizen/requests", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_citizen_gets_403_on_admin_routes(client, citizen_token):
    resp = client.get("/admin/stats", headers=auth_header(citizen_token))
    assert resp.status_code == 403
    assert resp.json()["required_role"] == "admin"


def test_admin_listing_and_stats(client, citizen_token, admin_token):
    for _ in range(3):
        submit(client, citizen_token)

    body = client.get("/admin/requests?page=1&limit=2", headers=auth_header(admin_token)).json()
    assert len(body["requests"]) == 2
    assert body["pagination"] == {
        "currentPage": 1,
        "pageSize": 2,
        "totalPages": 2,
        "totalRequests": 3,
        "hasNext": True,
        "hasPrev": False,
    }
    assert body["filter"] == {"status": "all", "showing": "all requests"}
    assert body["requests"][0]["owner_name"] == "Alice"

    stats = client.get("/admin/stats", headers=auth_header(admin_token)).json()["stats"]
    assert stats["total"] == 3
    assert stats["byStatus"]["pending"] == 3

    own = client.get("/citizen/stats", headers=auth_header(citizen_token)).json()["stats"]
    assert own["total"] == 3


def test_role_change_applies_at_next_login(client, credential_store):
    body = register(client, "Promoted", "promoted@example.com")
    old_token = body["token"]
    credential_store.set_role(body["user"]["id"], Role.ADMIN)

    assert client.get("/admin/stats", headers=auth_header(old_token)).status_code == 403
    new_token = login(client, "promoted@example.com", PASSWORD)
    assert client.get("/admin/stats", headers=auth_header(new_token)).status_code == 200


def test_store_backed_handlers_are_sync(app):
    # Blocking store and bcrypt calls must run in the threadpool.
    endpoints = {
        route.endpoint.__name__: route.endpoint
        for route in app.routes
        if isinstance(route, APIRoute) and route.path.startswith(("/auth", "/citizen", "/admin", "/health/db"))
    }
    assert "login" in endpoints and "update_status" in endpoints
    async_endpoints = sorted(name for name, fn in endpoints.items() if inspect.iscoroutinefunction(fn))
    assert async_endpoints == ["create_request"]


def test_lifespan_logs_startup_and_shutdown(app, caplog):
    caplog.set_level(logging.INFO)
    with TestClient(app):
        assert "Starting" in caplog.text
    assert "Shutting down" in caplog.text
