import pytest
from fastapi.testclient import TestClient

from helpdesk.dependencies.auth import get_current_actor
from helpdesk.identity import Actor, Role
from helpdesk.main import create_app, wire_services

from tests.conftest import ADMIN_ID, GATED_BRANCH_ID, OPERATOR_ID
from tests.fakes import InMemoryFileStore, RecordingMailTransport, make_settings


@pytest.fixture
def helpdesk_client(database):
    app = create_app(use_lifespan=False)
    wire_services(
        app,
        database=database,
        settings=make_settings(display_timezone="America/Argentina/Buenos_Aires"),
        transport=RecordingMailTransport(),
        file_store=InMemoryFileStore(),
    )
    caller = {"actor": Actor(user_id=OPERATOR_ID, role=Role.OPERATOR, branch_id=1)}
    app.dependency_overrides[get_current_actor] = lambda: caller["actor"]
    with TestClient(app) as client:
        yield client, caller
    app.dependency_overrides.clear()


def _create_gated_ticket(client) -> int:
    response = client.post(
        "/tickets",
        json={"ticket_date": "2025-11-21", "subject": "  Faltante de caja  ", "branch_id": GATED_BRANCH_ID},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending_attachments"
    assert body["subject"] == "Faltante de caja"
    return body["id"]


def test_gated_ticket_reaches_admin_inbox_after_upload(helpdesk_client):
    client, caller = helpdesk_client
    ticket_id = _create_gated_ticket(client)

    caller["actor"] = Actor(user_id=ADMIN_ID, role=Role.ADMIN)
    assert client.get("/notifications").json() == []

    caller["actor"] = Actor(user_id=OPERATOR_ID, role=Role.OPERATOR, branch_id=1)
    upload = client.post(f"/tickets/{ticket_id}/attachments", files=[("files", ("foto.jpg", b"data", "image/jpeg"))])
    assert upload.status_code == 201
    assert upload.json()["activated"] is True
    assert upload.json()["ticket_status"] == "pending"

    caller["actor"] = Actor(user_id=ADMIN_ID, role=Role.ADMIN)
    inbox = client.get("/notifications", params={"channel": "internal"}).json()
    assert len(inbox) == 1
    assert inbox[0]["subject"] == f"Nuevo ticket #{ticket_id} creado"
    assert inbox[0]["read_at"] is None

    summary = client.get("/notifications/summary").json()
    assert summary["unread_count"] == 1

    marked = client.post(f"/notifications/{inbox[0]['id']}/read")
    assert marked.status_code == 200
    assert marked.json()["read_at"] is not None
    assert client.get("/notifications/summary").json()["unread_count"] == 0

    history = client.get(f"/tickets/{ticket_id}/history").json()
    assert [entry["to_status"] for entry in history] == ["pending_attachments", "pending"]


def test_marking_someone_elses_notification_is_forbidden(helpdesk_client):
    client, caller = helpdesk_client
    ticket_id = _create_gated_ticket(client)
    client.post(f"/tickets/{ticket_id}/attachments", files=[("files", ("foto.jpg", b"data", "image/jpeg"))])

    caller["actor"] = Actor(user_id=ADMIN_ID, role=Role.ADMIN)
    notification_id = client.get("/notifications", params={"channel": "internal"}).json()[0]["id"]

    caller["actor"] = Actor(user_id=OPERATOR_ID, role=Role.OPERATOR, branch_id=1)
    response = client.post(f"/notifications/{notification_id}/read")

    assert response.status_code == 403
    assert client.post("/notifications/9999/read").status_code == 404


def test_metrics_endpoint_exposes_counters(helpdesk_client):
    client, _ = helpdesk_client
    ticket_id = _create_gated_ticket(client)
    client.post(f"/tickets/{ticket_id}/attachments", files=[("files", ("foto.jpg", b"data", "image/jpeg"))])

    response = client.get("/metrics")

    assert response.status_code == 200
    payload = response.text
    assert "# TYPE helpdesk_tickets_created_total counter" in payload
    assert 'helpdesk_tickets_created_total{initial_state="pending_attachments"} 1.0' in payload
    assert "helpdesk_ticket_activations_total 1.0" in payload
    assert 'helpdesk_notifications_created_total{channel="internal"} 2.0' in payload


def test_get_single_notification(helpdesk_client):
    client, caller = helpdesk_client
    ticket_id = _create_gated_ticket(client)
    client.post(f"/tickets/{ticket_id}/attachments", files=[("files", ("foto.jpg", b"data", "image/jpeg"))])

    caller["actor"] = Actor(user_id=ADMIN_ID, role=Role.ADMIN)
    notification_id = client.get("/notifications", params={"channel": "internal"}).json()[0]["id"]
    response = client.get(f"/notifications/{notification_id}")

    assert response.status_code == 200
    assert response.json()["ticket_id"] == ticket_id
    assert client.get("/notifications/summary").status_code == 200

    caller["actor"] = Actor(user_id=OPERATOR_ID, role=Role.OPERATOR, branch_id=1)
    assert client.get(f"/notifications/{notification_id}").status_code == 403
    assert client.get("/notifications/9999").status_code == 404
