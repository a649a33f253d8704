import json

import pytest
from fastapi.testclient import TestClient

from helpdesk.main import app


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client


def _create_ticket(client, **fields) -> dict:
    response = client.post("/api/tickets", json={"title": "Recorder freezes", **fields})
    assert response.status_code == 201
    return response.json()


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_ticket_lifecycle(client) -> None:
    ticket = _create_ticket(client, device_model="EEG-500")
    assert ticket["status"] == "new"
    assert len(ticket["ticket_number"]) == 10

    response = client.post(
        f"/api/tickets/{ticket['id']}/messages",
        json={"content": "Looking into it", "sender_type": "agent", "sender_id": "agent-7"},
    )
    assert response.status_code == 201

    messages = client.get(f"/api/tickets/{ticket['id']}/messages").json()
    assert [m["content"] for m in messages] == ["Looking into it"]

    closed = client.post(f"/api/tickets/{ticket['id']}/close").json()
    assert closed["status"] == "closed"

    listed = client.get(
        "/api/tickets", params={"filter": json.dumps({"status": "closed"})}
    ).json()
    assert ticket["id"] in [item["id"] for item in listed["data"]]


def test_missing_ticket_is_404(client) -> None:
    assert client.get("/api/tickets/does-not-exist").status_code == 404


def test_invalid_filter_is_400(client) -> None:
    assert client.get("/api/tickets", params={"filter": "{broken"}).status_code == 400
    assert client.get("/api/tickets", params={"filter": "[1]"}).status_code == 400


def test_ticket_list_reports_its_page(client) -> None:
    for title in ("Lead off", "Gel dried", "Cap torn"):
        _create_ticket(client, title=title)

    page = client.get("/api/tickets", params={"skip": 1, "limit": 2}).json()

    assert len(page["data"]) == 2
    assert (page["skip"], page["limit"]) == (1, 2)
    assert page["total"] >= 3


def test_second_claim_conflicts(client) -> None:
    ticket = _create_ticket(client)

    first = client.post(f"/api/tickets/{ticket['id']}/claim", json={"agent_id": "agent-1"})
    second = client.post(f"/api/tickets/{ticket['id']}/claim", json={"agent_id": "agent-2"})

    assert first.status_code == 200
    assert first.json()["agent_id"] == "agent-1"
    assert second.status_code == 409
    assert second.json()["agent_id"] == "agent-1"


def test_ai_toggle_records_manual_reason(client) -> None:
    ticket = _create_ticket(client)

    toggled = client.post(f"/api/tickets/{ticket['id']}/ai", json={"enabled": False}).json()

    assert toggled["ai_enabled"] is False
    assert toggled["ai_disabled_reason"] == "manual"


def test_summary_without_model_is_unavailable(client) -> None:
    ticket = _create_ticket(client)

    assert client.get(f"/api/tickets/{ticket['id']}/summary").status_code == 503
    details = client.post(f"/api/tickets/{ticket['id']}/details").json()
    assert details["was_generated"] is False
    assert details["title"] == "Recorder freezes"


def test_document_upload_is_processed(client) -> None:
    content = ("Hold the power button for ten seconds to reset the recorder. " * 30).encode()

    response = client.post(
        "/api/documents", files={"file": ("reset-guide.txt", content, "text/plain")}
    )

    assert response.status_code == 202
    document_id = response.json()["id"]
    assert client.get(f"/api/documents/{document_id}").json()["status"] == "ready"
    chunks = client.get(f"/api/documents/{document_id}/chunks").json()
    assert chunks and chunks[0]["index"] == 0
    assert client.delete(f"/api/documents/{document_id}").status_code == 200
    assert client.get(f"/api/documents/{document_id}").status_code == 404


def test_unsupported_upload_is_415(client) -> None:
    response = client.post(
        "/api/documents", files={"file": ("photo.png", b"\x89PNG", "image/png")}
    )

    assert response.status_code == 415


def test_custom_flow_registration(client) -> None:
    before = len(client.get("/api/ai/flows").json())
    flow = {
        "id": "recorder-freeze",
        "name": "Recorder freeze",
        "pattern": r"\bfreez",
        "steps": [
            {
                "step": 1,
                "instruction": "Hold the power button for ten seconds.",
                "check_phrase": "Did the recorder restart?",
                "on_success": {"kind": "resolved"},
                "on_failure": {"kind": "escalate"},
            }
        ],
    }

    assert client.post("/api/ai/flows", json=flow).status_code == 201
    assert len(client.get("/api/ai/flows").json()) == before + 1

    flow["id"] = "broken"
    flow["steps"][0]["on_failure"] = {"kind": "goto", "step": 5}
    assert client.post("/api/ai/flows", json=flow).status_code == 400


def test_config_update_and_stats(client) -> None:
    response = client.put("/api/ai/config", json={"confidence_threshold": 0.4})
    assert response.status_code == 200

    config = client.get("/api/ai/config").json()
    assert config["effective"]["confidence_threshold"] == 0.4

    stats = client.get("/api/ai/stats").json()
    assert stats["llm_configured"] is False
    assert stats["flows_registered"] >= 1
