"""Tests for the HTTP surface"""
from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

import main
from agents.action_lifecycle import ActionLifecycleManager
from services.audit_ledger import AuditLedger
from models.action import ExecutionResult
from models.audit_entry import AuditEntry
from models.pipeline import BatchResult, EventOutcome
from models.scheduled_task import SchedulerRunResult


CRON_HEADERS = {"X-API-Key": "test-cron-key"}
EMAIL_PAYLOAD = {"to": ["sam@company.com"], "subject": "Re: contract", "body": "Signed."}


@pytest.fixture
def client():
    with TestClient(main.app) as client:
        yield client


@pytest.fixture
def executor():
    executor = Mock()
    executor.execute.return_value = ExecutionResult(success=True, message="Email sent", provider_id="msg-1")
    return executor


@pytest.fixture
def lifecycle(fake_db, executor):
    lifecycle = ActionLifecycleManager(db=fake_db, executor=executor, ledger=AuditLedger(db=fake_db))
    with patch.object(main, "lifecycle", lifecycle):
        yield lifecycle


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["scheduler_running"] is False


def test_pipeline_run_requires_api_key(client):
    with patch.object(main, "pipeline") as pipeline:
        response = client.post("/pipeline/run", headers={"X-API-Key": "wrong"})

    assert response.status_code == 401
    pipeline.run_batch.assert_not_called()


def test_pipeline_run(client):
    with patch.object(main, "pipeline") as pipeline:
        pipeline.run_batch.return_value = BatchResult(
            processed_count=1, succeeded=1, outcomes=[EventOutcome(event_id="event-1", status="processed")]
        )
        response = client.post("/pipeline/run", json={"limit": 5}, headers=CRON_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["processed_count"] == 1
    assert body["outcomes"][0]["status"] == "processed"
    pipeline.run_batch.assert_called_once_with(limit=5)


def test_pipeline_run_without_body(client):
    with patch.object(main, "pipeline") as pipeline:
        pipeline.run_batch.return_value = BatchResult()
        response = client.post("/pipeline/run", headers=CRON_HEADERS)

    assert response.status_code == 200
    pipeline.run_batch.assert_called_once_with(limit=None)


def test_pipeline_run_rejects_bad_limit(client):
    response = client.post("/pipeline/run", json={"limit": 500}, headers=CRON_HEADERS)

    assert response.status_code == 422


def test_pipeline_run_database_down(client):
    with patch.object(main, "pipeline") as pipeline:
        pipeline.run_batch.side_effect = RuntimeError("could not connect to server")
        response = client.post("/pipeline/run", headers=CRON_HEADERS)

    assert response.status_code == 500


def test_process_single_event(client):
    with patch.object(main, "pipeline") as pipeline:
        pipeline.process_event.return_value = EventOutcome(event_id="event-1", status="processed", summary_id="s-1")
        response = client.post("/pipeline/events/event-1")

    assert response.status_code == 200
    assert response.json()["summary_id"] == "s-1"


def test_process_single_event_missing(client):
    with patch.object(main, "pipeline") as pipeline:
        pipeline.process_event.return_value = None
        response = client.post("/pipeline/events/nope")

    assert response.status_code == 404


def test_scheduler_run(client):
    with patch.object(main, "task_scheduler") as task_scheduler:
        task_scheduler.run_due_tasks.return_value = SchedulerRunResult(processed_count=2, completed=1, failed=1)
        response = client.post("/scheduler/run", headers=CRON_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"success": True, "processed_count": 2, "completed": 1, "failed": 1, "outcomes": []}


def test_scheduler_run_requires_api_key(client):
    response = client.post("/scheduler/run")

    assert response.status_code == 401


def test_create_action(client, lifecycle, fake_db):
    response = client.post("/actions", json={"user_id": "user-1", "type": "send_email", "payload": EMAIL_PAYLOAD})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["confirmation_prompt"] == "Do you want me to send email?"
    assert body["action_id"] in fake_db.actions


def test_create_action_invalid_payload(client, lifecycle):
    response = client.post("/actions", json={"user_id": "user-1", "type": "send_email", "payload": {}})

    assert response.status_code == 422


def test_confirm_action(client, lifecycle, executor):
    action_id = lifecycle.create_action("user-1", "send_email", EMAIL_PAYLOAD).action_id

    response = client.post("/actions/confirm", json={"action_id": action_id, "user_id": "user-1", "confirmed": True})

    assert response.status_code == 200
    assert response.json() == {"success": True, "action_id": action_id, "status": "executed", "message": "Email sent"}

    again = client.post("/actions/confirm", json={"action_id": action_id, "user_id": "user-1", "confirmed": True})

    assert again.status_code == 409
    executor.execute.assert_called_once()


def test_reject_action(client, lifecycle):
    action_id = lifecycle.create_action("user-1", "send_email", EMAIL_PAYLOAD).action_id

    response = client.post("/actions/confirm", json={"action_id": action_id, "user_id": "user-1", "confirmed": False})

    assert response.json()["status"] == "cancelled"


def test_confirm_decided_action_is_conflict(client, lifecycle, executor):
    action_id = lifecycle.create_action("user-1", "send_email", EMAIL_PAYLOAD).action_id
    client.post("/actions/confirm", json={"action_id": action_id, "user_id": "user-1", "confirmed": False})

    response = client.post("/actions/confirm", json={"action_id": action_id, "user_id": "user-1", "confirmed": True})

    assert response.status_code == 409
    executor.execute.assert_not_called()


def test_confirm_missing_fields(client, lifecycle):
    response = client.post("/actions/confirm", json={"action_id": "action-1", "confirmed": True})

    assert response.status_code == 422


def test_confirm_foreign_action(client, lifecycle):
    action_id = lifecycle.create_action("user-1", "send_email", EMAIL_PAYLOAD).action_id

    response = client.post("/actions/confirm", json={"action_id": action_id, "user_id": "user-2", "confirmed": True})

    assert response.status_code == 404


def test_materialize_suggestion(client, lifecycle, fake_db):
    [suggestion] = fake_db.create_suggestions([{
        "summary_id": "summary-1", "user_id": "user-1", "prompt": "Reply to Sam", "type": "send_email",
        "payload": EMAIL_PAYLOAD,
    }])

    response = client.post(f"/suggestions/{suggestion.id}/materialize", json={"user_id": "user-1"})

    assert response.status_code == 200
    assert response.json()["confirmation_prompt"] == "Reply to Sam"


def test_materialize_missing_suggestion(client, lifecycle):
    response = client.post("/suggestions/suggestion-404/materialize", json={"user_id": "user-1"})

    assert response.status_code == 404


def test_audit_query(client, fake_db):
    ledger = AuditLedger(db=fake_db)
    ledger.append(AuditEntry.success("summarized", "ok", raw_event_id="event-1"))
    ledger.append(AuditEntry.failed("summarized", "empty", raw_event_id="event-2"))

    with patch.object(main, "ledger", ledger):
        response = client.get("/audit", params={"status": "failed"})

    assert response.status_code == 200
    assert [e["raw_event_id"] for e in response.json()] == ["event-2"]
