"""HTTP tests for job queues, notifications and external sync."""

from datetime import UTC, datetime, timedelta

from httpx import AsyncClient


async def test_unknown_queue_returns_404(client: AsyncClient) -> None:
    response = await client.get("/api/v1/jobs/nope/status")
    assert response.status_code == 404


async def test_send_notification_queues_job(client: AsyncClient) -> None:
    """POST /notifications/send returns 202 with a waiting job."""
    response = await client.post(
        "/api/v1/notifications/send",
        json={"user_id": "u1", "title": "Hello", "message": "Body", "type": "warning"},
    )
    assert response.status_code == 202
    job_id = response.json()["job_id"]
    assert response.json()["state"] == "waiting"

    job = (await client.get(f"/api/v1/jobs/notifications/{job_id}")).json()
    assert job["name"] == "send-notification"
    assert job["payload"]["type"] == "warning"
    status = (await client.get("/api/v1/jobs/notifications/status")).json()
    assert status["waiting"] == 1

    assert (await client.get(f"/api/v1/jobs/external-sync/{job_id}")).status_code == 404


async def test_invalid_notification_type_returns_422(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/notifications/send", json={"user_id": "u1", "title": "x", "type": "shout"}
    )
    assert response.status_code == 422


async def test_schedule_and_cancel_notification(client: AsyncClient) -> None:
    send_at = (datetime.now(UTC) + timedelta(hours=1)).isoformat()
    response = await client.post(
        "/api/v1/notifications/schedule",
        json={"user_id": "u1", "title": "Later", "send_at": send_at},
    )
    assert response.status_code == 202
    body = response.json()
    assert body["state"] == "delayed"

    cancelled = await client.delete(f"/api/v1/notifications/scheduled/{body['job_id']}")
    assert cancelled.json() == {"job_id": body["job_id"], "removed": True}


async def test_retry_requires_failed_job(client: AsyncClient) -> None:
    job_id = (
        await client.post("/api/v1/notifications/send", json={"user_id": "u1", "title": "x"})
    ).json()["job_id"]
    response = await client.post(f"/api/v1/jobs/notifications/{job_id}/retry")
    assert response.status_code == 409


async def test_notification_inbox_empty(client: AsyncClient) -> None:
    assert (await client.get("/api/v1/notifications?user_id=u1")).json() == []
    assert (await client.post("/api/v1/notifications/read-all?user_id=u1")).json() == {
        "updated": 0
    }
    missing = await client.post("/api/v1/notifications/nope/read?user_id=u1")
    assert missing.status_code == 404


async def test_trigger_csv_config_returns_422(client: AsyncClient) -> None:
    """CSV sources run in-request only; queueing them is refused."""
    config = (
        await client.post("/api/v1/sync/configs", json={"name": "Upload", "source_type": "csv"})
    ).json()
    response = await client.post(f"/api/v1/sync/configs/{config['id']}/trigger", json={})
    assert response.status_code == 422
    assert response.json()["error"] == "UNQUEUEABLE_OPERATION"
    assert (await client.get(f"/api/v1/sync/configs/{config['id']}/logs")).json() == []


async def test_trigger_rest_config_queues_sync(client: AsyncClient) -> None:
    created = await client.post(
        "/api/v1/sync/configs",
        json={
            "name": "HR",
            "source_type": "rest_api",
            "settings": {"base_url": "https://hr.example.com"},
        },
    )
    assert created.status_code == 201
    config_id = created.json()["id"]

    response = await client.post(
        f"/api/v1/sync/configs/{config_id}/trigger", json={"triggered_by": "admin"}
    )
    assert response.status_code == 202
    body = response.json()
    assert body["sync_log"]["status"] == "pending"
    assert (await client.get("/api/v1/sync/queue")).json()["waiting"] == 1

    cancelled = await client.post(f"/api/v1/sync/jobs/{body['job_id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["error_message"] == "Cancelled by user"


async def test_rest_config_without_base_url_returns_400(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/sync/configs", json={"name": "HR", "source_type": "rest_api"}
    )
    assert response.status_code == 400


async def test_csv_import(client: AsyncClient) -> None:
    config_id = (
        await client.post("/api/v1/sync/configs", json={"name": "Upload", "source_type": "csv"})
    ).json()["id"]
    response = await client.post(
        f"/api/v1/sync/configs/{config_id}/import?triggered_by=admin",
        content=b"email,name\nann@example.com,Ann\n",
        headers={"Content-Type": "text/csv"},
    )
    assert response.status_code == 200
    log = response.json()
    assert (log["status"], log["created_count"]) == ("completed", 1)
