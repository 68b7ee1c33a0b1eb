from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.config.load_config import AppConfig, ServerConfig, WebhookConfig
from src.runtime.inmemory import InMemoryOrchestrationClient
from src.runtime.models import OrchestrationStatus, RoutingAttributes, RuntimeStatus


PREFIX = "/runtime/webhooks/durabletask"


def _status(
    instance_id: str,
    runtime_status: RuntimeStatus | str,
    *,
    created: datetime | None = None,
    **kwargs,
) -> OrchestrationStatus:
    ts = created or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    return OrchestrationStatus(
        instance_id=instance_id,
        runtime_status=runtime_status,
        created_time=ts,
        last_updated_time=ts,
        **kwargs,
    )


def _client(runtime: InMemoryOrchestrationClient) -> TestClient:
    cfg = AppConfig(
        webhooks=WebhookConfig(notification_url=f"http://testserver{PREFIX}?code=KEY"),
        server=ServerConfig(),
    )
    return TestClient(create_app(config=cfg, client_resolver=lambda _attrs: runtime))


def test_get_running_instance_returns_202_with_polling_headers() -> None:
    runtime = InMemoryOrchestrationClient([_status("abc123", RuntimeStatus.RUNNING, input={"n": 3})])
    with _client(runtime) as client:
        resp = client.get(f"{PREFIX}/instances/abc123")
        assert resp.status_code == 202
        assert resp.headers["location"] == f"http://testserver{PREFIX}/instances/abc123"
        assert resp.headers["retry-after"] == "5"
        body = resp.json()
        assert body["runtimeStatus"] == "Running"
        assert body["input"] == {"n": 3}
        assert body["createdTime"] == "2024-05-01T12:00:00Z"
        assert "historyEvents" not in body


def test_get_failed_instance_returns_500_without_location() -> None:
    runtime = InMemoryOrchestrationClient([_status("f1", RuntimeStatus.FAILED, output="boom")])
    with _client(runtime) as client:
        resp = client.get(f"{PREFIX}/instances/f1")
        assert resp.status_code == 500
        assert "location" not in resp.headers
        assert "retry-after" not in resp.headers
        assert resp.json()["output"] == "boom"


def test_get_unknown_runtime_state_returns_500_with_payload() -> None:
    runtime = InMemoryOrchestrationClient([_status("s1", "Suspended")])
    with _client(runtime) as client:
        resp = client.get(f"{PREFIX}/instances/s1")
        assert resp.status_code == 500
        assert resp.json()["runtimeStatus"] == "Suspended"


def test_get_with_history_flags() -> None:
    history = [{"EventType": "TaskCompleted", "output": 42}]
    runtime = InMemoryOrchestrationClient([_status("h1", RuntimeStatus.COMPLETED, history=history)])
    with _client(runtime) as client:
        plain = client.get(f"{PREFIX}/instances/h1")
        assert plain.status_code == 200
        assert "historyEvents" not in plain.json()

        no_output = client.get(f"{PREFIX}/instances/h1", params={"showHistory": "true"})
        assert no_output.json()["historyEvents"] == [{"EventType": "TaskCompleted"}]

        full = client.get(f"{PREFIX}/instances/h1", params={"showHistory": "True", "showHistoryOutput": "true"})
        assert full.json()["historyEvents"] == history


def test_get_missing_instance_is_404() -> None:
    with _client(InMemoryOrchestrationClient()) as client:
        resp = client.get(f"{PREFIX}/instances/missing")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"


def test_list_without_filters_keeps_runtime_order() -> None:
    runtime = InMemoryOrchestrationClient(
        [
            _status("z", RuntimeStatus.COMPLETED),
            _status("a", RuntimeStatus.RUNNING),
            _status("m", RuntimeStatus.FAILED),
        ]
    )
    with _client(runtime) as client:
        resp = client.get(f"{PREFIX}/instances/")
        assert resp.status_code == 200
        assert [s["instanceId"] for s in resp.json()] == ["z", "a", "m"]


def test_list_applies_filters() -> None:
    runtime = InMemoryOrchestrationClient(
        [
            _status("old", RuntimeStatus.COMPLETED, created=datetime(2023, 1, 1, tzinfo=timezone.utc)),
            _status("new-done", RuntimeStatus.COMPLETED, created=datetime(2024, 6, 1, tzinfo=timezone.utc)),
            _status("new-fail", RuntimeStatus.FAILED, created=datetime(2024, 6, 2, tzinfo=timezone.utc)),
            _status("new-run", RuntimeStatus.RUNNING, created=datetime(2024, 6, 3, tzinfo=timezone.utc)),
        ]
    )
    with _client(runtime) as client:
        resp = client.get(
            f"{PREFIX}/instances",
            params=[
                ("createdTimeFrom", "2024-01-01T00:00:00Z"),
                ("runtimeStatus", "Completed,Failed"),
                ("runtimeStatus", "NotAStatus"),
            ],
        )
        assert resp.status_code == 200
        assert [s["instanceId"] for s in resp.json()] == ["new-done", "new-fail"]

        bad_dates = client.get(f"{PREFIX}/instances", params={"createdTimeFrom": "yesterday"})
        assert len(bad_dates.json()) == 4


def test_terminate_running_instance() -> None:
    runtime = InMemoryOrchestrationClient([_status("abc123", RuntimeStatus.RUNNING)])
    with _client(runtime) as client:
        resp = client.post(f"{PREFIX}/instances/abc123/terminate", params={"reason": "user cancelled"})
        assert resp.status_code == 202
        assert runtime.terminated == [("abc123", "user cancelled")]


def test_terminate_completed_instance_is_gone() -> None:
    runtime = InMemoryOrchestrationClient([_status("abc123", RuntimeStatus.COMPLETED)])
    with _client(runtime) as client:
        resp = client.post(f"{PREFIX}/instances/abc123/terminate")
        assert resp.status_code == 410
        assert resp.json()["error"]["code"] == "gone"
        assert runtime.terminated == []


def test_mutations_on_missing_instance_are_404() -> None:
    runtime = InMemoryOrchestrationClient()
    with _client(runtime) as client:
        assert client.post(f"{PREFIX}/instances/x/terminate").status_code == 404
        assert client.post(f"{PREFIX}/instances/x/rewind").status_code == 404
        resp = client.post(
            f"{PREFIX}/instances/x/raiseEvent/go",
            content=b"{}",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 404
    assert runtime.terminated == [] and runtime.rewound == [] and runtime.events == []


def test_terminal_gates_per_operation() -> None:
    terminate_gone = {RuntimeStatus.COMPLETED, RuntimeStatus.FAILED, RuntimeStatus.CANCELED, RuntimeStatus.TERMINATED}
    rewind_gone = {RuntimeStatus.COMPLETED, RuntimeStatus.CANCELED, RuntimeStatus.TERMINATED}
    for status in RuntimeStatus:
        runtime = InMemoryOrchestrationClient([_status("i", status)])
        with _client(runtime) as client:
            t = client.post(f"{PREFIX}/instances/i/terminate")
            assert t.status_code == (410 if status in terminate_gone else 202), status

        runtime = InMemoryOrchestrationClient([_status("i", status)])
        with _client(runtime) as client:
            r = client.post(f"{PREFIX}/instances/i/rewind", params={"reason": "retry"})
            assert r.status_code == (410 if status in rewind_gone else 202), status
            assert (runtime.rewound == []) == (status in rewind_gone)

        runtime = InMemoryOrchestrationClient([_status("i", status)])
        with _client(runtime) as client:
            e = client.post(
                f"{PREFIX}/instances/i/raiseEvent/go",
                content=b"1",
                headers={"Content-Type": "application/json"},
            )
            assert e.status_code == (410 if status in terminate_gone else 202), status
            assert (runtime.events == []) == (status in terminate_gone)


def test_rewind_failed_instance_is_accepted() -> None:
    runtime = InMemoryOrchestrationClient([_status("f1", RuntimeStatus.FAILED)])
    with _client(runtime) as client:
        resp = client.post(f"{PREFIX}/instances/f1/rewind", params={"reason": "fixed config"})
        assert resp.status_code == 202
        assert runtime.rewound == [("f1", "fixed config")]
        assert client.get(f"{PREFIX}/instances/f1").status_code == 202


def test_raise_event_empty_body_is_null_payload() -> None:
    runtime = InMemoryOrchestrationClient([_status("abc123", RuntimeStatus.RUNNING)])
    with _client(runtime) as client:
        resp = client.post(
            f"{PREFIX}/instances/abc123/raiseEvent/Approval",
            content=b"",
            headers={"Content-Type": "Application/JSON; charset=utf-8"},
        )
        assert resp.status_code == 202
        assert len(runtime.events) == 1
        assert runtime.events[0].payload is None


def test_raise_event_bad_json_is_400_without_runtime_call() -> None:
    runtime = InMemoryOrchestrationClient([_status("abc123", RuntimeStatus.RUNNING)])
    with _client(runtime) as client:
        resp = client.post(
            f"{PREFIX}/instances/abc123/raiseEvent/Approval",
            content=b"{bad json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        err = resp.json()["error"]
        assert err["message"] == "Invalid JSON content"
        assert err["details"]["error"]
        assert runtime.events == []


def test_raise_event_requires_json_content_type() -> None:
    runtime = InMemoryOrchestrationClient([_status("abc123", RuntimeStatus.RUNNING)])
    with _client(runtime) as client:
        resp = client.post(
            f"{PREFIX}/instances/abc123/raiseEvent/Approval",
            content=b"hello",
            headers={"Content-Type": "text/plain"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Only application/json request content is supported"
        assert runtime.events == []


def test_unknown_api_is_bad_request() -> None:
    with _client(InMemoryOrchestrationClient()) as client:
        resp = client.post(f"{PREFIX}/instances/abc/suspend")
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "No such API"


@pytest.mark.parametrize("instance_id", ["order 7", "a/b", "a%41", "50%", "plain-id"])
def test_management_links_route_back_to_their_instance(instance_id: str) -> None:
    runtime = InMemoryOrchestrationClient(
        [
            _status(instance_id, RuntimeStatus.RUNNING),
            _status("aA", RuntimeStatus.RUNNING),
            _status("a", RuntimeStatus.RUNNING),
        ]
    )
    with _client(runtime) as client:
        links = client.app.state.http_api_handler.create_http_management_payload(instance_id)

        status = client.get(links.statusQueryGetUri)
        assert status.status_code == 202
        assert status.json()["instanceId"] == instance_id
        assert status.headers["location"] == links.statusQueryGetUri
        assert " " not in status.headers["location"]

        event = client.post(
            links.sendEventPostUri.replace("{eventName}", "Approval"),
            content=b"true",
            headers={"Content-Type": "application/json"},
        )
        assert event.status_code == 202
        assert runtime.events[-1].instance_id == instance_id

        terminate = client.post(links.terminatePostUri.replace("{text}", "done"))
        assert terminate.status_code == 202
        assert runtime.terminated == [(instance_id, "done")]


def test_client_is_resolved_from_routing_query_parameters() -> None:
    seen: list[RoutingAttributes] = []
    runtime = InMemoryOrchestrationClient([_status("abc123", RuntimeStatus.COMPLETED)])

    def resolver(attrs: RoutingAttributes) -> InMemoryOrchestrationClient:
        seen.append(attrs)
        return runtime

    cfg = AppConfig(webhooks=WebhookConfig(notification_url=f"http://testserver{PREFIX}"), server=ServerConfig())
    with TestClient(create_app(config=cfg, client_resolver=resolver)) as client:
        resp = client.get(f"{PREFIX}/instances/abc123", params={"taskHub": "HubB", "connection": "Conn2"})
        assert resp.status_code == 200
    assert seen == [RoutingAttributes(task_hub="HubB", connection="Conn2")]


def test_health_endpoints() -> None:
    with _client(InMemoryOrchestrationClient()) as client:
        assert client.get("/api/v1/healthz").json() == {"status": "ok"}
        assert client.get("/api/v1/version").json()["route_prefix"] == PREFIX
