"""HTTP contract tests: routes, error envelope, request ids."""

import asyncio
import time
from contextlib import suppress

from fastapi.testclient import TestClient

ADDITION = "A whole new paragraph about the argument that was missing before today."

NEW_ARTIFACT = {
    "name": "Grant proposal",
    "type": "proposal",
    "ship_days": 5,
    "done_criteria": ["Budget", "Aims"],
    "external_recipient": "funder@example.com",
    "max_word_count": 50,
}


def _create(client: TestClient, **overrides) -> dict:
    resp = client.post("/artifacts", json={**NEW_ARTIFACT, **overrides})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _assert_envelope(resp, status: int, error: str) -> dict:
    assert resp.status_code == status, resp.text
    body = resp.json()
    assert set(body) == {"error", "message", "request_id", "details"}
    assert body["error"] == error
    assert body["request_id"] == resp.headers["X-Request-Id"]
    return body


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["db"]["status"] == "ok"
        assert set(body) == {"status", "version", "db", "last_error_summary"}

    def test_request_id_echoed(self, client: TestClient) -> None:
        resp = client.get("/health", headers={"X-Request-Id": "req-123"})
        assert resp.headers["X-Request-Id"] == "req-123"

    def test_request_id_generated(self, client: TestClient) -> None:
        assert client.get("/health").headers["X-Request-Id"]


class TestArtifactRoutes:
    def test_full_lifecycle(self, client: TestClient) -> None:
        assert client.get("/artifacts/active").json() is None

        a = _create(client)
        assert client.get("/artifacts/active").json()["id"] == a["id"]

        resp = client.put(f"/artifacts/{a['id']}/content", json={"content": "one two three"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

        assert client.post(f"/artifacts/{a['id']}/done").status_code == 200
        assert client.post(f"/artifacts/{a['id']}/proof", json={"proof_url": "https://example.com/sent"}).status_code == 200

        shipped = client.post(f"/artifacts/{a['id']}/ship").json()
        assert shipped["status"] == "shipped"
        assert shipped["shipped_on_time"] is True
        assert shipped["current_word_count"] == 3

        listed = client.get("/artifacts").json()
        assert [x["id"] for x in listed] == [a["id"]]

    def test_ship_window_exceeded_is_400(self, client: TestClient) -> None:
        body = _assert_envelope(client.post("/artifacts", json={**NEW_ARTIFACT, "ship_days": 8}), 400,
                                "validation_error")
        assert body["details"]["code"] == "ship_window_exceeded"

    def test_too_many_criteria_is_400(self, client: TestClient) -> None:
        resp = client.post("/artifacts", json={**NEW_ARTIFACT, "done_criteria": list("abcdef")})
        assert _assert_envelope(resp, 400, "validation_error")["details"]["code"] == "done_criteria_limit_exceeded"

    def test_scope_exceeded_is_400(self, client: TestClient) -> None:
        a = _create(client, max_word_count=2)
        resp = client.put(f"/artifacts/{a['id']}/content", json={"content": "one two three"})
        body = _assert_envelope(resp, 400, "validation_error")
        assert body["details"]["code"] == "scope_exceeded"
        assert body["message"].startswith("BLOCKED")

    def test_edit_locked_is_409(self, client: TestClient) -> None:
        a = _create(client)
        client.post(f"/artifacts/{a['id']}/done")
        resp = client.put(f"/artifacts/{a['id']}/content", json={"content": "late"})
        assert _assert_envelope(resp, 409, "state_conflict")["details"]["code"] == "edit_locked"

    def test_reality_gate_is_412(self, client: TestClient) -> None:
        a = _create(client)
        resp = client.post(f"/artifacts/{a['id']}/ship")
        assert _assert_envelope(resp, 412, "gate_error")["details"]["code"] == "reality_gate_not_passed"

    def test_unknown_artifact_is_404(self, client: TestClient) -> None:
        _assert_envelope(client.get("/artifacts/nope"), 404, "not_found")

    def test_schema_violation_is_422(self, client: TestClient) -> None:
        resp = client.post("/artifacts", json={**NEW_ARTIFACT, "ship_days": -1})
        _assert_envelope(resp, 422, "validation_error")

    def test_same_day_ship_window_is_allowed(self, client: TestClient) -> None:
        a = _create(client, ship_days=0)
        assert a["ship_date"] == a["created_at"]

    def test_error_keeps_caller_request_id(self, client: TestClient) -> None:
        resp = client.get("/artifacts/nope", headers={"X-Request-Id": "trace-me"})
        assert resp.json()["request_id"] == "trace-me"

    def test_abandon(self, client: TestClient) -> None:
        a = _create(client)
        assert client.post(f"/artifacts/{a['id']}/abandon").json()["status"] == "archived"
        assert client.get("/artifacts/active").json() is None


class TestBlockRoutes:
    def test_block_flow(self, client: TestClient) -> None:
        a = _create(client)
        b = client.post("/blocks/start", json={"artifact_id": a["id"], "expected_diff_type": "paragraph"}).json()
        assert b["status"] == "running"
        assert client.get("/blocks/running").json()["id"] == b["id"]

        again = client.post("/blocks/start", json={"artifact_id": a["id"], "expected_diff_type": "section"})
        assert _assert_envelope(again, 409, "state_conflict")["details"]["code"] == "block_already_running"

        ended = client.post(f"/blocks/{b['id']}/end", json={"content_after": ADDITION}).json()
        assert ended["status"] == "completed"

        resp = client.post(f"/blocks/{b['id']}/end", json={"content_after": ADDITION})
        assert _assert_envelope(resp, 409, "state_conflict")["details"]["code"] == "block_not_running"

        assert client.get(f"/blocks/stats/{a['id']}").json() == {"total": 1, "completed": 1, "with_diff": 1, "failed": 0}
        assert len(client.get(f"/blocks/history/{a['id']}").json()) == 1

    def test_unknown_diff_type_is_422(self, client: TestClient) -> None:
        a = _create(client)
        resp = client.post("/blocks/start", json={"artifact_id": a["id"], "expected_diff_type": "essay"})
        _assert_envelope(resp, 422, "validation_error")

    def test_sweep(self, client: TestClient, clock) -> None:
        a = _create(client)
        b = client.post("/blocks/start", json={"artifact_id": a["id"], "expected_diff_type": "paragraph"}).json()
        clock.advance(minutes=45)

        ended = client.post("/blocks/sweep").json()["ended"]
        assert [x["id"] for x in ended] == [b["id"]]
        assert ended[0]["status"] == "failed"
        assert client.post("/blocks/sweep", json={"current_content": ADDITION}).json()["ended"] == []


class TestFailureLogRoutes:
    def test_skip_and_autopsy(self, client: TestClient) -> None:
        a = _create(client)
        resp = client.post("/blocks/skip", json={"artifact_id": a["id"], "scheduled_time": "2026-10-14T09:00:00Z"})
        assert resp.status_code == 200

        skipped = client.get("/blocks/skipped", params={"artifact_id": a["id"]}).json()
        assert skipped[0]["reason"] == "No reason provided"
        assert skipped[0]["scheduled_time"] == "2026-10-14T09:00:00.000000Z"

        answers = {
            "shipped_on_time": False,
            "scope_respected": True,
            "external_feedback_received": False,
            "one_clear_takeaway": True,
            "repeat_artifact_class": True,
        }
        created = client.post(f"/artifacts/{a['id']}/autopsy", json=answers).json()
        assert created["one_clear_takeaway"] is True
        assert client.get("/autopsies").json() == [created]

    def test_autopsy_unknown_artifact_is_404(self, client: TestClient) -> None:
        answers = dict.fromkeys(
            ["shipped_on_time", "scope_respected", "external_feedback_received", "one_clear_takeaway",
             "repeat_artifact_class"],
            True,
        )
        _assert_envelope(client.post("/artifacts/nope/autopsy", json=answers), 404, "not_found")


class TestCheckpointAndReliabilityRoutes:
    def test_checkpoint_evaluation(self, client: TestClient, clock) -> None:
        a = _create(client)
        (cp,) = client.get(f"/artifacts/{a['id']}/checkpoints").json()

        resp = client.post(f"/checkpoints/{cp['id']}/evaluate")
        assert _assert_envelope(resp, 409, "state_conflict")["details"]["code"] == "checkpoint_not_due"

        clock.advance(days=3)
        out = client.post(f"/checkpoints/{cp['id']}/evaluate").json()
        assert out["passed"] is False
        assert out["actual_completion_pct"] == 0.0

    def test_current_week(self, client: TestClient) -> None:
        a = _create(client)
        b = client.post("/blocks/start", json={"artifact_id": a["id"], "expected_diff_type": "commit"}).json()
        client.post(f"/blocks/{b['id']}/end", json={"content_after": ADDITION})

        week = client.get("/reliability/weeks/current").json()
        assert week["week_start"] == "2026-10-11T00:00:00+00:00"
        assert week["blocks_scheduled"] == 1
        assert week["blocks_completed"] == 1
        assert week["reliability_score"] == 1.0
        assert len(client.get("/reliability/weeks").json()) == 1


class TestBackgroundSweeper:
    def test_lifespan_sweeper_ends_expired_blocks(self, monkeypatch, make_artifact, clock) -> None:
        from app.main import app
        from app.modules.blocks.service import get_block_history, start_block

        a = make_artifact()
        b = start_block(a["id"], "paragraph", "")
        clock.advance(minutes=31)

        monkeypatch.setenv("SWEEP_INTERVAL_SECONDS", "0.05")
        with TestClient(app):
            deadline = time.monotonic() + 5
            while time.monotonic() < deadline:
                if get_block_history(a["id"])[0]["status"] != "running":
                    break
                time.sleep(0.05)
        # leaving the client cancels the task cleanly

        (ended,) = get_block_history(a["id"])
        assert ended["id"] == b["id"]
        assert ended["status"] == "failed"

    def test_sweep_loop_survives_a_failed_pass(self, monkeypatch) -> None:
        import app.main as main

        calls: list = []

        def _sweep() -> list:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("database is locked")
            return []

        monkeypatch.setattr(main, "auto_expire_sweep", _sweep)
        monkeypatch.setattr(main, "_last_error", None)

        async def _run() -> bool:
            task = asyncio.create_task(main._sweep_loop(0.01))
            while len(calls) < 3 and not task.done():
                await asyncio.sleep(0.01)
            alive = not task.done()
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            return alive

        assert asyncio.run(asyncio.wait_for(_run(), timeout=5)) is True
        assert len(calls) >= 3
        assert main._last_error == "RuntimeError: database is locked"
