import base64
import datetime
import json
import uuid

from fastapi.testclient import TestClient

from runscope.core.db import SessionLocal
from runscope.main import create_app
from runscope.models.radar import Radar, RadarResult
from runscope.models.run import Run
from runscope.services.logic import parse_logic, serialize


LLM_ONLY = ["AND", {"id": "type", "params": {"type": "llm"}}]
ERRORS = ["OR", {"id": "status", "params": {"status": "error"}}]


def _project() -> str:
    return f"proj-{uuid.uuid4()}"


def _add_runs(project_id: str, *rows: dict) -> list[str]:
    ids = []
    now = datetime.datetime.utcnow()
    with SessionLocal() as db:
        for index, fields in enumerate(rows):
            run = Run(
                project_id=project_id,
                type=fields.get("type", "llm"),
                status=fields.get("status", "success"),
                output=fields.get("output", "ok"),
                duration_ms=fields.get("duration_ms", 100),
                created_at=fields.get("created_at", now - datetime.timedelta(seconds=len(rows) - index)),
            )
            db.add(run)
            db.flush()
            ids.append(run.id)
        db.commit()
    return ids


def _add_result(radar_id: str, run_id: str, passed: bool) -> None:
    with SessionLocal() as db:
        db.add(RadarResult(radar_id=radar_id, run_id=run_id, passed=passed, results=[]))
        db.commit()


def test_radar_crud_roundtrip():
    project_id = _project()
    with TestClient(create_app()) as client:
        resp = client.post(
            f"/api/v1/projects/{project_id}/radars",
            json={"description": "errors", "view": LLM_ONLY, "checks": ERRORS},
        )
        assert resp.status_code == 201
        radar = resp.json()
        assert radar["project_id"] == project_id
        assert radar["passed"] == 0 and radar["failed"] == 0

        listed = client.get(f"/api/v1/projects/{project_id}/radars").json()
        assert [r["id"] for r in listed] == [radar["id"]]

        resp = client.patch(
            f"/api/v1/projects/{project_id}/radars/{radar['id']}",
            json={"description": "errors only"},
        )
        assert resp.status_code == 200
        assert resp.json()["description"] == "errors only"
        assert resp.json()["checks"] == ERRORS

        resp = client.delete(f"/api/v1/projects/{project_id}/radars/{radar['id']}")
        assert resp.status_code == 200
        assert client.get(f"/api/v1/projects/{project_id}/radars/{radar['id']}").status_code == 404


def test_invalid_logic_tree_is_rejected():
    project_id = _project()
    with TestClient(create_app()) as client:
        resp = client.post(
            f"/api/v1/projects/{project_id}/radars",
            json={"description": "bad", "view": ["XOR"], "checks": ERRORS},
        )
        assert resp.status_code == 422
        resp = client.post(
            f"/api/v1/projects/{project_id}/radars",
            json={"description": "bad", "view": LLM_ONLY, "checks": []},
        )
        assert resp.status_code == 422


def test_radar_is_scoped_to_its_project():
    project_id = _project()
    with TestClient(create_app()) as client:
        radar = client.post(
            f"/api/v1/projects/{project_id}/radars",
            json={"view": LLM_ONLY, "checks": ERRORS},
        ).json()
        other = _project()
        assert client.get(f"/api/v1/projects/{other}/radars/{radar['id']}").status_code == 404
        assert client.get(f"/api/v1/projects/{other}/radars").json() == []


def test_counts_chart_and_results():
    project_id = _project()
    with TestClient(create_app()) as client:
        radar = client.post(
            f"/api/v1/projects/{project_id}/radars",
            json={"view": LLM_ONLY, "checks": ERRORS},
        ).json()
        run_a, run_b, run_c = _add_runs(project_id, {}, {}, {})
        _add_result(radar["id"], run_a, True)
        _add_result(radar["id"], run_b, False)
        _add_result(radar["id"], run_c, False)

        detail = client.get(f"/api/v1/projects/{project_id}/radars/{radar['id']}").json()
        assert detail["passed"] == 1
        assert detail["failed"] == 2

        chart = client.get(f"/api/v1/projects/{project_id}/radars/{radar['id']}/chart").json()
        assert len(chart) == 7
        assert sum(point["passed"] for point in chart) == 1
        assert sum(point["failed"] for point in chart) == 2
        days = [point["day"] for point in chart]
        assert days == sorted(days)

        resp = client.get(
            f"/api/v1/projects/{project_id}/radars/{radar['id']}/results",
            params={"passed": "false", "page_size": 1},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 2
        assert len(body["items"]) == 1
        assert body["items"][0]["passed"] is False
        assert resp.headers["X-Total-Count"] == "2"


def test_deleting_radar_removes_its_results():
    project_id = _project()
    with TestClient(create_app()) as client:
        radar = client.post(
            f"/api/v1/projects/{project_id}/radars",
            json={"view": LLM_ONLY, "checks": ERRORS},
        ).json()
        (run_id,) = _add_runs(project_id, {})
        _add_result(radar["id"], run_id, True)

        assert client.delete(f"/api/v1/projects/{project_id}/radars/{radar['id']}").status_code == 200

    with SessionLocal() as db:
        assert db.get(Radar, radar["id"]) is None
        assert db.query(RadarResult).filter(RadarResult.radar_id == radar["id"]).count() == 0


def test_list_runs_with_serialized_filters():
    project_id = _project()
    with TestClient(create_app()) as client:
        error_id, ok_id = _add_runs(project_id, {"status": "error"}, {"status": "success"})
        everything = client.get(f"/api/v1/projects/{project_id}/runs").json()
        assert everything["total"] == 2
        # Newest first.
        assert [item["id"] for item in everything["items"]] == [ok_id, error_id]

        token = serialize(parse_logic(ERRORS))
        filtered = client.get(f"/api/v1/projects/{project_id}/runs", params={"filters": token}).json()
        assert [item["id"] for item in filtered["items"]] == [error_id]

        stale = client.get(f"/api/v1/projects/{project_id}/runs", params={"filters": "%%garbage%%"}).json()
        assert stale["total"] == 2

        needs_eval = serialize(parse_logic(["AND", {"id": "email"}]))
        assert client.get(f"/api/v1/projects/{project_id}/runs", params={"filters": needs_eval}).status_code == 422

        bad_params = serialize(parse_logic(["AND", {"id": "duration", "params": {"operator": "maybe"}}]))
        assert client.get(f"/api/v1/projects/{project_id}/runs", params={"filters": bad_params}).status_code == 422


def test_scan_endpoint_scores_pending_runs():
    project_id = _project()
    with TestClient(create_app()) as client:
        error_id, ok_id = _add_runs(project_id, {"status": "error"}, {"status": "success"})
        radar = client.post(
            f"/api/v1/projects/{project_id}/radars",
            json={"view": LLM_ONLY, "checks": ERRORS},
        ).json()

        resp = client.post("/api/v1/radars/scan")
        assert resp.status_code == 202
        assert resp.json()["scheduled"] is True

        body = client.get(f"/api/v1/projects/{project_id}/radars/{radar['id']}/results").json()
        by_run = {item["run_id"]: item["passed"] for item in body["items"]}
        assert by_run == {error_id: True, ok_id: False}


def test_health_reports_scheduler_and_filters():
    with TestClient(create_app()) as client:
        body = client.get("/api/v1/health").json()
    assert body["status"] == "ok"
    assert body["scheduler"]["enabled"] is False
    assert body["scheduler"]["scan_running"] is False
    assert "email" in body["filters"]


def test_deeply_nested_trees_do_not_crash_the_api():
    project_id = _project()
    depth = 600
    raw = '["AND",' * depth + '"AND"' + "]" * depth
    token = base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")
    deep_tree = json.loads('["AND",' * 200 + '"AND"' + "]" * 200)
    with TestClient(create_app()) as client:
        (run_id,) = _add_runs(project_id, {})

        resp = client.get(f"/api/v1/projects/{project_id}/runs", params={"filters": token})
        assert resp.status_code == 200
        assert [item["id"] for item in resp.json()["items"]] == [run_id]

        resp = client.post(
            f"/api/v1/projects/{project_id}/radars",
            json={"view": deep_tree, "checks": ERRORS},
        )
        assert resp.status_code == 422
