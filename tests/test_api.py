from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine, select

from taskboard import main as app_main
from taskboard.api import deps
from taskboard.domain.models import (
    Availability,
    AuditLog,
    EventRecord,
    VolunteerProfile,
    VolunteerRole,
)
from taskboard.infra import db
from taskboard.infra.stores import SqlProfileStore


@pytest.fixture()
def api_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "taskboard_api_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    deps.get_assignment_service.cache_clear()

    profiles = SqlProfileStore(test_engine)
    _seed(profiles, "admin", VolunteerRole.ADMINISTRATOR, ["skill:management"])
    _seed(profiles, "ed", VolunteerRole.EDITOR, ["skill:layout"], opted_in=False)
    _seed(profiles, "ana", VolunteerRole.CONTRIBUTOR, ["skill:writing", "skill:editing"])
    _seed(profiles, "ben", VolunteerRole.CONTRIBUTOR, ["skill:design"])
    _seed(profiles, "mel", VolunteerRole.MEMBER, [])

    client = TestClient(app_main.app)
    yield client
    client.close()
    deps.get_assignment_service.cache_clear()
    test_engine.dispose()


def _seed(
    profiles: SqlProfileStore,
    user_id: str,
    role: VolunteerRole,
    tags: list[str],
    *,
    opted_in: bool = True,
) -> None:
    profiles.save_profile(
        VolunteerProfile(
            id=user_id,
            display_name=user_id.title(),
            email=f"{user_id}@example.org",
            role=role,
            tags=tags,
            availability=Availability.REGULAR,
            preferences={"task_assignments": opted_in},
            is_approved=True,
        )
    )


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _login(client: TestClient, user_id: str) -> dict[str, str]:
    response = client.post("/api/identity/dev-login", json={"user_id": user_id})
    assert response.status_code == 200
    return _auth_header(response.json()["access_token"])


def _create_content_with_task(client: TestClient, headers: dict[str, str], title: str = "Spring issue") -> str:
    content_resp = client.post(
        "/api/content",
        json={"title": title, "author_name": "Ed"},
        headers=headers,
    )
    assert content_resp.status_code == 201
    content_id = content_resp.json()["id"]
    task_resp = client.post(
        f"/api/tasks/{content_id}",
        json={"category": "review", "estimated_time": 30, "priority": "high"},
        headers=headers,
    )
    assert task_resp.status_code == 201
    return content_id


def test_dev_login_issues_role_permissions(api_client: TestClient) -> None:
    response = api_client.post("/api/identity/dev-login", json={"user_id": "ed"})
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "editor"
    assert "content.write" in body["permissions"]
    assert "tasks.admin" not in body["permissions"]

    missing = api_client.post("/api/identity/dev-login", json={"user_id": "nobody"})
    assert missing.status_code == 404


def test_requests_require_token_and_permission(api_client: TestClient) -> None:
    assert api_client.get("/api/tasks/mine").status_code == 401
    bad = api_client.get("/api/tasks/mine", headers=_auth_header("not-a-jwt"))
    assert bad.status_code == 401

    member = _login(api_client, "mel")
    forbidden = api_client.post("/api/content", json={"title": "x"}, headers=member)
    assert forbidden.status_code == 403
    assert api_client.get("/api/tasks/mine", headers=member).status_code == 200


def test_task_workflow_with_auto_assignment(api_client: TestClient) -> None:
    editor = _login(api_client, "ed")
    admin = _login(api_client, "admin")
    ana = _login(api_client, "ana")
    ben = _login(api_client, "ben")

    content_id = _create_content_with_task(api_client, editor)

    duplicate = api_client.post(
        f"/api/tasks/{content_id}",
        json={"category": "review", "estimated_time": 30},
        headers=editor,
    )
    assert duplicate.status_code == 409
    assert "Task already exists" in duplicate.json()["detail"]

    preview = api_client.post(f"/api/assignment/auto/{content_id}", json={"dry_run": True}, headers=admin)
    assert preview.status_code == 200
    assert preview.json()["success"] is True
    assert preview.json()["assigned_to"] == "ana"
    content = api_client.get(f"/api/content/{content_id}", headers=editor).json()
    assert content["task"]["status"] == "unclaimed"
    assert content["task"]["assigned_to"] is None

    assigned = api_client.post(f"/api/assignment/auto/{content_id}", json={}, headers=admin)
    assert assigned.status_code == 200
    assert assigned.json()["assigned_to"] == "ana"

    foreign = api_client.post(f"/api/tasks/{content_id}/status", json={"status": "in-progress"}, headers=ben)
    assert foreign.status_code == 403

    started = api_client.post(f"/api/tasks/{content_id}/status", json={"status": "in-progress"}, headers=ana)
    assert started.status_code == 200
    assert started.json()["status"] == "in-progress"

    mine = api_client.get("/api/tasks/mine", headers=ana)
    assert mine.status_code == 200
    assert [item["content_title"] for item in mine.json()] == ["Spring issue"]

    done = api_client.post(f"/api/tasks/{content_id}/status", json={"status": "completed"}, headers=ana)
    assert done.status_code == 200
    reopen = api_client.post(f"/api/tasks/{content_id}/status", json={"status": "claimed"}, headers=ana)
    assert reopen.status_code == 409
    assert reopen.json()["detail"] == "Invalid status transition from completed to claimed"

    stats = api_client.get("/api/tasks/stats", headers=ana).json()
    assert stats["total_tasks"] == 1
    assert stats["completed_tasks"] == 1
    assert stats["tasks_by_priority"]["high"] == 1

    with Session(db.engine) as session:
        event_types = [row.event_type for row in session.exec(select(EventRecord)).all()]
        audit_actions = {row.action for row in session.exec(select(AuditLog)).all()}
    assert event_types.count("task.status_changed") == 2
    assert "task.auto_assign" in audit_actions
    assert "task.create" in audit_actions


def test_manual_and_self_assignment(api_client: TestClient) -> None:
    editor = _login(api_client, "ed")
    admin = _login(api_client, "admin")
    ana = _login(api_client, "ana")
    first = _create_content_with_task(api_client, editor, "First")
    second = _create_content_with_task(api_client, editor, "Second")

    self_claim = api_client.post(f"/api/tasks/{first}/assign", json={"user_id": "ana"}, headers=ana)
    assert self_claim.status_code == 200
    assert self_claim.json()["assigned_to"] == "ana"

    other = api_client.post(f"/api/tasks/{second}/assign", json={"user_id": "ben"}, headers=ana)
    assert other.status_code == 403

    opted_out = api_client.post(f"/api/tasks/{second}/assign", json={"user_id": "ed"}, headers=admin)
    assert opted_out.status_code == 412

    taken = api_client.post(f"/api/tasks/{first}/assign", json={"user_id": "ben"}, headers=admin)
    assert taken.status_code == 409

    with Session(db.engine) as session:
        assigned = session.exec(select(EventRecord).where(EventRecord.event_type == "task.assigned")).one()
    assert assigned.payload["method"] == "self-claimed"

    listing = api_client.get("/api/tasks", headers=admin)
    assert listing.status_code == 200
    by_id = {item["content_id"]: item for item in listing.json()}
    assert by_id[first]["assigned_user_name"] == "Ana"
    assert api_client.get("/api/tasks", headers=ana).status_code == 403


def test_volunteer_profiles_and_tags(api_client: TestClient) -> None:
    admin = _login(api_client, "admin")
    ana = _login(api_client, "ana")

    invalid = api_client.post(
        "/api/volunteers",
        json={"display_name": "Zoe", "email": "zoe@example.org", "tags": ["Skill:Writing"]},
        headers=admin,
    )
    assert invalid.status_code == 422

    created = api_client.post(
        "/api/volunteers",
        json={
            "id": "zoe",
            "display_name": "Zoe",
            "email": "zoe@example.org",
            "role": "contributor",
            "tags": ["skill:proofreading"],
            "task_assignments": True,
            "is_approved": True,
        },
        headers=admin,
    )
    assert created.status_code == 200
    assert created.json()["preferences"] == {"task_assignments": True}

    added = api_client.post("/api/volunteers/zoe/tags", json={"tag": "skill:writing"}, headers=admin)
    assert added.status_code == 200
    assert added.json()["tags"] == ["skill:proofreading", "skill:writing"]
    bad_tag = api_client.post("/api/volunteers/zoe/tags", json={"tag": "writing"}, headers=admin)
    assert bad_tag.status_code == 422
    removed = api_client.delete("/api/volunteers/zoe/tags", params={"tag": "skill:proofreading"}, headers=admin)
    assert removed.json()["tags"] == ["skill:writing"]
    assert api_client.post("/api/volunteers/nobody/tags", json={"tag": "skill:x"}, headers=admin).status_code == 404

    assert api_client.post("/api/volunteers/zoe/tags", json={"tag": "skill:x"}, headers=ana).status_code == 403

    available = api_client.get("/api/volunteers/available", params={"tag": "writing"}, headers=ana)
    assert [item["id"] for item in available.json()] == ["ana", "zoe"]

    workloads = api_client.get("/api/volunteers/workloads", headers=admin)
    assert workloads.status_code == 200
    assert {item["user_id"] for item in workloads.json()} == {"admin", "ana", "ben", "zoe"}


def test_assignment_config_and_recommendations(api_client: TestClient) -> None:
    admin = _login(api_client, "admin")
    ana = _login(api_client, "ana")

    config = api_client.get("/api/assignment/config", headers=ana)
    assert config.status_code == 200
    assert config.json()["max_workload_per_volunteer"] == 5

    updated = api_client.patch(
        "/api/assignment/config",
        json={"min_required_skill_match": 0.5, "priority_boost": {"high": 2.0}},
        headers=admin,
    )
    assert updated.status_code == 200
    assert updated.json()["priority_boost"] == {"low": 1.0, "medium": 1.2, "high": 2.0}

    invalid = api_client.patch("/api/assignment/config", json={"min_required_skill_match": 3}, headers=admin)
    assert invalid.status_code == 422
    assert api_client.patch("/api/assignment/config", json={}, headers=ana).status_code == 403

    recommended = api_client.get(
        "/api/assignment/recommendations",
        params={"category": "review", "priority": "high"},
        headers=ana,
    )
    assert recommended.status_code == 200
    assert [item["profile"]["id"] for item in recommended.json()] == ["ana"]
    assert api_client.get("/api/assignment/config", headers=ana).json()["min_required_skill_match"] == 0.5
