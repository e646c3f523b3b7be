import uuid

import pytest
from fastapi.testclient import TestClient

from factories import build_course
from learnpath.database import get_db
from learnpath.main import app
from learnpath.models import ItemKind
from learnpath.utils.rate_limiter import rate_limiter


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    for tracker in rate_limiter.trackers.values():
        tracker.clear()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def tree(db, tenant_id):
    return build_course(db, tenant_id, [
        [ItemKind.CONTENT, ItemKind.QUIZ],
        [ItemKind.TASK],
    ])


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["rate_limit_backend"] == "memory"


def test_course_view(client, tree, tenant_id, user_id):
    response = client.get(
        f"/api/courses/{tree.course.id}/view",
        params={"user_id": str(user_id), "tenant_id": str(tenant_id)},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["active_item_id"] == str(tree.items[0][0].id)
    assert body["modules"][1]["is_locked"] is True
    assert body["modules"][0]["items"][0]["title"] == "content 1.1"


def test_course_view_unknown_course(client, tenant_id, user_id):
    response = client.get(
        f"/api/courses/{uuid.uuid4()}/view",
        params={"user_id": str(user_id), "tenant_id": str(tenant_id)},
    )

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
    assert response.json()["status_code"] == 404


def test_course_view_requires_tenant(client, tree, user_id):
    response = client.get(f"/api/courses/{tree.course.id}/view", params={"user_id": str(user_id)})

    assert response.status_code == 422


def test_complete_item_cascades(client, tree, user_id):
    item_id = tree.items[1][0].id

    response = client.put(
        f"/api/progress/items/{item_id}/complete",
        json={"user_id": str(user_id), "score": 91, "time_spent": 120},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["item"]["status"] == "completed"
    assert body["item"]["best_score"] == 91
    assert body["module"]["status"] == "completed"
    assert body["module_completed_now"] is True
    assert body["course"]["total_items_completed"] == 1
    assert body["course_completed_now"] is False


def test_complete_item_rejects_bad_score(client, tree, user_id):
    response = client.put(
        f"/api/progress/items/{tree.items[0][0].id}/complete",
        json={"user_id": str(user_id), "score": 150},
    )

    assert response.status_code == 422


def test_complete_unknown_item(client, user_id):
    response = client.put(
        f"/api/progress/items/{uuid.uuid4()}/complete",
        json={"user_id": str(user_id)},
    )

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_start_and_partial_progress(client, tree, user_id):
    item_id = tree.items[0][0].id

    started = client.post(f"/api/progress/items/{item_id}/start", json={"user_id": str(user_id)})
    assert started.status_code == 200
    assert started.json()["item"]["status"] == "in_progress"

    response = client.put(
        f"/api/progress/items/{item_id}/progress",
        json={"user_id": str(user_id), "progress_percentage": 55, "time_spent": 40},
    )
    assert response.status_code == 200
    assert response.json()["item"]["progress_percentage"] == 55.0
    assert response.json()["module"]["status"] == "in_progress"


def test_initialize_summary_and_reset(client, tree, tenant_id, user_id):
    course_id = tree.course.id

    missing = client.get(f"/api/progress/courses/{course_id}/summary", params={"user_id": str(user_id)})
    assert missing.status_code == 404

    init = client.post(
        f"/api/progress/courses/{course_id}/initialize",
        json={"user_id": str(user_id), "tenant_id": str(tenant_id)},
    )
    assert init.status_code == 201
    assert init.json()["total_items"] == 3

    client.put(
        f"/api/progress/items/{tree.items[0][0].id}/complete",
        json={"user_id": str(user_id), "score": 80},
    )
    summary = client.get(f"/api/progress/courses/{course_id}/summary", params={"user_id": str(user_id)})
    assert summary.status_code == 200
    stats = summary.json()["completion_stats"]
    assert stats["completed_items"] == 1
    assert stats["total_items"] == 3
    assert stats["average_score"] == 80.0
    assert len(summary.json()["item_progress"]) == 3

    reset = client.post(f"/api/progress/courses/{course_id}/reset", json={"user_id": str(user_id)})
    assert reset.status_code == 204

    after = client.get(f"/api/progress/courses/{course_id}/summary", params={"user_id": str(user_id)})
    assert after.status_code == 404


def test_user_courses_and_dashboard(client, tree, user_id):
    client.put(
        f"/api/progress/items/{tree.items[0][0].id}/complete",
        json={"user_id": str(user_id), "score": 75},
    )

    courses = client.get("/api/progress/courses", params={"user_id": str(user_id)})
    assert courses.status_code == 200
    assert courses.json()["total_courses"] == 1
    assert courses.json()["in_progress_courses"] == 1
    assert courses.json()["courses"][0]["course_title"] == "Course"

    dashboard = client.get("/api/progress/dashboard", params={"user_id": str(user_id)})
    assert dashboard.status_code == 200
    body = dashboard.json()
    assert body["summary"]["total_courses"] == 1
    assert body["summary"]["average_score"] == 75.0
    assert "item_completed" in {entry["activity_type"] for entry in body["recent_activity"]}
    assert body["current_sessions"] == []


def test_module_stats_and_access_check(client, tree, tenant_id, user_id):
    client.put(
        f"/api/progress/items/{tree.items[0][0].id}/complete",
        json={"user_id": str(user_id), "score": 95},
    )
    client.put(
        f"/api/progress/items/{tree.items[0][1].id}/complete",
        json={"user_id": str(user_id), "score": 40},
    )

    stats = client.get(
        f"/api/progress/courses/{tree.course.id}/module-stats", params={"user_id": str(user_id)}
    )
    assert stats.status_code == 200
    first = stats.json()[0]
    assert first["strongest_areas"] == ["content"]
    assert first["weakest_areas"] == ["quiz"]
    assert first["average_item_score"] == 67.5

    access = client.get(
        f"/api/progress/modules/{tree.modules[1].id}/access-check",
        params={"user_id": str(user_id), "tenant_id": str(tenant_id)},
    )
    assert access.status_code == 200
    assert access.json()["can_access"] is True


def test_access_check_locked_module(client, tree, tenant_id, user_id):
    response = client.get(
        f"/api/progress/modules/{tree.modules[1].id}/access-check",
        params={"user_id": str(user_id), "tenant_id": str(tenant_id)},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["can_access"] is False
    assert body["prerequisites"] == [str(tree.modules[0].id)]
    assert body["status"] == "not_started"


def test_activity_log_filters(client, tree, user_id):
    client.put(f"/api/progress/items/{tree.items[1][0].id}/complete", json={"user_id": str(user_id)})

    response = client.get(
        "/api/progress/activity-log",
        params={"user_id": str(user_id), "activity_type": "module_completed"},
    )

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["data"][0]["reference_id"] == str(tree.modules[1].id)


def test_study_sessions(client, tree, user_id):
    started = client.post(
        "/api/sessions/start",
        json={"user_id": str(user_id), "course_id": str(tree.course.id)},
    )
    assert started.status_code == 201
    session_id = started.json()["id"]

    second = client.post("/api/sessions/start", json={"user_id": str(user_id)})
    assert second.status_code == 201

    active = client.get("/api/sessions/active", params={"user_id": str(user_id)})
    assert [s["id"] for s in active.json()] == [second.json()["id"]]

    ended_again = client.put(f"/api/sessions/{session_id}/end", json={"user_id": str(user_id)})
    assert ended_again.status_code == 409

    end_all = client.put("/api/sessions/end-all", json={"user_id": str(user_id)})
    assert end_all.json() == {"ended_sessions": 1}

    stats = client.get("/api/sessions/study-time-stats", params={"user_id": str(user_id)})
    assert stats.status_code == 200
    assert stats.json()["total_sessions"] == 2


def test_end_unknown_session(client, user_id):
    response = client.put(f"/api/sessions/{uuid.uuid4()}/end", json={"user_id": str(user_id)})

    assert response.status_code == 404
