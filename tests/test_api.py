"""End-to-end tests for the HTTP API."""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from flightdeck.api import deps
from flightdeck.db.session import get_db
from flightdeck.main import app

API = "/api/v1"


@pytest.fixture
def debouncer():
    return Mock()


@pytest.fixture
def client(engine, cache, debouncer):
    def override_get_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_cache] = lambda: cache
    app.dependency_overrides[deps.get_folder_client] = lambda: None
    app.dependency_overrides[deps.get_debouncer] = lambda: debouncer
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def project_id(client):
    response = client.post(f"{API}/projects", json={"name": "Brand Renewal", "pm_name": "김PM"})
    assert response.status_code == 201
    return response.json()["project"]["id"]


def test_health(client):
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_project(client):
    response = client.post(f"{API}/projects", json={"name": "Brand Renewal"})

    assert response.status_code == 201
    data = response.json()
    assert data["progress"] == {"total": 22, "completed": 0, "percentage": 0}
    assert [p["number"] for p in data["phases"]] == [1, 2, 3, 4, 5]
    assert data["phases"][0]["locked"] is False
    assert data["phases"][1]["locked"] is True
    assert data["warnings"] == []


def test_create_requires_name(client):
    response = client.post(f"{API}/projects", json={"name": "  "})
    assert response.status_code == 400


def test_unknown_project(client):
    assert client.get(f"{API}/projects/missing").status_code == 404


def test_toggle_task(client, project_id):
    response = client.post(f"{API}/projects/{project_id}/tasks/t1-1/toggle")

    assert response.status_code == 200
    data = response.json()
    assert data["project"]["completed"] == ["t1-1"]
    assert data["project"]["status"] == 5
    task = data["phases"][0]["tasks"][0]
    assert task["completed"] is True
    assert task["due_date"] != "00-00-00"


def test_toggle_unknown_task(client, project_id):
    assert client.post(f"{API}/projects/{project_id}/tasks/t9-9/toggle").status_code == 404


def test_add_and_edit_task(client, project_id):
    response = client.post(f"{API}/projects/{project_id}/tasks", json={"phase": 1, "title": "브랜드 워크숍"})
    assert response.status_code == 201
    task = response.json()["phases"][0]["tasks"][-1]
    assert task["title"] == "브랜드 워크숍"
    assert task["roles"] == ["pm"]

    response = client.patch(
        f"{API}/projects/{project_id}/tasks/{task['id']}",
        json={"description": "오프라인 진행"},
    )
    assert response.status_code == 200
    assert response.json()["phases"][0]["tasks"][-1]["description"] == "오프라인 진행"

    response = client.patch(f"{API}/projects/{project_id}/tasks/{task['id']}", json={"due_date": "someday"})
    assert response.status_code == 400


def test_grouping_rules(client, project_id):
    response = client.post(f"{API}/projects/{project_id}/groups", json={"task_ids": ["t1-1"]})
    assert response.status_code == 400

    response = client.post(f"{API}/projects/{project_id}/groups", json={"task_ids": ["t1-1", "t5-1"]})
    assert response.status_code == 400

    response = client.post(
        f"{API}/projects/{project_id}/groups",
        json={"task_ids": ["t5-1", "t5-2"], "title": "전달"},
    )
    assert response.status_code == 201
    phase = response.json()["phases"][4]
    assert phase["groups"][0]["title"] == "전달"
    assert phase["tasks"][0]["group_id"] == phase["groups"][0]["id"]


def test_round_count(client, project_id):
    response = client.put(f"{API}/projects/{project_id}/rounds", json={"phase": 3, "count": 3})
    assert response.status_code == 200
    assert response.json()["progress"]["total"] == 24

    response = client.put(f"{API}/projects/{project_id}/rounds", json={"phase": 3, "count": 1})
    assert response.status_code == 400

    response = client.put(f"{API}/projects/{project_id}/rounds", json={"phase": 3, "count": 1000})
    assert response.status_code == 400
    assert "at most" in response.json()["detail"]


def test_hide_phase(client, project_id):
    response = client.put(f"{API}/projects/{project_id}/phases/hidden", json={"hidden": True})
    assert response.status_code == 200
    assert response.json()["progress"]["total"] == 18


def test_locked_project(client, project_id):
    response = client.post(f"{API}/projects/{project_id}/lock", json={"locked": True})
    assert response.status_code == 200
    assert response.json()["project"]["is_locked"] is True

    response = client.post(f"{API}/projects/{project_id}/tasks/t1-1/toggle")
    assert response.status_code == 423


def test_update_project_info(client, project_id):
    response = client.patch(f"{API}/projects/{project_id}", json={"start_date": "24-03-01"})
    assert response.status_code == 200
    assert response.json()["project"]["start_date"] == "24-03-01"

    response = client.patch(f"{API}/projects/{project_id}", json={"status": 100})
    assert response.status_code == 400


def test_delete_and_restore(client, project_id):
    assert client.delete(f"{API}/projects/{project_id}").status_code == 200

    active = client.get(f"{API}/projects").json()
    deleted = client.get(f"{API}/projects", params={"filter": "deleted"}).json()
    assert active == []
    assert [p["id"] for p in deleted] == [project_id]

    response = client.post(f"{API}/projects/{project_id}/restore")
    assert response.json()["project"]["status"] == 0
    assert [p["id"] for p in client.get(f"{API}/projects").json()] == [project_id]


def test_save_as_template(client, project_id):
    response = client.post(f"{API}/projects/{project_id}/template", json={"name": "Standard"})
    assert response.status_code == 201
    template = response.json()
    assert template["status"] == -1

    templates = client.get(f"{API}/projects", params={"filter": "templates"}).json()
    assert [p["id"] for p in templates] == [template["id"]]

    response = client.post(f"{API}/projects", json={"name": "Next", "template_id": template["id"]})
    assert response.status_code == 201
    assert response.json()["project"]["template_name"] == "Standard"


def test_export_then_import(client, project_id):
    client.post(f"{API}/projects/{project_id}/tasks/t1-1/toggle")

    response = client.get(f"{API}/projects/{project_id}/export")
    assert response.status_code == 200
    assert "filename*=UTF-8''" in response.headers["content-disposition"]

    response = client.post(
        f"{API}/projects/{project_id}/import",
        files={"file": ("export.xlsx", response.content, "application/octet-stream")},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["applied"] == 22
    assert data["failed"] == 0
    assert data["progress"]["completed"] == 1


def test_import_rejects_garbage(client, project_id):
    response = client.post(
        f"{API}/projects/{project_id}/import",
        files={"file": ("notes.txt", b"not a workbook", "text/plain")},
    )
    assert response.status_code == 400


def test_change_notice_is_debounced(client, debouncer):
    response = client.post(f"{API}/projects/changes", json={"project_id": "p-1"})

    assert response.status_code == 202
    debouncer.signal.assert_called_once_with("p-1")
