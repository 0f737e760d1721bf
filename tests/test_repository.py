"""Tests for project persistence."""

import pytest

from flightdeck.core.exceptions import ProjectNotFoundError, StaleSnapshotError
from flightdeck.models.project import STATUS_DELETED, STATUS_TEMPLATE, ProjectRecord
from flightdeck.models.task import Task, TaskGroup, TaskLink
from flightdeck.services.repository import ProjectFilter, ProjectRepository


@pytest.fixture
def repo(session):
    return ProjectRepository(session)


def test_save_and_load_full_snapshot(repo, project):
    project.rounds_count = 3
    project.expedition2_hidden = True
    project.phase_titles = {2: "Naming"}
    project.custom_tasks = {3: [Task(id="custom-3-1", title="모션 시안")]}
    project.task_order = {3: ["custom-3-1", "t3-base-1"]}
    project.deleted_tasks = ["t5-5"]
    project.completed = ["t1-1"]
    project.links = {"t1-1": TaskLink(url="https://example.com")}
    project.groups = {5: [TaskGroup(id="g-1", title="마무리", task_ids=["t5-3", "t5-4"])]}
    project.client_visible_tasks = ["t1-1"]
    project.original_status = 30

    repo.save(project)
    loaded = repo.load(project.id)

    assert loaded.model_dump() == project.model_dump()


def test_load_unknown_project(repo):
    assert repo.get("missing") is None
    with pytest.raises(ProjectNotFoundError):
        repo.load("missing")


def test_meta_bag_wins_over_lagging_column(repo, session, project):
    project.rounds_count = 4
    repo.save(project)

    record = session.get(ProjectRecord, project.id)
    record.rounds_count = 1
    record.deleted_tasks = []
    session.add(record)
    session.commit()

    loaded = repo.load(project.id)
    assert loaded.rounds_count == 4


def test_partial_save_only_writes_named_fields(repo, project):
    repo.save(project)
    changed = project.model_copy(deep=True, update={
        "name": "Renamed",
        "completed": ["t1-1"],
        "last_updated": "2024-01-02T00:00:00+00:00",
    })

    repo.save(changed, fields=["completed"])
    loaded = repo.load(project.id)

    assert loaded.completed == ["t1-1"]
    assert loaded.name == "Brand Renewal"
    assert loaded.last_updated == "2024-01-02T00:00:00+00:00"


def test_partial_save_keeps_other_task_states(repo, project):
    project.completed = ["t1-1"]
    project.groups = {1: [TaskGroup(id="g-1", title="A", task_ids=["t1-1", "t1-2"])]}
    repo.save(project)

    changed = project.model_copy(deep=True, update={"links": {"t1-2": TaskLink(url="https://x.test")}})
    repo.save(changed, fields=["links"])
    loaded = repo.load(project.id)

    assert loaded.completed == ["t1-1"]
    assert loaded.groups[1][0].id == "g-1"
    assert loaded.links["t1-2"].url == "https://x.test"


def test_compare_and_swap(repo, project):
    repo.save(project)
    changed = project.model_copy(update={"name": "Other", "last_updated": "2024-01-03T00:00:00+00:00"})

    with pytest.raises(StaleSnapshotError):
        repo.save(changed, expected_last_updated="2023-12-31T00:00:00+00:00")
    assert repo.load(project.id).name == "Brand Renewal"

    repo.save(changed, expected_last_updated=project.last_updated)
    assert repo.load(project.id).name == "Other"


def test_legacy_rows_load(repo, session):
    session.add(ProjectRecord(
        id="legacy",
        name="Old",
        task_states={"completed": ["t1-1"], "meta": {"task_groups": {"t1-1": "A"}}},
    ))
    session.commit()

    loaded = repo.load("legacy")
    assert loaded.groups == {}
    assert loaded.completed == ["t1-1"]
    assert loaded.rounds_count is None
    assert loaded.links == {}


def test_list_filters(repo, project):
    for pid, status, ts in [
        ("a", 10, "2024-01-02T00:00:00+00:00"),
        ("b", 50, "2024-01-03T00:00:00+00:00"),
        ("d", STATUS_DELETED, "2024-01-04T00:00:00+00:00"),
        ("t", STATUS_TEMPLATE, "2024-01-05T00:00:00+00:00"),
    ]:
        repo.save(project.model_copy(update={"id": pid, "status": status, "last_updated": ts}))

    assert [p.id for p in repo.list(ProjectFilter.ACTIVE)] == ["b", "a"]
    assert [p.id for p in repo.list(ProjectFilter.DELETED)] == ["d"]
    assert [p.id for p in repo.list(ProjectFilter.TEMPLATES)] == ["t"]
    assert len(repo.list(ProjectFilter.ALL)) == 4
