"""Tests for project creation, templates, soft delete and restore."""

import pytest

from flightdeck.core.exceptions import ValidationRejected
from flightdeck.models.project import STATUS_DELETED, STATUS_TEMPLATE, parse_timestamp
from flightdeck.models.task import SENTINEL_DATE, ChecklistItem, Task, TaskGroup
from flightdeck.pipeline import lifecycle
from flightdeck.pipeline.progress import compute_progress


def test_create_blank_project():
    project = lifecycle.create_project("  Brand Renewal ", pm_name="김PM")

    assert project.name == "Brand Renewal"
    assert project.pm_name == "김PM"
    assert project.status == 0
    assert project.completed == []
    assert compute_progress(project).total == 22


def test_create_requires_name():
    with pytest.raises(ValidationRejected):
        lifecycle.create_project("   ")


def test_create_from_template_resets_task_state(project):
    project.rounds_count = 4
    project.expedition2_hidden = True
    project.completed = ["t1-1"]
    project.custom_tasks = {1: [Task(
        id="t1-1",
        title="사전 질문지 작성",
        due_date="24-03-01",
        checklist=[ChecklistItem(text="발송", completed=True)],
    )]}
    project.groups = {5: [TaskGroup(id="g-1", title="마무리", task_ids=["t5-4", "t5-5"])]}
    template = lifecycle.as_template(project, "Standard")

    created = lifecycle.create_project("New Client", template=template)

    assert created.id != template.id
    assert created.status == 0
    assert not created.is_locked
    assert created.template_name == "Standard"
    assert created.rounds_count == 4
    assert created.expedition2_hidden
    assert created.completed == []
    assert created.groups[5][0].task_ids == ["t5-4", "t5-5"]
    task = created.custom_tasks[1][0]
    assert task.due_date == SENTINEL_DATE
    assert not task.checklist[0].completed
    # template itself is untouched
    assert template.custom_tasks[1][0].due_date == "24-03-01"


def test_as_template(project):
    project.pm_name = "김PM"
    project.completed = ["t1-1"]

    template = lifecycle.as_template(project, "Standard")

    assert template.status == STATUS_TEMPLATE
    assert template.is_locked
    assert template.pm_name == lifecycle.TEMPLATE_PM_NAME
    assert template.completed == []
    assert template.id != project.id


def test_soft_delete_and_restore_keep_status(project):
    project.status = 40

    deleted = lifecycle.soft_delete(project)
    assert deleted.status == STATUS_DELETED
    assert deleted.original_status == 40
    assert deleted.deleted_at
    assert parse_timestamp(deleted.last_updated) > parse_timestamp(project.last_updated)
    assert project.status == 40

    restored = lifecycle.restore(deleted)
    assert restored.status == 40
    assert restored.original_status is None
    assert restored.deleted_at is None


def test_delete_twice_is_a_no_op(project):
    deleted = lifecycle.soft_delete(project)
    assert lifecycle.soft_delete(deleted) is deleted


def test_restore_without_original_status(project):
    project.status = STATUS_DELETED
    assert lifecycle.restore(project).status == 0


def test_locked_project_can_be_deleted(project):
    project.is_locked = True
    assert lifecycle.soft_delete(project).is_deleted
