"""Tests for phase materialization and logical arrangement."""

from flightdeck.models.task import Role, Task, TaskGroup
from flightdeck.pipeline.materializer import (
    ITEM_GROUP,
    ITEM_ROUND_PAIR,
    ITEM_TASK,
    arrange,
    find_task,
    flatten,
    materialize,
)
from flightdeck.pipeline.phases import MAX_ROUNDS
from flightdeck.pipeline.rounds import match_round_title


def ids(tasks):
    return [t.id for t in tasks]


def test_phase_three_with_three_rounds_has_eight_tasks(project):
    project.rounds_count = 3
    tasks = materialize(3, project)

    assert len(tasks) == 8
    assert ids(tasks) == [
        "t3-base-1",
        "t3-round-1-pm", "t3-round-1-des",
        "t3-round-2-pm", "t3-round-2-des",
        "t3-round-3-pm", "t3-round-3-des",
        "t3-final",
    ]
    assert tasks[1].title == "1차 피드백 수급"
    assert tasks[2].roles == [Role.DESIGNER]


def test_default_phase_sizes(project):
    assert len(materialize(1, project)) == 3
    assert len(materialize(2, project)) == 4
    assert len(materialize(3, project)) == 6
    assert len(materialize(4, project)) == 4
    assert len(materialize(5, project)) == 5


def test_navigation_round_titles(project):
    tasks = materialize(2, project)
    assert ids(tasks) == ["t2-round-1-prop", "t2-round-1-feed", "t2-round-2-prop", "t2-round-2-feed"]
    assert tasks[2].title.startswith("2차 제안")
    assert tasks[3].title == "2차 제안에 대한 피드백"


def test_missing_or_low_round_counts_use_phase_minimum(project):
    project.rounds_navigation_count = None
    project.rounds_count = 1
    project.rounds2_count = 1

    assert len(materialize(2, project)) == 4
    assert len(materialize(3, project)) == 6
    # Expedition 2 allows a single round
    assert len(materialize(4, project)) == 2


def test_override_replaces_template_definition(project):
    project.custom_tasks = {1: [Task(id="t1-1", title="브랜드 질문지", roles=[Role.PM])]}
    tasks = materialize(1, project)

    assert ids(tasks) == ["t1-1", "t1-2", "t1-3"]
    assert tasks[0].title == "브랜드 질문지"
    assert tasks[0].roles == [Role.PM]


def test_adhoc_overrides_are_appended(project):
    project.custom_tasks = {1: [Task(id="custom-1-100", title="킥오프 미팅")]}
    assert ids(materialize(1, project)) == ["t1-1", "t1-2", "t1-3", "custom-1-100"]


def test_deleted_ids_are_suppressed_even_with_override(project):
    project.custom_tasks = {
        1: [Task(id="t1-2", title="채널 개설"), Task(id="custom-1-7", title="삭제될 태스크")],
    }
    project.deleted_tasks = ["t1-2", "custom-1-7", "t3-round-1-pm"]

    for phase in range(1, 6):
        visible = ids(materialize(phase, project))
        for deleted in project.deleted_tasks:
            assert deleted not in visible


def test_order_list_is_authoritative(project):
    project.custom_tasks = {
        1: [Task(id="custom-1-2", title="B"), Task(id="custom-1-1", title="A")],
    }
    project.task_order = {1: ["custom-1-1", "t1-3", "custom-1-2", "t1-1"]}

    assert ids(materialize(1, project)) == ["custom-1-1", "t1-3", "custom-1-2", "t1-1", "t1-2"]


def test_stale_order_entries_are_ignored(project):
    project.task_order = {1: ["gone-1", "t1-2", "custom-1-404"]}
    assert ids(materialize(1, project)) == ["t1-2", "t1-1", "t1-3"]


def test_materialization_is_deterministic(project):
    project.rounds_count = 4
    project.custom_tasks = {3: [Task(id="custom-3-1", title="추가")]}
    project.task_order = {3: ["t3-final", "custom-3-1"]}

    first = materialize(3, project)
    second = materialize(3, project)
    assert [t.model_dump() for t in first] == [t.model_dump() for t in second]


def test_materialize_returns_copies(project):
    tasks = materialize(1, project)
    tasks[0].title = "changed"
    assert materialize(1, project)[0].title == "사전 질문지 작성"


def test_lowered_round_count_keeps_round_data_inert(project):
    project.rounds_count = 3
    project.custom_tasks = {3: [Task(id="t3-round-3-pm", title="3차 피드백 (최종)")]}
    project.completed = ["t3-round-3-pm"]

    project.rounds_count = 2
    assert "t3-round-3-pm" not in ids(materialize(3, project))

    project.rounds_count = 3
    tasks = {t.id: t for t in materialize(3, project)}
    assert tasks["t3-round-3-pm"].title == "3차 피드백 (최종)"


def test_find_task_prefers_override(project):
    project.custom_tasks = {5: [Task(id="t5-1", title="데이터 전달 (USB)")]}

    phase, task = find_task(project, "t5-1")
    assert phase == 5
    assert task.title == "데이터 전달 (USB)"

    phase, task = find_task(project, "t2-round-7-feed")
    assert phase == 2
    assert task.title == "7차 제안에 대한 피드백"

    assert find_task(project, "custom-1-missing") is None


def test_arrange_round_pairs(project):
    items = arrange(3, project)
    assert [item.kind for item in items] == [ITEM_TASK, ITEM_ROUND_PAIR, ITEM_ROUND_PAIR, ITEM_TASK]
    assert items[1].task_ids == ["t3-round-1-pm", "t3-round-1-des"]


def test_arrange_groups(project):
    project.groups = {5: [TaskGroup(id="g1", title="마무리", task_ids=["t5-4", "t5-5"])]}
    items = arrange(5, project)

    assert [item.kind for item in items] == [ITEM_TASK, ITEM_TASK, ITEM_TASK, ITEM_GROUP]
    assert items[3].group.title == "마무리"
    assert ids(flatten(items)) == ids(materialize(5, project))


def test_round_titles_are_recognised_up_to_the_cap():
    assert match_round_title(3, "3차 피드백 수급") == (3, "pm")
    assert match_round_title(3, "2차 수정 및 업데이트") == (2, "des")
    assert match_round_title(2, "1차 제안에 대한 피드백") == (1, "feed")
    assert match_round_title(3, f"{MAX_ROUNDS}차 피드백 수급") == (MAX_ROUNDS, "pm")
    assert match_round_title(3, f"{MAX_ROUNDS + 1}차 피드백 수급") is None
    assert match_round_title(3, "0차 피드백 수급") is None
    assert match_round_title(1, "1차 피드백 수급") is None
