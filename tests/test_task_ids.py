"""Tests for structured task IDs."""

from unittest.mock import patch

from flightdeck.pipeline.task_ids import (
    AdHocTaskId,
    RoundTaskId,
    StaticTaskId,
    is_template_id,
    new_adhoc_id,
    parse_task_id,
    phase_of,
    round_task_id,
)


def test_parse_static_ids():
    parsed = parse_task_id("t1-2")
    assert parsed == StaticTaskId("t1-2", 1, "2")

    assert parse_task_id("t3-base-1") == StaticTaskId("t3-base-1", 3, "base-1")
    assert parse_task_id("t3-final") == StaticTaskId("t3-final", 3, "final")


def test_parse_round_ids():
    parsed = parse_task_id("t2-round-3-prop")
    assert isinstance(parsed, RoundTaskId)
    assert (parsed.phase, parsed.round, parsed.slot) == (2, 3, "prop")

    assert parse_task_id(round_task_id(4, 1, "des")) == RoundTaskId("t4-round-1-des", 4, 1, "des")


def test_parse_adhoc_ids():
    parsed = parse_task_id("custom-5-1700000000000")
    assert isinstance(parsed, AdHocTaskId)
    assert parsed.phase == 5
    assert parsed.stamp == "1700000000000"

    suffixed = parse_task_id("custom-2-1700000000000-ab12c")
    assert suffixed.phase == 2
    assert suffixed.stamp == "1700000000000-ab12c"


def test_unknown_ids():
    assert parse_task_id("not-a-task") is None
    assert parse_task_id("") is None
    assert phase_of("garbage") is None


def test_template_ids():
    assert is_template_id("t1-1")
    assert is_template_id("t3-round-2-pm")
    assert not is_template_id("custom-1-123")
    assert not is_template_id("whatever")


def test_new_adhoc_id():
    task_id = new_adhoc_id(3)
    assert task_id.startswith("custom-3-")
    assert phase_of(task_id) == 3
    assert isinstance(parse_task_id(task_id), AdHocTaskId)


def test_new_adhoc_ids_minted_together_differ():
    with patch("flightdeck.pipeline.task_ids.time.time", return_value=1700000000.0):
        first = new_adhoc_id(3)
        second = new_adhoc_id(3)
    assert first != second
    assert first.startswith("custom-3-1700000000000-")
