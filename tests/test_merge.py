"""Tests for merging local and remote project copies."""

from flightdeck.models.project import STATUS_DELETED, STATUS_TEMPLATE
from flightdeck.pipeline.merge import choose, merge_project_lists


def copy(project, **changes):
    return project.model_copy(deep=True, update=changes)


def test_single_side_wins(project):
    assert choose(project, None) is project
    assert choose(None, project) is project
    assert choose(None, None) is None


def test_later_timestamp_wins(project):
    newer = copy(project, last_updated="2024-01-02T00:00:00+00:00", name="Remote")
    assert choose(project, newer) is newer
    assert choose(newer, project) is newer


def test_tie_goes_to_local(project):
    remote = copy(project, name="Remote")
    assert choose(project, remote) is project


def test_remote_delete_wins(project):
    local = copy(project, last_updated="2024-02-01T00:00:00+00:00")
    remote = copy(project, status=STATUS_DELETED)
    assert choose(local, remote) is remote


def test_lost_round_count_keeps_local(project):
    local = copy(project, rounds_count=4)
    remote = copy(project, rounds_count=None, last_updated="2024-02-01T00:00:00+00:00")
    assert choose(local, remote) is local

    remote = copy(project, rounds_count=1, last_updated="2024-02-01T00:00:00+00:00")
    assert choose(local, remote) is local


def test_phase_four_single_round_is_real(project):
    local = copy(project, rounds2_count=3)
    remote = copy(project, rounds2_count=1, last_updated="2024-02-01T00:00:00+00:00")
    assert choose(local, remote) is remote


def test_merge_lists(project):
    a = copy(project, id="a", last_updated="2024-01-03T00:00:00+00:00")
    b_local = copy(project, id="b", last_updated="2024-01-05T00:00:00+00:00", name="Local B")
    b_remote = copy(project, id="b", last_updated="2024-01-02T00:00:00+00:00")
    c = copy(project, id="c", status=STATUS_DELETED, last_updated="2024-01-04T00:00:00+00:00")
    local_template = copy(project, id="t-local", status=STATUS_TEMPLATE)
    remote_template = copy(project, id="t-remote", status=STATUS_TEMPLATE)

    active, deleted = merge_project_lists(
        [b_local, local_template],
        [a, b_remote, c, remote_template],
    )

    assert [p.id for p in active] == ["b", "a"]
    assert active[0].name == "Local B"
    assert [p.id for p in deleted] == ["c"]
