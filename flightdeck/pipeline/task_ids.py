"""
Task ID Module

Task IDs carry structure: the phase a task belongs to and, for round tasks,
the round number and slot. IDs are parsed once into small frozen variants so
callers read real fields instead of re-slicing strings.

    t<phase>-<key>                   StaticTaskId   (template tasks: t1-1, t3-base-1, t3-final)
    t<phase>-round-<n>-<slot>        RoundTaskId    (generated rounds: t2-round-1-prop)
    custom-<phase>-<stamp>-<suffix>  AdHocTaskId    (user or import created)
"""
import re
import time
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Union

_ROUND_RE = re.compile(r"^t(?P<phase>\d+)-round-(?P<round>\d+)-(?P<slot>[a-z]+)$")
_STATIC_RE = re.compile(r"^t(?P<phase>\d+)-(?P<key>[A-Za-z0-9][\w-]*)$")
_ADHOC_RE = re.compile(r"^custom-(?P<phase>\d+)-(?P<stamp>.+)$")


@dataclass(frozen=True)
class StaticTaskId:
    raw: str
    phase: int
    key: str


@dataclass(frozen=True)
class RoundTaskId:
    raw: str
    phase: int
    round: int
    slot: str


@dataclass(frozen=True)
class AdHocTaskId:
    raw: str
    phase: int
    stamp: str


TaskId = Union[StaticTaskId, RoundTaskId, AdHocTaskId]


@lru_cache(maxsize=4096)
def parse_task_id(raw: str) -> Optional[TaskId]:
    """
    Parse a task ID string.

    Returns:
        The matching variant, or None for IDs that follow none of the schemes.
    """
    match = _ROUND_RE.match(raw)
    if match:
        return RoundTaskId(raw, int(match["phase"]), int(match["round"]), match["slot"])
    match = _ADHOC_RE.match(raw)
    if match:
        return AdHocTaskId(raw, int(match["phase"]), match["stamp"])
    match = _STATIC_RE.match(raw)
    if match:
        return StaticTaskId(raw, int(match["phase"]), match["key"])
    return None


def phase_of(raw: str) -> Optional[int]:
    parsed = parse_task_id(raw)
    return parsed.phase if parsed else None


def is_template_id(raw: str) -> bool:
    """Static and round IDs come from the phase templates and can only be suppressed."""
    return isinstance(parse_task_id(raw), (StaticTaskId, RoundTaskId))


def round_task_id(phase: int, round_number: int, slot: str) -> str:
    return f"t{phase}-round-{round_number}-{slot}"


def new_adhoc_id(phase: int) -> str:
    """
    Build a fresh ad-hoc task ID: the current time in milliseconds plus a
    short random suffix, so IDs minted in the same millisecond still differ.
    """
    stamp = str(int(time.time() * 1000))
    return f"custom-{phase}-{stamp}-{uuid.uuid4().hex[:5]}"
