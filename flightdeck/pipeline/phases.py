"""
Phase Template Registry

Static definition of the five pipeline phases: their titles, base tasks and,
for round-bearing phases, the round scheme and the project field holding the
round count. Read-only reference data.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from flightdeck.core.exceptions import ValidationRejected
from flightdeck.models.task import Role, Task

# The only phase that can be hidden
HIDEABLE_PHASE = 4

# Upper bound for any round count; round titles above it are not treated as rounds
MAX_ROUNDS = 10


@dataclass(frozen=True)
class RoundSlot:
    """One half of a round pair: its ID suffix, defaults and the title keyword used to recognise it."""
    slot: str
    roles: Tuple[Role, ...]
    title: str  # format string taking {n}
    keyword: str
    description: Optional[str] = None


@dataclass(frozen=True)
class RoundScheme:
    lead: RoundSlot
    partner: RoundSlot

    @property
    def slots(self) -> Tuple[RoundSlot, RoundSlot]:
        return (self.lead, self.partner)

    def slot(self, name: str) -> Optional[RoundSlot]:
        for s in self.slots:
            if s.slot == name:
                return s
        return None


@dataclass(frozen=True)
class PhaseTemplate:
    """
    Template for one phase.

    Materialization order of the base set is: leading tasks, generated
    rounds, trailing tasks.
    """
    number: int
    title: str
    leading: Tuple[Task, ...] = ()
    trailing: Tuple[Task, ...] = ()
    rounds: Optional[RoundScheme] = None
    round_field: Optional[str] = None
    min_rounds: int = 0
    default_rounds: int = 0

    @property
    def static_tasks(self) -> Tuple[Task, ...]:
        return self.leading + self.trailing

    @property
    def has_rounds(self) -> bool:
        return self.rounds is not None


NAVIGATION_ROUNDS = RoundScheme(
    lead=RoundSlot(
        slot="prop",
        roles=(Role.PM, Role.DESIGNER),
        title="{n}차 제안_버벌 아이덴티티 / 브랜드네임, 슬로건 등 도출_Ver{n}.0",
        keyword="제안",
        description="시장 조사, 기획, 디자인 원칙, 전체적인 비주얼아이덴티티 도출을 위한 맥락 등의 디자인 소스를 제작",
    ),
    partner=RoundSlot(
        slot="feed",
        roles=(Role.CLIENT, Role.PM),
        title="{n}차 제안에 대한 피드백",
        keyword="피드백",
        description="( 초기 스냅샷 금지 ) 1차 피드백을 확인할 수 있습니다",
    ),
)

EXPEDITION_ROUNDS = RoundScheme(
    lead=RoundSlot(slot="pm", roles=(Role.PM,), title="{n}차 피드백 수급", keyword="피드백"),
    partner=RoundSlot(slot="des", roles=(Role.DESIGNER,), title="{n}차 수정 및 업데이트", keyword="수정"),
)


def _task(task_id, roles, title, description=None, has_file=False):
    return Task(id=task_id, roles=list(roles), title=title, description=description, has_file=has_file)


PHASES: Tuple[PhaseTemplate, ...] = (
    PhaseTemplate(
        number=1,
        title="Check-in",
        leading=(
            _task("t1-1", [Role.CLIENT], "사전 질문지 작성", "브랜드 철학 및 니즈 파악 데이터 제출", has_file=True),
            _task("t1-2", [Role.PM], "카카오 소통 채널 개설", "실시간 소통을 위한 팀 채팅방 세팅"),
            _task("t1-3", [Role.PM], "협업 툴 초기 세팅", "노션, 피그마, 매터 대시보드 구축"),
        ),
    ),
    PhaseTemplate(
        number=2,
        title="Navigation",
        rounds=NAVIGATION_ROUNDS,
        round_field="rounds_navigation_count",
        min_rounds=2,
        default_rounds=2,
    ),
    PhaseTemplate(
        number=3,
        title="Expedition 1",
        leading=(_task("t3-base-1", [Role.DESIGNER], "비주얼 시안 개발", "핵심 비주얼 가이드 제작"),),
        trailing=(_task("t3-final", [Role.CLIENT], "최종 시안 승인", "모든 수정 완료 및 프로젝트 픽스"),),
        rounds=EXPEDITION_ROUNDS,
        round_field="rounds_count",
        min_rounds=2,
        default_rounds=2,
    ),
    PhaseTemplate(
        number=4,
        title="Expedition 2",
        rounds=EXPEDITION_ROUNDS,
        round_field="rounds2_count",
        min_rounds=1,
        default_rounds=2,
    ),
    PhaseTemplate(
        number=5,
        title="Landing",
        leading=(
            _task("t5-1", [Role.PM], "최종 데이터 전달", "클라이언트에게 데이터 전달"),
            _task("t5-2", [Role.DESIGNER], "파일 아카이빙", "서버 폴더링 및 원본 관리"),
            _task("t5-3", [Role.PM], "만족도 조사 수급"),
            _task("t5-4", [Role.MANAGER], "KPT 회고 진행"),
            _task("t5-5", [Role.MANAGER], "정산 및 클로징"),
        ),
    ),
)

_BY_NUMBER: Dict[int, PhaseTemplate] = {p.number: p for p in PHASES}
PHASE_NUMBERS: Tuple[int, ...] = tuple(_BY_NUMBER)


def get_phase(number: int) -> PhaseTemplate:
    try:
        return _BY_NUMBER[number]
    except KeyError:
        raise ValidationRejected(f"Unknown phase {number}")


def find_static_task(task_id: str) -> Optional[Tuple[int, Task]]:
    """Locate a template task by ID; returns (phase number, task)."""
    for phase in PHASES:
        for task in phase.static_tasks:
            if task.id == task_id:
                return phase.number, task
    return None


def round_count(project, phase: PhaseTemplate) -> int:
    """
    Effective round count of a phase for a project.

    A missing value falls back to the phase default; stored values are kept
    between the phase minimum and MAX_ROUNDS.
    """
    if not phase.has_rounds:
        return 0
    value = getattr(project, phase.round_field)
    if value is None:
        return phase.default_rounds
    return min(max(int(value), phase.min_rounds), MAX_ROUNDS)


def phase_title(project, phase: PhaseTemplate) -> str:
    return project.phase_titles.get(phase.number) or phase.title
