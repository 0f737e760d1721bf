from .materializer import LogicalItem, arrange, find_task, flatten, materialize
from .progress import Progress, compute_progress, is_phase_locked, visible_phases
from .merge import choose, merge_project_lists
from .spreadsheet import ImportReport, export_workbook, import_workbook

__all__ = [
    "LogicalItem", "arrange", "find_task", "flatten", "materialize",
    "Progress", "compute_progress", "is_phase_locked", "visible_phases",
    "choose", "merge_project_lists",
    "ImportReport", "export_workbook", "import_workbook",
]
