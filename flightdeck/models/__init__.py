from .task import Role, Task, TaskGroup, TaskLink, ChecklistItem
from .project import Project, ProjectRecord

__all__ = [
    "Role", "Task", "TaskGroup", "TaskLink", "ChecklistItem",
    "Project", "ProjectRecord",
]
