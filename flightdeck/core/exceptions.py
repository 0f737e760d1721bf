"""
Exceptions Module

Custom exception classes shared by the pipeline engine, the service layer
and the API. The engine raises these; the API translates them into HTTP
responses (see flightdeck.main).
"""


class FlightdeckError(Exception):
    """Base exception for all Flightdeck errors."""
    pass


class ProjectNotFoundError(FlightdeckError):
    """Project with given ID doesn't exist."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


class TaskNotFoundError(FlightdeckError):
    """Task with given ID is not part of the project."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class ValidationRejected(FlightdeckError):
    """
    A mutation was refused for a user-facing reason.

    The project is left untouched; the message is meant to be shown as-is.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ProjectLockedError(FlightdeckError):
    """Mutation attempted on a locked project."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} is locked")


class StaleSnapshotError(FlightdeckError):
    """The stored project changed since it was loaded (compare-and-swap failed)."""

    def __init__(self, project_id: str, expected: str, actual: str):
        self.project_id = project_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Project {project_id} was modified concurrently "
            f"(expected {expected}, found {actual})"
        )


class SpreadsheetFormatError(FlightdeckError):
    """The uploaded workbook cannot be read or lacks the task sheet."""

    def __init__(self, message: str):
        super().__init__(message)


class FolderServiceError(FlightdeckError):
    """The NAS folder service failed or returned an error payload."""

    def __init__(self, message: str):
        super().__init__(message)
