"""
Snapshot Cache Module

Local durable copy of project snapshots, one JSON file per project. Every
mutation is written here before the remote save is attempted, so the latest
local state survives a failed or slow remote write.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from flightdeck.models.project import Project

logger = logging.getLogger(__name__)


class SnapshotCache:
    """
    File-backed project cache.

    Args:
        directory: Folder holding the `<project id>.json` files; created on demand
    """

    def __init__(self, directory):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, project_id: str) -> Path:
        return self.directory / f"{project_id}.json"

    def put(self, project: Project) -> None:
        # Write to a temp file and swap it in so readers never see half a snapshot
        fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(project.model_dump_json())
            os.replace(tmp, self._path(project.id))
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self, project_id: str) -> Optional[Project]:
        path = self._path(project_id)
        if not path.exists():
            return None
        try:
            return Project.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError:
            logger.warning("Ignoring unreadable cache entry %s", path.name)
            return None

    def all(self) -> List[Project]:
        projects = []
        for path in sorted(self.directory.glob("*.json")):
            project = self.get(path.stem)
            if project is not None:
                projects.append(project)
        return projects

    def remove(self, project_id: str) -> None:
        path = self._path(project_id)
        if path.exists():
            path.unlink()
