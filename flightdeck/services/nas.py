"""
NAS Folder Client Module

HTTP client for the folder naming service that keeps one NAS folder per
project. The service derives the folder name from the project name, start
date and people, so it is called again whenever one of those changes.
"""
import logging
from typing import Any, Dict, Optional

import requests

from flightdeck.core.exceptions import FolderServiceError
from flightdeck.models.project import Project

logger = logging.getLogger(__name__)


def _folder_path(payload: Dict[str, Any]) -> Optional[str]:
    for key in ("folderPath", "newPath", "nasFolderPath", "path"):
        if payload.get(key):
            return payload[key]
    return None


class FolderClient:
    """
    Client for the NAS folder service.

    Args:
        base_url: Service root, e.g. "http://nas.local:3001/api"
        timeout: Request timeout in seconds
        session: Optional requests.Session (connection reuse, tests)
    """

    def __init__(self, base_url: str, timeout: float = 8.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise FolderServiceError(f"NAS request to {path} failed: {e}")
        if not response.ok:
            raise FolderServiceError(f"NAS request to {path} failed: {response.status_code} - {response.text}")
        try:
            payload = response.json()
        except ValueError:
            raise FolderServiceError(f"NAS response from {path} is not JSON")
        if payload.get("success") is False:
            raise FolderServiceError(payload.get("error") or f"NAS request to {path} was rejected")
        return payload

    def create_folder(self, project: Project) -> Optional[str]:
        """Create the project folder; returns its path."""
        payload = self._post("/folder/create", {
            "name": project.name,
            "startDate": project.start_date or "",
            "pmName": project.pm_name or "",
            "designerNames": project.designer_names(),
        })
        path = _folder_path(payload)
        logger.info("Created NAS folder for %s: %s", project.id, path)
        return path

    def rename_folder(self, project: Project) -> Optional[str]:
        """Rename the folder after an identity change; returns the new path."""
        payload = self._post("/folder/rename", {
            "projectId": project.id,
            "nasFolderPath": project.nas_folder_path,
            "projectData": {
                "name": project.name,
                "startDate": project.start_date,
                "endDate": project.end_date,
                "pmName": project.pm_name,
                "designerNames": project.designer_names(),
            },
            "lastUpdated": project.last_updated,
        })
        return _folder_path(payload)

    def complete_folder(self, project: Project) -> Optional[str]:
        """Move the folder of a locked (finished) project to its completed location."""
        payload = self._post("/folder/complete", {
            "projectId": project.id,
            "nasFolderPath": project.nas_folder_path,
        })
        return _folder_path(payload)
