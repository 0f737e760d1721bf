"""
API Dependencies Module

This module provides FastAPI dependency functions that wire the project
service to its collaborators: the database session, the local snapshot cache,
the NAS folder client and the change-notification debouncer.
"""
from typing import Optional

from fastapi import Depends
from sqlmodel import Session

from flightdeck.core.config import settings
from flightdeck.db.session import get_db, get_engine
from flightdeck.services.cache import SnapshotCache
from flightdeck.services.nas import FolderClient
from flightdeck.services.notifications import RefreshDebouncer
from flightdeck.services.project_service import ProjectService, debounced_refresh
from flightdeck.services.repository import ProjectRepository

_debouncer: Optional[RefreshDebouncer] = None


def get_folder_client() -> Optional[FolderClient]:
    """
    NAS folder client, or None when no NAS_API_BASE is configured.
    """
    if not settings.NAS_API_BASE:
        return None
    return FolderClient(settings.NAS_API_BASE, timeout=settings.NAS_TIMEOUT_SECONDS)


def get_cache() -> SnapshotCache:
    return SnapshotCache(settings.CACHE_DIR)


def get_project_service(
    db: Session = Depends(get_db),
    cache: SnapshotCache = Depends(get_cache),
    folders: Optional[FolderClient] = Depends(get_folder_client),
) -> ProjectService:
    """
    Dependency that builds a ProjectService for the current request.

    Args:
        db: Database session
        cache: Local snapshot cache
        folders: NAS folder client (None when disabled)

    Returns:
        ProjectService: Service bound to this request's session
    """
    return ProjectService(ProjectRepository(db), cache, folders)


def _background_service() -> ProjectService:
    return ProjectService(ProjectRepository(Session(get_engine())), get_cache(), get_folder_client())


def get_debouncer() -> RefreshDebouncer:
    """
    Process-wide debouncer for change notifications.

    Its refresh runs outside any request, so it opens its own session.
    """
    global _debouncer
    if _debouncer is None:
        _debouncer = RefreshDebouncer(
            debounced_refresh(_background_service),
            delay=settings.REFRESH_DEBOUNCE_SECONDS,
        )
    return _debouncer
