"""
Module Name: root_folders.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Library root folders: cached free-space measurements and the choice of
    which root receives an import. Measurements are refreshed with psutil
    and persisted with a timestamp; they are not guaranteed current.

Location:
    /services/media_management/root_folders.py

"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

import psutil

from services.import_service.exceptions import NotFoundError, StorageUnavailableError
from utils.logger import get_module_logger

_LOGGER = get_module_logger("Service.MediaManagement.RootFolders")


@dataclass
class RootFolder:
    id: Optional[int]
    path: str
    accessible: bool = True
    free_space: Optional[float] = None
    total_space: Optional[int] = None
    last_checked: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RootFolder":
        return cls(
            id=row.get('id'),
            path=row.get('path'),
            accessible=bool(row.get('accessible', 1)),
            free_space=row.get('free_space'),
            total_space=row.get('total_space'),
            last_checked=row.get('last_checked'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'path': self.path,
            'accessible': self.accessible,
            'free_space': self.free_space,
            'total_space': self.total_space,
            'last_checked': self.last_checked,
        }


class RootFolderSelector:
    """Chooses the root folder for an import from cached measurements."""

    def __init__(self, *, logger=None):
        self.logger = logger or _LOGGER

    @staticmethod
    def has_room(folder: RootFolder, payload_size: float, minimum_free_bytes: float) -> bool:
        return (folder.free_space or 0) > payload_size + minimum_free_bytes

    def select(self, folders: Iterable[RootFolder], payload_size: float,
               minimum_free_bytes: float = 0) -> RootFolder:
        """
        Pick the accessible root with the most free space that fits the payload.

        Raises:
            StorageUnavailableError: no accessible root folder is configured.
        """
        candidates = sorted(
            (folder for folder in folders if folder.accessible),
            key=lambda folder: folder.free_space or 0,
            reverse=True,
        )
        if not candidates:
            raise StorageUnavailableError("No accessible root folders are configured")

        for folder in candidates:
            if self.has_room(folder, payload_size, minimum_free_bytes):
                return folder

        fallback = candidates[0]
        self.logger.warning(
            "No root folder has room for %s bytes plus %s reserved; using %s (%s bytes free)",
            payload_size, minimum_free_bytes, fallback.path, fallback.free_space,
        )
        return fallback


class RootFolderService:
    """Keeps root folder measurements current and selects a root for imports."""

    def __init__(self, root_folder_operations=None, selector: Optional[RootFolderSelector] = None,
                 *, logger=None):
        self.logger = logger or _LOGGER
        self._operations = root_folder_operations
        self.selector = selector or RootFolderSelector(logger=self.logger)

    def _get_operations(self):
        """Lazy load RootFolderOperations from DatabaseService."""
        if self._operations is None:
            from services.service_manager import get_database_service
            self._operations = get_database_service().root_folders
        return self._operations

    def get_root_folders(self) -> List[RootFolder]:
        return [RootFolder.from_row(row) for row in self._get_operations().get_root_folders()]

    def add_root_folder(self, path: str) -> Dict[str, Any]:
        if not path or not os.path.isabs(path):
            return {'success': False, 'error': 'Root folder must be an absolute path'}
        if not os.path.isdir(path):
            return {'success': False, 'error': f'Directory does not exist: {path}'}

        folder_id = self._get_operations().add_root_folder(os.path.normpath(path))
        if folder_id is None:
            return {'success': False, 'error': 'Failed to save root folder'}

        folder = self.refresh(RootFolder(id=folder_id, path=os.path.normpath(path)))
        return {'success': True, 'root_folder': folder.to_dict()}

    def remove_root_folder(self, folder_id: int) -> bool:
        return self._get_operations().remove_root_folder(folder_id)

    def refresh(self, folder: RootFolder) -> RootFolder:
        """Measure one folder and persist the result."""
        try:
            if not os.path.isdir(folder.path):
                raise NotFoundError(f"Root folder is missing: {folder.path}")
            usage = psutil.disk_usage(folder.path)
            folder.accessible = True
            folder.free_space = usage.free
            folder.total_space = usage.total
        except (OSError, NotFoundError) as exc:
            self.logger.warning("Root folder %s is not accessible: %s", folder.path, exc)
            folder.accessible = False
            folder.free_space = None
            folder.total_space = None

        if folder.id is not None:
            self._get_operations().update_measurement(
                folder.id, folder.accessible, folder.free_space, folder.total_space
            )
        return folder

    def refresh_all(self) -> List[RootFolder]:
        return [self.refresh(folder) for folder in self.get_root_folders()]

    def select_for_import(self, payload_size: int, minimum_free_bytes: int = 0) -> RootFolder:
        """Refresh measurements, then choose a root folder for ``payload_size`` bytes."""
        return self.selector.select(self.refresh_all(), payload_size, minimum_free_bytes)
