"""
Module Name: permissions.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Platform permission tools applied to imported files. POSIX hosts get
    chmod/chown; elsewhere an explicit no-op manager logs that it skipped.
    Failures are logged and never fail an import.

Location:
    /services/import_service/permissions.py

"""

import os
import shutil
from abc import ABC, abstractmethod
from typing import Optional

from utils.logger import get_module_logger

from .exceptions import PermissionApplicationError
from .file_operations import PlatformCapabilities

_LOGGER = get_module_logger("Service.Import.Permissions")


class PermissionManager(ABC):
    """Applies mode bits and ownership to a file after import."""

    supported = False

    def __init__(self, *, logger=None):
        self.logger = logger or _LOGGER

    @abstractmethod
    def apply(self, path: str, file_chmod: str, chown_user: Optional[str] = None,
              chown_group: Optional[str] = None) -> bool:
        """Returns True when every requested change was applied."""


class PosixPermissionManager(PermissionManager):
    supported = True

    def apply(self, path, file_chmod, chown_user=None, chown_group=None):
        try:
            self._apply(path, file_chmod, chown_user, chown_group)
            return True
        except PermissionApplicationError as exc:
            self.logger.warning("Permission update failed for %s: %s", path, exc)
            return False

    def _apply(self, path, file_chmod, chown_user, chown_group):
        try:
            mode = int(str(file_chmod), 8)
        except ValueError as exc:
            raise PermissionApplicationError(f"Invalid chmod value '{file_chmod}'") from exc

        try:
            os.chmod(path, mode)
        except OSError as exc:
            raise PermissionApplicationError(f"chmod {file_chmod} failed: {exc}") from exc

        if chown_user or chown_group:
            try:
                shutil.chown(path, user=chown_user or None, group=chown_group or None)
            except (OSError, LookupError) as exc:
                raise PermissionApplicationError(
                    f"chown {chown_user or ''}:{chown_group or ''} failed: {exc}"
                ) from exc

        self.logger.debug("Applied permissions %s to %s", file_chmod, path)


class UnsupportedPermissionManager(PermissionManager):
    def apply(self, path, file_chmod, chown_user=None, chown_group=None):
        self.logger.info("Permission management is not supported on this platform; skipping %s", path)
        return False


def create_permission_manager(capabilities: Optional[PlatformCapabilities] = None, *,
                              logger=None) -> PermissionManager:
    capabilities = capabilities or PlatformCapabilities.detect()
    if capabilities.supports_permissions:
        return PosixPermissionManager(logger=logger)
    return UnsupportedPermissionManager(logger=logger)
