"""
Module Name: settings.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Media management settings (naming, transfer, permissions, cleanup).
    Each import run works from one immutable snapshot; edits saved while a
    run is in flight only affect later runs.

Location:
    /services/media_management/settings.py

"""

import threading
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping, Optional

from services.config.defaults import MEDIA_MANAGEMENT_DEFAULTS
from utils.logger import get_module_logger

_LOGGER = get_module_logger("Service.MediaManagement.Settings")

SECTION = "media_management"


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


@dataclass(frozen=True)
class MediaManagementSettings:
    rename_files: bool = True
    replace_illegal_characters: bool = True
    create_event_folder: bool = True
    event_folder_format: str = MEDIA_MANAGEMENT_DEFAULTS["event_folder_format"]
    standard_file_format: str = MEDIA_MANAGEMENT_DEFAULTS["standard_file_format"]
    transfer_mode: str = "move"
    set_permissions: bool = False
    file_chmod: str = "644"
    chown_user: str = ""
    chown_group: str = ""
    minimum_free_space_mb: int = 100
    skip_free_space_check: bool = False
    remove_completed_downloads: bool = True

    @property
    def minimum_free_space_bytes(self) -> int:
        return max(self.minimum_free_space_mb, 0) * 1024 * 1024

    @classmethod
    def from_section(cls, values: Mapping[str, Any]) -> "MediaManagementSettings":
        merged = dict(MEDIA_MANAGEMENT_DEFAULTS)
        merged.update({key: value for key, value in values.items() if value is not None})

        try:
            minimum = int(float(merged["minimum_free_space_mb"]))
        except (TypeError, ValueError):
            minimum = int(MEDIA_MANAGEMENT_DEFAULTS["minimum_free_space_mb"])

        return cls(
            rename_files=_as_bool(merged["rename_files"]),
            replace_illegal_characters=_as_bool(merged["replace_illegal_characters"]),
            create_event_folder=_as_bool(merged["create_event_folder"]),
            event_folder_format=str(merged["event_folder_format"]),
            standard_file_format=str(merged["standard_file_format"]),
            transfer_mode=str(merged["transfer_mode"]).strip().lower(),
            set_permissions=_as_bool(merged["set_permissions"]),
            file_chmod=str(merged["file_chmod"]).strip(),
            chown_user=str(merged["chown_user"]).strip(),
            chown_group=str(merged["chown_group"]).strip(),
            minimum_free_space_mb=minimum,
            skip_free_space_check=_as_bool(merged["skip_free_space_check"]),
            remove_completed_downloads=_as_bool(merged["remove_completed_downloads"]),
        )

    def to_section(self) -> Dict[str, Any]:
        return asdict(self)

    def with_changes(self, **changes: Any) -> "MediaManagementSettings":
        return replace(self, **changes)


class MediaManagementSettingsProvider:
    """
    Loads media management settings once and hands out the snapshot.

    ``reload()`` re-reads the config file; ``save()`` validates, persists and
    swaps the snapshot atomically.
    """

    def __init__(self, config_service=None, *, logger=None):
        self.logger = logger or _LOGGER
        self._config_service = config_service
        self._snapshot: Optional[MediaManagementSettings] = None
        self._lock = threading.Lock()

    def _get_config_service(self):
        """Lazy load ConfigService."""
        if self._config_service is None:
            from services.service_manager import get_config_service
            self._config_service = get_config_service()
        return self._config_service

    def current(self) -> MediaManagementSettings:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load()
            return self._snapshot

    def reload(self) -> MediaManagementSettings:
        with self._lock:
            self._snapshot = self._load()
            self.logger.info("Media management settings reloaded")
            return self._snapshot

    def save(self, settings: MediaManagementSettings) -> Dict[str, Any]:
        config_service = self._get_config_service()
        section = settings.to_section()
        errors = config_service.validation.validate_media_management(section)
        if errors:
            return {'success': False, 'errors': errors}

        if not config_service.update_section(SECTION, section):
            return {'success': False, 'errors': ['Failed to write configuration']}

        with self._lock:
            self._snapshot = settings
        self.logger.info("Media management settings saved", extra={"transfer_mode": settings.transfer_mode})
        return {'success': True, 'errors': []}

    def _load(self) -> MediaManagementSettings:
        config_service = self._get_config_service()
        values = config_service.get_section(SECTION)
        missing = {key: value for key, value in MEDIA_MANAGEMENT_DEFAULTS.items() if key not in values}
        if missing:
            # Materialize defaults so the file documents every option
            config_service.update_section(SECTION, missing)
        return MediaManagementSettings.from_section(values)
