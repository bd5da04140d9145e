"""
Module Name: file_naming_service.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Singleton service that turns an event, a parsed release and the media
    management naming settings into a library destination path.

Location:
    /services/file_naming/file_naming_service.py

"""

import os
import threading
from typing import Dict, Mapping, Optional, Tuple

from utils.logger import get_module_logger

from .path_generator import PathGenerator
from .sanitizer import PathSanitizer
from .template_parser import TemplateParser

_LOGGER = get_module_logger("Service.FileNaming.Main")


class FileNamingService:
    """
    Main file naming service following DatabaseService singleton pattern.

    Features:
    - Token templates for event folders and files
    - Illegal character replacement per naming settings
    - Deterministic " (n)" collision suffixes
    """

    _instance: Optional['FileNamingService'] = None
    _lock = threading.Lock()
    _initialized = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, *_, logger=None, **__):
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self.logger = logger or _LOGGER
                    self.template_parser = TemplateParser()
                    self.path_generator = PathGenerator(self.template_parser)
                    self._sanitizers = {
                        True: PathSanitizer(replace_illegal_characters=True),
                        False: PathSanitizer(replace_illegal_characters=False),
                    }
                    self.logger.debug("File naming service initialized")
                    FileNamingService._initialized = True

    def get_sanitizer(self, replace_illegal_characters: bool = True) -> PathSanitizer:
        return self._sanitizers[bool(replace_illegal_characters)]

    def validate_template(self, template: str) -> Tuple[bool, Optional[str]]:
        return self.template_parser.validate_template(template)

    def build_destination(self, root_path: str, event: Mapping, info,
                          source_path: str, settings) -> str:
        """
        Compute a free destination path under ``root_path``.

        Args:
            root_path: Chosen library root folder
            event: Library event row (title, event_date, organization)
            info: Parsed release name of the selected file
            source_path: Selected payload file; supplies the extension
            settings: MediaManagementSettings snapshot for this import run
        """
        extension = os.path.splitext(source_path)[1]
        values = self.template_parser.build_token_values(event, info)

        path = self.path_generator.generate_file_path(
            root_path,
            values,
            extension,
            self.get_sanitizer(settings.replace_illegal_characters),
            folder_template=settings.event_folder_format if settings.create_event_folder else None,
            file_template=settings.standard_file_format if settings.rename_files else None,
            original_stem=info.original_stem,
        )
        return self.path_generator.resolve_unique_path(path)

    def preview(self, template: str, event: Mapping, info,
                replace_illegal_characters: bool = True) -> Dict[str, Optional[str]]:
        """Render a file template for the settings screen."""
        is_valid, error = self.validate_template(template)
        values = self.template_parser.build_token_values(event, info)
        rendered = self.path_generator.generate_filename(
            template, values, '', self.get_sanitizer(replace_illegal_characters)
        )
        return {'template': template, 'result': rendered, 'valid': is_valid, 'error': error}
