"""
Path Generator - Builds library destinations from naming templates
Combines templates, token values, sanitization and collision handling

Location: services/file_naming/path_generator.py
Purpose: Compute <root>/<folder>/<file> for an imported event
"""

import itertools
import logging
import os
import re
from typing import Dict, Mapping, Optional

from .sanitizer import PathSanitizer
from .template_parser import TemplateParser


class PathGenerator:
    """
    Generates destination paths for imported events.

    Handles:
    - Folder and file templates applied independently
    - Per-component sanitization
    - Keeping the original name when renaming is disabled
    - " (n)" suffixes when the destination is taken
    """

    def __init__(self, template_parser: Optional[TemplateParser] = None):
        self.logger = logging.getLogger("FileNamingService.PathGenerator")
        self.template_parser = template_parser or TemplateParser()

    def generate_folder_name(self, template: str, values: Mapping[str, str],
                             sanitizer: PathSanitizer) -> str:
        """Render the folder template; '/' in the template creates nested folders."""
        rendered = self.template_parser.parse_template(template, self._flatten(values))
        return sanitizer.sanitize_relative_path(rendered)

    def generate_filename(self, template: str, values: Mapping[str, str], extension: str,
                          sanitizer: PathSanitizer) -> str:
        rendered = self.template_parser.parse_template(template, self._flatten(values))
        if not rendered:
            rendered = values.get('original filename') or values.get('event title') or ''
        return sanitizer.sanitize_filename(rendered, extension)

    def generate_file_path(self, root_path: str, values: Mapping[str, str], extension: str,
                           sanitizer: PathSanitizer, *, folder_template: Optional[str] = None,
                           file_template: Optional[str] = None,
                           original_stem: Optional[str] = None) -> str:
        """
        Build the destination path (not yet made unique).

        Args:
            root_path: Chosen library root folder
            values: Token values from TemplateParser.build_token_values
            extension: Extension of the source file, with the dot
            sanitizer: PathSanitizer instance
            folder_template: Folder template, or None for no event folder
            file_template: File template, or None to keep ``original_stem``
            original_stem: Source filename without extension
        """
        components = [root_path]
        if folder_template:
            folder = self.generate_folder_name(folder_template, values, sanitizer)
            if folder:
                components.append(folder)

        if file_template:
            filename = self.generate_filename(file_template, values, extension, sanitizer)
        else:
            filename = sanitizer.sanitize_filename(original_stem or 'unknown', extension)
        components.append(filename)

        full_path = os.path.join(*components)
        self.logger.debug(f"Generated path: {full_path}")
        return full_path

    def resolve_unique_path(self, path: str) -> str:
        """Return ``path``, or the first free ``name (n).ext`` alongside it."""
        if not os.path.lexists(path):
            return path

        directory, filename = os.path.split(path)
        stem, ext = os.path.splitext(filename)
        for counter in itertools.count(1):
            candidate = os.path.join(directory, f"{stem} ({counter}){ext}")
            if not os.path.lexists(candidate):
                self.logger.debug(f"Destination taken, using {candidate}")
                return candidate

    @staticmethod
    def _flatten(values: Mapping[str, str]) -> Dict[str, str]:
        # Separators inside a value must not create folders
        return {key: re.sub(r'[\\/]+', '-', str(value or '')) for key, value in values.items()}
