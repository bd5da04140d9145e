"""
Module Name: sanitizer.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Sanitizes folder and file names for cross-platform compatibility.
    Characters illegal on common filesystems are either replaced with a
    readable substitute or dropped, depending on configuration.

Location:
    /services/file_naming/sanitizer.py

"""

import os
import re
import unicodedata

from utils.logger import get_module_logger

_LOGGER = get_module_logger("Service.FileNaming.Sanitizer")


class PathSanitizer:
    """
    Sanitizes single path components (one folder or one filename).

    Features:
    - Illegal character replacement or removal
    - Unicode normalization
    - Windows reserved name protection
    - Component length limits that keep the extension
    """

    # Characters that cause issues as whitespace inside names
    PROBLEMATIC_CHARS = {
        '\t': ' ',
        '\n': ' ',
        '\r': ' ',
    }

    # Substitutes used when replace_illegal_characters is enabled
    ILLEGAL_REPLACEMENTS = {
        ':': ' -',
        '"': "'",
        '<': '[',
        '>': ']',
        '|': '-',
        '?': '',
        '*': '',
        '\\': '-',
        '/': '-',
    }

    WINDOWS_RESERVED_NAMES = {
        'CON', 'PRN', 'AUX', 'NUL',
        'COM1', 'COM2', 'COM3', 'COM4', 'COM5', 'COM6', 'COM7', 'COM8', 'COM9',
        'LPT1', 'LPT2', 'LPT3', 'LPT4', 'LPT5', 'LPT6', 'LPT7', 'LPT8', 'LPT9'
    }

    # Maximum filename length on most filesystems (ext4, XFS, NTFS)
    MAX_COMPONENT_LENGTH = 255

    def __init__(self, replace_illegal_characters: bool = True, *, logger=None):
        """
        Args:
            replace_illegal_characters: Substitute illegal characters with a
                readable equivalent instead of removing them.
        """
        self.logger = logger or _LOGGER
        self.replace_illegal_characters = replace_illegal_characters

    def sanitize_path_component(self, component: str) -> str:
        """Sanitize one folder or file name. Never returns an empty string."""
        if not component or not component.strip():
            return 'unknown'

        component = unicodedata.normalize('NFC', component)

        for problematic, replacement in self.PROBLEMATIC_CHARS.items():
            component = component.replace(problematic, replacement)

        for illegal, replacement in self.ILLEGAL_REPLACEMENTS.items():
            component = component.replace(
                illegal, replacement if self.replace_illegal_characters else ''
            )

        # Remaining control characters and null bytes
        component = ''.join(char for char in component if ord(char) >= 32)

        component = re.sub(r'\s+', ' ', component)

        # Leading dots hide files; trailing dots and spaces break Windows shares
        component = component.strip().strip('.').strip()

        if component.upper() in self.WINDOWS_RESERVED_NAMES:
            component = f"_{component}"

        if not component:
            component = 'unknown'

        if len(component) > self.MAX_COMPONENT_LENGTH:
            component = component[:self.MAX_COMPONENT_LENGTH].rstrip()
            self.logger.debug(f"Truncated component to {self.MAX_COMPONENT_LENGTH} chars")

        return component

    def sanitize_filename(self, stem: str, extension: str = '') -> str:
        """
        Sanitize a filename stem and attach ``extension`` (with its dot).

        The stem is shortened when needed so the extension always survives.
        """
        extension = extension or ''
        if extension and not extension.startswith('.'):
            extension = f'.{extension}'

        name = self.sanitize_path_component(stem)
        max_stem = self.MAX_COMPONENT_LENGTH - len(extension)
        if len(name) > max_stem:
            name = name[:max_stem].rstrip()
        return f"{name}{extension.lower()}"

    def sanitize_relative_path(self, relative_path: str) -> str:
        """Sanitize every component of a relative path; traversal segments are dropped."""
        parts = re.split(r'[\\/]+', relative_path or '')
        components = [self.sanitize_path_component(part) for part in parts
                      if part.strip() and part.strip() not in ('.', '..')]
        return os.path.join(*components) if components else ''
