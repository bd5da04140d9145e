"""
Module Name: candidate_selector.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Picks the main feature out of a completed download. Files are walked in
    sorted order so the result is stable for an unchanged directory; the
    largest allowed media file wins and ties go to the first one seen.

Location:
    /services/import_service/candidate_selector.py

"""

import os
from typing import Iterable, List, Optional, Tuple

from utils.logger import get_module_logger

from .exceptions import NoMediaFoundError, NotFoundError

_LOGGER = get_module_logger("Service.Import.CandidateSelector")

VIDEO_EXTENSIONS = frozenset({
    '.mkv', '.mp4', '.avi', '.mov', '.wmv', '.flv', '.webm', '.m4v', '.ts',
})


class CandidateSelector:
    """Selects the payload file to import from a file or directory."""

    def __init__(self, extensions: Optional[Iterable[str]] = None, *, logger=None):
        self.extensions = frozenset(ext.lower() for ext in (extensions or VIDEO_EXTENSIONS))
        self.logger = logger or _LOGGER

    def is_media_file(self, path: str) -> bool:
        return os.path.splitext(path)[1].lower() in self.extensions

    def list_candidates(self, path: str) -> List[Tuple[str, int]]:
        """Return ``(path, size)`` for every allowed file, in walk order."""
        if os.path.isfile(path):
            return [(path, os.path.getsize(path))] if self.is_media_file(path) else []

        candidates: List[Tuple[str, int]] = []
        for root, dirs, files in os.walk(path):
            dirs.sort()
            for filename in sorted(files):
                full_path = os.path.join(root, filename)
                if not self.is_media_file(full_path):
                    continue
                try:
                    candidates.append((full_path, os.path.getsize(full_path)))
                except OSError as exc:
                    self.logger.warning("Skipping unreadable file %s: %s", full_path, exc)
        return candidates

    def select(self, path: str) -> str:
        """
        Choose the file to import.

        Raises:
            NotFoundError: ``path`` does not exist.
            NoMediaFoundError: no allowed media file was found.
        """
        if not path or not os.path.exists(path):
            raise NotFoundError(f"Download path does not exist: {path}")

        best_path: Optional[str] = None
        best_size = -1
        for candidate, size in self.list_candidates(path):
            if size > best_size:
                best_path, best_size = candidate, size

        if best_path is None:
            raise NoMediaFoundError(f"No video files found in {path}")

        self.logger.debug("Selected %s (%d bytes) from %s", best_path, best_size, path)
        return best_path
