"""
Cleanup Manager
===============

Removes leftovers of a download once its import has been committed.

Features:
- Deletes the imported source file when it is still present
- Removes the payload directory only when no file remains at any depth
- Never raises; problems are logged and the import stays committed
"""

import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger("DownloadManagement.CleanupManager")


class CleanupManager:
    """
    Manages file cleanup after a successful import.

    Handles:
    - Source file removal (copy and hardlink modes leave it behind)
    - Empty payload folder removal
    """

    def __init__(self):
        """Initialize cleanup manager."""
        self.logger = logging.getLogger("DownloadManagement.CleanupManager")

    def cleanup_after_import(self, queue_id: int, source_file: Optional[str],
                             payload_path: Optional[str]) -> Dict[str, Any]:
        """
        Clean up files after successful import.

        Args:
            queue_id: Queue item ID (for logging)
            source_file: The payload file that was imported
            payload_path: Download location reported by the client

        Returns:
            Summary with ``source_removed`` and ``directory_removed`` flags
        """
        result = {'source_removed': False, 'directory_removed': False}

        if source_file and os.path.isfile(source_file):
            try:
                os.remove(source_file)
                result['source_removed'] = True
                self.logger.debug(f"Deleted imported source file: {source_file}")
            except OSError as e:
                self.logger.warning(f"Failed to delete source file {source_file} for queue item {queue_id}: {e}")

        if payload_path and os.path.isdir(payload_path):
            result['directory_removed'] = self.remove_directory_if_empty(payload_path)

        return result

    def remove_directory_if_empty(self, directory: str) -> bool:
        """Remove ``directory`` and its subfolders only when they hold no files."""
        if self.contains_files(directory):
            self.logger.debug(f"Keeping {directory}; it still contains files")
            return False

        try:
            # rmdir refuses non-empty folders, so a file created meanwhile survives
            for root, _dirs, _files in os.walk(directory, topdown=False):
                os.rmdir(root)
            self.logger.debug(f"Removed empty download folder: {directory}")
            return True
        except OSError as e:
            self.logger.warning(f"Failed to remove download folder {directory}: {e}")
            return False

    @staticmethod
    def contains_files(directory: str) -> bool:
        for _root, _dirs, files in os.walk(directory):
            if files:
                return True
        return False
