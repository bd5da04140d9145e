"""Persistence for configured library root folders and their cached measurements."""

import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from .error_handling import error_handler


class RootFolderOperations:
    """Handles the root_folders table"""

    def __init__(self, connection_manager):
        self.connection_manager = connection_manager
        self.logger = logging.getLogger("DatabaseService.RootFolders")

    @error_handler.with_retry()
    def add_root_folder(self, path: str) -> Optional[int]:
        """Register a root folder; returns the existing id when already present."""
        conn, cursor = self.connection_manager.connect_db()
        try:
            try:
                cursor.execute("INSERT INTO root_folders (path) VALUES (?)", (path,))
                conn.commit()
                self.logger.info(f"Added root folder: {path}")
                return cursor.lastrowid
            except sqlite3.IntegrityError:
                conn.rollback()
                cursor.execute("SELECT id FROM root_folders WHERE path = ?", (path,))
                row = cursor.fetchone()
                return row['id'] if row else None
        finally:
            conn.close()

    @error_handler.with_retry()
    def remove_root_folder(self, folder_id: int) -> bool:
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute("DELETE FROM root_folders WHERE id = ?", (folder_id,))
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()

    def get_root_folders(self) -> List[Dict[str, Any]]:
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute("SELECT * FROM root_folders ORDER BY id")
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    @error_handler.with_retry()
    def update_measurement(self, folder_id: int, accessible: bool,
                           free_space: Optional[int], total_space: Optional[int]) -> None:
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute(
                """
                    UPDATE root_folders
                    SET accessible = ?, free_space = ?, total_space = ?, last_checked = ?
                    WHERE id = ?
                """,
                (1 if accessible else 0, free_space, total_space, datetime.now().isoformat(), folder_id),
            )
            conn.commit()
        finally:
            conn.close()
