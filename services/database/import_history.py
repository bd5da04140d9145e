"""
Module Name: import_history.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Read and append operations for the import ledger. Records are never
    updated or deleted; the schema enforces this with triggers, and only one
    Approved record may reference a queue item.

Location:
    /services/database/import_history.py

"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ImportDecision(Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class ImportRecord:
    event_id: int
    queue_item_id: int
    source_path: str
    destination_path: str
    quality: str
    size: int
    decision: ImportDecision = ImportDecision.APPROVED
    imported_at: Optional[str] = None


class ImportHistoryOperations:
    """Handles the append-only import_history table"""

    def __init__(self, connection_manager):
        self.connection_manager = connection_manager
        self.logger = logging.getLogger("DatabaseService.ImportHistory")

    @staticmethod
    def insert(cursor, record: ImportRecord) -> int:
        """Append a record inside an open transaction and return its id."""
        cursor.execute(
            """
                INSERT INTO import_history (
                    event_id, queue_item_id, source_path, destination_path,
                    quality, size, decision, imported_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.event_id,
                record.queue_item_id,
                record.source_path,
                record.destination_path,
                record.quality,
                record.size,
                record.decision.value,
                record.imported_at or datetime.now().isoformat(),
            ),
        )
        return cursor.lastrowid

    def get_history(self, event_id: Optional[int] = None, limit: int = 100) -> List[Dict[str, Any]]:
        conn, cursor = self.connection_manager.connect_db()
        try:
            if event_id is not None:
                cursor.execute(
                    "SELECT * FROM import_history WHERE event_id = ? ORDER BY id DESC LIMIT ?",
                    (event_id, limit),
                )
            else:
                cursor.execute("SELECT * FROM import_history ORDER BY id DESC LIMIT ?", (limit,))
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_records_for_queue_item(self, queue_item_id: int) -> List[Dict[str, Any]]:
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute(
                "SELECT * FROM import_history WHERE queue_item_id = ? ORDER BY id",
                (queue_item_id,),
            )
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_approved_record(self, queue_item_id: int) -> Optional[Dict[str, Any]]:
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute(
                "SELECT * FROM import_history WHERE queue_item_id = ? AND decision = ?",
                (queue_item_id, ImportDecision.APPROVED.value),
            )
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            conn.close()
