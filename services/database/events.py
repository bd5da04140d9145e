"""Library event operations (the items the pipeline imports into)."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .error_handling import error_handler

EVENT_STATUS_WANTED = 'Wanted'
EVENT_STATUS_DOWNLOADED = 'Downloaded'


class EventOperations:
    """Handles all event-related database operations"""
    
    def __init__(self, connection_manager):
        self.connection_manager = connection_manager
        self.logger = logging.getLogger("DatabaseService.Events")
    
    @error_handler.with_retry()
    def add_event(self, title: str, event_date: Optional[str] = None,
                  organization: Optional[str] = None, status: str = EVENT_STATUS_WANTED) -> int:
        """Insert an event and return its id."""
        conn, cursor = self.connection_manager.connect_db()
        try:
            now = datetime.now().isoformat()
            cursor.execute(
                """
                    INSERT INTO events (title, organization, event_date, status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """,
                (title, organization, event_date, status, now, now),
            )
            conn.commit()
            self.logger.info(f"Added event: {title}")
            return cursor.lastrowid
        finally:
            conn.close()
    
    def get_event(self, event_id: int) -> Optional[Dict[str, Any]]:
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute("SELECT * FROM events WHERE id = ?", (event_id,))
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            conn.close()
    
    def get_all_events(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        conn, cursor = self.connection_manager.connect_db()
        try:
            if status:
                cursor.execute("SELECT * FROM events WHERE status = ? ORDER BY event_date DESC", (status,))
            else:
                cursor.execute("SELECT * FROM events ORDER BY event_date DESC")
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()
    
    @error_handler.with_retry()
    def update_event_status(self, event_id: int, new_status: str) -> bool:
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute(
                "UPDATE events SET status = ?, updated_at = ? WHERE id = ?",
                (new_status, datetime.now().isoformat(), event_id),
            )
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()
    
    @staticmethod
    def mark_downloaded(cursor, event_id: int) -> int:
        """Advance an event to Downloaded inside an open transaction; returns rowcount."""
        cursor.execute(
            "UPDATE events SET status = ?, updated_at = ? WHERE id = ?",
            (EVENT_STATUS_DOWNLOADED, datetime.now().isoformat(), event_id),
        )
        return cursor.rowcount
