"""
Import Service - Moves completed downloads into the event library
Selects the payload, names it, transfers it and records the import

Location: services/import_service/import_service.py
Purpose: Singleton service owning the Completed → Importing → Imported/Failed leg
"""

import logging
import os
import sqlite3
import threading
from datetime import datetime
from typing import Any, Dict, Optional

from services.database.events import EventOperations
from services.database.import_history import ImportHistoryOperations, ImportRecord
from services.download_management.queue_manager import QueueManager
from services.download_management.state_machine import QueueStatus, StateMachine

from .candidate_selector import CandidateSelector
from .exceptions import (
    HardlinkUnsupportedError,
    ImportPipelineError,
    LedgerCommitError,
    NotFoundError,
)
from .file_operations import FileOperations, PlatformCapabilities, TransferMode
from .permissions import create_permission_manager
from .release_parser import parse, quality_label

_CLEAR_PENDING = {'pending_source': None, 'pending_destination': None, 'pending_mode': None}


class ImportService:
    """
    Main import service following DatabaseService singleton pattern.

    Features:
    - Exclusive entry into Importing through compare-and-set
    - Write-ahead transfer intent for crash reconciliation
    - Ledger record, queue status and event status committed together
    - Transfer rollback when the commit fails
    - Cleanup only after a committed import
    """

    _instance: Optional['ImportService'] = None
    _lock = threading.Lock()
    _initialized = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, *, database_service=None, queue_manager=None, settings_provider=None,
                 root_folder_service=None, file_naming_service=None, cleanup_manager=None,
                 capabilities: Optional[PlatformCapabilities] = None, logger=None):
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self.logger = logger or logging.getLogger("ImportService.Main")

                    self.capabilities = capabilities or PlatformCapabilities.detect()
                    self.file_ops = FileOperations(self.capabilities)
                    self.permission_manager = create_permission_manager(self.capabilities)
                    self.candidate_selector = CandidateSelector()

                    # Service dependencies (lazy loaded)
                    self._database_service = database_service
                    self._queue_manager = queue_manager
                    self._settings_provider = settings_provider
                    self._root_folder_service = root_folder_service
                    self._file_naming_service = file_naming_service
                    self._cleanup_manager = cleanup_manager
                    self._state_machine = None

                    self._inflight = set()
                    self._inflight_lock = threading.Lock()

                    self.logger.info("ImportService initialized successfully")
                    ImportService._initialized = True

    def _get_database_service(self):
        """Lazy load DatabaseService."""
        if self._database_service is None:
            from services.service_manager import get_database_service
            self._database_service = get_database_service()
        return self._database_service

    def _get_queue_manager(self):
        if self._queue_manager is None:
            self._queue_manager = QueueManager(self._get_database_service().connection_manager)
        return self._queue_manager

    def _get_state_machine(self):
        if self._state_machine is None:
            self._state_machine = StateMachine(self._get_queue_manager())
        return self._state_machine

    def _get_settings_provider(self):
        if self._settings_provider is None:
            from services.service_manager import get_media_settings_provider
            self._settings_provider = get_media_settings_provider()
        return self._settings_provider

    def _get_root_folder_service(self):
        if self._root_folder_service is None:
            from services.media_management.root_folders import RootFolderService
            self._root_folder_service = RootFolderService(self._get_database_service().root_folders)
        return self._root_folder_service

    def _get_file_naming_service(self):
        if self._file_naming_service is None:
            from services.file_naming import FileNamingService
            self._file_naming_service = FileNamingService()
        return self._file_naming_service

    def _get_cleanup_manager(self):
        if self._cleanup_manager is None:
            from services.download_management.cleanup_manager import CleanupManager
            self._cleanup_manager = CleanupManager()
        return self._cleanup_manager

    # ------------------------------------------------------------------
    # Import runs
    # ------------------------------------------------------------------
    def is_importing(self, queue_id: int) -> bool:
        with self._inflight_lock:
            return queue_id in self._inflight

    def import_download(self, queue_id: int) -> Dict[str, Any]:
        """
        Import a Completed queue item into the library.

        Returns:
            Dictionary with ``success``, ``queue_id`` and either
            ``destination`` or ``error``
        """
        with self._inflight_lock:
            if queue_id in self._inflight:
                return {'success': False, 'queue_id': queue_id, 'error': 'Import already in progress'}
            self._inflight.add(queue_id)

        try:
            if not self._get_state_machine().transition(
                queue_id, QueueStatus.IMPORTING, expected_status=QueueStatus.COMPLETED
            ):
                return {'success': False, 'queue_id': queue_id, 'error': 'Queue item is not ready for import'}

            try:
                outcome = self._run_import(queue_id)
            except ImportPipelineError as exc:
                self.logger.warning(f"Import failed for queue item {queue_id}: {exc}")
                self._mark_failed(queue_id, str(exc))
                return {'success': False, 'queue_id': queue_id, 'error': str(exc)}
            except Exception as exc:
                self.logger.exception(f"Unexpected error importing queue item {queue_id}")
                self._mark_failed(queue_id, f"Unexpected error: {exc}")
                return {'success': False, 'queue_id': queue_id, 'error': str(exc)}

            if outcome['cleanup']:
                self._get_cleanup_manager().cleanup_after_import(
                    queue_id, outcome['source'], outcome['payload_path']
                )

            return {'success': True, 'queue_id': queue_id, 'destination': outcome['destination']}
        finally:
            with self._inflight_lock:
                self._inflight.discard(queue_id)

    def _run_import(self, queue_id: int) -> Dict[str, Any]:
        db = self._get_database_service()
        queue_manager = self._get_queue_manager()

        item = queue_manager.get_download(queue_id)
        if not item:
            raise NotFoundError(f"Queue item {queue_id} not found")

        event = db.events.get_event(item['event_id'])
        if not event:
            raise NotFoundError(f"Event {item['event_id']} not found")

        settings = self._get_settings_provider().current()
        mode = TransferMode.from_value(settings.transfer_mode)
        if mode is TransferMode.HARDLINK and not self.capabilities.supports_hardlinks:
            raise HardlinkUnsupportedError("Hardlinks are not supported on this platform")

        payload_path = item.get('output_path')
        source = self.candidate_selector.select(payload_path)
        info = parse(os.path.basename(source))
        size = os.path.getsize(source)

        root = self._get_root_folder_service().select_for_import(
            0 if mode is TransferMode.HARDLINK else size,
            settings.minimum_free_space_bytes,
        )
        destination = self._get_file_naming_service().build_destination(
            root.path, event, info, source, settings
        )

        queue_manager.update_fields(queue_id, {
            'pending_source': source,
            'pending_destination': destination,
            'pending_mode': mode.value,
        })

        self.file_ops.transfer(
            source,
            destination,
            mode,
            minimum_free_bytes=settings.minimum_free_space_bytes,
            skip_free_space_check=settings.skip_free_space_check,
        )

        if settings.set_permissions:
            self.permission_manager.apply(
                destination, settings.file_chmod, settings.chown_user, settings.chown_group
            )

        record = ImportRecord(
            event_id=event['id'],
            queue_item_id=queue_id,
            source_path=source,
            destination_path=destination,
            quality=quality_label(info),
            size=size,
        )
        try:
            self._commit(record)
        except LedgerCommitError:
            self.file_ops.rollback(source, destination, mode)
            raise

        self.logger.info(f"Imported queue item {queue_id} to {destination}")
        return {
            'source': source,
            'destination': destination,
            'payload_path': payload_path,
            'cleanup': settings.remove_completed_downloads,
        }

    def _commit(self, record: ImportRecord) -> None:
        """Write the ledger record and advance queue item and event in one transaction."""
        connection_manager = self._get_database_service().connection_manager
        now = datetime.now().isoformat()
        try:
            with connection_manager.transaction() as cursor:
                ImportHistoryOperations.insert(cursor, record)
                updates = dict(_CLEAR_PENDING, imported_at=now)
                if not QueueManager.compare_and_set_in(
                    cursor, record.queue_item_id, QueueStatus.IMPORTING, QueueStatus.IMPORTED, updates
                ):
                    raise LedgerCommitError(f"Queue item {record.queue_item_id} is no longer Importing")
                if EventOperations.mark_downloaded(cursor, record.event_id) != 1:
                    raise LedgerCommitError(f"Event {record.event_id} not found")
        except sqlite3.Error as exc:
            raise LedgerCommitError(f"Failed to record import: {exc}") from exc

    def _mark_failed(self, queue_id: int, message: str) -> None:
        updates = dict(_CLEAR_PENDING, error_message=message)
        if not self._get_state_machine().transition(
            queue_id, QueueStatus.FAILED, expected_status=QueueStatus.IMPORTING, updates=updates
        ):
            self.logger.error(f"Could not mark queue item {queue_id} as Failed")

    # ------------------------------------------------------------------
    # Crash reconciliation
    # ------------------------------------------------------------------
    def reconcile_interrupted_imports(self) -> Dict[str, int]:
        """
        Resolve items left in Importing by a previous process.

        Returns:
            Counts of items per outcome: ``imported``, ``completed``, ``requeued``, ``failed``
        """
        summary = {'imported': 0, 'completed': 0, 'requeued': 0, 'failed': 0}
        queue_manager = self._get_queue_manager()

        for item in queue_manager.get_queue([QueueStatus.IMPORTING]):
            queue_id = item['id']
            if self.is_importing(queue_id):
                continue
            try:
                outcome = self._reconcile_item(item)
            except (ImportPipelineError, OSError) as exc:
                self.logger.error(f"Reconciliation failed for queue item {queue_id}: {exc}")
                self._mark_failed(queue_id, f"Interrupted import could not be recovered: {exc}")
                outcome = 'failed'
            summary[outcome] += 1

        if any(summary.values()):
            self.logger.info("Reconciled interrupted imports", extra=summary)
        return summary

    def _reconcile_item(self, item: Dict[str, Any]) -> str:
        queue_id = item['id']
        db = self._get_database_service()

        if db.import_history.get_approved_record(queue_id):
            self._finish_recorded_import(item)
            self.logger.info(f"Queue item {queue_id} already recorded; marked Imported")
            return 'imported'

        source = item.get('pending_source')
        destination = item.get('pending_destination')
        if not destination:
            self._requeue(queue_id)
            return 'requeued'

        if os.path.exists(destination) and source and not os.path.exists(source):
            try:
                self._commit(ImportRecord(
                    event_id=item['event_id'],
                    queue_item_id=queue_id,
                    source_path=source,
                    destination_path=destination,
                    quality=quality_label(parse(os.path.basename(source))),
                    size=os.path.getsize(destination),
                ))
            except LedgerCommitError:
                # The destination is the only copy; put it back where the download left it
                self.file_ops.rollback(source, destination, TransferMode.MOVE)
                raise
            self.logger.info(f"Completed interrupted import of queue item {queue_id}")
            return 'completed'

        if os.path.exists(destination):
            os.remove(destination)
            self.logger.info(f"Removed partial import {destination}")

        self._requeue(queue_id)
        return 'requeued'

    def _finish_recorded_import(self, item: Dict[str, Any]) -> None:
        connection_manager = self._get_database_service().connection_manager
        with connection_manager.transaction() as cursor:
            QueueManager.compare_and_set_in(
                cursor, item['id'], QueueStatus.IMPORTING, QueueStatus.IMPORTED,
                dict(_CLEAR_PENDING, imported_at=datetime.now().isoformat()),
            )
            EventOperations.mark_downloaded(cursor, item['event_id'])

    def _requeue(self, queue_id: int) -> None:
        self._get_state_machine().transition(
            queue_id, QueueStatus.COMPLETED, expected_status=QueueStatus.IMPORTING, updates=dict(_CLEAR_PENDING)
        )
        self.logger.info(f"Queue item {queue_id} returned to Completed for re-import")
