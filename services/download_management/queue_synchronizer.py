"""
Queue Synchronizer
==================

Polls each configured download client and folds its answers into the
queue through the state machine.

- Every client has its own poll interval
- A poll that finds the previous poll for the same client still running
  is skipped, never queued behind it
- Polls run on one thread pool, import runs on another
- A client that does not answer leaves its items untouched until the next poll
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from services.download_clients import BaseDownloadClient, DownloadStatus
from utils.logger import get_module_logger

from .path_mapper import RemotePathMapper
from .state_machine import QueueStatus, StateMachine

logger = get_module_logger("DownloadManagement.QueueSynchronizer")


class QueueSynchronizer:
    """Keeps queue items in step with their download clients."""

    def __init__(self, queue_manager, client_selector, import_submitter: Callable[[int], Any],
                 state_machine: Optional[StateMachine] = None, default_poll_interval: int = 30,
                 max_poll_workers: int = 4, max_import_workers: int = 2,
                 clock: Callable[[], float] = time.monotonic):
        self.logger = logger
        self.queue_manager = queue_manager
        self.client_selector = client_selector
        self.state_machine = state_machine or StateMachine(queue_manager)
        self.import_submitter = import_submitter
        self.default_poll_interval = max(int(default_poll_interval), 1)
        self.max_poll_workers = max(int(max_poll_workers), 1)
        self.max_import_workers = max(int(max_import_workers), 1)
        self._clock = clock

        self._poll_executor: Optional[ThreadPoolExecutor] = None
        self._import_executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

        self._client_locks: Dict[str, threading.Lock] = {}
        self._client_locks_guard = threading.Lock()
        self._last_poll: Dict[str, float] = {}
        self._import_futures: Dict[int, Future] = {}
        self._import_futures_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def run_due_polls(self) -> Dict[str, Future]:
        """Submit a poll for every enabled client whose interval has elapsed."""
        submitted: Dict[str, Future] = {}
        now = self._clock()
        for name, config in self.client_selector.get_client_configs().items():
            interval = config.poll_interval or self.default_poll_interval
            last = self._last_poll.get(name)
            if last is not None and now - last < interval:
                continue
            self._last_poll[name] = now
            submitted[name] = self._ensure_poll_executor().submit(self.poll_client, name)
        return submitted

    def poll_client(self, client_name: str) -> Optional[Dict[str, int]]:
        """
        Synchronize every pollable item owned by ``client_name``.

        Returns:
            Per-outcome counts, or None when a poll for this client was already running
        """
        lock = self._get_client_lock(client_name)
        if not lock.acquire(blocking=False):
            self.logger.debug("Previous poll for %s still running; skipping", client_name)
            return None
        try:
            return self._sync_client(client_name)
        except Exception:
            self.logger.exception("Error polling download client %s", client_name)
            return {'updated': 0, 'unchanged': 0, 'unreachable': 0, 'imports': 0}
        finally:
            lock.release()

    def _get_client_lock(self, client_name: str) -> threading.Lock:
        with self._client_locks_guard:
            lock = self._client_locks.get(client_name)
            if lock is None:
                lock = self._client_locks[client_name] = threading.Lock()
            return lock

    def _sync_client(self, client_name: str) -> Dict[str, int]:
        summary = {'updated': 0, 'unchanged': 0, 'unreachable': 0, 'imports': 0}
        items = self.queue_manager.get_pollable_items(client_name)
        if not items:
            return summary

        client = self.client_selector.get_client(client_name)
        if client is None:
            self.logger.warning("Download client %s is not configured; %d item(s) waiting", client_name, len(items))
            summary['unreachable'] = len(items)
            return summary

        mapper = RemotePathMapper.for_client(client.config)
        for item in items:
            if item['status'] == QueueStatus.COMPLETED.value:
                if self.submit_import(item['id']):
                    summary['imports'] += 1
                continue

            new_status = self._refresh_item(client, mapper, item)
            if new_status is None:
                summary['unreachable'] += 1
            elif new_status.value == item['status']:
                summary['unchanged'] += 1
            else:
                summary['updated'] += 1
                if new_status is QueueStatus.COMPLETED and self.submit_import(item['id']):
                    summary['imports'] += 1

        return summary

    def _refresh_item(self, client: BaseDownloadClient, mapper: RemotePathMapper,
                      item: Dict[str, Any]) -> Optional[QueueStatus]:
        handle = item.get('download_id')
        if not handle:
            self.logger.warning("Queue item %s has no client handle", item['id'])
            return None

        status = client.status(handle)
        if status is None:
            return None
        return self.apply_status(item, status, mapper)

    def apply_status(self, item: Dict[str, Any], status: DownloadStatus,
                     mapper: Optional[RemotePathMapper] = None) -> QueueStatus:
        """Translate one client answer into a queue transition. Returns the resulting status."""
        current = QueueStatus(item['status'])
        target = QueueStatus.from_download_state(status.state)
        progress = round(float(status.progress or 0.0), 2)

        if target == current or not self.state_machine.is_valid_transition(current, target):
            if target != current:
                self.logger.debug(
                    "Ignoring %s → %s for queue item %s", current.value, target.value, item['id']
                )
            if progress != item.get('progress'):
                self.queue_manager.update_fields(item['id'], {'progress': progress})
            return current

        updates: Dict[str, Any] = {'progress': progress}
        if target is QueueStatus.COMPLETED:
            updates['progress'] = 100.0
            mapper = mapper or RemotePathMapper()
            updates['output_path'] = mapper.map_remote_to_local(status.content_path)
        elif target is QueueStatus.FAILED:
            updates['error_message'] = status.message or f"Download failed in client ({status.raw_state})"

        if self.state_machine.transition(item['id'], target, expected_status=current, updates=updates):
            self.logger.info("Queue item %s: %s → %s", item['id'], current.value, target.value)
            return target
        return current

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------
    def submit_import(self, queue_id: int) -> bool:
        """Queue an import run unless one is already pending for this item."""
        with self._import_futures_lock:
            pending = self._import_futures.get(queue_id)
            if pending is not None and not pending.done():
                return False
            future = self._ensure_import_executor().submit(self._run_import, queue_id)
            self._import_futures[queue_id] = future
            return True

    def _run_import(self, queue_id: int):
        try:
            return self.import_submitter(queue_id)
        except Exception:
            self.logger.exception("Import run for queue item %s raised", queue_id)
            return None
        finally:
            with self._import_futures_lock:
                self._import_futures.pop(queue_id, None)

    # ------------------------------------------------------------------
    # Executors
    # ------------------------------------------------------------------
    def _ensure_poll_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._poll_executor is None:
                self._poll_executor = ThreadPoolExecutor(
                    max_workers=self.max_poll_workers, thread_name_prefix="QueuePoll"
                )
            return self._poll_executor

    def _ensure_import_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._import_executor is None:
                self._import_executor = ThreadPoolExecutor(
                    max_workers=self.max_import_workers, thread_name_prefix="QueueImport"
                )
            return self._import_executor

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            executors = (self._poll_executor, self._import_executor)
            self._poll_executor = None
            self._import_executor = None
        for executor in executors:
            if executor is not None:
                executor.shutdown(wait=wait)
        self._last_poll.clear()
