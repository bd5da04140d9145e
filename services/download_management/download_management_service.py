"""
Download Management Service
===========================

Main singleton service coordinating the download workflow:
Queued → Downloading ⇄ Paused → Completed → Importing → Imported | Failed

Features:
- One queue item per fetch, owned by a named download client
- Per-client polling on a background monitor thread
- Automatic import once a client reports the payload complete
- Crash reconciliation of interrupted imports at startup
- Pause/resume/remove proxied to the owning client

Download Clients:
- qBittorrent, Transmission (torrents/magnets)
- SABnzbd (usenet/NZB)
"""

import threading
from typing import Any, Dict, List, Optional

from utils.logger import get_module_logger

logger = get_module_logger("DownloadManagementService")


def _coerce_bool(value, default):
    if isinstance(value, bool):
        return value
    if value is None or value == '':
        return default
    return str(value).strip().lower() in {'true', '1', 'yes', 'on'}


def _coerce_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class DownloadManagementService:
    """
    Main download management service following DatabaseService singleton pattern.

    Coordinates:
    - Queue management
    - State machine transitions
    - Client polling through the QueueSynchronizer
    - Import triggering and reconciliation
    """

    _instance: Optional['DownloadManagementService'] = None
    _lock = threading.Lock()
    _initialized = False

    MONITOR_TICK_SECONDS = 1.0

    def __new__(cls, *args, **kwargs):
        """Singleton pattern - only one instance allowed."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, *, database_service=None, config_service=None, client_selector=None,
                 import_service=None):
        """Initialize service components (only once)."""
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    logger.debug("Initializing DownloadManagementService...")

                    from .client_selector import ClientSelector
                    from .queue_manager import QueueManager
                    from .state_machine import StateMachine

                    # Service dependencies (lazy loaded)
                    self._database_service = database_service
                    self._config_service = config_service
                    self._import_service = import_service

                    self.queue_manager = QueueManager(self._get_database_service().connection_manager)
                    self.state_machine = StateMachine(self.queue_manager)
                    self.client_selector = client_selector or ClientSelector(self._get_config_service())
                    self.synchronizer = None

                    # Configuration
                    self.enabled = True
                    self.polling_interval = 30
                    self.max_poll_workers = 4
                    self.max_import_workers = 2
                    self.monitor_running = False
                    self.monitor_thread = None
                    self._monitor_lock = threading.Lock()
                    self._stop_event = threading.Event()

                    self._initialize_service()

                    DownloadManagementService._initialized = True
                    logger.debug("Download management service ready")

    def _initialize_service(self):
        """Initialize the download management service."""
        try:
            self._load_configuration()
            self.synchronizer = self._build_synchronizer()
        except Exception as e:
            logger.error(f"Error initializing download management service: {e}")
            raise

    def _load_configuration(self):
        """Load [download_management] settings from config.txt"""
        dm_config = self._get_config_service().get_section('download_management')
        self.enabled = _coerce_bool(dm_config.get('enabled'), self.enabled)
        self.polling_interval = max(1, _coerce_int(dm_config.get('poll_interval'), self.polling_interval))
        self.max_poll_workers = max(1, _coerce_int(dm_config.get('max_poll_workers'), self.max_poll_workers))
        self.max_import_workers = max(1, _coerce_int(dm_config.get('max_import_workers'), self.max_import_workers))
        logger.debug("Loaded download management configuration", extra={
            "enabled": self.enabled,
            "poll_interval": self.polling_interval,
            "max_poll_workers": self.max_poll_workers,
            "max_import_workers": self.max_import_workers,
        })

    def _build_synchronizer(self):
        from .queue_synchronizer import QueueSynchronizer

        return QueueSynchronizer(
            self.queue_manager,
            self.client_selector,
            import_submitter=lambda queue_id: self._get_import_service().import_download(queue_id),
            state_machine=self.state_machine,
            default_poll_interval=self.polling_interval,
            max_poll_workers=self.max_poll_workers,
            max_import_workers=self.max_import_workers,
        )

    def reload_configuration(self) -> bool:
        """Re-read settings; the monitor restarts with new intervals and pool sizes."""
        try:
            was_running = self.monitor_running
            if was_running:
                self.stop_monitoring()
            self.client_selector.clear_cache()
            self._load_configuration()
            self.synchronizer = self._build_synchronizer()
            if was_running and self.enabled:
                self.start_monitoring()
            return True
        except Exception as e:
            logger.error(f"Error reloading download management configuration: {e}")
            return False

    def _get_database_service(self):
        """Lazy load DatabaseService."""
        if self._database_service is None:
            from services.service_manager import get_database_service
            self._database_service = get_database_service()
        return self._database_service

    def _get_config_service(self):
        """Lazy load ConfigService."""
        if self._config_service is None:
            from services.service_manager import get_config_service
            self._config_service = get_config_service()
        return self._config_service

    def _get_import_service(self):
        """Lazy load ImportService."""
        if self._import_service is None:
            from services.import_service.import_service import ImportService
            self._import_service = ImportService(database_service=self._get_database_service())
        return self._import_service

    # ============================================================================
    # PUBLIC API - Queue Management
    # ============================================================================

    def add_to_queue(self, event_id: int, source_uri: str, client_name: Optional[str] = None,
                     title: Optional[str] = None, category: Optional[str] = None) -> Dict[str, Any]:
        """
        Hand a source locator to a download client and track it in the queue.

        Args:
            event_id: Library event the download belongs to
            source_uri: Magnet link, .torrent URL or .nzb URL
            client_name: Configured client to use; chosen from the URI when omitted
            title: Display title (defaults to the event title)
            category: Client category/label override

        Returns:
            {'success': bool, 'queue_id': int, 'message': str}
        """
        try:
            if not source_uri:
                return {'success': False, 'message': 'source_uri is required'}

            event = self._get_database_service().get_event(event_id)
            if not event:
                return {'success': False, 'message': f'Event {event_id} not found'}

            client_name = client_name or self.client_selector.select_client(source_uri)
            if not client_name:
                return {'success': False, 'message': 'No download client available for this source'}

            client = self.client_selector.get_client(client_name)
            if client is None:
                return {'success': False, 'message': f'Download client {client_name} is not configured'}

            handle = client.enqueue(source_uri, category)
            if not handle:
                return {
                    'success': False,
                    'message': client.get_last_error() or f'{client_name} did not accept the download'
                }

            queue_id = self.queue_manager.add_to_queue(
                event_id,
                client_name,
                source_uri,
                download_id=handle,
                title=title or event.get('title'),
                category=category or client.config.category or None,
            )
            logger.info(f"Queued event {event_id} on {client_name} (queue item {queue_id})")
            return {'success': True, 'queue_id': queue_id, 'message': 'Added to queue'}

        except Exception as e:
            logger.error(f"Error adding to queue: {e}")
            return {'success': False, 'message': str(e)}

    def get_queue(self, status_filter: Optional[List[str]] = None,
                  client_name: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.queue_manager.get_queue(status_filter, client_name)

    def get_download(self, queue_id: int) -> Optional[Dict[str, Any]]:
        return self.queue_manager.get_download(queue_id)

    def pause_download(self, queue_id: int) -> Dict[str, Any]:
        """
        Pause a queued or downloading item in its client.

        Returns:
            {'success': bool, 'message': str}
        """
        from .state_machine import QueueStatus

        download = self.queue_manager.get_download(queue_id)
        if not download:
            return {'success': False, 'message': 'Download not found'}

        if not self.state_machine.can_pause(download['status']):
            return {'success': False, 'message': f"Cannot pause download in {download['status']} state"}

        client = self.client_selector.get_client(download['download_client'])
        if client is None or not client.pause(download['download_id']):
            return {'success': False, 'message': 'Download client did not pause the download'}

        self.state_machine.transition(queue_id, QueueStatus.PAUSED, expected_status=download['status'])
        logger.info(f"Paused queue item {queue_id}")
        return {'success': True, 'message': 'Download paused'}

    def resume_download(self, queue_id: int) -> Dict[str, Any]:
        from .state_machine import QueueStatus

        download = self.queue_manager.get_download(queue_id)
        if not download:
            return {'success': False, 'message': 'Download not found'}

        if not self.state_machine.can_resume(download['status']):
            return {'success': False, 'message': f"Cannot resume download in {download['status']} state"}

        client = self.client_selector.get_client(download['download_client'])
        if client is None or not client.resume(download['download_id']):
            return {'success': False, 'message': 'Download client did not resume the download'}

        self.state_machine.transition(queue_id, QueueStatus.DOWNLOADING, expected_status=QueueStatus.PAUSED)
        logger.info(f"Resumed queue item {queue_id}")
        return {'success': True, 'message': 'Download resumed'}

    def remove_download(self, queue_id: int, delete_files: bool = False) -> Dict[str, Any]:
        """
        Remove a queue item that is neither importing nor finished.

        The download is removed from its client first; the queue row is only
        deleted when the client confirmed.
        """
        download = self.queue_manager.get_download(queue_id)
        if not download:
            return {'success': False, 'message': 'Download not found'}

        status = download['status']
        if self.state_machine.is_terminal(status) or not self.state_machine.can_remove(status):
            return {'success': False, 'message': f"Cannot remove download in {status} state"}

        if download.get('download_id'):
            client = self.client_selector.get_client(download['download_client'])
            if client is None or not client.remove(download['download_id'], delete_files):
                return {'success': False, 'message': 'Download client did not remove the download'}

        if not self.queue_manager.delete_download(queue_id):
            return {'success': False, 'message': 'Queue item changed state; not removed'}

        logger.info(f"Removed queue item {queue_id}")
        return {'success': True, 'message': 'Download removed'}

    def import_now(self, queue_id: int) -> Dict[str, Any]:
        """Run the import for a Completed item on the calling thread."""
        return self._get_import_service().import_download(queue_id)

    def get_history(self, event_id: Optional[int] = None, limit: int = 100) -> List[Dict[str, Any]]:
        return self._get_database_service().get_import_history(event_id, limit)

    def test_client(self, client_name: str) -> Dict[str, Any]:
        client = self.client_selector.get_client(client_name)
        if client is None:
            return {'success': False, 'version': None, 'error': f'Unknown client: {client_name}'}
        return client.test_connection()

    def poll_now(self, client_name: Optional[str] = None) -> Dict[str, Any]:
        """Poll one client (or every enabled client) immediately on the calling thread."""
        names = [client_name] if client_name else list(self.client_selector.get_client_configs())
        return {name: self.synchronizer.poll_client(name) for name in names}

    # ============================================================================
    # MONITORING
    # ============================================================================

    def start_monitoring(self):
        """Reconcile interrupted imports, then start the monitor thread."""
        with self._monitor_lock:
            if self.monitor_running:
                logger.debug("Download monitor thread already running")
                return

            try:
                self._get_import_service().reconcile_interrupted_imports()
            except Exception:
                logger.exception("Failed to reconcile interrupted imports")

            logger.debug("Starting download monitor thread...")
            self._stop_event.clear()
            self.monitor_running = True
            self.monitor_thread = threading.Thread(
                target=self._monitor_loop,
                name="DownloadMonitor",
                daemon=True
            )
            self.monitor_thread.start()

    def stop_monitoring(self):
        """Stop the download monitoring thread."""
        logger.debug("Stopping download monitor thread...")
        self.monitor_running = False
        self._stop_event.set()
        if self.monitor_thread:
            self.monitor_thread.join(timeout=5)
            self.monitor_thread = None
        if self.synchronizer:
            self.synchronizer.shutdown(wait=False)

    @property
    def monitoring_active(self) -> bool:
        """Expose monitor thread state for status reporting endpoints."""
        return self.monitor_running

    def _monitor_loop(self):
        """Main monitoring loop - runs until stop_monitoring()."""
        logger.debug("Download monitor thread started")

        while self.monitor_running:
            try:
                self.synchronizer.run_due_polls()
                self._stop_event.wait(self.MONITOR_TICK_SECONDS)
            except Exception:
                logger.exception("Error in download monitor loop")
                self._stop_event.wait(5)  # Back off on error

        logger.debug("Download monitor thread stopped")

    def get_service_status(self) -> Dict[str, Any]:
        """Get service status and statistics."""
        return {
            'monitor_running': self.monitor_running,
            'enabled': self.enabled,
            'polling_interval': self.polling_interval,
            'queue_statistics': self.queue_manager.get_queue_statistics(),
            'clients': self.client_selector.list_clients(),
        }
