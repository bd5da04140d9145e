import threading
from unittest.mock import MagicMock

import pytest

from services.download_clients import DownloadClientConfig, DownloadState, DownloadStatus
from services.download_management import QueueManager, QueueStatus, QueueSynchronizer, RemotePathMapper


def _status(state, progress=0.0, content_path=None, message=None, raw_state="raw"):
    return DownloadStatus(
        handle="abc", name="UFC.300", state=state, raw_state=raw_state,
        progress=progress, content_path=content_path, message=message,
    )


@pytest.fixture
def queue_manager(db_service):
    return QueueManager(db_service.connection_manager)


@pytest.fixture
def queue_item(db_service, queue_manager):
    event_id = db_service.add_event("UFC 300", "2024-04-13", "UFC")
    return queue_manager.add_to_queue(event_id, "qbittorrent", "magnet:?xt=urn:btih:abc", download_id="abc")


@pytest.fixture
def client():
    fake = MagicMock()
    fake.config = DownloadClientConfig(
        name="qbittorrent", protocol="qbittorrent",
        remote_path="/downloads", local_path="/mnt/downloads",
    )
    return fake


@pytest.fixture
def client_selector(client):
    selector = MagicMock()
    selector.get_client.return_value = client
    selector.get_client_configs.return_value = {"qbittorrent": client.config}
    return selector


@pytest.fixture
def submitter():
    return MagicMock(return_value={'success': True})


@pytest.fixture
def synchronizer(queue_manager, client_selector, submitter):
    sync = QueueSynchronizer(queue_manager, client_selector, submitter)
    yield sync
    sync.shutdown(wait=True)


class TestApplyStatus:
    def test_completed_records_mapped_output_path(self, synchronizer, queue_manager, queue_item):
        item = queue_manager.get_download(queue_item)
        status = _status(DownloadState.COMPLETED, 100.0, "/downloads/UFC.300", raw_state="uploading")

        result = synchronizer.apply_status(item, status, RemotePathMapper("/downloads", "/mnt/downloads"))

        assert result is QueueStatus.COMPLETED
        stored = queue_manager.get_download(queue_item)
        assert stored['status'] == "Completed"
        assert stored['output_path'] == "/mnt/downloads/UFC.300"
        assert stored['progress'] == 100.0

    def test_failure_message_recorded(self, synchronizer, queue_manager, queue_item):
        item = queue_manager.get_download(queue_item)

        synchronizer.apply_status(item, _status(DownloadState.FAILED, message="Tracker error"))

        stored = queue_manager.get_download(queue_item)
        assert stored['status'] == "Failed"
        assert stored['error_message'] == "Tracker error"

    def test_backwards_report_only_updates_progress(self, synchronizer, queue_manager, queue_item):
        queue_manager.compare_and_set(queue_item, QueueStatus.QUEUED, QueueStatus.DOWNLOADING)
        item = queue_manager.get_download(queue_item)

        result = synchronizer.apply_status(item, _status(DownloadState.QUEUED, 42.0))

        assert result is QueueStatus.DOWNLOADING
        stored = queue_manager.get_download(queue_item)
        assert stored['status'] == "Downloading"
        assert stored['progress'] == 42.0


class TestPolling:
    def test_completion_triggers_one_import(self, synchronizer, client, queue_manager, queue_item, submitter):
        client.status.return_value = _status(DownloadState.COMPLETED, 100.0, "/downloads/UFC.300")

        summary = synchronizer.poll_client("qbittorrent")
        synchronizer.shutdown(wait=True)

        assert summary == {'updated': 1, 'unchanged': 0, 'unreachable': 0, 'imports': 1}
        submitter.assert_called_once_with(queue_item)

    def test_unreachable_client_leaves_item_untouched(self, synchronizer, client, queue_manager, queue_item):
        client.status.return_value = None

        summary = synchronizer.poll_client("qbittorrent")

        assert summary['unreachable'] == 1
        assert queue_manager.get_download(queue_item)['status'] == "Queued"

    def test_overlapping_poll_for_same_client_is_skipped(self, synchronizer, client, queue_item):
        entered = threading.Event()
        release = threading.Event()

        def slow_status(handle):
            entered.set()
            release.wait(5)
            return _status(DownloadState.DOWNLOADING, 10.0)

        client.status.side_effect = slow_status
        worker = threading.Thread(target=synchronizer.poll_client, args=("qbittorrent",))
        worker.start()
        assert entered.wait(5)

        assert synchronizer.poll_client("qbittorrent") is None

        release.set()
        worker.join(5)
        assert client.status.call_count == 1

    def test_poll_interval_respected(self, queue_manager, client_selector, submitter):
        now = [1000.0]
        sync = QueueSynchronizer(queue_manager, client_selector, submitter,
                                 default_poll_interval=30, clock=lambda: now[0])
        try:
            assert list(sync.run_due_polls()) == ["qbittorrent"]
            now[0] += 10
            assert sync.run_due_polls() == {}
            now[0] += 25
            assert list(sync.run_due_polls()) == ["qbittorrent"]
        finally:
            sync.shutdown(wait=True)

    def test_pending_import_not_submitted_twice(self, queue_manager, client_selector):
        release = threading.Event()
        submitter = MagicMock(side_effect=lambda queue_id: release.wait(5))
        sync = QueueSynchronizer(queue_manager, client_selector, submitter)
        try:
            assert sync.submit_import(7) is True
            assert sync.submit_import(7) is False
        finally:
            release.set()
            sync.shutdown(wait=True)

        assert submitter.call_count == 1
