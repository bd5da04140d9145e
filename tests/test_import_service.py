import os
import sqlite3
from collections import namedtuple
from unittest.mock import MagicMock, patch

import pytest

from services.database.events import EventOperations
from services.database.import_history import ImportHistoryOperations, ImportRecord
from services.download_clients import DownloadClientConfig, DownloadState, DownloadStatus
from services.download_management import QueueManager, QueueStatus, QueueSynchronizer
from services.file_naming import FileNamingService
from services.import_service import ImportService, PlatformCapabilities
from services.media_management import MediaManagementSettingsProvider, RootFolderService

MB = 1024 * 1024
GB = 1024 * MB
RELEASE = "UFC.300.2024.04.13.1080p.WEB-DL.x264-GRP"

DiskUsage = namedtuple("DiskUsage", "total used free percent")
POSIX = PlatformCapabilities(supports_hardlinks=True, supports_permissions=True)
NO_LINKS = PlatformCapabilities(supports_hardlinks=False, supports_permissions=False)


@pytest.fixture(autouse=True)
def plenty_of_space():
    usage = DiskUsage(total=100 * GB, used=10 * GB, free=90 * GB, percent=10.0)
    with patch("psutil.disk_usage", return_value=usage):
        yield


@pytest.fixture
def library(tmp_path, db_service):
    root = tmp_path / "library"
    root.mkdir()
    db_service.add_root_folder(str(root))
    return root


@pytest.fixture
def settings_provider(config_service):
    return MediaManagementSettingsProvider(config_service)


@pytest.fixture
def queue_manager(db_service):
    return QueueManager(db_service.connection_manager)


@pytest.fixture
def event_id(db_service):
    return db_service.add_event("UFC 300", "2024-04-13", "UFC")


@pytest.fixture
def payload(tmp_path, sparse_file):
    directory = tmp_path / "downloads" / RELEASE
    sparse_file(directory / "Sample" / "sample.mkv", 50 * MB)
    sparse_file(directory / f"{RELEASE}.mkv", 4 * GB)
    return directory


def build_import_service(db_service, settings_provider, capabilities=POSIX):
    return ImportService(
        database_service=db_service,
        settings_provider=settings_provider,
        root_folder_service=RootFolderService(db_service.root_folders),
        file_naming_service=FileNamingService(),
        capabilities=capabilities,
    )


def completed_item(queue_manager, event_id, output_path):
    queue_id = queue_manager.add_to_queue(event_id, "qbittorrent", "magnet:?xt=urn:btih:abc", download_id="abc")
    queue_manager.compare_and_set(queue_id, QueueStatus.QUEUED, QueueStatus.COMPLETED,
                                  {'output_path': str(output_path), 'progress': 100.0})
    return queue_id


def importing_item(queue_manager, event_id, **pending):
    queue_id = completed_item(queue_manager, event_id, "/downloads/gone")
    queue_manager.compare_and_set(queue_id, QueueStatus.COMPLETED, QueueStatus.IMPORTING, pending or None)
    return queue_id


class TestEndToEnd:
    def test_uploading_torrent_ends_up_in_library(self, db_service, settings_provider, queue_manager,
                                                    event_id, payload, library):
        service = build_import_service(db_service, settings_provider)
        queue_id = queue_manager.add_to_queue(event_id, "qbittorrent", "magnet:?xt=urn:btih:abc", download_id="abc")

        client = MagicMock()
        client.config = DownloadClientConfig(name="qbittorrent", protocol="qbittorrent")
        client.status.return_value = DownloadStatus(
            handle="abc", name=RELEASE, state=DownloadState.COMPLETED, raw_state="uploading",
            progress=100.0, size=4 * GB, content_path=str(payload),
        )
        selector = MagicMock()
        selector.get_client.return_value = client
        sync = QueueSynchronizer(queue_manager, selector, service.import_download)

        sync.poll_client("qbittorrent")
        sync.shutdown(wait=True)

        expected = library / "UFC 300" / "UFC 300 - 2024-04-13 - WEBDL-1080p.mkv"
        assert expected.exists()
        assert os.path.getsize(expected) == 4 * GB

        item = queue_manager.get_download(queue_id)
        assert item['status'] == "Imported"
        assert item['imported_at']
        assert item['pending_destination'] is None
        assert db_service.get_event(event_id)['status'] == "Downloaded"

        history = db_service.get_import_history(event_id)
        assert len(history) == 1
        assert history[0]['decision'] == "Approved"
        assert history[0]['destination_path'] == str(expected)
        assert history[0]['source_path'] == str(payload / f"{RELEASE}.mkv")
        assert history[0]['quality'] == "WEBDL-1080p"

        # The sample is still there, so the payload folder survives cleanup
        assert (payload / "Sample" / "sample.mkv").exists()
        assert not (payload / f"{RELEASE}.mkv").exists()

    def test_copy_mode_keeps_source_when_cleanup_disabled(self, db_service, settings_provider, queue_manager,
                                                          event_id, payload, library):
        settings_provider.save(settings_provider.current().with_changes(
            transfer_mode="copy", remove_completed_downloads=False,
        ))
        service = build_import_service(db_service, settings_provider)
        source = payload / f"{RELEASE}.mkv"
        os.truncate(source, 5 * MB)
        queue_id = completed_item(queue_manager, event_id, payload)

        result = service.import_download(queue_id)

        assert result['success'] is True
        assert source.exists()
        assert os.path.exists(result['destination'])

    def test_second_import_gets_collision_suffix(self, db_service, settings_provider, queue_manager,
                                                 event_id, payload, library):
        existing = library / "UFC 300" / "UFC 300 - 2024-04-13 - WEBDL-1080p.mkv"
        existing.parent.mkdir()
        existing.write_text("older copy")
        service = build_import_service(db_service, settings_provider)
        queue_id = completed_item(queue_manager, event_id, payload)

        result = service.import_download(queue_id)

        assert result['destination'] == str(library / "UFC 300" / "UFC 300 - 2024-04-13 - WEBDL-1080p (1).mkv")
        assert existing.read_text() == "older copy"


class TestImportFailures:
    def test_item_must_be_completed(self, db_service, settings_provider, queue_manager, event_id):
        service = build_import_service(db_service, settings_provider)
        queue_id = queue_manager.add_to_queue(event_id, "qbittorrent", "magnet:?xt=urn:btih:abc")

        result = service.import_download(queue_id)

        assert result['success'] is False
        assert queue_manager.get_download(queue_id)['status'] == "Queued"

    def test_no_root_folder_fails_without_record(self, db_service, settings_provider, queue_manager,
                                                 event_id, payload):
        service = build_import_service(db_service, settings_provider)
        queue_id = completed_item(queue_manager, event_id, payload)

        result = service.import_download(queue_id)

        assert result['success'] is False
        item = queue_manager.get_download(queue_id)
        assert item['status'] == "Failed"
        assert "root folder" in item['error_message']
        assert db_service.get_import_history(event_id) == []
        assert (payload / f"{RELEASE}.mkv").exists()

    def test_hardlink_on_unsupported_platform_fails_cleanly(self, db_service, settings_provider, queue_manager,
                                                            event_id, payload, library):
        settings_provider.save(settings_provider.current().with_changes(transfer_mode="hardlink"))
        service = build_import_service(db_service, settings_provider, capabilities=NO_LINKS)
        queue_id = completed_item(queue_manager, event_id, payload)

        result = service.import_download(queue_id)

        assert result['success'] is False
        assert queue_manager.get_download(queue_id)['status'] == "Failed"
        assert list(library.iterdir()) == []
        assert (payload / f"{RELEASE}.mkv").exists()

    def test_payload_without_media_fails(self, db_service, settings_provider, queue_manager,
                                         event_id, tmp_path, library):
        empty = tmp_path / "downloads" / "nothing"
        empty.mkdir(parents=True)
        (empty / "readme.nfo").write_text("nfo")
        service = build_import_service(db_service, settings_provider)
        queue_id = completed_item(queue_manager, event_id, empty)

        service.import_download(queue_id)

        item = queue_manager.get_download(queue_id)
        assert item['status'] == "Failed"
        assert "No video files" in item['error_message']

    def test_ledger_commit_failure_rolls_transfer_back(self, db_service, settings_provider, queue_manager,
                                                       event_id, payload, library):
        service = build_import_service(db_service, settings_provider)
        queue_id = completed_item(queue_manager, event_id, payload)

        with patch.object(EventOperations, "mark_downloaded", return_value=0):
            result = service.import_download(queue_id)

        assert result['success'] is False
        assert queue_manager.get_download(queue_id)['status'] == "Failed"
        assert db_service.import_history.get_records_for_queue_item(queue_id) == []
        assert (payload / f"{RELEASE}.mkv").exists()
        assert not (library / "UFC 300" / "UFC 300 - 2024-04-13 - WEBDL-1080p.mkv").exists()


def record_import(db_service, event_id, queue_id):
    with db_service.connection_manager.transaction() as cursor:
        ImportHistoryOperations.insert(cursor, ImportRecord(
            event_id=event_id, queue_item_id=queue_id, source_path="/a.mkv",
            destination_path="/b.mkv", quality="WEBDL-1080p", size=1,
        ))


class TestImportLedger:
    def test_records_are_append_only(self, db_service, queue_manager, event_id):
        queue_id = completed_item(queue_manager, event_id, "/downloads/x")
        record_import(db_service, event_id, queue_id)

        conn, cursor = db_service.connect_db()
        try:
            with pytest.raises(sqlite3.DatabaseError):
                cursor.execute("UPDATE import_history SET quality = 'HDTV-720p'")
            with pytest.raises(sqlite3.DatabaseError):
                cursor.execute("DELETE FROM import_history")
        finally:
            conn.close()

    def test_one_approved_record_per_queue_item(self, db_service, queue_manager, event_id):
        queue_id = completed_item(queue_manager, event_id, "/downloads/x")
        record_import(db_service, event_id, queue_id)

        with pytest.raises(sqlite3.IntegrityError):
            record_import(db_service, event_id, queue_id)


class TestCrashReconciliation:
    def test_recorded_import_marked_imported(self, db_service, settings_provider, queue_manager, event_id):
        queue_id = importing_item(queue_manager, event_id)
        record_import(db_service, event_id, queue_id)

        summary = build_import_service(db_service, settings_provider).reconcile_interrupted_imports()

        assert summary['imported'] == 1
        assert queue_manager.get_download(queue_id)['status'] == "Imported"
        assert db_service.get_event(event_id)['status'] == "Downloaded"

    def test_no_transfer_intent_rolls_back_to_completed(self, db_service, settings_provider, queue_manager,
                                                        event_id):
        queue_id = importing_item(queue_manager, event_id)

        summary = build_import_service(db_service, settings_provider).reconcile_interrupted_imports()

        assert summary['requeued'] == 1
        assert queue_manager.get_download(queue_id)['status'] == "Completed"

    def test_finished_move_is_committed(self, db_service, settings_provider, queue_manager, event_id, tmp_path):
        destination = tmp_path / "library" / "UFC 300" / "UFC 300.mkv"
        destination.parent.mkdir(parents=True)
        destination.write_bytes(b"x" * 10)
        queue_id = importing_item(
            queue_manager, event_id,
            pending_source=str(tmp_path / "downloads" / f"{RELEASE}.mkv"),
            pending_destination=str(destination),
            pending_mode="move",
        )

        summary = build_import_service(db_service, settings_provider).reconcile_interrupted_imports()

        assert summary['completed'] == 1
        assert queue_manager.get_download(queue_id)['status'] == "Imported"
        history = db_service.get_import_history(event_id)
        assert [record['destination_path'] for record in history] == [str(destination)]
        assert history[0]['size'] == 10

    def test_failed_commit_returns_file_to_download_folder(self, db_service, settings_provider, queue_manager,
                                                           event_id, tmp_path):
        source = tmp_path / "downloads" / f"{RELEASE}.mkv"
        destination = tmp_path / "library" / "UFC 300" / "UFC 300.mkv"
        destination.parent.mkdir(parents=True)
        destination.write_bytes(b"x" * 10)
        queue_id = importing_item(
            queue_manager, event_id,
            pending_source=str(source), pending_destination=str(destination), pending_mode="move",
        )

        with patch.object(EventOperations, "mark_downloaded", return_value=0):
            summary = build_import_service(db_service, settings_provider).reconcile_interrupted_imports()

        assert summary['failed'] == 1
        assert queue_manager.get_download(queue_id)['status'] == "Failed"
        assert db_service.import_history.get_records_for_queue_item(queue_id) == []
        assert source.read_bytes() == b"x" * 10
        assert not destination.exists()

    def test_partial_destination_removed_when_source_remains(self, db_service, settings_provider, queue_manager,
                                                             event_id, tmp_path):
        source = tmp_path / "downloads" / f"{RELEASE}.mkv"
        source.parent.mkdir(parents=True)
        source.write_bytes(b"x" * 10)
        destination = tmp_path / "library" / "UFC 300.mkv"
        destination.parent.mkdir(parents=True)
        destination.write_bytes(b"x" * 3)
        queue_id = importing_item(
            queue_manager, event_id,
            pending_source=str(source), pending_destination=str(destination), pending_mode="copy",
        )

        summary = build_import_service(db_service, settings_provider).reconcile_interrupted_imports()

        assert summary['requeued'] == 1
        assert not destination.exists()
        assert source.exists()
        assert queue_manager.get_download(queue_id)['status'] == "Completed"
        assert queue_manager.get_download(queue_id)['pending_destination'] is None

    def test_absent_destination_rolls_back(self, db_service, settings_provider, queue_manager, event_id, tmp_path):
        queue_id = importing_item(
            queue_manager, event_id,
            pending_source=str(tmp_path / "src.mkv"),
            pending_destination=str(tmp_path / "never-written.mkv"),
            pending_mode="move",
        )

        summary = build_import_service(db_service, settings_provider).reconcile_interrupted_imports()

        assert summary['requeued'] == 1
        assert queue_manager.get_download(queue_id)['status'] == "Completed"
