import pytest

from services.download_management import (
    CleanupManager,
    QueueManager,
    QueueStatus,
    RemotePathMapper,
    StateMachine,
)


@pytest.fixture
def queue_manager(db_service):
    return QueueManager(db_service.connection_manager)


@pytest.fixture
def queue_item(db_service, queue_manager):
    event_id = db_service.add_event("UFC 300", "2024-04-13", "UFC")
    return queue_manager.add_to_queue(event_id, "qbittorrent", "magnet:?xt=urn:btih:abc", download_id="abc")


class TestStateMachineRules:
    def setup_method(self):
        self.machine = StateMachine(queue_manager=object())

    @pytest.mark.parametrize("terminal", [QueueStatus.IMPORTED, QueueStatus.FAILED])
    def test_terminal_statuses_have_no_exit(self, terminal):
        assert self.machine.is_terminal(terminal)
        for status in QueueStatus:
            assert not self.machine.is_valid_transition(terminal, status)

    def test_importing_only_entered_from_completed(self):
        sources = [status for status in QueueStatus
                   if self.machine.is_valid_transition(status, QueueStatus.IMPORTING)]
        assert sources == [QueueStatus.COMPLETED]

    def test_failed_reachable_from_every_non_terminal_status(self):
        for status in QueueStatus:
            if not self.machine.is_terminal(status):
                assert self.machine.is_valid_transition(status, QueueStatus.FAILED)

    def test_download_progress_cannot_go_backwards(self):
        assert not self.machine.is_valid_transition(QueueStatus.DOWNLOADING, QueueStatus.QUEUED)
        assert not self.machine.is_valid_transition(QueueStatus.COMPLETED, QueueStatus.DOWNLOADING)

    def test_allowed_transitions_from_paused(self):
        assert self.machine.get_allowed_transitions("Paused") == {
            QueueStatus.DOWNLOADING, QueueStatus.COMPLETED, QueueStatus.FAILED,
        }

    def test_pause_resume_remove_rules(self):
        assert self.machine.can_pause("Downloading")
        assert not self.machine.can_pause("Completed")
        assert self.machine.can_resume("Paused")
        assert not self.machine.can_remove("Importing")


class TestCompareAndSet:
    def test_transition_applies_updates(self, queue_manager, queue_item):
        machine = StateMachine(queue_manager)

        assert machine.transition(queue_item, QueueStatus.DOWNLOADING, updates={'progress': 12.5})

        item = queue_manager.get_download(queue_item)
        assert item['status'] == "Downloading"
        assert item['progress'] == 12.5

    def test_stale_expected_status_loses(self, queue_manager, queue_item):
        machine = StateMachine(queue_manager)
        machine.transition(queue_item, QueueStatus.COMPLETED, expected_status=QueueStatus.QUEUED)

        assert machine.transition(queue_item, QueueStatus.IMPORTING, expected_status=QueueStatus.COMPLETED)
        # A second worker still believing the item is Completed
        assert not machine.transition(queue_item, QueueStatus.IMPORTING, expected_status=QueueStatus.COMPLETED)

    def test_invalid_transition_leaves_row_untouched(self, queue_manager, queue_item):
        machine = StateMachine(queue_manager)

        assert not machine.transition(queue_item, QueueStatus.IMPORTED)
        assert queue_manager.get_download(queue_item)['status'] == "Queued"

    def test_unknown_columns_rejected(self, queue_manager, queue_item):
        with pytest.raises(ValueError):
            queue_manager.update_fields(queue_item, {'status': 'Imported'})

    def test_importing_item_cannot_be_deleted(self, queue_manager, queue_item):
        queue_manager.compare_and_set(queue_item, QueueStatus.QUEUED, QueueStatus.COMPLETED)
        queue_manager.compare_and_set(queue_item, QueueStatus.COMPLETED, QueueStatus.IMPORTING)

        assert queue_manager.delete_download(queue_item) is False
        assert queue_manager.get_download(queue_item) is not None

    def test_queue_filters_and_statistics(self, db_service, queue_manager, queue_item):
        event_id = db_service.add_event("ONE 165")
        other = queue_manager.add_to_queue(event_id, "sabnzbd", "https://indexer/one165.nzb")
        queue_manager.compare_and_set(other, QueueStatus.QUEUED, QueueStatus.FAILED)

        assert [item['id'] for item in queue_manager.get_queue(client_name="qbittorrent")] == [queue_item]
        assert [item['id'] for item in queue_manager.get_queue(["Failed"])] == [other]
        assert [item['id'] for item in queue_manager.get_pollable_items("sabnzbd")] == []

        stats = queue_manager.get_queue_statistics()
        assert stats['Queued'] == 1
        assert stats['Failed'] == 1
        assert stats['total_active'] == 1


class TestRemotePathMapper:
    def test_maps_client_prefix_to_local(self):
        mapper = RemotePathMapper("/downloads/", "/mnt/nas/downloads")
        assert mapper.map_remote_to_local("/downloads/UFC.300") == "/mnt/nas/downloads/UFC.300"

    def test_unmapped_path_passes_through(self):
        mapper = RemotePathMapper("/downloads", "/mnt/nas/downloads")
        assert mapper.map_remote_to_local("/other/UFC.300") == "/other/UFC.300"
        assert mapper.map_remote_to_local(None) is None


class TestCleanupManager:
    def test_never_removes_directory_with_remaining_files(self, tmp_path):
        payload = tmp_path / "UFC.300"
        (payload / "Subs").mkdir(parents=True)
        feature = payload / "UFC.300.mkv"
        feature.write_text("x")
        (payload / "Subs" / "english.srt").write_text("x")

        result = CleanupManager().cleanup_after_import(1, str(feature), str(payload))

        assert result == {'source_removed': True, 'directory_removed': False}
        assert (payload / "Subs" / "english.srt").exists()

    def test_empty_tree_removed(self, tmp_path):
        payload = tmp_path / "UFC.300"
        (payload / "Sample").mkdir(parents=True)
        feature = payload / "UFC.300.mkv"
        feature.write_text("x")

        result = CleanupManager().cleanup_after_import(1, str(feature), str(payload))

        assert result == {'source_removed': True, 'directory_removed': True}
        assert not payload.exists()

    def test_missing_source_after_move(self, tmp_path):
        payload = tmp_path / "UFC.300"
        payload.mkdir()

        result = CleanupManager().cleanup_after_import(1, str(payload / "moved.mkv"), str(payload))

        assert result == {'source_removed': False, 'directory_removed': True}
