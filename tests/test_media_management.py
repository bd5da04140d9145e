from collections import namedtuple
from unittest.mock import patch

import pytest

from services.import_service import StorageUnavailableError
from services.media_management import (
    MediaManagementSettings,
    MediaManagementSettingsProvider,
    RootFolder,
    RootFolderSelector,
    RootFolderService,
)

DiskUsage = namedtuple("DiskUsage", "total used free percent")


class TestRootFolderSelector:
    def test_picks_root_with_most_room(self):
        folders = [RootFolder(1, "/a", free_space=10), RootFolder(2, "/b", free_space=50)]

        chosen = RootFolderSelector().select(folders, payload_size=5, minimum_free_bytes=1)

        assert chosen.path == "/b"

    def test_free_space_must_exceed_payload_plus_buffer(self):
        assert RootFolderSelector.has_room(RootFolder(1, "/a", free_space=6), 5, 1) is False
        assert RootFolderSelector.has_room(RootFolder(1, "/a", free_space=6.0001), 5, 1) is True

    def test_inaccessible_roots_skipped(self):
        folders = [
            RootFolder(1, "/offline", accessible=False, free_space=1000),
            RootFolder(2, "/online", free_space=20),
        ]

        assert RootFolderSelector().select(folders, 5, 1).path == "/online"

    def test_falls_back_to_most_free_when_none_fit(self):
        folders = [RootFolder(1, "/a", free_space=3), RootFolder(2, "/b", free_space=4)]

        assert RootFolderSelector().select(folders, 5, 1).path == "/b"

    def test_no_roots_raises(self):
        with pytest.raises(StorageUnavailableError):
            RootFolderSelector().select([], 5, 1)

        with pytest.raises(StorageUnavailableError):
            RootFolderSelector().select([RootFolder(1, "/a", accessible=False)], 5, 1)


class TestRootFolderService:
    def test_add_and_measure_root_folder(self, db_service, tmp_path):
        library = tmp_path / "library"
        library.mkdir()
        service = RootFolderService(db_service.root_folders)

        with patch("services.media_management.root_folders.psutil.disk_usage",
                   return_value=DiskUsage(1000, 400, 600, 40.0)):
            result = service.add_root_folder(str(library))

        assert result['success'] is True
        stored = service.get_root_folders()
        assert [folder.path for folder in stored] == [str(library)]
        assert stored[0].free_space == 600
        assert stored[0].accessible is True

    def test_relative_or_missing_paths_rejected(self, db_service, tmp_path):
        service = RootFolderService(db_service.root_folders)

        assert service.add_root_folder("library")['success'] is False
        assert service.add_root_folder(str(tmp_path / "missing"))['success'] is False

    def test_missing_folder_marked_inaccessible(self, db_service, tmp_path):
        service = RootFolderService(db_service.root_folders)
        folder = service.refresh(RootFolder(None, str(tmp_path / "gone"), free_space=99))

        assert folder.accessible is False
        assert folder.free_space is None


class TestMediaManagementSettings:
    def test_defaults_materialized_on_first_load(self, config_service):
        provider = MediaManagementSettingsProvider(config_service)

        settings = provider.current()

        assert settings.transfer_mode == "move"
        assert config_service.get_section("media_management")["standard_file_format"] == \
            "{Event Title} - {Air Date} - {Quality Full}"

    def test_snapshot_is_stable_until_reload(self, config_service):
        provider = MediaManagementSettingsProvider(config_service)
        first = provider.current()

        config_service.update_section("media_management", {"transfer_mode": "copy"})

        assert provider.current() is first
        assert provider.reload().transfer_mode == "copy"

    def test_save_validates_before_writing(self, config_service):
        provider = MediaManagementSettingsProvider(config_service)
        invalid = provider.current().with_changes(transfer_mode="teleport", file_chmod="999")

        result = provider.save(invalid)

        assert result['success'] is False
        assert len(result['errors']) == 2
        assert provider.current().transfer_mode == "move"

    def test_save_swaps_snapshot(self, config_service):
        provider = MediaManagementSettingsProvider(config_service)
        updated = provider.current().with_changes(transfer_mode="hardlink", minimum_free_space_mb=0)

        assert provider.save(updated) == {'success': True, 'errors': []}
        assert provider.current() is updated
        assert MediaManagementSettingsProvider(config_service).current().transfer_mode == "hardlink"

    def test_minimum_free_space_in_bytes(self):
        assert MediaManagementSettings(minimum_free_space_mb=2).minimum_free_space_bytes == 2 * 1024 * 1024
