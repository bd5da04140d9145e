import pytest

from services.import_service import (
    CandidateSelector,
    NoMediaFoundError,
    NotFoundError,
    parse,
    quality_label,
)

MB = 1024 * 1024
GB = 1024 * MB


class TestCandidateSelector:
    def test_largest_media_file_wins_over_sample(self, tmp_path, sparse_file):
        payload = tmp_path / "UFC.300.2024.04.13.1080p.WEB-DL.x264-GRP"
        sparse_file(payload / "Sample" / "sample.mkv", 50 * MB)
        feature = sparse_file(payload / "UFC.300.2024.04.13.1080p.WEB-DL.x264-GRP.mkv", 4 * GB)
        (payload / "info.nfo").write_text("nfo")

        assert CandidateSelector().select(str(payload)) == str(feature)

    def test_selection_is_idempotent(self, tmp_path, sparse_file):
        payload = tmp_path / "payload"
        sparse_file(payload / "a.mkv", 10 * MB)
        sparse_file(payload / "b.mp4", 10 * MB)
        selector = CandidateSelector()

        first = selector.select(str(payload))

        assert first == str(payload / "a.mkv")
        assert selector.select(str(payload)) == first

    def test_single_file_payload(self, tmp_path, sparse_file):
        feature = sparse_file(tmp_path / "Bellator.300.720p.HDTV.mkv", MB)
        assert CandidateSelector().select(str(feature)) == str(feature)

    def test_non_media_extensions_ignored(self, tmp_path, sparse_file):
        payload = tmp_path / "payload"
        sparse_file(payload / "huge.iso", 5 * GB)
        sparse_file(payload / "Event.MKV", MB)

        assert CandidateSelector().select(str(payload)) == str(payload / "Event.MKV")

    def test_no_media_raises(self, tmp_path):
        payload = tmp_path / "payload"
        payload.mkdir()
        (payload / "readme.txt").write_text("hi")

        with pytest.raises(NoMediaFoundError):
            CandidateSelector().select(str(payload))

    def test_missing_path_raises(self, tmp_path):
        with pytest.raises(NotFoundError):
            CandidateSelector().select(str(tmp_path / "missing"))


class TestReleaseParser:
    def test_scene_name(self):
        info = parse("UFC.300.2024.04.13.1080p.WEB-DL.x264-GRP.mkv")

        assert info.title == "UFC 300"
        assert info.resolution == "1080p"
        assert info.source == "WEBDL"
        assert info.release_group == "GRP"
        assert info.quality == "WEBDL-1080p"
        assert info.original_stem == "UFC.300.2024.04.13.1080p.WEB-DL.x264-GRP"

    def test_quality_label_includes_revision(self):
        assert quality_label(parse("ONE.Friday.Fights.PROPER.720p.HDTV-XYZ.mkv")) == "HDTV-720p Proper"
        assert quality_label(parse("PFL.Finals.REPACK.2160p.WEBRip-XYZ.mkv")) == "WEBRip-2160p Repack"

    def test_unrecognized_name(self):
        info = parse("fight night.mkv")

        assert info.title == "fight night"
        assert info.quality == "Unknown"
        assert info.release_group is None
