import os

from services.file_naming import FileNamingService, PathGenerator, PathSanitizer, TemplateParser
from services.import_service import parse
from services.media_management import MediaManagementSettings

EVENT = {'id': 1, 'title': 'UFC 300', 'event_date': '2024-04-13', 'organization': 'UFC'}
RELEASE = parse("UFC.300.2024.04.13.1080p.WEB-DL.x264-GRP.mkv")


class TestTemplateParser:
    def setup_method(self):
        self.parser = TemplateParser()

    def test_default_file_template(self):
        values = self.parser.build_token_values(EVENT, RELEASE)
        rendered = self.parser.parse_template("{Event Title} - {Air Date} - {Quality Full}", values)
        assert rendered == "UFC 300 - 2024-04-13 - WEBDL-1080p"

    def test_event_title_the_moves_article(self):
        event = dict(EVENT, title='The Ultimate Fighter Finale')
        values = self.parser.build_token_values(event, RELEASE)
        assert self.parser.parse_template("{Event Title The}", values) == "Ultimate Fighter Finale, The"

    def test_tokens_are_case_insensitive(self):
        values = self.parser.build_token_values(EVENT, RELEASE)
        assert self.parser.parse_template("{event year} {ORGANIZATION}", values) == "2024 UFC"

    def test_unknown_token_resolves_empty_and_collapses_separators(self):
        values = self.parser.build_token_values(EVENT, RELEASE)
        rendered = self.parser.parse_template("{Event Title} - {Fighter Count} - {Quality}", values)
        assert rendered == "UFC 300 - WEBDL-1080p"

    def test_missing_value_leaves_no_empty_brackets(self):
        values = self.parser.build_token_values(dict(EVENT, event_date=None), RELEASE)
        rendered = self.parser.parse_template("{Event Title} ({Event Year})", values)
        assert rendered == "UFC 300"

    def test_validate_template(self):
        assert self.parser.validate_template("{Event Title}") == (True, None)
        is_valid, error = self.parser.validate_template("{Bogus}")
        assert is_valid is False
        assert "Bogus" in error
        assert self.parser.validate_template("../{Event Title}")[0] is False
        assert self.parser.validate_template("")[0] is False


class TestPathSanitizer:
    def test_illegal_characters_replaced(self):
        sanitizer = PathSanitizer(replace_illegal_characters=True)
        assert sanitizer.sanitize_path_component('UFC 300: Pereira vs "Hill"') == "UFC 300 - Pereira vs 'Hill'"

    def test_illegal_characters_removed(self):
        sanitizer = PathSanitizer(replace_illegal_characters=False)
        assert sanitizer.sanitize_path_component('Who Wins? <Main|Card>') == "Who Wins MainCard"

    def test_never_empty(self):
        assert PathSanitizer().sanitize_path_component('???') == "unknown"


class TestPathGenerator:
    def test_collision_picks_next_free_suffix(self, tmp_path):
        (tmp_path / "UFC 300.mkv").write_text("")
        (tmp_path / "UFC 300 (1).mkv").write_text("")

        unique = PathGenerator().resolve_unique_path(str(tmp_path / "UFC 300.mkv"))

        assert unique == str(tmp_path / "UFC 300 (2).mkv")

    def test_free_path_unchanged(self, tmp_path):
        path = str(tmp_path / "UFC 300.mkv")
        assert PathGenerator().resolve_unique_path(path) == path

    def test_slash_in_value_does_not_create_folders(self, tmp_path):
        generator = PathGenerator()
        values = dict(TemplateParser().build_token_values(dict(EVENT, title='UFC 300/301'), RELEASE))

        path = generator.generate_file_path(
            str(tmp_path), values, '.mkv', PathSanitizer(),
            folder_template="{Event Title}", file_template="{Event Title}",
        )

        assert path == os.path.join(str(tmp_path), "UFC 300-301", "UFC 300-301.mkv")


class TestFileNamingService:
    def test_build_destination_with_defaults(self, tmp_path):
        service = FileNamingService()
        source = str(tmp_path / "downloads" / RELEASE.original_name)

        destination = service.build_destination(str(tmp_path / "library"), EVENT, RELEASE, source,
                                                 MediaManagementSettings())

        assert destination == os.path.join(
            str(tmp_path / "library"), "UFC 300", "UFC 300 - 2024-04-13 - WEBDL-1080p.mkv"
        )

    def test_rename_disabled_keeps_original_name(self, tmp_path):
        service = FileNamingService()
        settings = MediaManagementSettings(rename_files=False, create_event_folder=False)
        source = str(tmp_path / RELEASE.original_name)

        destination = service.build_destination(str(tmp_path / "library"), EVENT, RELEASE, source, settings)

        assert destination == os.path.join(str(tmp_path / "library"), RELEASE.original_name)

    def test_preview_reports_invalid_template(self):
        preview = FileNamingService().preview("{Event Title} {Nope}", EVENT, RELEASE)
        assert preview['valid'] is False
        assert preview['result'] == "UFC 300"
