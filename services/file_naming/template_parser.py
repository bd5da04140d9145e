"""
Module Name: template_parser.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Parses and validates naming templates. Tokens are written as
    ``{Token Name}`` and matched case-insensitively; unknown or empty tokens
    resolve to an empty string and the separators they leave behind are
    collapsed.

Location:
    /services/file_naming/template_parser.py

"""

import re
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple

from utils.logger import get_module_logger

_LOGGER = get_module_logger("Service.FileNaming.TemplateParser")

_ARTICLES = ('The', 'A', 'An')


class TemplateParser:
    """
    Parses naming templates with token substitution.

    Supported tokens:
    - {Event Title} - Library title of the event
    - {Event Title The} - Title with a leading article moved to the end
    - {Air Date} / {Event Date} - Event date as YYYY-MM-DD
    - {Event Year} - Year of the event
    - {Organization} - Promotion name (UFC, ONE, ...)
    - {Quality} - Source and resolution, e.g. WEBDL-1080p
    - {Quality Full} - Quality including Proper/Repack
    - {Release Group} - Scene group from the release name
    - {Original Title} - Title parsed from the release name
    - {Original Filename} - Release filename without extension
    """

    VALID_TOKENS = {
        'event title', 'event title the', 'air date', 'event date', 'event year',
        'organization', 'quality', 'quality full', 'release group',
        'original title', 'original filename',
    }

    def __init__(self, *, logger=None):
        self.logger = logger or _LOGGER
        self.token_pattern = re.compile(r'\{([^{}]+)\}')

    def validate_template(self, template: str) -> Tuple[bool, Optional[str]]:
        """
        Validate a template string.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not template or not template.strip():
            return False, "Template cannot be empty"

        unknown = [token for token in self.get_template_tokens(template)
                   if self._normalize(token) not in self.VALID_TOKENS]
        if unknown:
            return False, f"Unknown tokens: {', '.join(unknown)}"

        if '..' in template:
            return False, "Template cannot contain path traversal sequences (..)"

        if template.startswith('/') or template.startswith('\\'):
            return False, "Template cannot start with absolute path separator"

        if re.match(r'^[a-zA-Z]:', template):
            return False, "Template cannot contain Windows drive letters"

        return True, None

    def build_token_values(self, event: Mapping, info) -> Dict[str, str]:
        """Resolve every supported token for one event and parsed release."""
        title = str(event.get('title') or info.title or '').strip()
        air_date = self._format_date(event.get('event_date'))

        return {
            'event title': title,
            'event title the': self._move_article(title),
            'air date': air_date,
            'event date': air_date,
            'event year': air_date[:4] if air_date else '',
            'organization': str(event.get('organization') or ''),
            'quality': info.quality,
            'quality full': info.quality_full,
            'release group': info.release_group or '',
            'original title': info.title,
            'original filename': info.original_stem,
        }

    def parse_template(self, template: str, values: Mapping[str, str]) -> str:
        """
        Substitute tokens in ``template``.

        Args:
            template: Template string with {Token Name} placeholders
            values: Token values keyed by lower-case token name

        Returns:
            Rendered string with dangling separators removed
        """
        def substitute(match):
            token = self._normalize(match.group(1))
            value = values.get(token)
            if value is None:
                self.logger.debug("Unknown naming token {%s}", match.group(1))
                return ''
            return str(value)

        result = self.token_pattern.sub(substitute, template)
        return self._collapse_separators(result)

    def get_template_tokens(self, template: str) -> List[str]:
        return self.token_pattern.findall(template or '')

    @staticmethod
    def _normalize(token: str) -> str:
        return re.sub(r'\s+', ' ', token).strip().lower()

    @staticmethod
    def _collapse_separators(value: str) -> str:
        # Empty brackets left by missing tokens
        value = re.sub(r'\(\s*\)|\[\s*\]', '', value)
        # "A -  - B" -> "A - B"
        value = re.sub(r'(\s*-\s+){2,}|(\s+-\s*){2,}', ' - ', value)
        value = re.sub(r'\s{2,}', ' ', value)
        return value.strip(' -_')

    @staticmethod
    def _move_article(title: str) -> str:
        for article in _ARTICLES:
            prefix = f"{article} "
            if title.lower().startswith(prefix.lower()) and len(title) > len(prefix):
                return f"{title[len(prefix):]}, {title[:len(article)]}"
        return title

    @staticmethod
    def _format_date(value) -> str:
        if not value:
            return ''
        text = str(value).strip()
        for fmt in ('%Y-%m-%d', '%Y/%m/%d', '%Y.%m.%d', '%Y%m%d'):
            try:
                return datetime.strptime(text[:10], fmt).strftime('%Y-%m-%d')
            except ValueError:
                continue
        return text
