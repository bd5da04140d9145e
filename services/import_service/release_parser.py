"""
Module Name: release_parser.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Extracts title, resolution, source, revision and release group from a
    scene-style release filename. Pure functions; nothing here touches disk.

Location:
    /services/import_service/release_parser.py

"""

import os
import re
from dataclasses import dataclass
from typing import Optional

from .candidate_selector import VIDEO_EXTENSIONS

_RESOLUTION_PATTERN = re.compile(r'(?<![0-9])(2160|1080|720|576|480)[pi](?![a-z0-9])', re.IGNORECASE)
_UHD_PATTERN = re.compile(r'\b(4k|uhd)\b', re.IGNORECASE)
_SOURCE_PATTERNS = (
    (re.compile(r'\bweb[ .\-_]?dl\b', re.IGNORECASE), 'WEBDL'),
    (re.compile(r'\bweb[ .\-_]?rip\b', re.IGNORECASE), 'WEBRip'),
    (re.compile(r'\b(blu[ .\-_]?ray|bdrip|brrip|bdremux)\b', re.IGNORECASE), 'Bluray'),
    (re.compile(r'\bhdtv\b', re.IGNORECASE), 'HDTV'),
    (re.compile(r'\b(dvdrip|dvd)\b', re.IGNORECASE), 'DVD'),
    (re.compile(r'\bppv\b', re.IGNORECASE), 'PPV'),
    (re.compile(r'\bweb\b', re.IGNORECASE), 'WEBDL'),
)
_PROPER_PATTERN = re.compile(r'\bproper\b', re.IGNORECASE)
_REPACK_PATTERN = re.compile(r'\b(repack|rerip)\b', re.IGNORECASE)
_GROUP_PATTERN = re.compile(r'-([A-Za-z0-9]+)$')
_DATE_PATTERN = re.compile(r'\b(19|20)\d{2}[ .\-_](0[1-9]|1[0-2])[ .\-_](0[1-9]|[12]\d|3[01])\b')
_YEAR_PATTERN = re.compile(r'\b(19|20)\d{2}\b')


@dataclass(frozen=True)
class ParsedReleaseInfo:
    title: str
    original_name: str
    resolution: Optional[str] = None
    source: Optional[str] = None
    release_group: Optional[str] = None
    proper: bool = False
    repack: bool = False

    @property
    def quality(self) -> str:
        """Source and resolution, e.g. ``WEBDL-1080p``."""
        if self.source and self.resolution:
            return f"{self.source}-{self.resolution}"
        return self.resolution or self.source or "Unknown"

    @property
    def quality_full(self) -> str:
        return quality_label(self)

    @property
    def original_stem(self) -> str:
        return strip_video_extension(self.original_name)


def strip_video_extension(filename: str) -> str:
    stem, ext = os.path.splitext(filename)
    return stem if ext.lower() in VIDEO_EXTENSIONS else filename


def parse(filename: str) -> ParsedReleaseInfo:
    """Parse a release filename (directory components are ignored)."""
    original = os.path.basename(filename or "")
    stem = strip_video_extension(original)

    resolution = None
    resolution_match = _RESOLUTION_PATTERN.search(stem)
    if resolution_match:
        resolution = f"{resolution_match.group(1)}p"
    elif _UHD_PATTERN.search(stem):
        resolution = "2160p"

    source = None
    for pattern, label in _SOURCE_PATTERNS:
        if pattern.search(stem):
            source = label
            break

    release_group = None
    group_match = _GROUP_PATTERN.search(stem)
    if group_match and (resolution or source):
        release_group = group_match.group(1)

    return ParsedReleaseInfo(
        title=_extract_title(stem),
        original_name=original,
        resolution=resolution,
        source=source,
        release_group=release_group,
        proper=bool(_PROPER_PATTERN.search(stem)),
        repack=bool(_REPACK_PATTERN.search(stem)),
    )


def quality_label(info: ParsedReleaseInfo) -> str:
    """Quality including revision, e.g. ``WEBDL-1080p Proper``."""
    label = info.quality
    if info.proper:
        label = f"{label} Proper"
    elif info.repack:
        label = f"{label} Repack"
    return label


def _extract_title(stem: str) -> str:
    """Everything before the first date, year, resolution or source marker."""
    cut = len(stem)
    markers = [_DATE_PATTERN, _YEAR_PATTERN, _RESOLUTION_PATTERN, _UHD_PATTERN, _PROPER_PATTERN, _REPACK_PATTERN]
    markers.extend(pattern for pattern, _ in _SOURCE_PATTERNS)
    for pattern in markers:
        match = pattern.search(stem)
        if match and match.start() > 0:
            cut = min(cut, match.start())

    title = re.sub(r'[._]+', ' ', stem[:cut])
    title = re.sub(r'\s+', ' ', title).strip(' -[(')
    return title or stem
