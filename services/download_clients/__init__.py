"""
Download Clients Module
=======================

Fetch agent adapters for torrent and usenet clients. Every adapter exposes
the same capability set and reports canonical ``DownloadState`` values.
"""

from .base_download_client import (
    AgentUnreachableError,
    BaseDownloadClient,
    DownloadClientAuthError,
    DownloadClientConfig,
    DownloadClientError,
    DownloadState,
    DownloadStatus,
)
from .client_factory import create_download_client, register_client, supported_protocols
from .qbittorrent_client import QBittorrentClient
from .sabnzbd_client import SABnzbdClient
from .transmission_client import TransmissionClient

__all__ = [
    'AgentUnreachableError',
    'BaseDownloadClient',
    'DownloadClientAuthError',
    'DownloadClientConfig',
    'DownloadClientError',
    'DownloadState',
    'DownloadStatus',
    'QBittorrentClient',
    'SABnzbdClient',
    'TransmissionClient',
    'create_download_client',
    'register_client',
    'supported_protocols',
]
