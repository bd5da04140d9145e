"""
Media Management Package
Naming, transfer and permission settings plus library root folders

Components:
- MediaManagementSettings: Immutable settings snapshot
- MediaManagementSettingsProvider: Snapshot, reload and save
- RootFolderSelector: Chooses the root folder for an import
- RootFolderService: Measures and persists root folder free space
"""

from .root_folders import RootFolder, RootFolderSelector, RootFolderService
from .settings import MediaManagementSettings, MediaManagementSettingsProvider

__all__ = [
    'MediaManagementSettings',
    'MediaManagementSettingsProvider',
    'RootFolder',
    'RootFolderSelector',
    'RootFolderService',
]
