"""
Module Name: __init__.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Shared utility exports for application logging used across the codebase.

Location:
    /utils/__init__.py

"""

from .logger import get_logger, get_module_logger, setup_logger

__all__ = ["setup_logger", "get_logger", "get_module_logger"]
