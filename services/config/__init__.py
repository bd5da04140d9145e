"""
Module Name: __init__.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
	Provide access to the configuration management service.
Location:
	/services/config/__init__.py

"""

from .management import ConfigService

__all__ = ["ConfigService"]
