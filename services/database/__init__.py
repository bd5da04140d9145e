"""
Database Service Package - BoutArchive

Exposes the primary `DatabaseService` class for convenience imports.

Author: BoutArchive Development Team
Updated: October 18, 2026
"""

from .database_service import DatabaseService


__all__ = ['DatabaseService']
