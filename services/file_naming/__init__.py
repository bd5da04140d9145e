"""
File Naming Service Package
Builds library destination paths for imported events

Components:
- FileNamingService: Main service coordinator (singleton)
- TemplateParser: Token template validation and rendering
- PathGenerator: Destination path generation and collision handling
- PathSanitizer: Cross-platform name sanitization
"""

from .file_naming_service import FileNamingService
from .path_generator import PathGenerator
from .sanitizer import PathSanitizer
from .template_parser import TemplateParser

__all__ = ['FileNamingService', 'PathGenerator', 'PathSanitizer', 'TemplateParser']
