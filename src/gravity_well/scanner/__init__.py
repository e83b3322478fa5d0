"""
Scanner Package

Provides directory discovery, metadata collection and content extraction.
"""

from .file_scanner import DirectoryScanner, DiscoveredFile, ScanStats, UNLIMITED_DEPTH
from .format_handlers import (
    ContentExtractor,
    ExtractionResult,
    FormatHandler,
    MarkdownHandler,
    PdfHandler,
    TextHandler,
)
from .metadata import MetadataCollector, NoteMetadata, resolve_owner_name

__all__ = [
    'DirectoryScanner',
    'DiscoveredFile',
    'ScanStats',
    'UNLIMITED_DEPTH',
    'ContentExtractor',
    'ExtractionResult',
    'FormatHandler',
    'MarkdownHandler',
    'PdfHandler',
    'TextHandler',
    'MetadataCollector',
    'NoteMetadata',
    'resolve_owner_name',
]
