"""
Format-specific handlers that turn source files into plain text.

Provides handlers for plain text, Markdown and PDF files, and the
ContentExtractor that dispatches between them by file extension.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from pypdf import PdfReader


@dataclass(frozen=True)
class ExtractionResult:
    """Text extracted from a source file."""
    text: str
    format_name: str
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


class FormatHandler(ABC):
    """Abstract base class for format handlers."""

    @abstractmethod
    def extract(self, file_path: Path) -> str:
        """Read the file and return its text. May raise on read failure."""
        pass

    @abstractmethod
    def get_format_name(self) -> str:
        """Get the format name this handler supports."""
        pass


class TextHandler(FormatHandler):
    """Handler for plain text files (.txt)."""

    def extract(self, file_path: Path) -> str:
        logger.debug(f"Reading text file {file_path}")
        return file_path.read_text(encoding="utf-8", errors="replace")

    def get_format_name(self) -> str:
        return "plain-text"


class MarkdownHandler(TextHandler):
    """Handler for Markdown files (.md). Content is kept verbatim."""

    def get_format_name(self) -> str:
        return "markdown"


class PdfHandler(FormatHandler):
    """Handler for PDF documents.

    Pages are read in document order; the positioned text runs of a page are
    joined with single spaces and pages are separated by a blank line.
    """

    def extract(self, file_path: Path) -> str:
        logger.debug(f"Converting PDF file {file_path}")
        reader = PdfReader(str(file_path))

        pages: List[str] = []
        for page in reader.pages:
            pages.append(' '.join(self._page_runs(page)))

        return '\n\n'.join(pages)

    def _page_runs(self, page: Any) -> List[str]:
        runs: List[str] = []

        def visit(text: str, cm: Any, tm: Any, font_dict: Any, font_size: Any) -> None:
            if text and text.strip():
                runs.append(text.strip())

        page.extract_text(visitor_text=visit)
        return runs

    def get_format_name(self) -> str:
        return "pdf"


class ContentExtractor:
    """Converts a source file into plain text, dispatching by extension."""

    def __init__(self, handlers: Optional[Dict[str, FormatHandler]] = None) -> None:
        self.handlers: Dict[str, FormatHandler] = handlers if handlers is not None else {
            "txt": TextHandler(),
            "md": MarkdownHandler(),
            "pdf": PdfHandler(),
        }

    def extract(self, file_path: Union[str, Path]) -> ExtractionResult:
        """Extract text from a file.

        Never raises: read and conversion failures are logged and produce an
        empty result carrying the error message.
        """
        file_path = Path(file_path).resolve()
        extension = file_path.suffix.lower().lstrip('.')
        handler = self.handlers.get(extension, self.handlers.get("txt", TextHandler()))

        try:
            text = handler.extract(file_path)
        except Exception as e:
            logger.error(f"Error converting {handler.get_format_name()} file {file_path}: {e}")
            return ExtractionResult(text="", format_name=handler.get_format_name(), error=str(e))

        if not text.strip():
            logger.warning(f"No text extracted from {file_path}")

        return ExtractionResult(text=text, format_name=handler.get_format_name())
