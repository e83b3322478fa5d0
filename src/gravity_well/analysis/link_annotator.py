"""URL and cross-reference annotation of note bodies."""

from __future__ import annotations

import re
from typing import Iterable, List, Match, Optional, Pattern

from loguru import logger


# Spans that are already links and must be left untouched
_WIKI_LINK = r'\[\[[^\]\n]*\]\]'
_MARKDOWN_LINK = r'\[[^\]\n]*\]\([^)\s]*\)'
_BARE_URL = r'(?:https?://|www\.)[^\s/$.?#<>\[\]()"\'][^\s<>\[\]()"\']*'

URL_PATTERN: Pattern[str] = re.compile(
    rf'(?P<link>{_WIKI_LINK}|{_MARKDOWN_LINK})|(?P<url>{_BARE_URL})',
    re.IGNORECASE
)

_TRAILING_PUNCTUATION = '.,;:!?'


def _split_trailing(url: str) -> tuple[str, str]:
    stripped = url.rstrip(_TRAILING_PUNCTUATION)
    return stripped, url[len(stripped):]


class LinkAnnotator:
    """Rewrites note text so URLs and other notes' titles become links.

    Both rewrites leave existing markdown links and wiki links alone, so
    applying them to their own output changes nothing.
    """

    def __init__(self, titles: Iterable[str] = (), link_prefix: str = "") -> None:
        self.link_prefix = link_prefix
        self.titles: List[str] = []
        self._title_pattern: Optional[Pattern[str]] = None
        self.set_titles(titles)

    def set_titles(self, titles: Iterable[str]) -> None:
        """Register the batch-wide note titles used for cross-references."""
        unique = sorted({title for title in titles if title.strip()}, key=lambda t: (-len(t), t))
        self.titles = unique
        if not unique:
            self._title_pattern = None
            return

        alternation = '|'.join(re.escape(title) for title in unique)
        self._title_pattern = re.compile(
            rf'(?P<link>{_WIKI_LINK}|{_MARKDOWN_LINK}|{_BARE_URL})'
            rf'|(?<!\w)(?P<title>{alternation})(?!\w)'
        )
        logger.debug(f"Registered {len(unique)} note titles for internal linking")

    def detect_urls(self, content: str) -> str:
        """Turn bare URLs into markdown links; www. URLs get an http:// href."""

        def replace(match: Match[str]) -> str:
            if match.group('link'):
                return match.group('link')
            url, trailing = _split_trailing(match.group('url'))
            href = url if url.lower().startswith('http') else f"http://{url}"
            return f"[{url}]({href}){trailing}"

        return URL_PATTERN.sub(replace, content)

    def link_titles(self, content: str) -> str:
        """Wrap whole-word occurrences of registered titles in [[...]]."""
        if self._title_pattern is None:
            return content

        def replace(match: Match[str]) -> str:
            if match.group('link'):
                return match.group('link')
            title = match.group('title')
            if self.link_prefix:
                return f"[[{self.link_prefix}{title}|{title}]]"
            return f"[[{title}]]"

        return self._title_pattern.sub(replace, content)
