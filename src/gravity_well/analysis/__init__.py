"""
Analysis Package

Keyword tagging and link annotation of extracted note text.
"""

from .link_annotator import LinkAnnotator, URL_PATTERN
from .tag_extractor import (
    DATE_TIME_PATTERN,
    STOPWORDS,
    NlpService,
    NlpUnavailableError,
    TagExtractor,
    normalize_token,
)

__all__ = [
    'LinkAnnotator',
    'URL_PATTERN',
    'DATE_TIME_PATTERN',
    'STOPWORDS',
    'NlpService',
    'NlpUnavailableError',
    'TagExtractor',
    'normalize_token',
]
