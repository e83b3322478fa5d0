"""
Keyword tag extraction for imported notes.

Tags are ranked by frequency over common nouns and named entities found by a
spaCy pipeline. The pipeline lives in an NlpService that is constructed once
and handed to the extractor.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Pattern

from loguru import logger


STOPWORDS: FrozenSet[str] = frozenset({
    'about', 'above', 'after', 'again', 'against', 'all', 'am', 'an', 'and', 'any',
    'are', "aren't", 'as', 'at', 'be', 'because', 'been', 'before', 'being', 'below',
    'between', 'both', 'but', 'by', "can't", 'cannot', 'could', "couldn't", 'did',
    "didn't", 'do', 'does', "doesn't", 'doing', "don't", 'down', 'during', 'each',
    'few', 'for', 'from', 'further', 'had', "hadn't", 'has', "hasn't", 'have',
    "haven't", 'having', 'he', "he'd", "he'll", "he's", 'her', 'here', "here's",
    'hers', 'herself', 'him', 'himself', 'his', 'how', "how's", 'i', "i'd",
    "i'll", "i'm", "i've", 'if', 'in', 'into', 'is', "isn't", 'it', "it's",
    'its', 'itself', "let's", 'me', 'more', 'most', "mustn't", 'my', 'myself',
    'no', 'nor', 'not', 'of', 'off', 'on', 'once', 'only', 'or', 'other',
    'ought', 'our', 'ours', 'ourselves', 'out', 'over', 'own', 'same', "shan't",
    'she', "she'd", "she'll", "she's", 'should', "shouldn't", 'so', 'some', 'such',
    'than', 'that', "that's", 'the', 'their', 'theirs', 'them', 'themselves',
    'then', 'there', "there's", 'these', 'they', "they'd", "they'll", "they're",
    "they've", 'this', 'those', 'through', 'to', 'too', 'under', 'until', 'up',
    'very', 'was', "wasn't", 'we', "we'd", "we'll", "we're", "we've", 'were',
    "weren't", 'what', "what's", 'when', "when's", 'where', "where's", 'which',
    'while', 'who', "who's", 'whom', 'why', "why's", 'with', "won't", 'would',
    "wouldn't", 'you', "you'd", "you'll", "you're", "you've", 'your', 'yours',
    'yourself', 'yourselves'
})

MONTHS = (
    'january|february|march|april|may|june|july|august|september|october|'
    'november|december'
)

DATE_TIME_PATTERN: Pattern[str] = re.compile(
    r'\b('
    r'\d{1,2}/\d{1,2}/\d{2,4}'
    r'|\d{4}-\d{1,2}-\d{1,2}'
    rf'|(?:{MONTHS})\s\d{{1,2}},?\s\d{{4}}'
    r'|\d{1,2}:\d{2}\s?(?:am|pm)'
    r')\b',
    re.IGNORECASE
)

_PUNCTUATION = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")


class NlpUnavailableError(Exception):
    """Raised when the spaCy pipeline cannot be loaded."""
    pass


def normalize_token(text: str) -> str:
    """Case-fold, strip punctuation and collapse whitespace."""
    text = _PUNCTUATION.sub('', text.casefold())
    return _WHITESPACE.sub(' ', text).strip(' -_')


class NlpService:
    """Owns a spaCy pipeline used for part-of-speech tagging and NER.

    The model is loaded lazily on first use and reused afterwards. A ready
    pipeline (any callable returning a spaCy-like Doc) can be passed in
    instead of a model name.
    """

    def __init__(
        self,
        model: str = "en_core_web_sm",
        nlp: Optional[Callable[[str], Any]] = None,
        max_length: int = 1_000_000
    ) -> None:
        self.model_name = model
        self.max_length = max_length
        self._nlp = nlp

    def load(self) -> Callable[[str], Any]:
        """Return the pipeline, loading the model on first call.

        Raises:
            NlpUnavailableError: If spaCy or the model is not installed.
        """
        if self._nlp is not None:
            return self._nlp

        try:
            import spacy

            self._nlp = spacy.load(self.model_name)
        except (ImportError, OSError) as e:
            raise NlpUnavailableError(
                f"spaCy model '{self.model_name}' not available. "
                f"Run: python -m spacy download {self.model_name}"
            ) from e

        logger.info(f"Loaded spaCy model: {self.model_name}")
        return self._nlp

    @property
    def is_available(self) -> bool:
        try:
            self.load()
        except NlpUnavailableError:
            return False
        return True

    def __call__(self, text: str) -> Any:
        nlp = self.load()
        if len(text) > self.max_length:
            logger.debug(f"Truncated text to {self.max_length} chars for tagging")
            text = text[:self.max_length]
        return nlp(text)


class TagExtractor:
    """Derives ranked keyword tags from note text."""

    def __init__(
        self,
        nlp: Optional[NlpService] = None,
        stopwords: FrozenSet[str] = STOPWORDS,
        date_pattern: Pattern[str] = DATE_TIME_PATTERN
    ) -> None:
        self.nlp = nlp if nlp is not None else NlpService()
        self.stopwords = stopwords
        self.date_pattern = date_pattern
        self._warned_unavailable = False

    def extract_tags(self, text: str, max_tags: int) -> List[str]:
        """Return up to max_tags tags, most frequent first.

        Common nouns are counted first, in token order, then named entities in
        document order. Ties keep that first-seen order.

        Args:
            text: Note text, already URL-annotated.
            max_tags: Maximum number of tags to return.

        Returns:
            Ordered list of distinct tags. Empty when the NLP pipeline is
            unavailable.
        """
        if max_tags <= 0 or not text.strip():
            return []

        try:
            doc = self.nlp(text.lower())
        except NlpUnavailableError as e:
            if not self._warned_unavailable:
                logger.warning(f"Tagging disabled: {e}")
                self._warned_unavailable = True
            return []

        counts: Dict[str, int] = {}

        for token in doc:
            if token.pos_ != "NOUN":
                continue
            self._count(token.text, counts)

        for entity in doc.ents:
            if self.date_pattern.search(entity.text):
                logger.trace(f"Skipping date/time entity: {entity.text}")
                continue
            self._count(entity.text, counts)

        ranked = sorted(counts, key=lambda word: counts[word], reverse=True)
        return ranked[:max_tags]

    def _count(self, raw: str, counts: Dict[str, int]) -> None:
        if raw.casefold() in self.stopwords:
            return

        word = normalize_token(raw)
        if len(word) <= 1 or word in self.stopwords:
            return

        counts[word] = counts.get(word, 0) + 1
