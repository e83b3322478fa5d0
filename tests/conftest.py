"""Shared fixtures for the gravity well test suite."""

from __future__ import annotations

import re
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Generator, Iterable, Iterator, List, Tuple

import pytest
from loguru import logger

# Configure loguru for testing
logger.remove()
logger.add(lambda msg: print(msg, end=""), level="WARNING")


FIXED_RUN = datetime(2024, 5, 1, 12, 30, 45)
FIXED_RUN_ID = "2024-05-01_12-30-45"


@dataclass
class FakeToken:
    text: str
    pos_: str


@dataclass
class FakeSpan:
    text: str
    label_: str = "ORG"


class FakeDoc:
    def __init__(self, tokens: List[FakeToken], ents: List[FakeSpan]) -> None:
        self._tokens = tokens
        self.ents = ents

    def __iter__(self) -> Iterator[FakeToken]:
        return iter(self._tokens)


class FakeNlp:
    """Deterministic stand-in for a spaCy pipeline.

    Tokens listed in ``nouns`` are tagged NOUN; every occurrence of a string
    in ``entities`` becomes an entity span, in document order.
    """

    def __init__(self, nouns: Iterable[str] = (), entities: Iterable[str] = ()) -> None:
        self.nouns = set(nouns)
        self.entities = list(entities)
        self.calls: List[str] = []

    def __call__(self, text: str) -> FakeDoc:
        self.calls.append(text)
        tokens = [
            FakeToken(word, "NOUN" if word in self.nouns else "X")
            for word in re.findall(r"[\w']+|[^\w\s]", text)
        ]
        found: List[Tuple[int, str]] = []
        for entity in self.entities:
            for match in re.finditer(re.escape(entity), text):
                found.append((match.start(), entity))
        ents = [FakeSpan(entity) for _, entity in sorted(found)]
        return FakeDoc(tokens, ents)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Temporary working directory."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def source_dir(temp_dir: Path) -> Path:
    """Empty import directory inside the temporary directory."""
    path = temp_dir / "import"
    path.mkdir()
    return path


@pytest.fixture
def vault_dir(temp_dir: Path) -> Path:
    """Empty vault directory inside the temporary directory."""
    path = temp_dir / "vault"
    path.mkdir()
    return path
