"""Shared fixtures for index tests."""

from __future__ import annotations

import pytest

from migrascope.index._internal.parsing.treesitter import ParseResult, TreeSitterParser


@pytest.fixture
def parser() -> TreeSitterParser:
    """Create a TreeSitterParser instance."""
    return TreeSitterParser()


@pytest.fixture
def parse(parser: TreeSitterParser):  # type: ignore[no-untyped-def]
    """Parse in-memory source: ``parse("python", code, path="app/db.py")``."""

    def _parse(language: str, code: str, path: str = "<string>") -> ParseResult:
        return parser.parse_text(language, code, path=path)

    return _parse


def _locate(code: str, needle: str, occurrence: int = 0) -> tuple[int, int]:
    """1-based (x, y) of ``needle`` in ``code``, matching record spans."""
    start = -1
    for _ in range(occurrence + 1):
        start = code.index(needle, start + 1)
    line = code.count("\n", 0, start)
    column = start - (code.rfind("\n", 0, start) + 1)
    return column + 1, line + 1


@pytest.fixture
def locate():  # type: ignore[no-untyped-def]
    """Position finder for asserting record spans against source text."""
    return _locate
