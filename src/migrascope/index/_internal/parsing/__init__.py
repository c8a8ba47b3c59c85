"""Tree-sitter parsing for syntactic analysis."""

from migrascope.index._internal.parsing.packs import (
    PACKS,
    GrammarPack,
    detect_language,
    get_pack,
)
from migrascope.index._internal.parsing.treesitter import (
    ParseResult,
    TreeSitterParser,
)

__all__ = [
    "TreeSitterParser",
    "ParseResult",
    "GrammarPack",
    "PACKS",
    "detect_language",
    "get_pack",
]
