"""GrammarPack: single source of truth for per-language tree-sitter config.

Every language migrascope understands has exactly ONE GrammarPack that
consolidates:
- Grammar install metadata (package, module, version)
- File extension detection
- Node types that make up string literals, concatenations and interpolations
- Embedded-SQL candidate queries (S-expression patterns whose captures named
  ``str*`` are string-valued expressions)

The PACKS registry is the canonical lookup: ``PACKS["java"]``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath

# =========================================================================
# Dataclasses
# =========================================================================


@dataclass(frozen=True)
class GrammarPack:
    """Complete tree-sitter configuration for a single language."""

    # -- Identity --
    name: str

    # -- Grammar install --
    grammar_package: str  # PyPI package ("tree-sitter-python")
    grammar_module: str  # Python import ("tree_sitter_python")
    min_version: str
    language_func: str = "language"

    # -- File detection --
    extensions: frozenset[str] = field(default_factory=frozenset)

    # -- String structure --
    string_types: frozenset[str] = field(default_factory=frozenset)
    # Named delimiter children (prefix + quotes); anonymous first/last tokens
    # are always treated as delimiters
    delimiter_types: frozenset[str] = field(default_factory=frozenset)
    interpolation_types: frozenset[str] = field(default_factory=frozenset)
    # Binary operators joined with "+" are flattened into their operands
    binary_types: frozenset[str] = field(default_factory=frozenset)
    # Nodes whose named children are always concatenated
    implicit_concat_types: frozenset[str] = field(default_factory=frozenset)
    # Builder method names whose receiver and first argument are concatenated
    append_methods: frozenset[str] = field(default_factory=frozenset)
    append_call_type: str | None = None

    # -- Embedded SQL --
    embedded_queries: tuple[str, ...] = ()


# =========================================================================
# Embedded-SQL candidate queries
# =========================================================================

_PYTHON_EMBEDDED = (
    """
    [
      (string)
      (concatenated_string)
      (binary_operator)
    ] @str
    """,
)

_JAVASCRIPT_EMBEDDED = (
    """
    [
      (string)
      (template_string)
      (binary_expression)
    ] @str
    """,
)

_JAVA_EMBEDDED = (
    """
    [
      (string_literal)
      (binary_expression)
    ] @str
    """,
    # sb.append("select ...").append("from ...")
    """
    ((method_invocation name: (identifier) @mname) @str
      (#eq? @mname "append"))
    """,
    # sb.append("select ..."); sb.append("from ..."); as sibling statements
    """
    ((expression_statement
       (method_invocation
         arguments: (argument_list (string_literal) @str)))
     (expression_statement
       (method_invocation
         name: (identifier) @mname
         arguments: (argument_list (string_literal) @strnext)))*
     (#eq? @mname "append"))
    """,
    # @Select({"select ...", "from ..."}), new String[] {"select ...", "from ..."}
    """
    [
      (element_value_array_initializer)
      (array_initializer)
    ] @str
    """,
)


# =========================================================================
# Packs
# =========================================================================

SQL_PACK = GrammarPack(
    name="sql",
    grammar_package="tree-sitter-sql",
    grammar_module="tree_sitter_sql",
    min_version="0.3.0",
    extensions=frozenset({"sql"}),
)
PYTHON_PACK = GrammarPack(
    name="python",
    grammar_package="tree-sitter-python",
    grammar_module="tree_sitter_python",
    min_version="0.23.0",
    extensions=frozenset({"py"}),
    string_types=frozenset({"string"}),
    delimiter_types=frozenset({"string_start", "string_end"}),
    interpolation_types=frozenset({"interpolation"}),
    binary_types=frozenset({"binary_operator"}),
    implicit_concat_types=frozenset({"concatenated_string", "parenthesized_expression"}),
    embedded_queries=_PYTHON_EMBEDDED,
)
JAVASCRIPT_PACK = GrammarPack(
    name="javascript",
    grammar_package="tree-sitter-javascript",
    grammar_module="tree_sitter_javascript",
    min_version="0.23.0",
    extensions=frozenset({"js", "jsx", "mjs", "cjs"}),
    string_types=frozenset({"string", "template_string"}),
    interpolation_types=frozenset({"template_substitution"}),
    binary_types=frozenset({"binary_expression"}),
    implicit_concat_types=frozenset({"parenthesized_expression"}),
    embedded_queries=_JAVASCRIPT_EMBEDDED,
)
JAVA_PACK = GrammarPack(
    name="java",
    grammar_package="tree-sitter-java",
    grammar_module="tree_sitter_java",
    min_version="0.23.0",
    extensions=frozenset({"java"}),
    string_types=frozenset({"string_literal"}),
    binary_types=frozenset({"binary_expression"}),
    implicit_concat_types=frozenset(
        {"parenthesized_expression", "element_value_array_initializer", "array_initializer"}
    ),
    append_methods=frozenset({"append"}),
    append_call_type="method_invocation",
    embedded_queries=_JAVA_EMBEDDED,
)


# =========================================================================
# Canonical registries
# =========================================================================

_ALL_PACKS: tuple[GrammarPack, ...] = (
    SQL_PACK,
    PYTHON_PACK,
    JAVASCRIPT_PACK,
    JAVA_PACK,
)

# name -> Pack
PACKS: dict[str, GrammarPack] = {pack.name: pack for pack in _ALL_PACKS}

# Extension -> Pack
_EXT_TO_PACK: dict[str, GrammarPack] = {}
for _pack in _ALL_PACKS:
    for _ext in _pack.extensions:
        _EXT_TO_PACK[_ext] = _pack


# =========================================================================
# Public API
# =========================================================================


def get_pack(name: str) -> GrammarPack | None:
    """Get a GrammarPack by language name."""
    return PACKS.get(name)


def get_pack_for_ext(ext: str) -> GrammarPack | None:
    """Get a GrammarPack for a file extension (without leading dot)."""
    return _EXT_TO_PACK.get(ext.lower())


def detect_language(path: str) -> str | None:
    """Language name for a file path, or None when no pack claims it."""
    suffix = PurePosixPath(path).suffix
    if not suffix:
        return None
    pack = get_pack_for_ext(suffix.lstrip("."))
    return pack.name if pack is not None else None
