"""Records produced by the analyzers.

Every record is immutable and self-contained so a stream of them can be
serialized incrementally. ``to_dict()`` emits the field names the correlation
service expects (span flattened to x1/y1/x2/y2).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from tree_sitter import Node

# schema.table or bare table, de-quoted
EntityReference = str

ChangeKind = Literal["alter_table", "drop_table", "alter_view", "drop_view"]


@dataclass(frozen=True, slots=True)
class SourceUnit:
    """A source file as handed to the analyzers."""

    path: str
    language: str
    text: bytes


@dataclass(frozen=True, slots=True)
class Span:
    """1-based column/row span of a syntax node.

    Built from tree-sitter's 0-based (row, byte column) points by adding one
    to each coordinate, plus an optional offset for text that was lifted out
    of a host file.
    """

    x1: int
    y1: int
    x2: int
    y2: int

    @classmethod
    def from_node(cls, node: Node, offset: tuple[int, int] = (0, 0)) -> Span:
        row_offset, col_offset = offset
        start_row, start_col = node.start_point
        end_row, end_col = node.end_point
        return cls(
            x1=start_col + 1 + col_offset,
            y1=start_row + 1 + row_offset,
            x2=end_col + 1 + col_offset,
            y2=end_row + 1 + row_offset,
        )


@dataclass(frozen=True, slots=True)
class ColumnRef:
    """A column attributed to an entity, with a heuristic confidence."""

    name: str
    confidence: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "confidence": self.confidence}


@dataclass(frozen=True, slots=True)
class InvocationRecord:
    """One source-code reference to a database entity."""

    file_path: str
    entity: EntityReference
    span: Span
    column_refs: tuple[ColumnRef, ...] | None = None
    is_all_columns: bool = False
    confidence: float = 1.0
    join: bool = False

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.column_refs or ()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "entity": self.entity,
            "x1": self.span.x1,
            "y1": self.span.y1,
            "x2": self.span.x2,
            "y2": self.span.y2,
            "column_refs": (
                [c.to_dict() for c in self.column_refs] if self.column_refs is not None else None
            ),
            "is_all_columns": self.is_all_columns,
            "confidence": self.confidence,
            "join": self.join,
        }


@dataclass(frozen=True, slots=True)
class ChangeRecord:
    """One structural change to one entity found in a migration."""

    kind: ChangeKind
    span: Span

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "x1": self.span.x1,
            "y1": self.span.y1,
            "x2": self.span.x2,
            "y2": self.span.y2,
        }


# migration path -> entity -> changes, in encounter order
MigrationResult = dict[str, dict[EntityReference, list[ChangeRecord]]]


def changes_to_dict(result: MigrationResult) -> dict[str, dict[str, list[dict[str, Any]]]]:
    """Convert a migration result into plain JSON-ready dicts."""
    return {
        path: {entity: [c.to_dict() for c in changes] for entity, changes in matches.items()}
        for path, matches in result.items()
    }
