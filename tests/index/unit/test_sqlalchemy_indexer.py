"""Unit tests for the SQLAlchemy indexer (patterns/sqlalchemy.py)."""

from __future__ import annotations

from collections.abc import Callable

import pytest
import structlog
from structlog.testing import capture_logs

from migrascope.index._internal.extraction.patterns import sqlalchemy as sqlalchemy_patterns
from migrascope.index._internal.extraction.patterns.sqlalchemy import SqlAlchemyIndexer
from migrascope.index._internal.parsing.treesitter import ParseResult, TreeSitterParser
from migrascope.index.models import InvocationRecord

Parse = Callable[..., ParseResult]
Locate = Callable[..., tuple[int, int]]

MODELS = '''\
import sqlalchemy as sa
from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

metadata = sa.MetaData()

accounts = sa.Table(
    "accounts",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("owner", sa.String),
    schema="billing",
)


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"schema": "auth"}

    id = Column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String)
    orders = relationship("Order")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column("owner_id", ForeignKey("auth.users.id"))
'''


@pytest.fixture
def indexer() -> SqlAlchemyIndexer:
    return SqlAlchemyIndexer()


def _by_entity(records: list[InvocationRecord]) -> dict[str, InvocationRecord]:
    return {r.entity: r for r in records}


class TestSqlAlchemyIndexer:
    """Core tables and declarative models."""

    def test_finds_every_table(
        self, indexer: SqlAlchemyIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """One record per table, in document order."""
        records = indexer.index("models.py", parse("python", MODELS), parser)

        assert [r.entity for r in records] == ["billing.accounts", "auth.users", "orders"]
        assert all(r.confidence == 1.0 for r in records)

    def test_core_table_columns(
        self, indexer: SqlAlchemyIndexer, parser: TreeSitterParser, parse: Parse, locate: Locate
    ) -> None:
        """Column(...) arguments of Table(...) are the table's columns."""
        records = _by_entity(indexer.index("models.py", parse("python", MODELS), parser))

        accounts = records["billing.accounts"]
        assert accounts.column_names == ["id", "owner"]
        assert (accounts.span.x1, accounts.span.y1) == locate(MODELS, '"accounts"')

    def test_declarative_with_schema(
        self, indexer: SqlAlchemyIndexer, parser: TreeSitterParser, parse: Parse, locate: Locate
    ) -> None:
        """__table_args__ schema qualifies the table; relationships are not columns."""
        records = _by_entity(indexer.index("models.py", parse("python", MODELS), parser))

        users = records["auth.users"]
        assert users.column_names == ["id", "email"]
        assert (users.span.x1, users.span.y1) == locate(MODELS, '"users"')

    def test_declarative_without_schema(
        self, indexer: SqlAlchemyIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Explicit column names win over attribute names."""
        records = _by_entity(indexer.index("models.py", parse("python", MODELS), parser))

        assert records["orders"].column_names == ["id", "owner_id"]

    def test_table_args_tuple(
        self, indexer: SqlAlchemyIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """A tuple of constraints ending in an options dict carries the schema too."""
        code = (
            "class Tag(Base):\n"
            '    __table_args__ = (UniqueConstraint("label"), {"schema": "catalog"})\n'
            '    __tablename__ = "tags"\n'
            "    label = Column(String)\n"
        )

        records = indexer.index("tags.py", parse("python", code), parser)

        assert [r.entity for r in records] == ["catalog.tags"]
        assert records[0].column_names == ["label"]

    def test_other_table_args_keys_are_not_schemas(
        self, indexer: SqlAlchemyIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Only the "schema" key qualifies the table."""
        code = (
            "class Note(Base):\n"
            '    __tablename__ = "notes"\n'
            '    __table_args__ = {"comment": "free text"}\n'
            "    body = Column(Text)\n"
        )

        records = indexer.index("notes.py", parse("python", code), parser)

        assert [r.entity for r in records] == ["notes"]

    def test_unreconciled_schema_match_is_kept_without_schema(
        self,
        indexer: SqlAlchemyIndexer,
        parser: TreeSitterParser,
        parse: Parse,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A with-schema match lacking its schema-less partner is logged and kept unqualified."""
        monkeypatch.setattr(
            sqlalchemy_patterns,
            "DECLARATIVE_QUERY",
            '((class_definition name: (identifier) @ref) (#eq? @ref "NoSuchClass"))',
        )
        code = (
            "class User(Base):\n"
            '    __tablename__ = "users"\n'
            '    __table_args__ = {"schema": "auth"}\n'
            "    id = Column(Integer, primary_key=True)\n"
        )
        structlog.reset_defaults()

        with capture_logs() as logs:
            records = indexer.index("models.py", parse("python", code), parser)

        assert [r.entity for r in records] == ["users"]
        assert records[0].column_names == ["id"]
        warnings = [e for e in logs if e["event"] == "orm_schema_match_unreconciled"]
        assert len(warnings) == 1
        assert warnings[0]["log_level"] == "warning"
        assert (warnings[0]["path"], warnings[0]["row"], warnings[0]["column"]) == (
            "models.py",
            1,
            7,
        )

    def test_plain_classes_are_ignored(
        self, indexer: SqlAlchemyIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Classes without __tablename__ and unrelated calls yield nothing."""
        code = 'class Service:\n    name = "svc"\n\nlogger = getLogger("app")\n'

        assert indexer.index("svc.py", parse("python", code), parser) == []

    def test_other_languages_yield_nothing(
        self, indexer: SqlAlchemyIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Files that are not Python are skipped."""
        code = 'const t = Table("users");\n'

        assert indexer.index("x.js", parse("javascript", code), parser) == []
