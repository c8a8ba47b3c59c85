"""Unit tests for the Massive.js indexer (patterns/massive.py).

Tests cover:
- Object and string join definitions
- relation overrides and dotted on-columns
- Criteria distribution across joined tables
- Plain table accessor calls
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from migrascope.index._internal.extraction.patterns.massive import MassiveIndexer
from migrascope.index._internal.parsing.treesitter import ParseResult, TreeSitterParser
from migrascope.index.models import InvocationRecord

Parse = Callable[..., ParseResult]
Locate = Callable[..., tuple[int, int]]


@pytest.fixture
def indexer() -> MassiveIndexer:
    return MassiveIndexer()


def _by_entity(records: list[InvocationRecord]) -> dict[str, InvocationRecord]:
    return {r.entity: r for r in records}


class TestJoins:
    """db.table.join(...) chains."""

    def test_relation_and_dotted_on_columns(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse, locate: Locate
    ) -> None:
        """relation names the entity; dotted on-columns go to the table they name."""
        code = (
            "const result = db.orders.join({\n"
            '  customers: {relation: "customer", on: {"customers.id": "orders.customer_id"}}\n'
            "});\n"
        )

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.entity for r in records] == ["orders", "customer"]
        orders, customer = records
        assert orders.join is False
        assert orders.column_names == ["customer_id"]
        assert customer.join is True
        assert customer.column_names == ["id"]
        assert (orders.span.x1, orders.span.y1) == locate(code, "orders")
        assert (customer.span.x1, customer.span.y1) == locate(code, "customers")

    def test_undotted_on_columns_belong_to_alias(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """An undotted on-column stays with the alias declaring it."""
        code = "db.orders.join({items: {on: {order_id: 'id'}}});\n"

        records = _by_entity(indexer.index("q.js", parse("javascript", code), parser))

        assert records["items"].column_names == ["order_id", "id"]
        assert records["orders"].column_names == []

    def test_option_keys_are_not_aliases(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Join options are not mistaken for joined tables."""
        code = "db.orders.join({items: {type: 'LEFT OUTER', pk: 'id', on: {order_id: 'id'}}});\n"

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.entity for r in records] == ["orders", "items"]

    def test_nested_aliases_join_through_their_parent(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse, locate: Locate
    ) -> None:
        """An alias declared inside another alias's descriptor is joined too."""
        code = (
            "db.orders.join({\n"
            "  customers: {\n"
            '    on: {id: "customer_id"},\n'
            '    addresses: {type: "LEFT OUTER", on: {customer_id: "id"}}\n'
            "  }\n"
            "}).find({});\n"
        )

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.entity for r in records] == ["orders", "customers", "addresses"]
        addresses = records[2]
        assert addresses.join is True
        assert addresses.column_names == ["customer_id", "id"]
        assert (addresses.span.x1, addresses.span.y1) == locate(code, "addresses")
        assert records[1].column_names == ["id", "customer_id"]

    def test_string_join(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse, locate: Locate
    ) -> None:
        """A string definition joins one more table."""
        code = "const rows = await db.orders.join('customers').find({id: 1});\n"

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.entity for r in records] == ["orders", "customers"]
        assert records[1].join is True
        assert (records[1].span.x1, records[1].span.y1) == locate(code, "'customers'")

    def test_criteria_are_distributed(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Undotted criteria go to the origin, dotted ones to the named alias."""
        code = (
            "const rows = await ctx.db.orders.join({\n"
            "  items: {on: {order_id: 'id'}}\n"
            "}).find({status: 'open', 'items.sku': 'A-1', 'total >': 100});\n"
        )

        records = _by_entity(indexer.index("q.js", parse("javascript", code), parser))

        assert records["orders"].column_names == ["status", "total"]
        assert records["items"].column_names == ["order_id", "id", "sku"]
        assert all(c.confidence == 1.0 for c in records["items"].column_refs or ())

    def test_schema_qualified_origin(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """db.schema.table reports the origin with its schema."""
        code = "db.sales.orders.join({items: {on: {order_id: 'id'}}}).find();\n"

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.entity for r in records] == ["sales.orders", "items"]

    def test_join_columns_always_attempted(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Join records carry column lists even when empty."""
        code = "db.orders.join('customers');\n"

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.column_refs for r in records] == [(), ()]


class TestTableCalls:
    """db.table.fn(...) accessor calls."""

    def test_criteria_keys_become_columns(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse, locate: Locate
    ) -> None:
        """Keys of a leading criteria object are column names."""
        code = "const user = await db.users.findOne({email: addr, 'age >=': 18});\n"

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.entity for r in records] == ["users"]
        assert records[0].column_names == ["email", "age"]
        assert records[0].join is False
        assert (records[0].span.x1, records[0].span.y1) == locate(code, "users")

    def test_schema_and_context(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """ctx.db.schema.table is schema qualified."""
        code = "await this.db.auth.sessions.destroy({token});\n"

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.entity for r in records] == ["auth.sessions"]
        assert records[0].column_names == ["token"]

    def test_non_object_argument_means_no_attribution(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """A primary key lookup reports the table without columns."""
        code = "const user = await db.users.findOne(42);\n"

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.entity for r in records] == ["users"]
        assert records[0].column_refs is None

    def test_other_receivers_are_ignored(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Only calls rooted at a db handle count."""
        code = "api.users.find({id: 1});\nlodash.orders.join('x');\n"

        assert indexer.index("q.js", parse("javascript", code), parser) == []

    def test_records_follow_document_order(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Joins and plain calls interleave in source order."""
        code = "db.users.find({id: 1});\ndb.orders.join('items');\ndb.tags.count();\n"

        records = indexer.index("q.js", parse("javascript", code), parser)

        assert [r.entity for r in records] == ["users", "orders", "items", "tags"]

    def test_other_languages_yield_nothing(
        self, indexer: MassiveIndexer, parser: TreeSitterParser, parse: Parse
    ) -> None:
        """Files that are not JavaScript are skipped."""
        assert indexer.index("x.py", parse("python", "db.users.find()\n"), parser) == []
