"""Tests for the file dispatcher (index/files.py).

Tests cover:
- Routing of .sql files and host-language files
- Pattern indexers selected by glob
- Files without a grammar
- Lazy record production and error behavior
- JSON lines output
"""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from migrascope.config.models import MigrascopeConfig
from migrascope.core.errors import ConfigError, ErrorCode, IndexingError
from migrascope.index import index_files, write_jsonl
from migrascope.index.files import _matches_glob
from migrascope.index._internal.parsing.treesitter import TreeSitterParser

MODELS = '''\
class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True)


def totals(cursor):
    cursor.execute("SELECT total FROM invoices")
'''


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    (tmp_path / "db").mkdir()
    (tmp_path / "db" / "schema.sql").write_text("SELECT id FROM users;\n")
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "models.py").write_text(MODELS)
    (tmp_path / "app" / "other.py").write_text(MODELS.replace("orders", "archived"))
    (tmp_path / "README.md").write_text("SELECT * FROM nowhere\n")
    return tmp_path


@pytest.fixture
def config() -> MigrascopeConfig:
    return MigrascopeConfig(patterns={"sqlalchemy": ["**/models.py"]})


class TestDispatch:
    """Which analyzers run on which file."""

    def test_sql_files_go_to_sql_extractor(
        self, repo: Path, config: MigrascopeConfig, parser: TreeSitterParser
    ) -> None:
        """.sql files are indexed directly."""
        records = list(index_files(config, repo, ["db/schema.sql"], parser))

        assert [(r.file_path, r.entity) for r in records] == [("db/schema.sql", "users")]

    def test_embedded_then_pattern_records(
        self, repo: Path, config: MigrascopeConfig, parser: TreeSitterParser
    ) -> None:
        """Host files get embedded SQL first, then matching pattern indexers."""
        records = list(index_files(config, repo, ["app/models.py"], parser))

        assert [r.entity for r in records] == ["invoices", "orders"]
        assert {r.file_path for r in records} == {"app/models.py"}

    def test_globs_select_pattern_indexers(
        self, repo: Path, config: MigrascopeConfig, parser: TreeSitterParser
    ) -> None:
        """Files outside a pattern's globs only get embedded SQL."""
        records = list(index_files(config, repo, ["app/other.py"], parser))

        assert [r.entity for r in records] == ["invoices"]

    def test_no_patterns_configured(self, repo: Path, parser: TreeSitterParser) -> None:
        """Without pattern config only SQL extraction runs."""
        records = list(index_files(MigrascopeConfig(), repo, ["app/models.py"], parser))

        assert [r.entity for r in records] == ["invoices"]

    def test_files_without_grammar_are_skipped(
        self, repo: Path, config: MigrascopeConfig, parser: TreeSitterParser
    ) -> None:
        """Unsupported extensions produce nothing."""
        assert list(index_files(config, repo, ["README.md"], parser)) == []

    def test_records_follow_file_order(
        self, repo: Path, config: MigrascopeConfig, parser: TreeSitterParser
    ) -> None:
        """Records of each file come in the order files were given."""
        files = ["app/models.py", "README.md", "db/schema.sql"]

        records = list(index_files(config, repo, files, parser))

        assert [r.entity for r in records] == ["invoices", "orders", "users"]

    def test_absolute_paths_are_made_relative(
        self, repo: Path, config: MigrascopeConfig, parser: TreeSitterParser
    ) -> None:
        """Record paths are POSIX paths relative to the working directory."""
        root = repo.resolve()

        records = list(index_files(config, root, [root / "db" / "schema.sql"], parser))

        assert records[0].file_path == "db/schema.sql"

    def test_parser_is_optional(self, repo: Path, config: MigrascopeConfig) -> None:
        """A private parser is created when none is passed."""
        records = list(index_files(config, repo, ["db/schema.sql"]))

        assert len(records) == 1


class TestGlobs:
    """Pattern globs match path segments."""

    @pytest.mark.parametrize(
        ("path", "pattern", "expected"),
        [
            ("models.py", "**/models.py", True),
            ("app/models.py", "**/models.py", True),
            ("app/sub/models.py", "**/models.py", True),
            ("src/B.java", "src/*.java", True),
            ("src/a/B.java", "src/*.java", False),
            ("src/a/b/C.java", "src/**/*.java", True),
            ("src/C.java", "src/**/*.java", True),
            ("app/models.py", "*.py", False),
            ("app/model1.py", "app/model?.py", True),
            ("app/models_test.py", "**/models.py", False),
        ],
    )
    def test_segment_matching(self, path: str, pattern: str, expected: bool) -> None:
        """A single star stays within one segment; a double star spans any number."""
        assert _matches_glob(path, pattern) is expected

    def test_star_does_not_select_nested_files(self, repo: Path, parser: TreeSitterParser) -> None:
        """A top-level glob leaves files in subdirectories to embedded SQL only."""
        (repo / "models.py").write_text(MODELS)
        config = MigrascopeConfig(patterns={"sqlalchemy": ["*.py"]})

        top = list(index_files(config, repo, ["models.py"], parser))
        nested = list(index_files(config, repo, ["app/models.py"], parser))

        assert [r.entity for r in top] == ["invoices", "orders"]
        assert [r.entity for r in nested] == ["invoices"]


class TestErrors:
    """Failure behavior."""

    def test_unknown_pattern_fails_before_reading(self, repo: Path) -> None:
        """Misconfigured pattern types raise on the call, not on iteration."""
        config = MigrascopeConfig(patterns={"hibernate": ["**/*.java"]})

        with pytest.raises(ConfigError) as exc_info:
            index_files(config, repo, ["db/schema.sql"])

        assert exc_info.value.code == ErrorCode.CONFIG_UNKNOWN_PATTERN

    def test_unreadable_file_raises_when_reached(
        self, repo: Path, config: MigrascopeConfig, parser: TreeSitterParser
    ) -> None:
        """Records are produced lazily; a missing file fails when its turn comes."""
        records = index_files(config, repo, ["db/schema.sql", "db/missing.sql"], parser)

        first = next(records)
        assert first.entity == "users"
        with pytest.raises(IndexingError) as exc_info:
            next(records)
        assert exc_info.value.details["path"] == "db/missing.sql"

    def test_unparseable_sql_is_not_an_error(
        self, repo: Path, config: MigrascopeConfig, parser: TreeSitterParser
    ) -> None:
        """Garbage in a .sql file yields no records."""
        (repo / "db" / "junk.sql").write_text("this is not sql at all\n")

        assert list(index_files(config, repo, ["db/junk.sql"], parser)) == []


class TestWriteJsonl:
    """JSON lines output."""

    def test_one_object_per_line(
        self, repo: Path, config: MigrascopeConfig, parser: TreeSitterParser
    ) -> None:
        """Each record becomes one JSON object with flattened span fields."""
        stream = io.StringIO()

        count = write_jsonl(index_files(config, repo, ["db/schema.sql"], parser), stream)

        lines = stream.getvalue().splitlines()
        assert count == len(lines) == 1
        assert json.loads(lines[0]) == {
            "file_path": "db/schema.sql",
            "entity": "users",
            "x1": 16,
            "y1": 1,
            "x2": 21,
            "y2": 1,
            "column_refs": [{"name": "id", "confidence": 1.0}],
            "is_all_columns": False,
            "confidence": 1.0,
            "join": False,
        }

    def test_empty(self) -> None:
        """No records, no output."""
        stream = io.StringIO()

        assert write_jsonl([], stream) == 0
        assert stream.getvalue() == ""
