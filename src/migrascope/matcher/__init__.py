"""Migration change matching."""

from migrascope.matcher.migrations import match_migrations
from migrascope.matcher.sql import match_sql

__all__ = ["match_migrations", "match_sql"]
