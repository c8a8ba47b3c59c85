"""Migrascope CLI."""
