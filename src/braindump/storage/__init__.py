"""Storage layer for braindumps."""

from braindump.storage.postgres import PostgresStorage

__all__ = ["PostgresStorage"]
