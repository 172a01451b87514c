"""Persistence layer errors."""


class PersistenceError(Exception):
    """Base persistence error."""

    pass


class SchemaMismatchError(PersistenceError):
    """The live schema cannot hold a write at all.

    Individual unknown fields are dropped and logged; this is raised only
    when the table is missing or nothing of the record survives.
    """

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"{table}: {message}")


class TransientStoreError(PersistenceError):
    """Pool exhaustion, timeout or dropped connection. Safe to retry."""

    pass
