"""Live-schema guard for writes to shared tables.

The ``users`` table is shared with other applications and its column set
can be narrower than the User model. SchemaGuard introspects the live
table and narrows every write (and read) to the columns that exist.
Fields without a column are dropped: a deliberate trade of silent field
loss for writes that never fail on schema drift. Every drop is logged and
counted so the loss stays visible.
"""

import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

import logfire
from pydantic import BaseModel, ConfigDict
from sqlalchemy import Column, Insert, Table, Update, column, inspect, table
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql.expression import TableClause

from canon.domain.model.common import utcnow
from canon.persistence.error import SchemaMismatchError
from canon.persistence.tables import KNOWN_TABLES

_dropped_fields = logfire.metric_counter(
    "schema_guard.dropped_fields",
    unit="1",
    description="Record fields dropped because the live table has no matching column",
)

DEFAULT_TIMESTAMP_COLUMNS = ("created_at", "updated_at")


def to_snake_case(name: str) -> str:
    """Convert camelCase / PascalCase to snake_case.

    >>> to_snake_case("fullName")
    'full_name'
    >>> to_snake_case("whatsAppNumber")
    'whats_app_number'
    """
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return name.lower()


def _loose(name: str) -> str:
    return name.replace("_", "").lower()


class ValidatedRecord(BaseModel):
    """A write payload narrowed to a table's live columns."""

    model_config = ConfigDict(frozen=True)

    table: str
    values: dict[str, Any]
    dropped: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.values


class SchemaInspector(ABC):
    """Source of the live column set of a table."""

    @abstractmethod
    async def fetch_columns(self, table_name: str) -> set[str]:
        """Return the column names of a table (empty if it does not exist)."""
        pass


class PostgresSchemaInspector(SchemaInspector):
    """Reads columns through SQLAlchemy's runtime inspection."""

    def __init__(self, engine: AsyncEngine, schema: str | None = None) -> None:
        self.engine = engine
        self.schema = schema

    async def fetch_columns(self, table_name: str) -> set[str]:
        def _columns(sync_conn) -> set[str]:
            inspector = inspect(sync_conn)
            if not inspector.has_table(table_name, schema=self.schema):
                return set()
            return {
                c["name"] for c in inspector.get_columns(table_name, schema=self.schema)
            }

        async with self.engine.connect() as conn:
            return await conn.run_sync(_columns)


class StaticSchemaInspector(SchemaInspector):
    """Fixed column sets, for the in-memory store and tests."""

    def __init__(self, columns: Mapping[str, Iterable[str]] | None = None) -> None:
        if columns is None:
            columns = {name: t.c.keys() for name, t in KNOWN_TABLES.items()}
        self.columns = {name: set(cols) for name, cols in columns.items()}

    async def fetch_columns(self, table_name: str) -> set[str]:
        return set(self.columns.get(table_name, ()))


class SchemaGuard:
    """Filters payloads to a table's live columns and builds safe statements."""

    def __init__(
        self,
        inspector: SchemaInspector,
        tables: Mapping[str, Table] | None = None,
    ) -> None:
        """Initialize schema guard.

        Args:
            inspector: Live column source
            tables: Known table definitions, used for column types
        """
        self.inspector = inspector
        self.tables = dict(KNOWN_TABLES if tables is None else tables)
        self._columns: dict[str, frozenset[str]] = {}

    async def get_existing_columns(self, table_name: str) -> frozenset[str]:
        """Live column names of a table, cached after the first lookup.

        Raises:
            SchemaMismatchError: If the table does not exist
        """
        cached = self._columns.get(table_name)
        if cached is not None:
            return cached

        with logfire.span("schema_guard.introspect", table=table_name):
            columns = frozenset(await self.inspector.fetch_columns(table_name))

        if not columns:
            logfire.error("Table missing from live schema", table=table_name)
            raise SchemaMismatchError(table_name, "table has no columns or does not exist")

        known = self.tables.get(table_name)
        if known is not None:
            missing = sorted(set(known.c.keys()) - columns)
            if missing:
                logfire.warn(
                    "Live table is narrower than the model",
                    table=table_name,
                    missing_columns=missing,
                )

        self._columns[table_name] = columns
        return columns

    def refresh(self, table_name: str | None = None) -> None:
        """Forget cached column sets (after a migration, for instance)."""
        if table_name is None:
            self._columns.clear()
        else:
            self._columns.pop(table_name, None)

    async def pick_existing_columns(
        self, record: Mapping[str, Any], table_name: str
    ) -> ValidatedRecord:
        """Keep only the fields of ``record`` that name a live column.

        Keys are tried as-is, then snake_case-converted, then compared
        case- and underscore-insensitively. When two keys land on the same
        column the exact match wins; the other key is dropped.

        Args:
            record: Field name to value mapping
            table_name: Target table

        Returns:
            Validated record with column-keyed values and dropped key names
        """
        columns = await self.get_existing_columns(table_name)
        loose = {_loose(c): c for c in columns}

        values: dict[str, Any] = {}
        exact_hits: dict[str, bool] = {}
        origin: dict[str, str] = {}
        dropped: list[str] = []

        for key, value in record.items():
            column_name, exact = self._match(key, columns, loose)
            if column_name is None:
                dropped.append(key)
                continue

            if column_name in values:
                if exact and not exact_hits[column_name]:
                    dropped.append(origin[column_name])
                else:
                    dropped.append(key)
                    continue

            values[column_name] = value
            exact_hits[column_name] = exact
            origin[column_name] = key

        if dropped:
            logfire.warn(
                "Dropping fields absent from live schema",
                table=table_name,
                dropped=dropped,
                kept=sorted(values),
            )
            _dropped_fields.add(len(dropped), {"table": table_name})

        return ValidatedRecord(table=table_name, values=values, dropped=tuple(dropped))

    async def build_safe_insert(
        self, record: Mapping[str, Any], table_name: str
    ) -> Insert:
        """Build a parameterized INSERT restricted to live columns.

        ``id``, ``created_at`` and ``updated_at`` are filled in when the
        live table has them and the record does not.

        Raises:
            SchemaMismatchError: If no field of the record can be written
        """
        validated = await self.pick_existing_columns(record, table_name)
        columns = await self.get_existing_columns(table_name)

        values = dict(validated.values)
        if "id" in columns and values.get("id") is None:
            values["id"] = uuid.uuid4()
        now = utcnow()
        for name in DEFAULT_TIMESTAMP_COLUMNS:
            if name in columns and values.get(name) is None:
                values[name] = now

        if not values:
            raise SchemaMismatchError(table_name, "no writable fields in record")

        target = self.table_clause(table_name, values.keys())
        return target.insert().values(**values)

    async def build_safe_update(
        self,
        record: Mapping[str, Any],
        table_name: str,
        key_column: str,
        key: Any,
    ) -> Update | None:
        """Build a parameterized UPDATE restricted to live columns.

        ``updated_at`` is refreshed when the table has it.

        Returns:
            The statement, or None when no field of the record survives
        """
        validated = await self.pick_existing_columns(record, table_name)
        columns = await self.get_existing_columns(table_name)

        values = {k: v for k, v in validated.values.items() if k != key_column}
        if not values:
            return None
        if "updated_at" in columns and "updated_at" not in values:
            values["updated_at"] = utcnow()

        target = self.table_clause(table_name, [*values.keys(), key_column])
        return (
            target.update().where(target.c[key_column] == key).values(**values)
        )

    async def readable_columns(self, known: Table) -> list[Column]:
        """Columns of a known table that also exist in the live table."""
        columns = await self.get_existing_columns(known.name)
        return [c for c in known.c if c.name in columns]

    def table_clause(self, table_name: str, columns: Iterable[str]) -> TableClause:
        """Lightweight table construct over the given columns, typed when known."""
        known = self.tables.get(table_name)
        clause_columns = []
        for name in columns:
            type_ = known.c[name].type if known is not None and name in known.c else None
            clause_columns.append(column(name, type_))
        return table(table_name, *clause_columns)

    @staticmethod
    def _match(
        key: str, columns: frozenset[str], loose: Mapping[str, str]
    ) -> tuple[str | None, bool]:
        if key in columns:
            return key, True
        snake = to_snake_case(key)
        if snake in columns:
            return snake, False
        return loose.get(_loose(key)), False
