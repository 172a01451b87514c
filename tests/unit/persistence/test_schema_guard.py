"""Unit tests for SchemaGuard."""

import pytest
from sqlalchemy.dialects import postgresql

from canon.persistence.error import SchemaMismatchError
from canon.persistence.schema_guard import (
    SchemaGuard,
    StaticSchemaInspector,
    to_snake_case,
)


def narrow_guard() -> SchemaGuard:
    return SchemaGuard(
        StaticSchemaInspector({"users": ["id", "full_name", "email"]})
    )


class TestToSnakeCase:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("fullName", "full_name"),
            ("AvatarURL", "avatar_url"),
            ("lastLogin", "last_login"),
            ("email", "email"),
        ],
    )
    def test_conversion(self, name, expected):
        assert to_snake_case(name) == expected


class TestPickExistingColumns:
    """Tests for SchemaGuard.pick_existing_columns()."""

    @pytest.mark.asyncio
    async def test_drops_fields_without_columns(self):
        guard = narrow_guard()

        validated = await guard.pick_existing_columns(
            {"full_name": "Asha", "email": "a@x.io", "rank": "Master", "city": "Goa"},
            "users",
        )

        assert validated.values == {"full_name": "Asha", "email": "a@x.io"}
        assert set(validated.dropped) == {"rank", "city"}

    @pytest.mark.asyncio
    async def test_maps_camel_case_keys(self):
        guard = narrow_guard()

        validated = await guard.pick_existing_columns({"fullName": "Asha"}, "users")

        assert validated.values == {"full_name": "Asha"}
        assert validated.dropped == ()

    @pytest.mark.asyncio
    async def test_exact_match_wins_over_converted_key(self):
        guard = narrow_guard()

        validated = await guard.pick_existing_columns(
            {"fullName": "Converted", "full_name": "Exact"}, "users"
        )

        assert validated.values == {"full_name": "Exact"}
        assert validated.dropped == ("fullName",)

    @pytest.mark.asyncio
    async def test_missing_table_raises(self):
        guard = narrow_guard()

        with pytest.raises(SchemaMismatchError):
            await guard.pick_existing_columns({"x": 1}, "nonexistent")

    @pytest.mark.asyncio
    async def test_columns_are_cached_until_refresh(self):
        inspector = StaticSchemaInspector({"users": ["id", "full_name"]})
        guard = SchemaGuard(inspector)
        await guard.get_existing_columns("users")

        inspector.columns["users"].add("email")
        assert "email" not in await guard.get_existing_columns("users")

        guard.refresh("users")
        assert "email" in await guard.get_existing_columns("users")


class TestBuildStatements:
    """Tests for safe INSERT / UPDATE construction."""

    @pytest.mark.asyncio
    async def test_insert_only_uses_live_columns(self):
        guard = narrow_guard()

        stmt = await guard.build_safe_insert(
            {"full_name": "Asha", "rank": "Master"}, "users"
        )
        compiled = stmt.compile(dialect=postgresql.dialect())

        assert set(compiled.params) == {"id", "full_name"}

    @pytest.mark.asyncio
    async def test_insert_fills_timestamps_when_present(self):
        guard = SchemaGuard(
            StaticSchemaInspector({"users": ["id", "full_name", "created_at"]})
        )

        stmt = await guard.build_safe_insert({"full_name": "Asha"}, "users")
        compiled = stmt.compile(dialect=postgresql.dialect())

        assert set(compiled.params) == {"id", "full_name", "created_at"}

    @pytest.mark.asyncio
    async def test_update_with_no_surviving_field_is_none(self):
        guard = narrow_guard()

        stmt = await guard.build_safe_update({"city": "Goa"}, "users", "id", "abc")

        assert stmt is None

    @pytest.mark.asyncio
    async def test_update_excludes_key_column_from_values(self):
        guard = narrow_guard()

        stmt = await guard.build_safe_update(
            {"id": "abc", "email": "a@x.io"}, "users", "id", "abc"
        )
        sql = str(stmt.compile(dialect=postgresql.dialect()))

        assert sql.startswith("UPDATE users SET email=")
        assert "WHERE users.id =" in sql
