"""Unit tests for store error translation."""

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from canon.persistence.database import transient_errors
from canon.persistence.error import TransientStoreError


class TestTransientErrors:
    @pytest.mark.asyncio
    async def test_pool_timeout_is_transient(self):
        with pytest.raises(TransientStoreError):
            async with transient_errors("users.find_by_id"):
                raise PoolTimeoutError("QueuePool limit reached")

    @pytest.mark.asyncio
    async def test_operational_error_is_transient(self):
        with pytest.raises(TransientStoreError):
            async with transient_errors("users.find_by_id"):
                raise OperationalError("SELECT 1", None, Exception("refused"))

    @pytest.mark.asyncio
    async def test_invalidated_connection_is_transient(self):
        with pytest.raises(TransientStoreError):
            async with transient_errors("users.find_by_id"):
                raise DBAPIError(
                    "SELECT 1", None, Exception("reset"), connection_invalidated=True
                )

    @pytest.mark.asyncio
    async def test_integrity_error_passes_through(self):
        with pytest.raises(IntegrityError):
            async with transient_errors("identities.insert"):
                raise IntegrityError("INSERT", None, Exception("duplicate key"))
