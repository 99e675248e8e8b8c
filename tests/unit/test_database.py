"""Unit tests for pool lifecycle, migrations and health check."""

from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from storageup import database
from storageup.database import (
    MIGRATIONS_DIR,
    DatabaseUnavailableError,
    get_pool,
    health_check,
    run_migrations,
)


@pytest.fixture
def patched_pool(mock_pool):
    pool, conn = mock_pool
    conn.fetch.return_value = []
    with patch("storageup.database.get_pool", new_callable=AsyncMock, return_value=pool):
        yield conn


class TestGetPool:
    async def test_uninitialized_pool_raises(self):
        with patch.object(database, "_pool", None):
            with pytest.raises(DatabaseUnavailableError):
                await get_pool()


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------

class TestRunMigrations:
    async def test_applies_pending_migrations(self, patched_pool):
        applied = await run_migrations()

        assert applied == ["001_users.sql"]
        executed = [call.args[0] for call in patched_pool.execute.call_args_list]
        assert "CREATE TABLE IF NOT EXISTS schema_migrations" in executed[0]
        assert any("CREATE TABLE IF NOT EXISTS users" in sql for sql in executed)
        record = patched_pool.execute.call_args_list[-1].args
        assert record == ("INSERT INTO schema_migrations (filename) VALUES ($1)", "001_users.sql")
        patched_pool.transaction.assert_called_once()

    async def test_skips_applied_migrations(self, patched_pool):
        patched_pool.fetch.return_value = [{"filename": "001_users.sql"}]

        applied = await run_migrations()

        assert applied == []
        assert patched_pool.execute.call_count == 1

    async def test_runs_files_in_name_order(self, patched_pool, tmp_path):
        (tmp_path / "002_second.sql").write_text("SELECT 2;")
        (tmp_path / "001_first.sql").write_text("SELECT 1;")
        (tmp_path / "notes.txt").write_text("ignored")

        applied = await run_migrations(tmp_path)

        assert applied == ["001_first.sql", "002_second.sql"]

    async def test_failed_migration_propagates(self, patched_pool):
        patched_pool.execute.side_effect = [None, asyncpg.exceptions.PostgresSyntaxError("syntax error")]

        with pytest.raises(asyncpg.PostgresError):
            await run_migrations()

    def test_users_migration_is_packaged(self):
        assert (MIGRATIONS_DIR / "001_users.sql").exists()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealthCheck:
    async def test_healthy(self, patched_pool):
        patched_pool.fetchval.return_value = 1

        assert await health_check() is True

    async def test_query_failure(self, patched_pool):
        patched_pool.fetchval.side_effect = ConnectionResetError("reset")

        assert await health_check() is False

    async def test_unavailable(self):
        with patch.object(database, "_pool", None):
            assert await health_check() is False
