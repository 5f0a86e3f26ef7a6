from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, call, patch

import pytest

from bin import migrate


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    (tmp_path / "0001_init.sql").write_text("SELECT 1;", encoding="utf-8")
    (tmp_path / "0002_more.sql").write_text("SELECT 2;", encoding="utf-8")
    return tmp_path


def _pending(migrations_dir: Path, *names: str):
    return [(name, migrations_dir / f"{name}.sql", "SELECT 1;", "checksum") for name in names]


@pytest.mark.asyncio
async def test_dry_run_logs_pending_without_applying(migrations_dir, capsys):
    conn = AsyncMock()
    pending = _pending(migrations_dir, "0001_init", "0002_more")
    with patch.object(migrate.asyncpg, "connect", AsyncMock(return_value=conn)), patch.object(
        migrate, "pending_migrations", AsyncMock(return_value=pending)
    ), patch.object(migrate, "apply_pending", AsyncMock()) as apply_mock, patch.object(
        migrate, "logger"
    ) as logger:
        await migrate.run("postgresql://localhost/db", migrations_dir, dry_run=True)

    apply_mock.assert_not_awaited()
    conn.close.assert_awaited_once()
    assert logger.info.call_args_list == [
        call("pending migration", migration="0001_init.sql", dry_run=True),
        call("pending migration", migration="0002_more.sql", dry_run=True),
        call("migrations pending", count=2, dry_run=True),
    ]
    assert capsys.readouterr().out == ""


@pytest.mark.asyncio
async def test_pending_migrations_are_applied_and_logged(migrations_dir):
    conn = AsyncMock()
    pending = _pending(migrations_dir, "0002_more")
    with patch.object(migrate.asyncpg, "connect", AsyncMock(return_value=conn)), patch.object(
        migrate, "pending_migrations", AsyncMock(return_value=pending)
    ), patch.object(migrate, "apply_pending", AsyncMock()) as apply_mock, patch.object(
        migrate, "logger"
    ) as logger:
        await migrate.run("postgresql://localhost/db", migrations_dir, dry_run=False)

    apply_mock.assert_awaited_once_with(conn, pending)
    logger.info.assert_called_once_with("migrations applied", count=1)


@pytest.mark.asyncio
async def test_nothing_pending(migrations_dir):
    conn = AsyncMock()
    with patch.object(migrate.asyncpg, "connect", AsyncMock(return_value=conn)), patch.object(
        migrate, "pending_migrations", AsyncMock(return_value=[])
    ), patch.object(migrate, "logger") as logger:
        await migrate.run("postgresql://localhost/db", migrations_dir, dry_run=False)

    logger.info.assert_called_once_with("no pending migrations")


@pytest.mark.asyncio
async def test_missing_directory_exits(tmp_path):
    with pytest.raises(SystemExit):
        await migrate.run("postgresql://localhost/db", tmp_path / "nope", dry_run=False)
