"""Tests for Alembic migration integration."""

from unittest.mock import patch

from alembic import command
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.ext.asyncio import create_async_engine

from tutorfeed.core.database import Base
from tutorfeed.core.migrations import _PROJECT_ROOT, ensure_db_migrated

APP_TABLES = {
    "teachers",
    "students",
    "teacher_students",
    "lessons",
    "activity_events",
    "payment_events",
    "notification_logs",
}


# ── Helpers ───────────────────────────────────────────────────────────────────


def _test_cfg(connection):
    """Alembic Config wired to a sync connection for isolated tests."""
    from alembic.config import Config

    cfg = Config(str(_PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(_PROJECT_ROOT / "alembic"))
    cfg.attributes["connection"] = connection
    return cfg


def _tables_and_revision(db_path):
    sync_engine = create_engine(f"sqlite:///{db_path}")
    with sync_engine.begin() as conn:
        tables = set(inspect(conn).get_table_names())
        row = None
        if "alembic_version" in tables:
            row = conn.execute(text("SELECT version_num FROM alembic_version")).first()
    sync_engine.dispose()
    return tables, row[0] if row else None


# ── Migration Chain Tests (sync, isolated SQLite) ────────────────────────────


class TestMigrationChain:
    def test_upgrade_to_head_creates_all_tables(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")
        with engine.begin() as conn:
            command.upgrade(_test_cfg(conn), "head")

        with engine.begin() as conn:
            tables = set(inspect(conn).get_table_names())

        assert tables == APP_TABLES | {"alembic_version"}
        engine.dispose()

    def test_upgrade_then_downgrade_to_base(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")
        with engine.begin() as conn:
            command.upgrade(_test_cfg(conn), "head")
        with engine.begin() as conn:
            command.downgrade(_test_cfg(conn), "base")

        with engine.begin() as conn:
            tables = set(inspect(conn).get_table_names())

        assert tables <= {"alembic_version"}
        engine.dispose()

    def test_migration_schema_matches_create_all(self, tmp_path):
        engine_m = create_engine(f"sqlite:///{tmp_path / 'migration.db'}")
        with engine_m.begin() as conn:
            command.upgrade(_test_cfg(conn), "head")

        engine_c = create_engine(f"sqlite:///{tmp_path / 'create_all.db'}")
        with engine_c.begin() as conn:
            Base.metadata.create_all(conn)

        with engine_m.begin() as conn:
            m_insp = inspect(conn)
            m_tables = set(m_insp.get_table_names()) - {"alembic_version"}
            m_cols = {t: {c["name"] for c in m_insp.get_columns(t)} for t in m_tables}

        with engine_c.begin() as conn:
            c_insp = inspect(conn)
            c_tables = set(c_insp.get_table_names())
            c_cols = {t: {c["name"] for c in c_insp.get_columns(t)} for t in c_tables}

        assert m_tables == c_tables, f"Table mismatch: {m_tables ^ c_tables}"
        for table in m_tables:
            assert m_cols[table] == c_cols[table], f"Column mismatch in '{table}'"

        engine_m.dispose()
        engine_c.dispose()


# ── ensure_db_migrated Tests (async, real temp DBs) ──────────────────────────


class TestEnsureDbMigrated:
    async def test_fresh_db_creates_tables_and_stamps(self, tmp_path):
        db_path = tmp_path / "fresh.db"
        test_engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")

        with patch("tutorfeed.core.database.engine", test_engine):
            await ensure_db_migrated()
        await test_engine.dispose()

        tables, revision = _tables_and_revision(db_path)
        assert APP_TABLES <= tables
        assert revision == "001"

    async def test_existing_db_without_alembic_gets_stamped(self, tmp_path):
        db_path = tmp_path / "existing.db"
        sync_engine = create_engine(f"sqlite:///{db_path}")
        with sync_engine.begin() as conn:
            Base.metadata.create_all(conn)
        sync_engine.dispose()

        test_engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
        with patch("tutorfeed.core.database.engine", test_engine):
            await ensure_db_migrated()
        await test_engine.dispose()

        tables, revision = _tables_and_revision(db_path)
        assert "activity_events" in tables
        assert revision == "001"

    async def test_tracked_db_is_upgraded_in_place(self, tmp_path):
        db_path = tmp_path / "tracked.db"
        sync_engine = create_engine(f"sqlite:///{db_path}")
        with sync_engine.begin() as conn:
            command.upgrade(_test_cfg(conn), "head")
            conn.execute(
                text(
                    "INSERT INTO activity_events (teacher_id, category, action, status, source, title, occurred_at) "
                    "VALUES (1, 'LESSON', 'LESSON_CREATED', 'SUCCESS', 'USER', 'Kept', '2026-03-02 12:00:00')"
                )
            )
        sync_engine.dispose()

        test_engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
        with patch("tutorfeed.core.database.engine", test_engine):
            await ensure_db_migrated()
        await test_engine.dispose()

        tables, revision = _tables_and_revision(db_path)
        assert revision == "001"
        sync_engine = create_engine(f"sqlite:///{db_path}")
        with sync_engine.begin() as conn:
            count = conn.execute(text("SELECT COUNT(*) FROM activity_events")).scalar()
        sync_engine.dispose()
        assert count == 1
