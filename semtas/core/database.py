"""
Database management utilities: migrations at startup and health checks.
"""

import logging
import asyncio
from typing import Optional, List, Dict, Any
from datetime import datetime
from pathlib import Path
from sqlalchemy import text, inspect
from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory

from semtas.core.config import get_settings
from semtas.db.session import engine

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]

EXPECTED_TABLES = [
    "solicitacao", "concessao", "pagamento",
    "historico_concessao", "historico_pagamento", "historico_solicitacao",
    "agendamento_notificacao", "log_auditoria", "outbox_evento",
]


class DatabaseManager:
    """
    Database management utility for migrations and health checks.
    """

    def __init__(self):
        self.settings = get_settings()
        self.alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
        self.alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
        self.alembic_cfg.set_main_option("sqlalchemy.url", str(self.settings.DB_URL))

    async def get_current_revision(self) -> Optional[str]:
        """Get the current database revision, None when migrations never ran."""
        try:
            async with engine.connect() as connection:
                tables = await connection.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
                if "alembic_version" not in tables:
                    return None
                result = await connection.execute(text("SELECT version_num FROM alembic_version"))
                row = result.fetchone()
                return row[0] if row else None
        except Exception as e:
            logger.error(f"Error getting current revision: {e}")
            return None

    def get_available_revisions(self) -> List[str]:
        """Migration revisions in chronological order."""
        script_dir = ScriptDirectory.from_config(self.alembic_cfg)
        return list(reversed([rev.revision for rev in script_dir.walk_revisions()]))

    async def check_migration_status(self) -> Dict[str, Any]:
        current_revision = await self.get_current_revision()
        available_revisions = self.get_available_revisions()
        latest = available_revisions[-1] if available_revisions else None

        if not current_revision:
            status = "not_initialized"
            pending = available_revisions
        elif current_revision == latest:
            status = "up_to_date"
            pending = []
        else:
            status = "pending_migrations"
            try:
                pending = available_revisions[available_revisions.index(current_revision) + 1:]
            except ValueError:
                pending = available_revisions

        return {
            "status": status,
            "current_revision": current_revision,
            "latest_revision": latest,
            "pending_migrations": pending,
        }

    async def run_migrations_async(self, target_revision: Optional[str] = None) -> bool:
        """Run Alembic migrations from an async context without event-loop conflicts."""
        try:
            rev = target_revision or "head"
            await asyncio.to_thread(command.upgrade, self.alembic_cfg, rev)
            logger.info(f"Successfully ran migrations to {rev}")
            return True
        except Exception as e:
            logger.exception(f"Error running migrations: {e}")
            return False

    async def check_database_health(self) -> Dict[str, Any]:
        """Connectivity, migration and schema checks."""
        health_status: Dict[str, Any] = {
            "status": "healthy",
            "checks": {},
            "timestamp": datetime.utcnow().isoformat(),
        }

        try:
            async with engine.connect() as connection:
                start_time = datetime.utcnow()
                await connection.execute(text("SELECT 1"))
                health_status["checks"]["connectivity"] = {
                    "status": "pass",
                    "response_time_ms": int((datetime.utcnow() - start_time).total_seconds() * 1000),
                }

                tables = await connection.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
                missing_tables = [t for t in EXPECTED_TABLES if t not in tables]
                health_status["checks"]["schema"] = {
                    "status": "pass" if not missing_tables else "fail",
                    "missing_tables": missing_tables,
                }

            migration_status = await self.check_migration_status()
            health_status["checks"]["migrations"] = {
                "status": "pass" if migration_status["status"] == "up_to_date" else "warn",
                "current_revision": migration_status["current_revision"],
                "pending_migrations": len(migration_status["pending_migrations"]),
            }

            checks = health_status["checks"].values()
            if any(c["status"] == "fail" for c in checks):
                health_status["status"] = "unhealthy"
            elif any(c["status"] == "warn" for c in checks):
                health_status["status"] = "degraded"

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            health_status["status"] = "unhealthy"
            health_status["error"] = str(e)

        return health_status


# Global database manager instance
db_manager = DatabaseManager()


async def initialize_database():
    """Bring the schema up to date with the latest migration."""
    if not db_manager.settings.RUN_MIGRATIONS:
        logger.info("RUN_MIGRATIONS disabled, skipping database migrations")
        return

    logger.info("Running database migrations...")
    if not await db_manager.run_migrations_async():
        raise RuntimeError("Failed to run database migrations")
    logger.info("Database migrations completed successfully")
