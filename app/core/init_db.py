import asyncio
import logging
import sys

from sqlalchemy import inspect, select, func
from app.core.config import ENVIRONMENT
from app.core.database import Base, async_session, db_manager, engine
from app.core.exceptions import DatabaseError, ConfigurationError

# Регистрация всех моделей в Base.metadata
from app.staff.models import User, UserRole

logger = logging.getLogger(__name__)


async def init_database():
    """Проверить соединение и создать недостающие таблицы"""
    try:
        logger.info("Starting database initialization...")

        await db_manager.check_connection()
        logger.info("✅ Database connection verified")

        await db_manager.create_tables()
        logger.info("✅ Database tables created/verified")

        logger.info("🎉 Database initialization completed successfully")

    except DatabaseError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during database initialization: {e}")
        raise DatabaseError(f"Database initialization failed: {str(e)}")


async def verify_database_setup():
    """Все таблицы моделей существуют, в базе есть хотя бы один ADMIN"""
    try:
        logger.info("Verifying database setup...")

        async with engine.connect() as conn:
            existing = await conn.run_sync(
                lambda sync_conn: set(inspect(sync_conn).get_table_names())
            )

        missing = sorted(set(Base.metadata.tables) - existing)
        if missing:
            raise DatabaseError(f"Missing tables: {', '.join(missing)}")

        async with async_session() as session:
            users_count = (await session.execute(select(func.count(User.id)))).scalar()
            admins_count = (
                await session.execute(
                    select(func.count(User.id)).where(User.role == UserRole.ADMIN)
                )
            ).scalar()

        if not admins_count:
            logger.warning("No ADMIN users found")

        logger.info(
            f"✅ Database verification passed: {len(existing)} tables, "
            f"{users_count} users, {admins_count} admins"
        )
        return True

    except DatabaseError:
        raise
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        raise DatabaseError(f"Database verification failed: {str(e)}")


async def reset_database():
    """Удалить и заново создать все таблицы (только development/test)"""
    if ENVIRONMENT not in ["development", "dev", "test"]:
        raise ConfigurationError(
            "ENVIRONMENT",
            "Database reset is only allowed in development or test environments",
        )

    logger.warning("🚨 RESETTING DATABASE - ALL DATA WILL BE LOST!")
    await db_manager.drop_tables()
    await init_database()
    logger.info("✅ Database reset completed")


async def main(command: str = "init"):
    commands = {
        "init": init_database,
        "verify": verify_database_setup,
        "reset": reset_database,
    }
    if command not in commands:
        raise ConfigurationError(
            "command", f"Unknown command {command!r}, use one of: {', '.join(commands)}"
        )
    try:
        await commands[command]()
    finally:
        await db_manager.close_connections()


if __name__ == "__main__":
    from app.core.config import LOG_LEVEL, LOG_FORMAT
    from app.core.logging_utils import setup_logging

    setup_logging(LOG_LEVEL, LOG_FORMAT)

    try:
        asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "init"))
    except KeyboardInterrupt:
        logger.info("Database initialization cancelled by user")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)
