import asyncio
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from creditassist.core.config import settings
from creditassist.db.base import Base

logger = structlog.get_logger()


async def create_tables(engine: AsyncEngine, timeout: float = 10.0):
    """
    Create every table registered on Base. Safe to run on every start.
    """
    # Trigger model registration
    from creditassist.models.chat_message import ChatMessage  # noqa: F401
    from creditassist.models.document import Document  # noqa: F401

    try:
        # Fail fast if the connection hangs (firewall/network issues)
        async with asyncio.timeout(timeout):
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("db_tables_ready")
    except TimeoutError:
        logger.error("db_init_timeout", message=f"Connection to database timed out after {timeout}s.")
        raise
    except Exception as e:
        logger.error("db_init_failed", error=str(e))
        raise


async def main():
    from creditassist.db.session import build_engine

    logger.info("db_init_start")
    engine = build_engine(settings.DATABASE_URL)
    try:
        await create_tables(engine)
    finally:
        await engine.dispose()
    logger.info("db_init_complete")


if __name__ == "__main__":
    asyncio.run(main())
