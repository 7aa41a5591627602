"""Create the application tables if they do not exist.

Run via: python -m checkpulse.jobs.init_schema
"""

import asyncio

import structlog

from checkpulse.adapters.postgres import AppDatabase, create_schema
from checkpulse.config import Settings
from checkpulse.logging import configure_logging

logger = structlog.get_logger()


async def main() -> None:
    """Apply the schema to DATABASE_URL."""
    settings = Settings()
    configure_logging(settings.log_level, settings.log_json)

    db = AppDatabase(settings.database_url)
    await db.connect()
    try:
        await create_schema(db)
        logger.info("schema_created")
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
