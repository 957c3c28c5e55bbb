#!/usr/bin/env python
"""
Create the transactions table straight from the SQLAlchemy models.
Development shortcut; use `alembic upgrade head` elsewhere.
"""

import asyncio
import sys

from sqlalchemy import text

from labeler.core.config import settings
from labeler.core.db import close_db, get_async_engine, init_db
from labeler.core.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)


async def main() -> int:
    engine = get_async_engine()
    try:
        if engine.dialect.name == "postgresql":
            async with engine.begin() as conn:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await init_db()
    finally:
        await close_db()

    logger.info("database_initialized", environment=settings.environment)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
