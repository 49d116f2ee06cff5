import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import create_engine, create_session_maker
from core.logging import setup_logging
from ingestion.metadata import SyncMetadataTracker
from ingestion.registry import load_registry
# Import all models to ensure they are registered
from models import Base, DatasetRecord, SyncMetadata, RecordAssociation

logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")
    engine = create_engine(echo=False)

    async with engine.begin() as conn:
        logger.info("Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables created successfully.")

    # One never_run metadata row per registered dataset
    async with create_session_maker(engine)() as session:
        created = await SyncMetadataTracker(session).ensure_rows(load_registry())
        logger.info(f"Seeded {created} sync metadata rows.")

    await engine.dispose()

if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
