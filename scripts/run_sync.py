"""
Script to sync configured datasets from the command line

Usage:
    python scripts/run_sync.py              # sync every dataset
    python scripts/run_sync.py --dataset 3  # sync dataset 3 only
    python scripts/run_sync.py --link       # run the cross-reference linker only
"""

import argparse
import asyncio
import json
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import create_engine, create_session_maker
from core.exceptions import DatasetValidationError, SyncException
from core.logging import setup_logging
from ingestion.orchestrator import SyncOrchestrator
from ingestion.registry import load_registry

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Sync open-data datasets")
    parser.add_argument("--dataset", help="Dataset number to sync (default: all)")
    parser.add_argument("--link", action="store_true", help="Only run the cross-reference linker")
    parser.add_argument("--registry", help="Path to a dataset registry JSON file")
    return parser.parse_args(argv)


async def run_sync(args) -> int:
    """Run the requested sync; returns the process exit code"""

    engine = create_engine(echo=False)
    AsyncSessionLocal = create_session_maker(engine)

    try:
        registry = load_registry(args.registry)

        async with AsyncSessionLocal() as session:
            orchestrator = SyncOrchestrator(session, registry)

            if args.link:
                report = await orchestrator.linker.link_all()
            elif args.dataset:
                report = await orchestrator.sync_one(args.dataset)
            else:
                report = await orchestrator.sync_all()

        print(json.dumps(report.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2))
        return 0

    except DatasetValidationError as e:
        logger.error(f"Invalid request: {e.message}")
        return 1
    except SyncException as e:
        logger.error(f"Sync pipeline error: {e}")
        return 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_sync(parse_args())))
