"""
Run the API server

Usage:
    python scripts/serve.py             # API_HOST:API_PORT from settings
    python scripts/serve.py --reload    # development auto-reload
"""

import argparse
import os
import sys

import uvicorn

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings


def main():
    parser = argparse.ArgumentParser(description="Run the GovData Sync API")
    parser.add_argument("--host", default=settings.API_HOST)
    parser.add_argument("--port", type=int, default=settings.API_PORT)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args()

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
