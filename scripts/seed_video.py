#!/usr/bin/env python3
"""
Seed a video record and mint an access token for its owner.

Creates the indexes on the ``videos`` collection, inserts one empty video
record and prints a bearer token that passes the ownership check for it.
Useful for exercising the upload endpoints against a local stack.

Usage:
    python scripts/seed_video.py [--user-id UUID] [--title TEXT] [--verbose]

Connection and signing settings come from the same environment variables
(or .env file) as the API, e.g. MONGODB_URI and JWT_SECRET.
"""

import argparse
import asyncio
import sys

from uuid import UUID, uuid4

from pymongo.errors import PyMongoError

from tubely.config import get_settings
from tubely.core.auth import create_access_token
from tubely.core.database import DatabaseClient
from tubely.core.errors import PersistenceFailed
from tubely.models.video import Video
from tubely.utils.logger import get_logger


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Seed a Tubely video record and print an owner access token",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python seed_video.py                               # New random owner
  python seed_video.py --user-id <uuid> --title Demo # Existing owner
        """,
    )
    parser.add_argument("--user-id", type=UUID, default=None, help="Owner of the new record")
    parser.add_argument("--title", default="Sample video", help="Title of the new record")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Display detailed operation logs"
    )
    return parser.parse_args()


async def seed(user_id: UUID, title: str, verbose: bool) -> int:
    settings = get_settings()
    logger = get_logger("tubely.seed", level="debug" if verbose else "info")

    client = DatabaseClient(settings)
    if not await client.connect():
        logger.error("Failed to connect to MongoDB at %s", settings.mongodb_db_name)
        return 1

    try:
        await client.create_indexes()
        video = await client.get_video_store().create_video(
            Video(id=uuid4(), user_id=user_id, title=title)
        )
    except (PersistenceFailed, PyMongoError):
        logger.exception("Failed to seed video record")
        return 1
    finally:
        await client.close()

    logger.info("Created video %s owned by %s", video.id, user_id)
    print(f"VIDEO_ID={video.id}")
    print(f"ACCESS_TOKEN={create_access_token(user_id, settings)}")
    return 0


def main() -> int:
    args = parse_arguments()
    try:
        return asyncio.run(seed(args.user_id or uuid4(), args.title, args.verbose))
    except KeyboardInterrupt:
        print("\n\nSeeding interrupted by user.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
