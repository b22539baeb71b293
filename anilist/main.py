import asyncio
import sys
import logging
from typing import List, Optional

from anilist.application.client import AniListClient
from anilist.config import ClientConfig
from anilist.domain.exceptions import AniListException
from anilist.domain.models import EntityKind

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

USAGE = "usage: python -m anilist.main <anime|manga|character|person|user|studio> <id>"


def _display_name(fields: dict) -> str:
    name = fields.get("title") or fields.get("name")
    if isinstance(name, dict):
        return name.get("english") or name.get("romaji") or name.get("full") or name.get("native") or ""
    return name or ""


async def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2 or not args[1].isdigit():
        logger.error(USAGE)
        return 1

    try:
        kind = EntityKind(args[0].lower())
    except ValueError:
        logger.error(f"Unknown entity kind '{args[0]}'. {USAGE}")
        return 1

    try:
        # Reads ANILIST_* settings from the environment and .env file
        config = ClientConfig.from_env()

        async with AniListClient(config) as client:
            handle = await client.get_by_id(kind, int(args[1]))
            logger.info(f"Stub: {kind.value} {handle.id} '{_display_name(handle.record.fields)}'.")

            record = await handle.hydrate()
            logger.info(f"Full: {kind.value} {record.id} with {len(record.fields)} fields.")
    except AniListException as e:
        logger.error(f"Request failed: {e}")
        return 1

    return 0

if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
