"""
create_tables.py
----------------
Create (or with --drop, recreate) the emulator's tables in DATABASE_URL.
Intended for local setup and throwaway environments; production schema
changes should go through migrations.

Usage:
    python create_tables.py
    python create_tables.py --drop     # DESTROYS all data first
"""

import argparse
import asyncio

from lorasim.core.logging import configure_logging, get_logger
from lorasim.db.session import engine
from lorasim.models import Base  # populates Base.metadata

logger = get_logger("create_tables")


async def create_all_tables(drop: bool = False) -> None:
    async with engine.begin() as conn:
        if drop:
            logger.warning("Dropping all tables", tables=sorted(Base.metadata.tables))
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print(f"Created {len(Base.metadata.tables)} tables: {', '.join(sorted(Base.metadata.tables))}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0])
    parser.add_argument("--drop", action="store_true", help="drop existing tables first")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(create_all_tables(drop=args.drop))


if __name__ == "__main__":
    main()
