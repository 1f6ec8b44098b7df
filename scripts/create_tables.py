#!/usr/bin/env python
"""Create the payout engine tables.

Usage:
    python scripts/create_tables.py
    python scripts/create_tables.py --database-url postgresql+asyncpg://...
    python scripts/create_tables.py --dry-run
"""

import argparse
import asyncio
import sys

from payout_engine.database import create_tables, get_engine
from payout_engine.models import Base


async def run(database_url: str | None) -> None:
    engine = get_engine(database_url)
    try:
        await create_tables(engine)
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create payout engine tables")
    parser.add_argument("--database-url", help="Database URL (defaults to DATABASE_URL)")
    parser.add_argument("--dry-run", action="store_true", help="List tables without creating them")
    args = parser.parse_args()

    tables = sorted(Base.metadata.tables)
    if args.dry_run:
        print("Would create:")
        for name in tables:
            print(f"  {name}")
        return 0

    asyncio.run(run(args.database_url))
    print(f"Created {len(tables)} tables: {', '.join(tables)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
