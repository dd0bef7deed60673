#!/usr/bin/env python3
"""Create the candle and bucket history tables."""

import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from app.config import get_settings
from app.storage.database import Base, init_database


async def main():
    settings = get_settings()
    print(f"Initializing database at {settings.database_url.split('@')[-1]}...")
    db = await init_database()
    print(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")
    await db.close()


if __name__ == "__main__":
    asyncio.run(main())
