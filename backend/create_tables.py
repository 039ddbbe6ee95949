#!/usr/bin/env python3
"""Create (or recreate with --drop) the tracking tables in DATABASE_URL."""
import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError

from ujenzipro.db import session as db_session
from ujenzipro.db.init_db import create_tables, drop_tables


async def bootstrap(drop: bool) -> int:
    engine = db_session.create_engine()
    try:
        if drop:
            print("Dropping existing tables...")
            await drop_tables(engine)
        await create_tables(engine)
        print("✓ Tables ready")
        return 0
    except (SQLAlchemyError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    exit_code = asyncio.run(bootstrap("--drop" in sys.argv[1:]))
    sys.exit(exit_code)
