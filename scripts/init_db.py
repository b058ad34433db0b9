# scripts/init_db.py
import argparse
import asyncio
import os
import sys

# Add project root to path so we can import 'cryptopulse'
sys.path.append(os.getcwd())

from cryptopulse.core.logger import setup_logging
from cryptopulse.core.settings import settings
from cryptopulse.db.init_db import init_db
from cryptopulse.db.session import build_engine


async def main(drop_existing: bool):
    engine = build_engine(settings)
    try:
        await init_db(engine, drop_existing=drop_existing)
    except Exception as e:
        print(f"❌ Error initializing DB: {e}")
        raise SystemExit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the risk_limits table")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first (dev only)")
    args = parser.parse_args()

    setup_logging()
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main(args.drop))
