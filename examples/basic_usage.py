"""
Basic usage example for sinklog.

Logs a few records from two labels, waits for one periodic flush and then
drains the rest on close.
"""

import asyncio
import sqlite3

from sinklog import Settings, start_logger
from sinklog.core.settings import CoreSettings


async def main() -> None:
    settings = Settings(
        core=CoreSettings(database_path="example.db", flush_interval_seconds=0.5)
    )
    logger = await start_logger("example", settings=settings)

    logger.info("Application started")
    logger.with_label("example.db").warn("Slow query")

    # Let one periodic flush happen
    await asyncio.sleep(1.0)

    logger.info("Shutting down")
    logger.close()
    await logger.runtime.wait_drained()

    with sqlite3.connect("example.db") as conn:
        for row in conn.execute("SELECT prefix, level, description FROM logs"):
            print(row)


if __name__ == "__main__":
    asyncio.run(main())
