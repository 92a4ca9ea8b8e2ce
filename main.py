"""
main.py — Single entry point.

Builds every collaborator once (database, vision provider, catalog, analytics
sink), wires them into a FramePipeline and serves it over HTTP until
SIGINT/SIGTERM. Outstanding background writes are drained before exit.
"""
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

import config
from analytics import AnalyticsSink
from catalog_search import build_catalog_search
from database import Database
from frame_cache import FrameCache
from item_extractor import ItemExtractor
from pipeline import FramePipeline
from providers.manager import build_provider
from search_fanout import SearchFanout
from server import start_server

# Log file lives in the same data/ directory as the database so that a single
# Docker volume mount (./data:/app/data) captures both.
_data_dir = Path(os.getenv("DATA_DIR", "data"))
_data_dir.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(str(_data_dir / "frame_shop.log"), encoding="utf-8"),
    ],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def build_pipeline(db: Database) -> FramePipeline:
    return FramePipeline(
        db=db,
        cache=FrameCache(db),
        extractor=ItemExtractor(build_provider()),
        fanout=SearchFanout(build_catalog_search()),
        sink=AnalyticsSink(),
    )


async def run() -> None:
    db = Database()
    try:
        await db.init()
    except Exception as exc:
        logger.critical("FATAL: database init failed: %s", exc, exc_info=True)
        raise

    pipeline = build_pipeline(db)
    runner = await start_server(pipeline)

    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    logger.info("✅ Frame shop is running (catalog: %s). Press Ctrl+C to stop.", config.PRODUCT_SOURCE)
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down…")
        await runner.cleanup()
        await pipeline.drain()
        logger.info("Goodbye.")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
