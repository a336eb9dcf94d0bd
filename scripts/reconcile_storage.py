import argparse
import asyncio
import json
import os
import sys

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from audiolink.core.config import settings
from audiolink.core.db import build_engine, build_sessionmaker, init_models
from audiolink.core.logging import setup_logging
from audiolink.modules.audio.service import AudioFileService
from audiolink.platform.provider_registry import ProviderRegistry

async def main(remove_orphans: bool, min_age: int | None = None) -> int:
    """
    Compare stored blobs with audio metadata and report orphans on either side.
    """
    setup_logging(settings)
    engine = build_engine(settings)
    registry = ProviderRegistry(settings)
    try:
        await init_models(engine, settings)
        async with build_sessionmaker(engine)() as session:
            service = AudioFileService(
                session,
                storage=registry.object_storage(),
                bus=registry.event_bus(),
                settings=settings,
                base_url=settings.PUBLIC_BASE_URL or "",
            )
            report = await service.reconcile(remove_orphan_blobs=remove_orphans, min_age_seconds=min_age)
    finally:
        await registry.close()
        await engine.dispose()

    print(json.dumps(report.model_dump(), indent=2))
    if report.consistent:
        print("Storage and metadata are consistent.")
        return 0
    print(f"Found {len(report.orphan_blobs)} orphan blob(s) and {len(report.missing_blobs)} record(s) without a blob.")
    if report.recent_blobs:
        print(f"{len(report.recent_blobs)} orphan blob(s) are newer than the grace window and were left in place.")
    return 1

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reconcile audio blobs with their metadata records.")
    parser.add_argument("--remove-orphans", action="store_true", help="delete blobs that no record references")
    parser.add_argument(
        "--min-age", type=int, default=None, metavar="SECONDS",
        help="only treat blobs older than this as removable orphans (default: ORPHAN_GRACE_SECONDS)",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.remove_orphans, args.min_age)))
