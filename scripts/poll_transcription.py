"""Drive a call's transcription polling in-process until the transcript exists.

Usage: python scripts/poll_transcription.py --call-id ID [--interval 10] [--timeout 1800]
"""

import argparse
import asyncio
import os
import sys
from uuid import UUID

# Add project root to path so we can import callreview
sys.path.append(os.getcwd())

from callreview.config.settings import settings
from callreview.main import configure_logging
from callreview.worker.driver import drive_transcription
from callreview.worker.runner import build_runtime


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--call-id", type=UUID, required=True)
    parser.add_argument("--interval", type=float, default=settings.speechkit.poll_interval_seconds)
    parser.add_argument("--timeout", type=float, default=30 * 60.0)
    return parser.parse_args()


async def main() -> None:
    args = _parse_args()
    async with build_runtime(settings) as runtime:
        await drive_transcription(
            runtime.context,
            args.call_id,
            worker_id=f"{settings.worker.worker_id}-driver",
            poll_interval=args.interval,
            timeout=args.timeout,
        )
    print(f"transcription completed for call {args.call_id}")


if __name__ == "__main__":
    configure_logging(settings)
    asyncio.run(main())
