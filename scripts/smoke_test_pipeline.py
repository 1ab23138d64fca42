"""Run extract_audio and transcribe_start in-process for one call.

Usage: python scripts/smoke_test_pipeline.py --org-id ID [--file PATH] [--wait]

Without --file a short generated tone is uploaded. The transcript is allowed
to come back empty, so the tone exercises the whole path.
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
from callreview.worker.runner import build_runtime
from callreview.worker.smoke import run_smoke_pipeline


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--org-id", type=UUID, required=True)
    parser.add_argument("--call-id", type=UUID, default=None)
    parser.add_argument("--file", dest="audio_file", default=None)
    parser.add_argument("--file-name", default=None)
    parser.add_argument("--wait", action="store_true", help="poll until the transcript exists")
    parser.add_argument("--interval", type=float, default=settings.speechkit.poll_interval_seconds)
    parser.add_argument("--timeout", type=float, default=30 * 60.0)
    return parser.parse_args()


async def main() -> None:
    args = _parse_args()
    async with build_runtime(settings) as runtime:
        result = await run_smoke_pipeline(
            runtime.context,
            org_id=args.org_id,
            call_id=args.call_id,
            audio_file=args.audio_file,
            file_name=args.file_name,
            worker_id=f"{settings.worker.worker_id}-smoke",
            wait=args.wait,
            poll_interval=args.interval,
            timeout=args.timeout,
        )
    print(f"smoke run for call {result.call_id} ({result.file_name})")
    for kind, path in result.artifacts:
        print(f"  {kind}: {path}")
    if not args.wait:
        print("transcription started; poll with scripts/poll_transcription.py")


if __name__ == "__main__":
    configure_logging(settings)
    asyncio.run(main())
