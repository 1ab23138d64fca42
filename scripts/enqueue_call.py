"""Start the pipeline for an object already uploaded to the raw prefix.

Usage: python scripts/enqueue_call.py --org-id ORG --file-name call.mp3 [--call-id ID]
"""

import argparse
import asyncio
import os
import sys
from uuid import UUID, uuid4

# Add project root to path so we can import callreview
sys.path.append(os.getcwd())

from callreview.config.settings import settings
from callreview.database import create_engine_from_settings, create_session_factory, dispose_engine
from callreview.queue.postgres import PostgresJobQueue
from callreview.services.jobs import enqueue_processing_stages


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--org-id", type=UUID, required=True)
    parser.add_argument("--call-id", type=UUID, default=None)
    parser.add_argument("--file-name", required=True)
    parser.add_argument("--content-type", default=None)
    parser.add_argument("--sales-rep", default=None)
    parser.add_argument("--source", default=None)
    parser.add_argument("--source-file-name", default=None)
    parser.add_argument("--source-kind", default=None, choices=["audio", "video", "transcript"])
    return parser.parse_args()


async def main() -> None:
    args = _parse_args()
    call_id = args.call_id or uuid4()
    engine = create_engine_from_settings(settings.database)
    try:
        queue = PostgresJobQueue(
            create_session_factory(engine),
            default_max_attempts=settings.worker.default_max_attempts,
        )
        job = await enqueue_processing_stages(
            queue,
            org_id=args.org_id,
            call_id=call_id,
            file_name=args.file_name,
            content_type=args.content_type,
            sales_rep_name=args.sales_rep,
            source=args.source,
            source_file_name=args.source_file_name,
            source_kind=args.source_kind,
        )
    finally:
        await dispose_engine(engine)
    print(f"enqueued call {call_id}: job {job.id} ({job.stage.value})")


if __name__ == "__main__":
    asyncio.run(main())
