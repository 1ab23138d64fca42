"""Per-invocation scratch space for stage handlers."""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator


@contextmanager
def scratch_directory(base_dir: str | None = None) -> Iterator[Path]:
    """Temporary ``call-*`` directory removed on every exit path."""

    if base_dir:
        os.makedirs(base_dir, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="call-", dir=base_dir) as work_dir:
        yield Path(work_dir)


def write_json_file(path: Path, data: Any) -> int:
    """Write ``data`` as indented JSON and return the file size in bytes."""

    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    return path.stat().st_size


__all__ = ["scratch_directory", "write_json_file"]
