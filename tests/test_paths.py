"""Storage key layout."""

from __future__ import annotations

from uuid import UUID

from callreview.pipeline.paths import StoragePaths

ORG = UUID("00000000-0000-0000-0000-00000000000a")
CALL = UUID("00000000-0000-0000-0000-00000000000b")
JOB = UUID("00000000-0000-0000-0000-00000000000c")


def test_paths_are_scoped_by_org_and_call():
    root = f"orgs/{ORG}/calls/{CALL}"
    assert StoragePaths.raw(ORG, CALL, "call.mp3") == f"{root}/raw/call.mp3"
    assert StoragePaths.audio(ORG, CALL) == f"{root}/artifacts/audio/{CALL}.mp3"
    assert StoragePaths.transcript(ORG, CALL) == f"{root}/artifacts/transcript/{CALL}.json"
    assert StoragePaths.transcript_audio(ORG, CALL) == f"{root}/artifacts/transcript/{CALL}.ogg"


def test_analysis_path_is_keyed_by_analysis_id_when_given():
    root = f"orgs/{ORG}/calls/{CALL}/artifacts/analysis"
    assert StoragePaths.analysis(ORG, CALL, JOB) == f"{root}/{JOB}.json"
    assert StoragePaths.analysis(ORG, CALL) == f"{root}/{CALL}.json"
