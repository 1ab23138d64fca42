"""Deterministic storage keys for a call's raw upload and artifacts."""

from __future__ import annotations

from uuid import UUID


class StoragePaths:
    """Path scheme shared by every stage; keys never collide across calls."""

    @staticmethod
    def _root(org_id: UUID | str, call_id: UUID | str) -> str:
        return f"orgs/{org_id}/calls/{call_id}"

    @classmethod
    def raw(cls, org_id: UUID | str, call_id: UUID | str, file_name: str) -> str:
        return f"{cls._root(org_id, call_id)}/raw/{file_name}"

    @classmethod
    def audio(cls, org_id: UUID | str, call_id: UUID | str) -> str:
        return f"{cls._root(org_id, call_id)}/artifacts/audio/{call_id}.mp3"

    @classmethod
    def transcript(cls, org_id: UUID | str, call_id: UUID | str) -> str:
        return f"{cls._root(org_id, call_id)}/artifacts/transcript/{call_id}.json"

    @classmethod
    def transcript_audio(cls, org_id: UUID | str, call_id: UUID | str) -> str:
        return f"{cls._root(org_id, call_id)}/artifacts/transcript/{call_id}.ogg"

    @classmethod
    def analysis(
        cls,
        org_id: UUID | str,
        call_id: UUID | str,
        analysis_id: UUID | str | None = None,
    ) -> str:
        return f"{cls._root(org_id, call_id)}/artifacts/analysis/{analysis_id or call_id}.json"


__all__ = ["StoragePaths"]
