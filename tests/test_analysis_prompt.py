"""Prompt file parsing and rendering."""

from __future__ import annotations

from pathlib import Path

import pytest

from callreview.errors import PromptError
from callreview.services.analysis_prompt import AnalysisPrompt


def test_bundled_prompt_has_both_sections_and_all_placeholders():
    prompt = AnalysisPrompt.load()
    assert prompt.system_prompt.startswith("You are a senior B2B sales coach")
    for placeholder in (
        "{TRANSCRIPT_FILENAME}",
        "{SALES_REP_NAME}",
        "{CALL_ID}",
        "{SOURCE}",
        "{TRANSCRIPT_TEXT}",
    ):
        assert placeholder in prompt.user_prompt_template


def test_render_substitutes_every_placeholder():
    prompt = AnalysisPrompt.parse(
        "System prompt:\nBe precise.\nUser prompt:\n"
        "{TRANSCRIPT_FILENAME}|{SALES_REP_NAME}|{CALL_ID}|{SOURCE}|{TRANSCRIPT_TEXT}"
    )
    rendered = prompt.render_user_prompt(
        transcript_filename="call.json",
        sales_rep_name="Anna",
        transcript_text='{"segments": []}',
        call_id="42",
    )
    assert prompt.system_prompt == "Be precise."
    assert rendered == 'call.json|Anna|42||{"segments": []}'


def test_missing_user_section_is_rejected():
    with pytest.raises(PromptError, match="User prompt section"):
        AnalysisPrompt.parse("System prompt:\nOnly a system part.")


def test_empty_sections_are_rejected():
    with pytest.raises(PromptError, match="system prompt section is empty"):
        AnalysisPrompt.parse("System prompt:\nUser prompt:\nHello")
    with pytest.raises(PromptError, match="user prompt section is empty"):
        AnalysisPrompt.parse("System prompt:\nHello\nUser prompt:\n")


def test_empty_file_is_rejected(tmp_path: Path):
    path = tmp_path / "prompt.txt"
    path.write_text("   \n", encoding="utf-8")
    with pytest.raises(PromptError, match="empty"):
        AnalysisPrompt.load(path)
