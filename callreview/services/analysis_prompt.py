"""Loading and rendering of the analysis prompt definition.

The prompt file holds a ``System prompt`` section followed by a ``User
prompt`` section; the user part is a template with ``{PLACEHOLDER}`` slots.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from callreview.errors import PromptError

DEFAULT_PROMPT_PATH = Path(__file__).resolve().parents[1] / "prompts" / "analysis.txt"


@dataclass(frozen=True)
class AnalysisPrompt:
    system_prompt: str
    user_prompt_template: str

    @classmethod
    def load(cls, path: Path | str = DEFAULT_PROMPT_PATH) -> "AnalysisPrompt":
        contents = Path(path).read_text(encoding="utf-8").strip()
        if not contents:
            raise PromptError("analysis prompt file is empty")
        return cls.parse(contents)

    @classmethod
    def parse(cls, text: str) -> "AnalysisPrompt":
        lines = text.splitlines()
        system_index = _find_section(lines, "system prompt")
        user_index = _find_section(lines, "user prompt")
        if user_index is None:
            raise PromptError("analysis prompt file must include a User prompt section")

        system_start = system_index + 1 if system_index is not None else 0
        system_prompt = "\n".join(lines[system_start:user_index]).strip()
        user_prompt = "\n".join(lines[user_index + 1 :]).strip()

        if not system_prompt:
            raise PromptError("system prompt section is empty")
        if not user_prompt:
            raise PromptError("user prompt section is empty")
        return cls(system_prompt=system_prompt, user_prompt_template=user_prompt)

    def render_user_prompt(
        self,
        *,
        transcript_filename: str,
        sales_rep_name: str,
        transcript_text: str,
        call_id: str | None = None,
        source: str | None = None,
    ) -> str:
        replacements = {
            "{TRANSCRIPT_FILENAME}": transcript_filename,
            "{SALES_REP_NAME}": sales_rep_name,
            "{TRANSCRIPT_TEXT}": transcript_text,
            "{CALL_ID}": call_id or "",
            "{SOURCE}": source or "",
        }
        rendered = self.user_prompt_template
        for placeholder, value in replacements.items():
            rendered = rendered.replace(placeholder, value)
        return rendered


def _find_section(lines: list[str], marker: str) -> int | None:
    for index, line in enumerate(lines):
        if line.strip().lower().startswith(marker):
            return index
    return None


__all__ = ["AnalysisPrompt", "DEFAULT_PROMPT_PATH"]
