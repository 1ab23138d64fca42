"""JSON schema the generated sales call review must conform to."""

from __future__ import annotations

from typing import Any

BLOCK_TITLES: tuple[str, ...] = (
    "1) Rapport and meeting frame (with timecodes)",
    "2) Needs and pain discovery (with timecodes)",
    "3) Solution presentation mapped to pains (with timecodes)",
    "4) Objection handling (with timecodes)",
    "5) Closing and next step (with timecodes)",
)

BANT_CRITERIA: tuple[tuple[str, str], ...] = (
    ("B", "Budget"),
    ("A", "Authority"),
    ("N", "Need"),
    ("T", "Timing"),
)

SOURCES: tuple[str, ...] = ("zoom", "telemost", "meet", "phone", "other")


def _section(label: str, item_ref: str) -> dict[str, Any]:
    return {
        "type": "object",
        "additionalProperties": False,
        "required": ["label", "items"],
        "properties": {
            "label": {"type": "string", "const": label},
            "items": {"type": "array", "items": {"$ref": item_ref}},
        },
    }


SALES_CALL_REVIEW_SCHEMA: dict[str, Any] = {
    "title": "Sales Call Review v1",
    "type": "object",
    "additionalProperties": False,
    "required": ["meta", "headline", "summary", "bant", "blocks_1_5"],
    "properties": {
        "meta": {
            "type": "object",
            "additionalProperties": False,
            "required": ["transcript_filename", "sales_rep_name", "language"],
            "properties": {
                "transcript_filename": {"type": "string", "minLength": 1},
                "sales_rep_name": {"type": "string", "minLength": 1},
                "language": {"type": "string", "minLength": 2},
                "call_id": {"type": "string"},
                "source": {"type": "string", "enum": list(SOURCES)},
            },
        },
        "headline": {
            "type": "object",
            "additionalProperties": False,
            "required": ["label", "text"],
            "properties": {
                "label": {"type": "string", "const": "Headline (gist of the conversation)"},
                "text": {"type": "string", "minLength": 1},
            },
        },
        "summary": {
            "type": "object",
            "additionalProperties": False,
            "required": ["label", "text"],
            "properties": {
                "label": {"type": "string", "const": "Overall summary (single text)"},
                "text": {"type": "string", "minLength": 1},
            },
        },
        "bant": {
            "type": "object",
            "additionalProperties": False,
            "required": ["label", "criteria", "total_score", "total_max", "verdict"],
            "properties": {
                "label": {"type": "string", "const": "BANT summary on a 5-point scale"},
                "criteria": {
                    "type": "array",
                    "minItems": 4,
                    "maxItems": 4,
                    "items": {"$ref": "#/$defs/bantCriterion"},
                },
                "total_score": {"type": "integer", "minimum": 4, "maximum": 20},
                "total_max": {"type": "integer", "const": 20},
                "verdict": {"type": "string", "minLength": 1},
            },
        },
        "blocks_1_5": {
            "type": "array",
            "minItems": 5,
            "maxItems": 5,
            "items": {"$ref": "#/$defs/block1to5"},
        },
    },
    "$defs": {
        "timecode": {"type": "string", "pattern": "^[0-9]{2}:[0-9]{2}:[0-9]{2}$"},
        "timeRange": {
            "type": "object",
            "additionalProperties": False,
            "required": ["start", "end"],
            "properties": {
                "start": {"$ref": "#/$defs/timecode"},
                "end": {"$ref": "#/$defs/timecode"},
            },
        },
        "evidenceItem": {
            "type": "object",
            "additionalProperties": False,
            "required": ["text", "time_ranges"],
            "properties": {
                "text": {"type": "string", "minLength": 1},
                "time_ranges": {
                    "type": "array",
                    "minItems": 1,
                    "items": {"$ref": "#/$defs/timeRange"},
                },
                "notes": {"type": "string"},
            },
        },
        "recommendationItem": {
            "type": "object",
            "additionalProperties": False,
            "required": ["text"],
            "properties": {
                "text": {"type": "string", "minLength": 1},
                "priority": {"type": "string", "enum": ["low", "medium", "high"]},
            },
        },
        "bantCriterion": {
            "type": "object",
            "additionalProperties": False,
            "required": ["code", "label", "score", "max_score", "bullets"],
            "properties": {
                "code": {"type": "string", "enum": [code for code, _ in BANT_CRITERIA]},
                "label": {"type": "string", "enum": [label for _, label in BANT_CRITERIA]},
                "score": {"type": "integer", "minimum": 1, "maximum": 5},
                "max_score": {"type": "integer", "const": 5},
                "bullets": {
                    "type": "array",
                    "minItems": 1,
                    "items": {
                        "type": "object",
                        "additionalProperties": False,
                        "required": ["type", "text"],
                        "properties": {
                            "type": {"type": "string", "enum": ["positive", "risk"]},
                            "text": {"type": "string", "minLength": 1},
                        },
                    },
                },
            },
        },
        "block1to5": {
            "type": "object",
            "additionalProperties": False,
            "required": ["block_number", "title", "sections"],
            "properties": {
                "block_number": {"type": "integer", "minimum": 1, "maximum": 5},
                "title": {"type": "string", "enum": list(BLOCK_TITLES)},
                "sections": {
                    "type": "object",
                    "additionalProperties": False,
                    "required": [
                        "client_insights",
                        "sales_good_actions",
                        "sales_bad_actions",
                        "recommendations",
                    ],
                    "properties": {
                        "client_insights": _section("Client insights", "#/$defs/evidenceItem"),
                        "sales_good_actions": _section(
                            "Good sales actions", "#/$defs/evidenceItem"
                        ),
                        "sales_bad_actions": _section(
                            "Weak sales actions", "#/$defs/evidenceItem"
                        ),
                        "recommendations": _section(
                            "Improvement recommendations", "#/$defs/recommendationItem"
                        ),
                    },
                },
            },
        },
    },
}


__all__ = ["SALES_CALL_REVIEW_SCHEMA", "BLOCK_TITLES", "BANT_CRITERIA", "SOURCES"]
