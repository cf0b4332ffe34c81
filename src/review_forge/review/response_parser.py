"""
Review Response Parser

Turns backend text into summary, risks and suggestions. A strict parser reads
the embedded JSON object; when that fails a heuristic line parser takes over.
Parsing never raises.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from .models import Risk, Severity, Suggestion, SuggestionCategory

logger = structlog.get_logger(__name__)

UNKNOWN_FILE = "unknown"


@dataclass
class ParsedReview:
    """Intermediate structure produced by both parsers."""

    summary: str = ""
    risks: list[Risk] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)
    strategy: str = "json"


def _coerce_line(value: Any) -> Any:
    # "42", "L42", "42-48" -> 42; anything unreadable -> None
    if isinstance(value, str):
        digits = re.search(r"\d+", value)
        return int(digits.group(0)) if digits else None
    if isinstance(value, bool):
        return None
    return value


class RiskPayload(BaseModel):
    """A risk entry as requested in the prompt schema."""

    severity: Severity = Severity.MEDIUM
    file: str = UNKNOWN_FILE
    line: int | None = None
    issue: str = Field(min_length=1)
    description: str = ""
    suggestion: str | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, value: Any) -> Any:
        if isinstance(value, str):
            upper = value.strip().upper()
            if upper in {"CRITICAL", "BLOCKING"}:
                return Severity.HIGH
            return upper if upper in Severity.__members__ else Severity.MEDIUM
        return Severity.MEDIUM

    @field_validator("line", mode="before")
    @classmethod
    def coerce_line(cls, value: Any) -> Any:
        return _coerce_line(value)

    @field_validator("file", mode="before")
    @classmethod
    def default_file(cls, value: Any) -> Any:
        return value or UNKNOWN_FILE

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, value: Any) -> Any:
        return "" if value is None else value


class SuggestionPayload(BaseModel):
    """A suggestion entry as requested in the prompt schema."""

    file: str = UNKNOWN_FILE
    line: int | None = None
    type: SuggestionCategory = SuggestionCategory.CODE_QUALITY
    suggestion: str = Field(min_length=1)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-").replace(" ", "-")
            valid = {c.value for c in SuggestionCategory}
            if normalized in valid:
                return normalized
        return SuggestionCategory.CODE_QUALITY

    @field_validator("line", mode="before")
    @classmethod
    def coerce_line(cls, value: Any) -> Any:
        return _coerce_line(value)

    @field_validator("file", mode="before")
    @classmethod
    def default_file(cls, value: Any) -> Any:
        return value or UNKNOWN_FILE


REVIEW_KEYS = {"summary", "risks", "suggestions"}

FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)

SUMMARY_LINE = re.compile(r"summary[:\s]+([^\n]+)", re.IGNORECASE)
RISK_LINE = re.compile(
    r"^\s*(?:[-*]\s+|\d+[.)]\s+)?(?:\*\*|\[)?(HIGH|MEDIUM|LOW)(?:\*\*|\])?"
    r"(?:\s*[:\-]\s*|\s+)([^\n]+)",
    re.MULTILINE | re.IGNORECASE,
)
SUGGESTION_LINE = re.compile(
    r"^\s*(?:[-*]\s+)?(?:💡\s*|suggestion:\s*)([^\n]+)",
    re.MULTILINE | re.IGNORECASE,
)


def parse_review_response(content: str, files: list[str] | None = None) -> ParsedReview:
    """Parse backend output; strict JSON first, then heuristics."""
    files = files or []

    parsed = parse_json_response(content)
    if parsed is not None:
        return parsed

    logger.debug("Falling back to heuristic response parsing")
    return parse_text_response(content, files)


def parse_json_response(content: str) -> ParsedReview | None:
    """Strict parser: returns None when no valid JSON object is embedded."""
    payload = _extract_json(content)
    if not isinstance(payload, dict) or not REVIEW_KEYS & payload.keys():
        return None

    risks: list[Risk] = []
    for item in _as_list(payload.get("risks")):
        try:
            risk = RiskPayload.model_validate(_risk_aliases(item))
        except ValidationError as e:
            logger.debug("Dropping malformed risk", error=str(e))
            continue
        risks.append(
            Risk(
                severity=risk.severity,
                file=risk.file,
                line=risk.line,
                issue=risk.issue,
                description=risk.description or risk.issue,
                suggestion=risk.suggestion,
            )
        )

    suggestions: list[Suggestion] = []
    for item in _as_list(payload.get("suggestions")):
        try:
            suggestion = SuggestionPayload.model_validate(_suggestion_aliases(item))
        except ValidationError as e:
            logger.debug("Dropping malformed suggestion", error=str(e))
            continue
        suggestions.append(
            Suggestion(
                file=suggestion.file,
                line=suggestion.line,
                category=suggestion.type,
                text=suggestion.suggestion,
            )
        )

    summary = payload.get("summary")
    return ParsedReview(
        summary=summary if isinstance(summary, str) and summary else "No summary provided",
        risks=risks,
        suggestions=suggestions,
        strategy="json",
    )


def parse_text_response(content: str, files: list[str]) -> ParsedReview:
    """Heuristic parser over free text (markdown-style replies)."""
    summary_match = SUMMARY_LINE.search(content)
    summary = summary_match.group(1).strip() if summary_match else content[:200].strip()

    risks = [
        Risk(
            severity=Severity(match.group(1).upper()),
            file=_guess_file(match.group(2), files),
            issue=match.group(2).strip(),
            description=match.group(2).strip(),
        )
        for match in RISK_LINE.finditer(content)
    ]

    suggestions = [
        Suggestion(
            file=_guess_file(match.group(1), files),
            text=match.group(1).strip(),
            category=SuggestionCategory.CODE_QUALITY,
        )
        for match in SUGGESTION_LINE.finditer(content)
    ]

    return ParsedReview(
        summary=summary,
        risks=risks,
        suggestions=suggestions,
        strategy="heuristic",
    )


def _extract_json(content: str) -> Any:
    candidates: list[str] = [m.group(1) for m in FENCED_JSON.finditer(content)]

    start = content.find("{")
    end = content.rfind("}")
    if start != -1 and end > start:
        candidates.append(content[start : end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _risk_aliases(item: Any) -> Any:
    if not isinstance(item, dict):
        return item
    item = dict(item)
    if not item.get("issue"):
        item["issue"] = item.get("title") or item.get("description") or ""
    return item


def _suggestion_aliases(item: Any) -> Any:
    if not isinstance(item, dict):
        return item
    item = dict(item)
    if not item.get("type") and item.get("category"):
        item["type"] = item["category"]
    if not item.get("suggestion") and item.get("text"):
        item["suggestion"] = item["text"]
    return item


def _guess_file(text: str, files: list[str]) -> str:
    for path in files:
        if path in text:
            return path
    if len(files) == 1:
        return files[0]
    return UNKNOWN_FILE
