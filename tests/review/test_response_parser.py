"""
Unit tests for backend reply parsing.
"""

import json

from conftest import review_json

from review_forge.review.models import Severity, SuggestionCategory
from review_forge.review.response_parser import (
    parse_json_response,
    parse_review_response,
    parse_text_response,
)


# =============================================================================
# UNIT TESTS: strict JSON parsing
# =============================================================================

class TestJsonParsing:
    """Tests for the strict parser."""

    def test_fenced_json(self):
        """Fenced JSON is parsed and normalized."""
        content = review_json(
            summary="Adds login",
            risks=[
                {
                    "severity": "high",
                    "file": "src/auth.py",
                    "line": "42",
                    "issue": "Password logged",
                    "description": "The raw password is written to logs",
                    "suggestion": "Remove the log call",
                }
            ],
            suggestions=[
                {
                    "file": "src/auth.py",
                    "line": 10,
                    "type": "Best Practice",
                    "suggestion": "Use a constant",
                }
            ],
        )

        parsed = parse_review_response(content, ["src/auth.py"])

        assert parsed.strategy == "json"
        assert parsed.summary == "Adds login"
        assert len(parsed.risks) == 1
        risk = parsed.risks[0]
        assert risk.severity == Severity.HIGH
        assert risk.line == 42
        assert risk.issue == "Password logged"
        assert risk.suggestion == "Remove the log call"
        assert parsed.suggestions[0].category == SuggestionCategory.BEST_PRACTICE
        assert parsed.suggestions[0].text == "Use a constant"

    def test_bare_json_object(self):
        """JSON inside prose is found."""
        content = 'Sure! {"summary": "ok", "risks": [], "suggestions": []} Thanks.'
        parsed = parse_review_response(content)
        assert parsed.strategy == "json"
        assert parsed.summary == "ok"

    def test_malformed_items_dropped(self):
        """Only malformed entries are dropped."""
        content = json.dumps(
            {
                "summary": "s",
                "risks": [
                    "not an object",
                    {"severity": "LOW"},
                    {"severity": "MEDIUM", "file": "a.py", "issue": "Kept"},
                ],
                "suggestions": [{"file": "a.py"}, {"file": "a.py", "text": "Kept too"}],
            }
        )
        parsed = parse_review_response(content)

        assert [r.issue for r in parsed.risks] == ["Kept"]
        assert [s.text for s in parsed.suggestions] == ["Kept too"]

    def test_title_used_as_issue(self):
        """title stands in for issue."""
        content = json.dumps({"risks": [{"severity": "HIGH", "file": "a.py", "title": "XSS"}]})
        parsed = parse_review_response(content)
        assert parsed.risks[0].issue == "XSS"
        assert parsed.summary == "No summary provided"

    def test_unknown_values_normalized(self):
        """Unknown severity and type fall back to defaults."""
        content = json.dumps(
            {
                "risks": [{"severity": "urgent", "issue": "x"}],
                "suggestions": [{"type": "style", "suggestion": "y"}],
            }
        )
        parsed = parse_review_response(content)

        assert parsed.risks[0].severity == Severity.MEDIUM
        assert parsed.risks[0].file == "unknown"
        assert parsed.suggestions[0].category == SuggestionCategory.CODE_QUALITY

    def test_critical_maps_to_high(self):
        """CRITICAL is read as HIGH."""
        content = json.dumps({"risks": [{"severity": "critical", "issue": "x"}]})
        assert parse_review_response(content).risks[0].severity == Severity.HIGH

    def test_json_without_review_keys(self):
        """Unrelated JSON is not a review."""
        assert parse_json_response('{"foo": 1}') is None

    def test_invalid_json(self):
        """Broken JSON is not a review."""
        assert parse_json_response("{ not json }") is None

    def test_description_defaults_to_issue(self):
        """Missing description reuses the issue."""
        content = json.dumps({"risks": [{"issue": "Missing check"}]})
        assert parse_review_response(content).risks[0].description == "Missing check"

    def test_null_optional_fields_kept(self):
        """Null optional fields do not drop an otherwise valid finding."""
        content = json.dumps(
            {
                "summary": "s",
                "risks": [
                    {
                        "severity": "HIGH",
                        "file": "a.py",
                        "issue": "SQL injection",
                        "description": None,
                        "line": None,
                        "suggestion": None,
                    }
                ],
                "suggestions": [
                    {"file": None, "type": None, "suggestion": None, "text": "Add an index"}
                ],
            }
        )
        parsed = parse_review_response(content)

        assert len(parsed.risks) == 1
        assert parsed.risks[0].severity == Severity.HIGH
        assert parsed.risks[0].description == "SQL injection"
        assert len(parsed.suggestions) == 1
        assert parsed.suggestions[0].text == "Add an index"
        assert parsed.suggestions[0].file == "unknown"
        assert parsed.suggestions[0].category == SuggestionCategory.CODE_QUALITY


# =============================================================================
# UNIT TESTS: heuristic parsing
# =============================================================================

class TestHeuristicParsing:
    """Tests for the free-text fallback."""

    def test_markdown_reply(self):
        """Markdown severities and tips are extracted."""
        content = (
            "Summary: Adds login flow\n"
            "- **HIGH**: SQL injection in src/db.py\n"
            "[LOW] - minor naming\n"
            "💡 Use constants in src/db.py\n"
        )
        parsed = parse_review_response(content, ["src/db.py", "src/app.py"])

        assert parsed.strategy == "heuristic"
        assert parsed.summary == "Adds login flow"
        assert [r.severity for r in parsed.risks] == [Severity.HIGH, Severity.LOW]
        assert parsed.risks[0].file == "src/db.py"
        assert parsed.risks[1].file == "unknown"
        assert parsed.suggestions[0].file == "src/db.py"
        assert parsed.suggestions[0].text == "Use constants in src/db.py"

    def test_single_file_attribution(self):
        """A single-file chunk owns every finding."""
        parsed = parse_text_response("Medium: slow loop", ["only.py"])
        assert parsed.risks[0].severity == Severity.MEDIUM
        assert parsed.risks[0].file == "only.py"

    def test_numbered_list_without_colon(self):
        """Numbered bold severities are read with or without a colon."""
        content = (
            "Summary: adds login\n\n"
            "1. **HIGH**: SQL injection in login query\n"
            "2. **MEDIUM** missing null check"
        )
        parsed = parse_review_response(content, ["src/login.py"])

        assert parsed.strategy == "heuristic"
        assert [r.severity for r in parsed.risks] == [Severity.HIGH, Severity.MEDIUM]
        assert parsed.risks[0].issue == "SQL injection in login query"
        assert parsed.risks[1].issue == "missing null check"
        assert all(r.file == "src/login.py" for r in parsed.risks)

    def test_plain_text(self):
        """Plain text becomes the summary."""
        content = "Looks good to me."
        parsed = parse_review_response(content)

        assert parsed.summary == "Looks good to me."
        assert parsed.risks == []
        assert parsed.suggestions == []

    def test_never_raises_on_odd_input(self):
        """Odd input never raises."""
        for content in ["", "[1, 2, 3]", "{", "}{", '{"risks": "nope"}']:
            parse_review_response(content)
