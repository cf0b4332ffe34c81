"""
Review Synthesizer

Renders an aggregated review as a markdown document.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from review_forge.config import AggregationConfig

from .models import (
    AggregatedIssue,
    AggregatedResult,
    AggregatedSuggestion,
    FileNavigation,
    Severity,
    SuggestionCategory,
)

SECTION_SEPARATOR = "\n\n---\n\n"

MAX_CRITICAL_ITEMS = 10
MAX_MEDIUM_ITEMS = 15
MAX_SUGGESTIONS_PER_CATEGORY = 10

SUGGESTION_ICONS = {
    SuggestionCategory.SECURITY: "🔒",
    SuggestionCategory.PERFORMANCE: "⚡",
    SuggestionCategory.BEST_PRACTICE: "✨",
    SuggestionCategory.CODE_QUALITY: "🎨",
}


@dataclass
class RequestMetadata:
    """Optional pull request details shown in the review header."""

    author: str | None = None
    branch: str | None = None
    commit_hash: str | None = None
    commit_message: str | None = None


@dataclass
class FinalReview:
    """Rendered review plus run metadata."""

    content: str
    strategy: str = "chunked"
    chunks: int = 0
    files: int = 0
    total_tokens: int = 0
    duration_ms: int = 0
    backends: list[str] = field(default_factory=list)
    timestamp: str = ""

    def metadata_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "chunks": self.chunks,
            "files": self.files,
            "totalTokens": self.total_tokens,
            "duration": self.duration_ms,
            "providers": list(self.backends),
            "timestamp": self.timestamp,
        }


class ReviewSynthesizer:
    """Format aggregated results into the final markdown review."""

    def __init__(self, config: AggregationConfig | None = None):
        self.config = config or AggregationConfig()

    def synthesize(
        self,
        aggregated: AggregatedResult,
        metadata: RequestMetadata | None = None,
        strategy: str = "chunked",
    ) -> FinalReview:
        """Render the review and attach run metadata."""
        return FinalReview(
            content=self.render(aggregated, metadata),
            strategy=strategy,
            chunks=aggregated.metadata.total_chunks,
            files=aggregated.metadata.total_files,
            total_tokens=aggregated.metadata.total_tokens,
            duration_ms=aggregated.metadata.total_duration_ms,
            backends=list(aggregated.metadata.backends),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def render(
        self, aggregated: AggregatedResult, metadata: RequestMetadata | None = None
    ) -> str:
        """
        Render markdown. Pure: the same input always gives the same text.

        Section order: header, executive summary, critical, medium, low
        (optional), suggestions, file breakdown, statistics.
        """
        metadata = metadata or RequestMetadata()
        critical = [r for r in aggregated.risks if r.severity == Severity.HIGH]
        medium = [r for r in aggregated.risks if r.severity == Severity.MEDIUM]
        low = [r for r in aggregated.risks if r.severity == Severity.LOW]

        sections = [
            self._header(metadata),
            self._executive_summary(aggregated, critical, medium, low),
        ]

        if critical:
            sections.append(self._critical_section(critical))
        if medium:
            sections.append(self._medium_section(medium))
        if self.config.include_low_severity and low:
            sections.append(self._low_section(low))
        if aggregated.suggestions:
            sections.append(self._suggestions_section(aggregated.suggestions))
        if aggregated.navigation:
            sections.append(self._file_breakdown(aggregated.navigation))

        sections.append(self._statistics_section(aggregated))
        return SECTION_SEPARATOR.join(sections)

    def _header(self, metadata: RequestMetadata) -> str:
        lines = ["## AI Code Review Summary", ""]

        details = [
            ("Author", metadata.author),
            ("Branch", metadata.branch),
            ("Commit", metadata.commit_hash),
            ("Message", metadata.commit_message),
        ]
        present = [(label, value) for label, value in details if value]
        if present:
            lines.append("**Pull Request Details:**")
            lines.extend(f"- {label}: {value}" for label, value in present)
            lines.append("")

        return "\n".join(lines)

    def _executive_summary(
        self,
        aggregated: AggregatedResult,
        critical: list[AggregatedIssue],
        medium: list[AggregatedIssue],
        low: list[AggregatedIssue],
    ) -> str:
        return "\n".join(
            [
                "### Executive Summary",
                "",
                aggregated.summary,
                "",
                "**Review Overview:**",
                f"- Files Analyzed: {aggregated.metadata.total_files}",
                f"- Critical Issues: {len(critical)}",
                f"- Medium Priority: {len(medium)}",
                f"- Low Priority: {len(low)}",
                f"- Suggestions: {len(aggregated.suggestions)}",
            ]
        )

    def _critical_section(self, issues: list[AggregatedIssue]) -> str:
        lines = ["### 🚨 Critical Issues", ""]

        for i, issue in enumerate(issues[:MAX_CRITICAL_ITEMS], start=1):
            location = f"**File:** `{issue.file}`"
            if issue.line:
                location += f" (line {issue.line})"

            lines += [f"#### {i}. {issue.issue}", "", location, ""]
            lines += [f"**Description:** {issue.description}", ""]
            if issue.suggestion:
                lines += [f"**Fix:** {issue.suggestion}", ""]
            if issue.occurrences > 1:
                lines += [f"_Found in {issue.occurrences} locations_", ""]

        return "\n".join(lines)

    def _medium_section(self, issues: list[AggregatedIssue]) -> str:
        lines = ["### ⚠️ Medium Priority Items", ""]

        for i, issue in enumerate(issues[:MAX_MEDIUM_ITEMS], start=1):
            location = issue.file if not issue.line else f"{issue.file}:{issue.line}"
            lines += [f"**{i}. {location}** - {issue.issue}", ""]
            if issue.description and issue.description != issue.issue:
                lines += [issue.description, ""]

        return "\n".join(lines)

    def _low_section(self, issues: list[AggregatedIssue]) -> str:
        lines = [
            "### 💡 Low Priority Items",
            "",
            "<details>",
            "<summary>Click to expand low priority issues</summary>",
            "",
        ]
        lines += [f"- **{issue.file}** - {issue.issue}" for issue in issues]
        lines += ["", "</details>"]
        return "\n".join(lines)

    def _suggestions_section(self, suggestions: list[AggregatedSuggestion]) -> str:
        lines = ["### 💡 Suggestions & Improvements", ""]

        for category in sorted(SuggestionCategory, key=lambda c: c.weight, reverse=True):
            items = [s for s in suggestions if s.category == category]
            if not items:
                continue

            title = category.value.replace("-", " ").capitalize()
            lines += [f"#### {SUGGESTION_ICONS[category]} {title}", ""]

            for suggestion in items[:MAX_SUGGESTIONS_PER_CATEGORY]:
                entry = f"- **{suggestion.file}**"
                if suggestion.line:
                    entry += f":{suggestion.line}"
                entry += f" - {suggestion.text}"
                if suggestion.occurrences > 1:
                    entry += f" _({suggestion.occurrences} occurrences)_"
                lines.append(entry)

            lines.append("")

        return "\n".join(lines)

    def _file_breakdown(self, navigation: list[FileNavigation]) -> str:
        lines = [
            "### 📁 File-by-File Breakdown",
            "",
            "<details>",
            "<summary>Click to expand file details</summary>",
            "",
        ]

        # sorted() keeps the caller's navigation list untouched
        for entry in sorted(navigation, key=lambda n: n.score, reverse=True):
            lines += [
                f"**{entry.path}**",
                f"- Risks: {entry.risks}",
                f"- Suggestions: {entry.suggestions}",
                "",
            ]

        lines.append("</details>")
        return "\n".join(lines)

    def _statistics_section(self, aggregated: AggregatedResult) -> str:
        meta = aggregated.metadata
        return "\n".join(
            [
                "### 📊 Review Statistics",
                "",
                f"- Review Time: {meta.total_duration_ms / 1000:.2f}s",
                f"- Chunks Reviewed: {meta.total_chunks}",
                f"- Files Analyzed: {meta.total_files}",
                f"- Tokens Used: {meta.total_tokens:,}",
                f"- Providers: {', '.join(meta.backends)}",
            ]
        )
