"""
Data models for the large-diff review pipeline.

Defines all types used throughout segmentation, chunking, execution and
aggregation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from review_forge.providers.base import TokenUsage


class RiskCategory(str, Enum):
    """Risk label assigned to a file change."""

    HIGH = "high-risk"  # Security, database, business logic
    MEDIUM = "medium-risk"  # Large or core-logic changes
    LOW = "low-risk"  # Everything else

    @property
    def rank(self) -> int:
        return {"high-risk": 3, "medium-risk": 2, "low-risk": 1}[self.value]


class Severity(str, Enum):
    """Severity of a reported finding."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return {"HIGH": 3, "MEDIUM": 2, "LOW": 1}[self.value]


class SuggestionCategory(str, Enum):
    """Kind of improvement suggestion."""

    SECURITY = "security"
    PERFORMANCE = "performance"
    BEST_PRACTICE = "best-practice"
    CODE_QUALITY = "code-quality"

    @property
    def weight(self) -> int:
        return {
            "security": 4,
            "performance": 3,
            "best-practice": 2,
            "code-quality": 1,
        }[self.value]


@dataclass(frozen=True)
class FileChange:
    """Diff for a single file, scored and categorized."""

    path: str
    additions: int = 0
    deletions: int = 0
    diff: str = ""
    complexity: float = 0.0
    category: RiskCategory = RiskCategory.LOW
    file_type: str = ""
    is_binary: bool = False

    @property
    def lines_changed(self) -> int:
        """Total lines affected."""
        return self.additions + self.deletions

    @property
    def size(self) -> int:
        """Size of the raw diff in characters."""
        return len(self.diff)


@dataclass
class DiffParseResult:
    """All file changes found in a diff plus totals."""

    files: list[FileChange] = field(default_factory=list)
    total_additions: int = 0
    total_deletions: int = 0
    total_complexity: float = 0.0


@dataclass
class ReviewChunk:
    """A bounded group of file changes reviewed in one generation call."""

    id: str
    files: list[FileChange] = field(default_factory=list)
    total_size: int = 0
    estimated_tokens: int = 0
    risk_level: RiskCategory = RiskCategory.LOW
    priority: int = 0

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]


@dataclass
class Risk:
    """A single finding reported by a review agent."""

    severity: Severity
    file: str
    issue: str
    description: str = ""
    line: int | None = None
    suggestion: str | None = None


@dataclass
class Suggestion:
    """An improvement suggestion reported by a review agent."""

    file: str
    text: str
    category: SuggestionCategory = SuggestionCategory.CODE_QUALITY
    line: int | None = None


@dataclass
class AgentReviewResult:
    """Outcome of reviewing one chunk."""

    chunk_id: str
    files: list[str]
    summary: str
    risks: list[Risk] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)
    model: str = ""
    backend: str = ""
    usage: TokenUsage = field(default_factory=TokenUsage)
    duration_ms: int = 0


@dataclass
class AggregatedIssue(Risk):
    """A deduplicated finding with its occurrences across chunks."""

    occurrences: int = 1
    chunk_ids: list[str] = field(default_factory=list)


@dataclass
class AggregatedSuggestion(Suggestion):
    """A deduplicated suggestion with its occurrences across chunks."""

    occurrences: int = 1
    chunk_ids: list[str] = field(default_factory=list)


@dataclass
class FileNavigation:
    """Per-file entry of the navigation index."""

    path: str
    risks: int = 0
    suggestions: int = 0
    chunk_ids: list[str] = field(default_factory=list)

    @property
    def score(self) -> int:
        return self.risks * 10 + self.suggestions


@dataclass
class AggregationMetadata:
    """Totals collected across all chunk results."""

    total_chunks: int = 0
    total_files: int = 0
    total_tokens: int = 0
    total_duration_ms: int = 0
    backends: list[str] = field(default_factory=list)


@dataclass
class AggregatedResult:
    """Merged view of every chunk review."""

    summary: str
    risks: list[AggregatedIssue] = field(default_factory=list)
    suggestions: list[AggregatedSuggestion] = field(default_factory=list)
    navigation: list[FileNavigation] = field(default_factory=list)
    metadata: AggregationMetadata = field(default_factory=AggregationMetadata)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "summary": self.summary,
            "risks": [
                {
                    "severity": r.severity.value,
                    "file": r.file,
                    "line": r.line,
                    "issue": r.issue,
                    "description": r.description,
                    "suggestion": r.suggestion,
                    "occurrences": r.occurrences,
                    "chunkIds": list(r.chunk_ids),
                }
                for r in self.risks
            ],
            "suggestions": [
                {
                    "file": s.file,
                    "line": s.line,
                    "type": s.category.value,
                    "suggestion": s.text,
                    "occurrences": s.occurrences,
                    "chunkIds": list(s.chunk_ids),
                }
                for s in self.suggestions
            ],
            "navigation": [
                {
                    "path": n.path,
                    "risks": n.risks,
                    "suggestions": n.suggestions,
                    "chunkIds": list(n.chunk_ids),
                }
                for n in self.navigation
            ],
            "metadata": {
                "totalChunks": self.metadata.total_chunks,
                "totalFiles": self.metadata.total_files,
                "totalTokens": self.metadata.total_tokens,
                "totalDuration": self.metadata.total_duration_ms,
                "providers": list(self.metadata.backends),
            },
        }
