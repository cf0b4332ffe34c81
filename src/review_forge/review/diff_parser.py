"""
Diff Parser

Splits raw diff output into per-file changes with complexity scores and risk
categories.
"""

import re
from dataclasses import replace
from typing import Any

import structlog

from .models import DiffParseResult, FileChange, RiskCategory
from .risk import RiskClassifier

logger = structlog.get_logger(__name__)


class DiffParser:
    """Parse diff text into scored, categorized file changes."""

    # Regex patterns for parsing diff output
    FILE_HEADER = re.compile(r"^diff --git a/(.+?) b/(.+)$", re.MULTILINE)
    NEW_PATH = re.compile(r"^\+\+\+ (?:b/)?([^\t\n]+)", re.MULTILINE)
    OLD_PATH = re.compile(r"^--- (?:a/)?([^\t\n]+)", re.MULTILINE)
    EXTENSION = re.compile(r"\.([^./]+)$")
    BINARY_MARKERS = ("Binary files", "GIT binary patch")
    DEV_NULL = "/dev/null"

    def __init__(self, classifier: RiskClassifier | None = None):
        """Initialize parser with an optional risk classifier."""
        self.classifier = classifier or RiskClassifier()

    def parse_to_files(self, diff: str) -> DiffParseResult:
        """Parse a complete diff into file changes. Never raises on bad input."""
        result = DiffParseResult()

        if not diff or not diff.strip():
            return result

        for section in self.split_into_sections(diff):
            change = self.parse_section(section)
            if change is None:
                continue
            result.files.append(change)
            result.total_additions += change.additions
            result.total_deletions += change.deletions
            result.total_complexity += change.complexity

        result.total_complexity = round(result.total_complexity, 1)
        logger.debug(
            "Parsed diff",
            files=len(result.files),
            additions=result.total_additions,
            deletions=result.total_deletions,
        )
        return result

    def split_into_sections(self, diff: str) -> list[str]:
        """Split a diff into one text section per file."""
        lines = diff.split("\n")
        git_format = any(line.startswith("diff --git") for line in lines)

        sections: list[str] = []
        current: list[str] = []

        for i, line in enumerate(lines):
            if git_format:
                starts_file = line.startswith("diff --git")
            else:
                # Plain unified diff: a "---" header immediately followed by "+++"
                next_line = lines[i + 1] if i + 1 < len(lines) else ""
                starts_file = line.startswith("--- ") and next_line.startswith("+++ ")

            if starts_file and current:
                sections.append("\n".join(current))
                current = []

            current.append(line)

        if current:
            sections.append("\n".join(current))

        return [s for s in sections if s.strip()]

    def parse_section(self, section: str) -> FileChange | None:
        """Parse a single file section; returns None when no path is found."""
        path = self.extract_path(section)
        if not path:
            return None

        is_binary = any(marker in section for marker in self.BINARY_MARKERS)
        additions, deletions = (0, 0) if is_binary else self._count_changes(section)

        change = FileChange(
            path=path,
            additions=additions,
            deletions=deletions,
            diff=section,
            file_type=self.extract_file_type(path),
            is_binary=is_binary,
        )
        change = replace(change, complexity=self.classifier.calculate_complexity(change))
        return replace(change, category=self.classifier.categorize(change))

    def extract_path(self, section: str) -> str | None:
        """Extract the file path, preferring the new-file path."""
        header = self.FILE_HEADER.search(section)
        if header:
            return header.group(2).strip()

        new_path = self.NEW_PATH.search(section)
        if new_path and new_path.group(1).strip() != self.DEV_NULL:
            return new_path.group(1).strip()

        old_path = self.OLD_PATH.search(section)
        if old_path and old_path.group(1).strip() != self.DEV_NULL:
            return old_path.group(1).strip()

        return None

    def extract_file_type(self, path: str) -> str:
        """Extension tag of a path (``.py``), or empty string."""
        name = path.rsplit("/", 1)[-1]
        match = self.EXTENSION.search(name)
        return f".{match.group(1).lower()}" if match else ""

    def calculate_complexity(self, change: FileChange) -> float:
        return self.classifier.calculate_complexity(change)

    def categorize_by_risk(self, change: FileChange) -> RiskCategory:
        return self.classifier.categorize(change)

    def statistics(self, result: DiffParseResult) -> dict[str, Any]:
        """Summary statistics for a parse result."""
        files = result.files
        return {
            "totalFiles": len(files),
            "highRiskFiles": sum(1 for f in files if f.category == RiskCategory.HIGH),
            "mediumRiskFiles": sum(
                1 for f in files if f.category == RiskCategory.MEDIUM
            ),
            "lowRiskFiles": sum(1 for f in files if f.category == RiskCategory.LOW),
            "averageComplexity": (
                round(result.total_complexity / len(files), 1) if files else 0
            ),
            "totalChanges": result.total_additions + result.total_deletions,
        }

    def _count_changes(self, section: str) -> tuple[int, int]:
        """Count added/removed content lines, skipping file headers."""
        additions = 0
        deletions = 0
        in_hunk = False

        for line in section.split("\n"):
            if line.startswith("@@"):
                in_hunk = True
                continue

            if line.startswith("diff --git"):
                in_hunk = False
                continue

            if not in_hunk and (line.startswith("+++") or line.startswith("---")):
                continue

            if line.startswith("+"):
                additions += 1
            elif line.startswith("-"):
                deletions += 1

        return additions, deletions
