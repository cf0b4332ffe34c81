"""
Risk Classifier

Scores the complexity of a file change and assigns its risk category.
Uses content patterns first, then path heuristics, then size.
"""

import math
import re

from .models import FileChange, RiskCategory


class RiskClassifier:
    """Complexity scoring and risk categorization for file changes."""

    # Content patterns that make any change high-risk
    HIGH_RISK_PATTERNS = {
        "security": [
            r"eval\(",
            r"exec\(",
            r"dangerouslySetInnerHTML",
            r"WHERE.*\$\{",
            r"SELECT.*FROM.*WHERE",
            r"password|secret|api[_-]?key",
            r"\.raw\(",
            r"innerHTML",
            r"authentication|authorization",
            r"jwt|token",
        ],
        "database": [
            r"CREATE TABLE",
            r"ALTER TABLE",
            r"DROP TABLE",
            r"migration",
            r"schema",
        ],
        "business_logic": [
            r"payment|billing|invoice",
            r"transaction|order",
            r"user.*create|user.*delete",
            r"permission|role|access",
        ],
    }

    # Path fragments that make a change high-risk
    HIGH_RISK_PATHS = ["auth", "security", "payment", "migration", "database", "admin"]

    # Path fragments that mark core business logic
    MEDIUM_RISK_PATHS = ["service", "controller", "api", "model"]

    # Complexity multiplier per extension
    FILE_TYPE_WEIGHTS = {
        ".ts": 1.2,
        ".tsx": 1.3,
        ".js": 1.1,
        ".jsx": 1.2,
        ".py": 1.2,
        ".java": 1.3,
        ".cpp": 1.4,
        ".c": 1.3,
        ".go": 1.2,
        ".rs": 1.4,
        ".sql": 1.5,
        ".yml": 1.0,
        ".yaml": 1.0,
        ".json": 0.8,
        ".md": 0.6,
        ".txt": 0.5,
    }

    BINARY_COMPLEXITY = 5.0

    # Added lines that indicate integration points, definitions, branching
    IMPORT_LINE = re.compile(r"^\+.*import ", re.MULTILINE)
    DEFINITION_LINE = re.compile(
        r"^\+.*(function |const .* = |class |def |func )", re.MULTILINE
    )
    CONTROL_LINE = re.compile(
        r"^\+.*(if |for |while |switch |try |catch )", re.MULTILINE
    )

    def __init__(
        self,
        medium_complexity_threshold: float = 30.0,
        medium_lines_threshold: int = 100,
    ):
        """Initialize classifier with thresholds."""
        self.medium_complexity_threshold = medium_complexity_threshold
        self.medium_lines_threshold = medium_lines_threshold

        # Compile regex patterns
        self._content_patterns = [
            re.compile(p, re.I)
            for patterns in self.HIGH_RISK_PATTERNS.values()
            for p in patterns
        ]

    def file_type_weight(self, file_type: str) -> float:
        return self.FILE_TYPE_WEIGHTS.get(file_type.lower(), 1.0)

    def calculate_complexity(self, change: FileChange) -> float:
        """
        Score how hard a change is to review.

        Factors: lines changed (log scale), file type weight, added imports,
        definitions and control structures.
        """
        if change.is_binary:
            return self.BINARY_COMPLEXITY

        complexity = math.log10(change.lines_changed + 1) * 10
        complexity *= self.file_type_weight(change.file_type)

        complexity += len(self.IMPORT_LINE.findall(change.diff)) * 2
        complexity += len(self.DEFINITION_LINE.findall(change.diff)) * 3
        complexity += len(self.CONTROL_LINE.findall(change.diff)) * 1.5

        return round(complexity, 1)

    def categorize(self, change: FileChange) -> RiskCategory:
        """Assign a risk category to a scored change."""
        path = change.path.lower()

        for pattern in self._content_patterns:
            if pattern.search(change.diff):
                return RiskCategory.HIGH

        if any(fragment in path for fragment in self.HIGH_RISK_PATHS):
            return RiskCategory.HIGH

        if (
            change.complexity > self.medium_complexity_threshold
            or change.lines_changed > self.medium_lines_threshold
            or any(fragment in path for fragment in self.MEDIUM_RISK_PATHS)
        ):
            return RiskCategory.MEDIUM

        return RiskCategory.LOW
