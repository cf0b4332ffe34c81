"""
Result Aggregator

Merges chunk review results: deduplicates similar findings, orders them by
importance, builds a per-file navigation index and sums metadata.
"""

from collections import Counter

import structlog

from review_forge.config import AggregationConfig

from .models import (
    AgentReviewResult,
    AggregatedIssue,
    AggregatedResult,
    AggregatedSuggestion,
    AggregationMetadata,
    FileNavigation,
)

logger = structlog.get_logger(__name__)

EMPTY_SUMMARY = "No review results available"
NO_SUMMARY = "No summary available"
SUMMARY_SAMPLE = 3


class ResultAggregator:
    """Combine per-chunk results into a single review."""

    def __init__(self, config: AggregationConfig | None = None):
        self.config = config or AggregationConfig()

    def aggregate(self, results: list[AgentReviewResult]) -> AggregatedResult:
        """Aggregate chunk results. Zero results give a well-formed empty result."""
        if not results:
            return AggregatedResult(summary=EMPTY_SUMMARY)

        risks = self._limit_per_file(self.prioritize_risks(self.deduplicate_risks(results)))
        suggestions = self._limit_per_file(
            self.prioritize_suggestions(self.deduplicate_suggestions(results))
        )

        aggregated = AggregatedResult(
            summary=self.generate_summary(results),
            risks=risks,
            suggestions=suggestions,
            navigation=self.build_navigation(results, risks, suggestions),
            metadata=self.collect_metadata(results),
        )

        logger.info(
            "Aggregated review results",
            chunks=len(results),
            risks=len(risks),
            suggestions=len(suggestions),
        )
        return aggregated

    def deduplicate_risks(self, results: list[AgentReviewResult]) -> list[AggregatedIssue]:
        """Merge risks on the same file with similar titles; keep the higher severity."""
        aggregated: list[AggregatedIssue] = []

        for result in results:
            for risk in result.risks:
                similar = next(
                    (
                        existing
                        for existing in aggregated
                        if existing.file == risk.file
                        and self.calculate_similarity(existing.issue, risk.issue)
                        >= self.config.deduplication_threshold
                    ),
                    None,
                )

                if similar is None:
                    aggregated.append(
                        AggregatedIssue(
                            severity=risk.severity,
                            file=risk.file,
                            issue=risk.issue,
                            description=risk.description,
                            line=risk.line,
                            suggestion=risk.suggestion,
                            chunk_ids=[result.chunk_id],
                        )
                    )
                    continue

                similar.occurrences += 1
                if result.chunk_id not in similar.chunk_ids:
                    similar.chunk_ids.append(result.chunk_id)
                if risk.severity.rank > similar.severity.rank:
                    similar.severity = risk.severity

        return aggregated

    def deduplicate_suggestions(
        self, results: list[AgentReviewResult]
    ) -> list[AggregatedSuggestion]:
        """Merge suggestions on the same file and category with similar text."""
        aggregated: list[AggregatedSuggestion] = []

        for result in results:
            for suggestion in result.suggestions:
                similar = next(
                    (
                        existing
                        for existing in aggregated
                        if existing.file == suggestion.file
                        and existing.category == suggestion.category
                        and self.calculate_similarity(existing.text, suggestion.text)
                        >= self.config.deduplication_threshold
                    ),
                    None,
                )

                if similar is None:
                    aggregated.append(
                        AggregatedSuggestion(
                            file=suggestion.file,
                            text=suggestion.text,
                            category=suggestion.category,
                            line=suggestion.line,
                            chunk_ids=[result.chunk_id],
                        )
                    )
                    continue

                similar.occurrences += 1
                if result.chunk_id not in similar.chunk_ids:
                    similar.chunk_ids.append(result.chunk_id)

        return aggregated

    @staticmethod
    def calculate_similarity(first: str, second: str) -> float:
        """Jaccard similarity of lowercase whitespace-separated word sets."""
        words1 = set(first.lower().split())
        words2 = set(second.lower().split())

        union = words1 | words2
        if not union:
            # Two empty texts are identical
            return 1.0
        return len(words1 & words2) / len(union)

    def prioritize_risks(self, risks: list[AggregatedIssue]) -> list[AggregatedIssue]:
        return sorted(risks, key=lambda r: (r.severity.rank, r.occurrences), reverse=True)

    def prioritize_suggestions(
        self, suggestions: list[AggregatedSuggestion]
    ) -> list[AggregatedSuggestion]:
        return sorted(
            suggestions, key=lambda s: (s.category.weight, s.occurrences), reverse=True
        )

    def generate_summary(self, results: list[AgentReviewResult]) -> str:
        """Single unique summary verbatim, otherwise the first few joined."""
        unique = list(dict.fromkeys(r.summary for r in results if r.summary))

        if not unique:
            return NO_SUMMARY
        if len(unique) == 1:
            return unique[0]

        return (
            f"Multiple changes across {len(results)} chunks: "
            f"{'; '.join(unique[:SUMMARY_SAMPLE])}"
        )

    def build_navigation(
        self,
        results: list[AgentReviewResult],
        risks: list[AggregatedIssue],
        suggestions: list[AggregatedSuggestion],
    ) -> list[FileNavigation]:
        """One entry per file touched by any chunk, in first-seen order."""
        entries: dict[str, FileNavigation] = {}

        for result in results:
            for path in result.files:
                entry = entries.setdefault(path, FileNavigation(path=path))
                if result.chunk_id not in entry.chunk_ids:
                    entry.chunk_ids.append(result.chunk_id)

        for risk in risks:
            if risk.file in entries:
                entries[risk.file].risks += 1

        for suggestion in suggestions:
            if suggestion.file in entries:
                entries[suggestion.file].suggestions += 1

        return list(entries.values())

    def collect_metadata(self, results: list[AgentReviewResult]) -> AggregationMetadata:
        files = {path for r in results for path in r.files}
        return AggregationMetadata(
            total_chunks=len(results),
            total_files=len(files),
            total_tokens=sum(r.usage.total_tokens for r in results),
            total_duration_ms=sum(r.duration_ms for r in results),
            backends=list(dict.fromkeys(r.backend for r in results)),
        )

    def _limit_per_file(self, items: list) -> list:
        """Keep at most ``max_issues_per_file`` items per file, preserving order."""
        seen: Counter[str] = Counter()
        kept = []
        for item in items:
            seen[item.file] += 1
            if seen[item.file] <= self.config.max_issues_per_file:
                kept.append(item)
        return kept
