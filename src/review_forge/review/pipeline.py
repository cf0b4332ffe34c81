"""
Large Review Pipeline

Diff -> file changes -> chunks -> parallel agent reviews -> aggregation ->
markdown review. Backends are tried in order; a backend that reviews no chunk
at all hands over to the next one.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from review_forge.config import ReviewConfig, RoutingConfig
from review_forge.providers import GenerationBackend

from .agent import ReviewAgent
from .aggregator import ResultAggregator
from .chunker import ChunkPlanner
from .diff_parser import DiffParser
from .executor import ExecutionProgress, ExecutionResult, ParallelExecutor
from .synthesizer import RequestMetadata, ReviewSynthesizer

logger = structlog.get_logger(__name__)

NO_CHANGES_REVIEW = "## AI Code Review\n\nNo file changes detected in the diff."


class ReviewPipelineError(Exception):
    """The review could not be produced by any backend."""

    def __init__(self, message: str, timestamp: str | None = None):
        super().__init__(message)
        self.message = message
        self.timestamp = timestamp or datetime.now(timezone.utc).isoformat()


@dataclass
class ReviewRequest:
    """A diff to review plus optional pull request details."""

    diff: str
    author: str | None = None
    branch: str | None = None
    commit_hash: str | None = None
    commit_message: str | None = None
    files: list[str] | None = None

    @property
    def metadata(self) -> RequestMetadata:
        return RequestMetadata(
            author=self.author,
            branch=self.branch,
            commit_hash=self.commit_hash,
            commit_message=self.commit_message,
        )


@dataclass
class ReviewResponse:
    """Final review text, run metadata and optional pipeline statistics."""

    review: str
    metadata: dict[str, Any]
    statistics: dict[str, Any] | None = None
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        data: dict[str, Any] = {"review": self.review, "metadata": self.metadata}
        if self.statistics is not None:
            data["statistics"] = self.statistics
        if self.errors:
            data["errors"] = self.errors
        return data


def select_strategy(diff_size: int, routing: RoutingConfig | None = None) -> str:
    """Name the review strategy for a diff of ``diff_size`` characters."""
    routing = routing or RoutingConfig()
    if diff_size <= routing.standard_threshold:
        return "standard"
    if diff_size <= routing.chunked_threshold:
        return "chunked"
    return "hierarchical"


class LargeReviewPipeline:
    """
    End-to-end review of a large diff.

    Stateless between requests; components are built per run from the
    configuration so concurrent requests do not share executor observers.
    """

    def __init__(
        self,
        config: ReviewConfig | None = None,
        backends: list[GenerationBackend] | None = None,
    ):
        """
        Initialize pipeline.

        Args:
            config: Review configuration
            backends: Generation backends, primary first
        """
        self.config = config or ReviewConfig()
        self.backends = list(backends or [])

    async def run(self, request: ReviewRequest) -> ReviewResponse:
        """Review a diff; raises ``ReviewPipelineError`` when no backend succeeds."""
        start = time.monotonic()
        strategy = select_strategy(len(request.diff), self.config.routing)
        logger.info("Starting review", diff_size=len(request.diff), strategy=strategy)

        parser = DiffParser()
        parse_result = parser.parse_to_files(request.diff)

        if request.files:
            wanted = set(request.files)
            parse_result.files = [f for f in parse_result.files if f.path in wanted]

        if not parse_result.files:
            return ReviewResponse(
                review=NO_CHANGES_REVIEW,
                metadata={
                    "strategy": strategy,
                    "chunks": 0,
                    "files": 0,
                    "totalTokens": 0,
                    "duration": int((time.monotonic() - start) * 1000),
                    "providers": [],
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )

        if not self.backends:
            raise ReviewPipelineError("No generation backend is available")

        planner = ChunkPlanner(self.config.chunking)
        chunks = planner.create_chunks(parse_result.files)
        logger.info("Planned review", files=len(parse_result.files), chunks=len(chunks))

        executor = ParallelExecutor(self.config.execution)
        executor.on_progress(self._log_progress)

        execution = await self._execute(executor, chunks)

        aggregated = ResultAggregator(self.config.aggregation).aggregate(execution.results)
        logger.info(
            "Aggregated findings",
            risks=len(aggregated.risks),
            suggestions=len(aggregated.suggestions),
        )

        final = ReviewSynthesizer(self.config.aggregation).synthesize(
            aggregated, request.metadata, strategy=strategy
        )

        parse_stats = parser.statistics(parse_result)
        chunk_stats = planner.statistics(chunks)
        exec_stats = executor.statistics(execution)

        logger.info(
            "Review completed", duration_ms=int((time.monotonic() - start) * 1000)
        )

        return ReviewResponse(
            review=final.content,
            metadata=final.metadata_dict(),
            statistics={
                "parsing": {
                    "totalFiles": parse_stats["totalFiles"],
                    "highRiskFiles": parse_stats["highRiskFiles"],
                    "mediumRiskFiles": parse_stats["mediumRiskFiles"],
                    "lowRiskFiles": parse_stats["lowRiskFiles"],
                    "averageComplexity": parse_stats["averageComplexity"],
                },
                "chunking": {
                    "totalChunks": chunk_stats["totalChunks"],
                    "averageChunkSize": chunk_stats["averageChunkSize"],
                    "largestChunk": chunk_stats["largestChunkSize"],
                },
                "execution": {
                    "successRate": exec_stats["successRate"],
                    "failureRate": exec_stats["failureRate"],
                    "averageChunkDuration": exec_stats["averageDuration"],
                },
            },
            errors=[
                {"chunkId": e.chunk_id, "error": e.error, "kind": e.kind.value}
                for e in execution.errors
            ],
        )

    async def _execute(self, executor: ParallelExecutor, chunks) -> ExecutionResult:
        """Run chunks on each backend in turn until one reviews at least one chunk."""
        models = self.config.models
        last: ExecutionResult | None = None

        for index, backend in enumerate(self.backends):
            # Model override applies to the primary backend only
            agent = ReviewAgent(
                backend,
                max_tokens=models.max_tokens_per_chunk,
                temperature=models.temperature,
                model=models.agent if index == 0 else None,
            )
            result = await executor.execute_parallel(chunks, agent)

            if result.results:
                logger.info("Execution completed", backend=backend.name)
                return executor.apply_fallback(result, chunks)

            logger.error(
                "Backend reviewed no chunks",
                backend=backend.name,
                errors=[e.error for e in result.errors[:3]],
            )
            last = result

        if last is not None and self.config.execution.fallback_to_summary:
            logger.warning("All backends failed, using fallback summaries")
            return executor.apply_fallback(last, chunks)

        first_error = last.errors[0].error if last and last.errors else "unknown error"
        raise ReviewPipelineError(
            f"All backends failed to complete the review: {first_error}"
        )

    @staticmethod
    def _log_progress(progress: ExecutionProgress) -> None:
        logger.info(
            "Review progress",
            completed=progress.completed,
            total=progress.total,
            failed=progress.failed,
        )
