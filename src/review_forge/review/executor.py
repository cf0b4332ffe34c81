"""
Parallel Executor

Runs chunk reviews in fixed-size concurrent batches with a per-chunk timeout,
retry with exponential backoff, progress notification and a
fallback-to-summary policy for high failure rates.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from review_forge.config import ExecutionConfig
from review_forge.providers import BackendError, BackendErrorKind, TokenUsage

from .agent import ReviewAgent
from .models import AgentReviewResult, ReviewChunk, Risk, Severity

logger = structlog.get_logger(__name__)

FALLBACK_BACKEND = "fallback"


@dataclass
class ExecutionProgress:
    """Counters reported to progress observers."""

    total: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0


@dataclass
class ChunkError:
    """A chunk whose review failed after all attempts."""

    chunk_id: str
    error: str
    kind: BackendErrorKind = BackendErrorKind.GENERIC


@dataclass
class ExecutionResult:
    """Successful results, failed chunks and final counters."""

    results: list[AgentReviewResult] = field(default_factory=list)
    errors: list[ChunkError] = field(default_factory=list)
    progress: ExecutionProgress = field(default_factory=ExecutionProgress)
    total_duration_ms: int = 0


ProgressCallback = Callable[[ExecutionProgress], Any]


class ParallelExecutor:
    """
    Bounded-concurrency execution of chunk reviews.

    Batches of ``max_concurrent_agents`` chunks run together; the next batch
    starts only after every chunk of the current batch has settled.
    """

    def __init__(
        self,
        config: ExecutionConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize executor.

        Args:
            config: Concurrency, timeout, retry and fallback settings
            sleep: Awaitable used for backoff delays
        """
        self.config = config or ExecutionConfig()
        self._sleep = sleep
        self._progress_callbacks: list[ProgressCallback] = []

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register a progress observer."""
        self._progress_callbacks.append(callback)

    async def execute_parallel(
        self,
        chunks: list[ReviewChunk],
        agent: ReviewAgent,
        max_concurrency: int | None = None,
    ) -> ExecutionResult:
        """Review all chunks; failures are collected, never raised."""
        start = time.monotonic()
        concurrency = max(1, max_concurrency or self.config.max_concurrent_agents)

        result = ExecutionResult(progress=ExecutionProgress(total=len(chunks)))
        progress = result.progress

        for i in range(0, len(chunks), concurrency):
            batch = chunks[i : i + concurrency]
            progress.in_progress = len(batch)

            outcomes = await asyncio.gather(
                *(self._execute_with_retry(chunk, agent) for chunk in batch),
                return_exceptions=True,
            )

            for chunk, outcome in zip(batch, outcomes):
                progress.in_progress -= 1

                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    result.errors.append(self._to_chunk_error(chunk, outcome))
                    progress.failed += 1
                else:
                    result.results.append(outcome)
                    progress.completed += 1

                self._notify_progress(progress)

        result.total_duration_ms = int((time.monotonic() - start) * 1000)

        logger.info(
            "Parallel execution finished",
            total=progress.total,
            completed=progress.completed,
            failed=progress.failed,
            duration_ms=result.total_duration_ms,
        )
        return result

    async def execute_with_fallback(
        self, chunks: list[ReviewChunk], agent: ReviewAgent
    ) -> ExecutionResult:
        """Execute, then substitute placeholders when too many chunks failed."""
        result = await self.execute_parallel(chunks, agent)
        return self.apply_fallback(result, chunks)

    def apply_fallback(
        self, result: ExecutionResult, chunks: list[ReviewChunk]
    ) -> ExecutionResult:
        """
        Replace failed chunks with placeholder results.

        Applies only when fallback is enabled and the failure ratio exceeds
        ``fallback_failure_ratio``. The error list is cleared afterwards.
        """
        if not self.config.fallback_to_summary or not chunks or not result.errors:
            return result

        if len(result.errors) <= len(chunks) * self.config.fallback_failure_ratio:
            return result

        logger.warning(
            "High failure rate, falling back to summary mode",
            failed=len(result.errors),
            total=len(chunks),
        )

        by_id = {chunk.id: chunk for chunk in chunks}
        for error in result.errors:
            chunk = by_id.get(error.chunk_id)
            if chunk is not None:
                result.results.append(self.generate_fallback_result(chunk, error.error))

        result.errors = []
        return result

    def generate_fallback_result(
        self, chunk: ReviewChunk, error_message: str
    ) -> AgentReviewResult:
        """Placeholder result asking for manual review of a failed chunk."""
        paths = chunk.paths
        return AgentReviewResult(
            chunk_id=chunk.id,
            files=paths,
            summary=(
                f"⚠️ Review failed: {error_message}. "
                f"Manual review recommended for: {', '.join(paths)}"
            ),
            risks=[
                Risk(
                    severity=Severity.MEDIUM,
                    file=paths[0] if paths else "unknown",
                    issue="Automated review failed",
                    description=(
                        "The automated review agent encountered an error: "
                        f"{error_message}. Please manually review these changes."
                    ),
                )
            ],
            suggestions=[],
            model=FALLBACK_BACKEND,
            backend=FALLBACK_BACKEND,
            usage=TokenUsage(),
            duration_ms=0,
        )

    def statistics(self, result: ExecutionResult) -> dict[str, float]:
        """Success/failure rates (percent), mean chunk duration and token total."""
        success_count = len(result.results)
        total_count = result.progress.total
        total_duration = sum(r.duration_ms for r in result.results)

        return {
            "successRate": (success_count / total_count) * 100 if total_count else 0,
            "failureRate": (len(result.errors) / total_count) * 100 if total_count else 0,
            "averageDuration": total_duration / success_count if success_count else 0,
            "totalTokensUsed": sum(r.usage.total_tokens for r in result.results),
        }

    async def _execute_with_retry(
        self, chunk: ReviewChunk, agent: ReviewAgent
    ) -> AgentReviewResult:
        max_retries = self.config.retry_attempts
        timeout_ms = self.config.agent_timeout_ms

        for attempt in range(max_retries + 1):
            try:
                return await asyncio.wait_for(
                    agent.review_chunk(chunk), timeout=timeout_ms / 1000
                )
            except asyncio.TimeoutError as e:
                error = BackendError.timeout(agent.backend_name, timeout_ms)
                error.__cause__ = e
            except BackendError as e:
                error = e
            except Exception as e:
                error = BackendError.generic(agent.backend_name, str(e))
                error.__cause__ = e

            if not error.retryable or attempt >= max_retries:
                raise error

            delay = self._backoff_delay(attempt, error)
            logger.info(
                "Retrying chunk",
                chunk_id=chunk.id,
                attempt=attempt + 2,
                max_attempts=max_retries + 1,
                delay=delay,
                reason=error.kind.value,
            )
            await self._sleep(delay)

        # Unreachable: the loop either returns or raises
        raise BackendError.generic(agent.backend_name, f"Chunk {chunk.id} not executed")

    def _backoff_delay(self, attempt: int, error: BackendError) -> float:
        delay = min(
            self.config.retry_backoff_base * (2**attempt),
            self.config.retry_backoff_cap,
        )
        if error.kind == BackendErrorKind.RATE_LIMITED and error.retry_after:
            delay = max(delay, error.retry_after)
        return delay

    def _notify_progress(self, progress: ExecutionProgress) -> None:
        snapshot = ExecutionProgress(
            total=progress.total,
            completed=progress.completed,
            failed=progress.failed,
            in_progress=progress.in_progress,
        )
        for callback in self._progress_callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error("Progress callback failed", error=str(e))

    @staticmethod
    def _to_chunk_error(chunk: ReviewChunk, error: BaseException) -> ChunkError:
        if isinstance(error, BackendError):
            return ChunkError(chunk_id=chunk.id, error=error.message, kind=error.kind)
        return ChunkError(chunk_id=chunk.id, error=str(error) or type(error).__name__)
