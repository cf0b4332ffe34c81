"""
Chunk Planner

Groups file changes into size-bounded review chunks using First-Fit-Decreasing
bin packing, then merges undersized chunks and orders chunks by priority.
"""

import math
from dataclasses import replace
from typing import Any

import structlog

from review_forge.config import ChunkingConfig

from .models import FileChange, ReviewChunk, RiskCategory

logger = structlog.get_logger(__name__)


class ChunkPlanner:
    """Split a set of file changes into reviewable chunks."""

    # Approximate characters per token (conservative estimate)
    CHARS_PER_TOKEN = 4

    RISK_WEIGHTS = {
        RiskCategory.HIGH: 100,
        RiskCategory.MEDIUM: 50,
        RiskCategory.LOW: 10,
    }
    HIGH_RISK_FILE_BONUS = 20
    SECURITY_PATH_BONUS = 50
    SECURITY_PATH_FRAGMENTS = ("auth", "security", "password")

    def __init__(self, config: ChunkingConfig | None = None):
        """
        Initialize planner.

        Args:
            config: Chunk bounds (max/min size in characters, max files)
        """
        self.config = config or ChunkingConfig()

    def estimate_tokens(self, char_count: int) -> int:
        """Estimate token count from a character count."""
        return math.ceil(char_count / self.CHARS_PER_TOKEN)

    def create_chunks(self, files: list[FileChange]) -> list[ReviewChunk]:
        """
        Create prioritized chunks from file changes.

        Strategy:
        1. Sort by risk then complexity (when prioritization is enabled)
        2. First-Fit-Decreasing bin packing under size and file-count bounds
        3. Merge undersized chunks with their immediate successor
        4. Score and sort chunks by priority
        """
        if not files:
            return []

        if self.config.split_large_files:
            files = [part for f in files for part in self.split_large_file(f)]

        ordered = (
            self.sort_files_by_priority(files)
            if self.config.prioritize_high_risk
            else list(files)
        )

        chunks = self.bin_pack(ordered)
        chunks = self.merge_undersized(chunks)
        chunks = self.prioritize_chunks(chunks)

        logger.info(
            "Created chunks",
            files=len(files),
            chunks=len(chunks),
            max_chunk_size=self.config.max_chunk_size,
        )
        return chunks

    def sort_files_by_priority(self, files: list[FileChange]) -> list[FileChange]:
        """High-risk first; complexity breaks ties within a category."""
        return sorted(
            files, key=lambda f: (f.category.rank, f.complexity), reverse=True
        )

    def bin_pack(self, files: list[FileChange]) -> list[ReviewChunk]:
        """Place each file into the first chunk with room, else open a new one."""
        chunks: list[ReviewChunk] = []

        for file in files:
            target = next((c for c in chunks if self._fits(c, file)), None)

            if target is None:
                chunks.append(
                    ReviewChunk(
                        id=f"chunk-{len(chunks)}",
                        files=[file],
                        total_size=file.size,
                        estimated_tokens=self.estimate_tokens(file.size),
                        risk_level=file.category,
                    )
                )
                continue

            target.files.append(file)
            target.total_size += file.size
            target.estimated_tokens = self.estimate_tokens(target.total_size)
            target.risk_level = self.merged_risk_level(target.risk_level, file.category)

        return chunks

    def merge_undersized(self, chunks: list[ReviewChunk]) -> list[ReviewChunk]:
        """
        Merge a chunk below the minimum size into the next chunk.

        Only the immediate successor is considered; merged chunks are not
        re-examined.
        """
        merged: list[ReviewChunk] = []
        i = 0

        while i < len(chunks):
            chunk = chunks[i]

            if chunk.total_size < self.config.min_chunk_size and i + 1 < len(chunks):
                following = chunks[i + 1]
                combined_size = chunk.total_size + following.total_size
                combined_files = len(chunk.files) + len(following.files)

                if (
                    combined_size <= self.config.max_chunk_size
                    and combined_files <= self.config.max_files_per_chunk
                ):
                    merged.append(
                        ReviewChunk(
                            id=chunk.id,
                            files=[*chunk.files, *following.files],
                            total_size=combined_size,
                            estimated_tokens=self.estimate_tokens(combined_size),
                            risk_level=self.merged_risk_level(
                                chunk.risk_level, following.risk_level
                            ),
                            priority=max(chunk.priority, following.priority),
                        )
                    )
                    i += 2
                    continue

            merged.append(chunk)
            i += 1

        return merged

    def prioritize_chunks(self, chunks: list[ReviewChunk]) -> list[ReviewChunk]:
        """Assign priority scores and sort highest first."""
        for chunk in chunks:
            chunk.priority = self.calculate_priority(chunk)
        return sorted(chunks, key=lambda c: c.priority, reverse=True)

    def calculate_priority(self, chunk: ReviewChunk) -> int:
        """Risk weight + high-risk file bonus + mean complexity + security bonus."""
        if not chunk.files:
            return 0

        priority = float(self.RISK_WEIGHTS[chunk.risk_level])

        high_risk_files = sum(1 for f in chunk.files if f.category == RiskCategory.HIGH)
        priority += high_risk_files * self.HIGH_RISK_FILE_BONUS

        priority += sum(f.complexity for f in chunk.files) / len(chunk.files)

        if any(
            fragment in f.path.lower()
            for f in chunk.files
            for fragment in self.SECURITY_PATH_FRAGMENTS
        ):
            priority += self.SECURITY_PATH_BONUS

        return round(priority)

    def split_large_file(self, file: FileChange) -> list[FileChange]:
        """
        Split an oversized file diff line by line into ordered parts.

        Each part keeps the file's metadata and gets a ``(part N)`` path
        suffix. Joining the part diffs with newlines gives back the original.
        A single line longer than the bound becomes a part of its own.
        """
        limit = self.config.max_chunk_size
        if file.size <= limit:
            return [file]

        parts: list[FileChange] = []
        current: list[str] = []
        current_size = 0

        for line in file.diff.split("\n"):
            line_size = len(line) + 1  # newline

            if current and current_size + line_size > limit + 1:
                parts.append(self._make_part(file, current, len(parts) + 1))
                current = []
                current_size = 0

            current.append(line)
            current_size += line_size

        if current:
            parts.append(self._make_part(file, current, len(parts) + 1))

        logger.debug("Split large file", path=file.path, parts=len(parts))
        return parts

    def statistics(self, chunks: list[ReviewChunk]) -> dict[str, Any]:
        """Summary statistics for a set of chunks."""
        if not chunks:
            return {
                "totalChunks": 0,
                "highRiskChunks": 0,
                "mediumRiskChunks": 0,
                "lowRiskChunks": 0,
                "averageChunkSize": 0,
                "averageFilesPerChunk": 0,
                "estimatedTotalTokens": 0,
                "largestChunkSize": 0,
                "smallestChunkSize": 0,
            }

        sizes = [c.total_size for c in chunks]
        total_files = sum(len(c.files) for c in chunks)

        return {
            "totalChunks": len(chunks),
            "highRiskChunks": sum(1 for c in chunks if c.risk_level == RiskCategory.HIGH),
            "mediumRiskChunks": sum(
                1 for c in chunks if c.risk_level == RiskCategory.MEDIUM
            ),
            "lowRiskChunks": sum(1 for c in chunks if c.risk_level == RiskCategory.LOW),
            "averageChunkSize": round(sum(sizes) / len(chunks)),
            "averageFilesPerChunk": round(total_files / len(chunks), 1),
            "estimatedTotalTokens": sum(c.estimated_tokens for c in chunks),
            "largestChunkSize": max(sizes),
            "smallestChunkSize": min(sizes),
        }

    @staticmethod
    def merged_risk_level(first: RiskCategory, second: RiskCategory) -> RiskCategory:
        """The higher of two risk levels."""
        return first if first.rank >= second.rank else second

    def _fits(self, chunk: ReviewChunk, file: FileChange) -> bool:
        return (
            chunk.total_size + file.size <= self.config.max_chunk_size
            and len(chunk.files) < self.config.max_files_per_chunk
        )

    def _make_part(self, file: FileChange, lines: list[str], index: int) -> FileChange:
        return replace(file, diff="\n".join(lines), path=f"{file.path} (part {index})")
