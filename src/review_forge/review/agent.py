"""
Review Agent

Reviews a single chunk with one generation call: builds the prompt, calls the
backend and parses the reply into findings.
"""

import time

import structlog

from review_forge.providers import GenerationBackend, GenerationOptions

from .models import AgentReviewResult, ReviewChunk
from .response_parser import parse_review_response

logger = structlog.get_logger(__name__)

RESPONSE_SCHEMA = """{
  "summary": "Brief summary of changes in this chunk",
  "risks": [
    {
      "severity": "HIGH|MEDIUM|LOW",
      "file": "path/to/file",
      "line": 123,
      "issue": "Brief issue title",
      "description": "Detailed description",
      "suggestion": "How to fix it"
    }
  ],
  "suggestions": [
    {
      "file": "path/to/file",
      "line": 45,
      "type": "performance|code-quality|best-practice|security",
      "suggestion": "Improvement suggestion"
    }
  ]
}"""


class ReviewAgent:
    """
    Chunk reviewer bound to one generation backend.

    Backend failures propagate as ``BackendError`` so the executor can decide
    whether to retry.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        max_tokens: int = 1500,
        temperature: float = 0.2,
        model: str | None = None,
    ):
        """
        Initialize the review agent.

        Args:
            backend: Generation backend used for every chunk
            max_tokens: Completion token limit per chunk
            temperature: Sampling temperature
            model: Model override (defaults to the backend's model)
        """
        self.backend = backend
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.model = model

    @property
    def backend_name(self) -> str:
        return self.backend.name

    def is_available(self) -> bool:
        return self.backend.is_available()

    async def review_chunk(self, chunk: ReviewChunk) -> AgentReviewResult:
        """Review one chunk and return its parsed findings."""
        start = time.monotonic()

        prompt = self.build_prompt(chunk)
        response = await self.backend.generate_review(
            prompt,
            GenerationOptions(
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                model=self.model,
            ),
        )

        parsed = parse_review_response(response.content, chunk.paths)
        duration_ms = int((time.monotonic() - start) * 1000)

        logger.debug(
            "Chunk reviewed",
            chunk_id=chunk.id,
            backend=response.backend,
            risks=len(parsed.risks),
            suggestions=len(parsed.suggestions),
            parser=parsed.strategy,
            duration_ms=duration_ms,
        )

        return AgentReviewResult(
            chunk_id=chunk.id,
            files=chunk.paths,
            summary=parsed.summary,
            risks=parsed.risks,
            suggestions=parsed.suggestions,
            model=response.model,
            backend=response.backend,
            usage=response.usage,
            duration_ms=duration_ms,
        )

    def build_prompt(self, chunk: ReviewChunk) -> str:
        """Build a focused review prompt for a chunk."""
        file_list = "\n".join(
            f"- {f.path} ({f.additions}+ / {f.deletions}- lines, risk: {f.category.value})"
            for f in chunk.files
        )

        diff_content = "\n".join(
            f"### File: {f.path}\n"
            f"Risk: {f.category.value.upper()}\n"
            f"Complexity: {f.complexity}\n\n"
            f"```diff\n{f.diff}\n```\n"
            for f in chunk.files
        )

        return (
            "You are an expert code reviewer analyzing a subset of files from a "
            "large pull request.\n\n"
            "**Your Task:**\n"
            "Analyze the following code changes and provide:\n"
            "1. A brief summary of what these changes accomplish\n"
            "2. Any risks, bugs, or security issues (tagged with severity: "
            "HIGH, MEDIUM, or LOW)\n"
            "3. Suggestions for code quality improvements\n\n"
            f"**Files in this chunk ({len(chunk.files)}):**\n"
            f"{file_list}\n\n"
            "**Important:**\n"
            "- Focus on critical issues (security vulnerabilities, bugs, breaking changes)\n"
            "- Be concise and specific\n"
            "- Include file path and approximate line numbers for each issue\n"
            "- Prioritize actionable feedback\n\n"
            "**Diff Content:**\n"
            f"{diff_content}\n"
            "**Response Format (use valid JSON):**\n"
            f"{RESPONSE_SCHEMA}"
        )
