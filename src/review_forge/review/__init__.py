"""
Large-Diff Review Module

Chunked, multi-agent review of diffs too large for a single generation call.
"""

from .agent import ReviewAgent
from .aggregator import ResultAggregator
from .chunker import ChunkPlanner
from .diff_parser import DiffParser
from .executor import ExecutionProgress, ExecutionResult, ParallelExecutor
from .models import (
    AgentReviewResult,
    AggregatedResult,
    FileChange,
    ReviewChunk,
    RiskCategory,
    Severity,
    SuggestionCategory,
)
from .pipeline import (
    LargeReviewPipeline,
    ReviewPipelineError,
    ReviewRequest,
    ReviewResponse,
    select_strategy,
)
from .risk import RiskClassifier
from .synthesizer import FinalReview, RequestMetadata, ReviewSynthesizer

__all__ = [
    "ReviewAgent",
    "ResultAggregator",
    "ChunkPlanner",
    "DiffParser",
    "ExecutionProgress",
    "ExecutionResult",
    "ParallelExecutor",
    "AgentReviewResult",
    "AggregatedResult",
    "FileChange",
    "ReviewChunk",
    "RiskCategory",
    "Severity",
    "SuggestionCategory",
    "LargeReviewPipeline",
    "ReviewPipelineError",
    "ReviewRequest",
    "ReviewResponse",
    "select_strategy",
    "RiskClassifier",
    "FinalReview",
    "RequestMetadata",
    "ReviewSynthesizer",
]
