"""Review Forge: chunked multi-agent code review for large diffs."""

__version__ = "0.1.0"
