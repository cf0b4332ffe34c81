"""
Shared fixtures for review-forge tests.

Sample diffs, file change builders and fake generation backends.
"""

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from review_forge.config import BackendSettings
from review_forge.providers import GenerationBackend, GenerationResponse, TokenUsage
from review_forge.review.models import FileChange, RiskCategory


# =============================================================================
# SAMPLE DIFFS
# =============================================================================

SIMPLE_DIFF = """diff --git a/src/utils/format.py b/src/utils/format.py
index 1234567..abcdefg 100644
--- a/src/utils/format.py
+++ b/src/utils/format.py
@@ -1,3 +1,4 @@
 def format_name(first, last):
-    return first + last
+    full = f"{first} {last}"
+    return full.strip()
"""

MULTI_FILE_DIFF = """diff --git a/src/auth/login.py b/src/auth/login.py
index 1111111..2222222 100644
--- a/src/auth/login.py
+++ b/src/auth/login.py
@@ -1,4 +1,6 @@
 def login(user, password):
-    return check(user, password)
+    if not user:
+        return None
+    return check(user, password)
diff --git a/docs/README.md b/docs/README.md
index 3333333..4444444 100644
--- a/docs/README.md
+++ b/docs/README.md
@@ -1,2 +1,3 @@
 # Project
+Some more documentation.
diff --git a/src/api/users.py b/src/api/users.py
index 5555555..6666666 100644
--- a/src/api/users.py
+++ b/src/api/users.py
@@ -10,3 +10,4 @@ def list_users():
     users = load()
+    users.sort()
     return users
"""


@pytest.fixture
def simple_diff() -> str:
    """A one-file, low-risk diff."""
    return SIMPLE_DIFF


@pytest.fixture
def multi_file_diff() -> str:
    """A three-file diff: an auth module, docs and an API module."""
    return MULTI_FILE_DIFF


# =============================================================================
# BUILDERS
# =============================================================================

def make_change(
    path: str,
    size: int = 100,
    category: RiskCategory = RiskCategory.LOW,
    complexity: float = 1.0,
    additions: int = 1,
    deletions: int = 0,
) -> FileChange:
    """Build a FileChange whose diff is exactly ``size`` characters."""
    return FileChange(
        path=path,
        additions=additions,
        deletions=deletions,
        diff="+" * size,
        complexity=complexity,
        category=category,
        file_type=".py",
    )


def review_json(
    summary: str = "Refactors helpers",
    risks: list[dict[str, Any]] | None = None,
    suggestions: list[dict[str, Any]] | None = None,
) -> str:
    """A backend reply in the requested JSON format, wrapped in a fence."""
    payload = {
        "summary": summary,
        "risks": risks or [],
        "suggestions": suggestions or [],
    }
    return f"Here is my review:\n```json\n{json.dumps(payload)}\n```"


def make_backend(
    content: str | None = None,
    name: str = "fake",
    side_effect: Any = None,
) -> GenerationBackend:
    """
    A GenerationBackend whose call function is an AsyncMock.

    Args:
        content: Text returned by every call
        name: Backend name
        side_effect: Passed to the mock (exception, list of outcomes or callable)
    """
    call = AsyncMock()
    if side_effect is not None:
        call.side_effect = side_effect
    else:
        call.return_value = GenerationResponse(
            content=content if content is not None else review_json(),
            model=f"{name}-model",
            backend=name,
            usage=TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150),
        )

    return GenerationBackend(
        name=name,
        settings=BackendSettings(name=name, api_key="test-key"),
        call=call,
        default_model=f"{name}-model",
    )


def response(content: str, name: str = "fake", total_tokens: int = 150) -> GenerationResponse:
    """A single GenerationResponse for use in side_effect lists."""
    return GenerationResponse(
        content=content,
        model=f"{name}-model",
        backend=name,
        usage=TokenUsage(total_tokens=total_tokens),
    )


@pytest.fixture
def fake_backend() -> GenerationBackend:
    """Backend that answers every prompt with a clean JSON review."""
    return make_backend()
