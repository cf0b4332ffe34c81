"""API request models."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from review_forge.review.pipeline import ReviewRequest

MAX_DIFF_SIZE = 5 * 1024 * 1024  # 5 MiB


class LargeReviewBody(BaseModel):
    """Body of ``POST /review/large``. Accepts camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Optional so a missing diff is answered with 400 rather than 422
    diff: str | None = None
    author: str | None = None
    branch: str | None = None
    commit_hash: str | None = None
    commit_message: str | None = None
    files: list[str] | None = None

    def to_request(self) -> ReviewRequest:
        return ReviewRequest(
            diff=self.diff or "",
            author=self.author,
            branch=self.branch,
            commit_hash=self.commit_hash,
            commit_message=self.commit_message,
            files=self.files,
        )
