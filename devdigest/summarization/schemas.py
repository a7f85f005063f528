"""Summary result model shared by summarizers and the fallback."""

from typing import Any

from pydantic import BaseModel, Field


class SummaryResult(BaseModel):
    """Structured analysis attached to a processed content item."""

    post_summary: str
    community_gist: str
    key_topics: list[str] = Field(default_factory=list, max_length=5)
    reading_time: int = Field(default=1, ge=1, le=120)
    target_audience: str = "General developers"
    method: str = Field(default="model", description="model or fallback")

    def to_analysis(self) -> dict[str, Any]:
        return {
            "post_summary": self.post_summary,
            "community_gist": self.community_gist,
            "key_topics": self.key_topics,
            "reading_time": self.reading_time,
            "target_audience": self.target_audience,
            "method": self.method,
        }
