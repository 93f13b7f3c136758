"""Models for the Exa /search endpoint."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from market_research.schemas import RawSource


class SearchHit(BaseModel):
    """Individual search result."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = None
    url: str
    title: str | None = None
    published_date: datetime | None = Field(default=None, alias="publishedDate")
    author: str | None = None
    score: float | None = None

    # Content fields (present when requested)
    text: str | None = None
    summary: str | None = None
    highlights: list[str] | None = None

    @field_validator("published_date", mode="before")
    @classmethod
    def coerce_empty_published_date(cls, value: object) -> object:
        """Convert empty-string `publishedDate` values to `None`."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("author", mode="before")
    @classmethod
    def coerce_empty_author(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_raw_source(self) -> RawSource:
        """Convert to the pipeline's evidence type (best available content)."""
        content = self.text or self.summary or " ".join(self.highlights or [])
        return RawSource(
            url=self.url,
            title=self.title or "",
            content=content.strip(),
            published_date=self.published_date,
            author=self.author,
        )


class SearchResponse(BaseModel):
    """Response from the /search endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    request_id: str | None = Field(default=None, alias="requestId")
    results: list[SearchHit] = Field(default_factory=list)
    search_type: str | None = Field(default=None, alias="resolvedSearchType")
