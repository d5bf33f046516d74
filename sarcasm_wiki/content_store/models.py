"""Data models for the article store."""

from enum import Enum

from pydantic import BaseModel, Field


class ContentType(str, Enum):
    """How an article came to be."""

    REWRITTEN = "rewritten"
    CREATED = "created"


class ArticleMetadata(BaseModel):
    """Front matter of a generated article."""

    title: str
    description: str
    keywords: list[str] = Field(default_factory=list)
    identifier: str
    created_at: str | None = None
    updated_at: str | None = None
    content_type: ContentType | None = None


class GeneratedArtifact(BaseModel):
    """A stored article: metadata plus markdown body."""

    metadata: ArticleMetadata
    body: str

    @property
    def identifier(self) -> str:
        return self.metadata.identifier
