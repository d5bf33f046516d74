"""Front matter markdown format used for stored articles.

A file looks like::

    ---
    title: "Cat"
    description: "The cat is a small domesticated..."
    keywords: felidae, carnivore
    slug: "Cat"
    createdAt: "2026-01-01T00:00:00+00:00"
    updatedAt: "2026-01-01T00:00:00+00:00"
    contentType: "rewritten"
    ---

    Article body in markdown.
"""

import re
from datetime import datetime, timezone

from sarcasm_wiki.content_store.models import (
    ArticleMetadata,
    ContentType,
    GeneratedArtifact,
)

FRONT_MATTER = re.compile(r"^---\s*\n(.*?)\n---\s*\n(.*)$", re.DOTALL)
MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
INTERNAL_LINK = re.compile(r"\[([^\]]+)\]\(/([^)]+)\)")
REFERENCES_HEADING = "## References"

DESCRIPTION_LENGTH = 160
MAX_KEYWORDS = 10


class InvalidArticleFormat(ValueError):
    """Stored text is not a valid front matter article."""


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_mdc(text: str) -> GeneratedArtifact:
    """Parse a stored article.

    Args:
        text: File contents

    Returns:
        Parsed artifact

    Raises:
        InvalidArticleFormat: Front matter missing or incomplete
    """
    match = FRONT_MATTER.match(text)
    if not match:
        raise InvalidArticleFormat("Invalid MDC format: missing frontmatter")

    front_matter, body = match.group(1), match.group(2)
    fields: dict[str, str] = {}
    for line in front_matter.split("\n"):
        key, sep, value = line.partition(":")
        if not sep:
            continue
        fields[key.strip()] = _unquote(value.strip())

    if not fields.get("title") or not fields.get("description") or not fields.get("slug"):
        raise InvalidArticleFormat("Invalid MDC format: missing required metadata")

    keywords = [k.strip() for k in fields.get("keywords", "").split(",") if k.strip()]
    content_type = fields.get("contentType")

    metadata = ArticleMetadata(
        title=fields["title"],
        description=fields["description"],
        keywords=keywords,
        identifier=fields["slug"],
        created_at=fields.get("createdAt") or None,
        updated_at=fields.get("updatedAt") or None,
        content_type=(
            ContentType(content_type)
            if content_type in {t.value for t in ContentType}
            else None
        ),
    )
    return GeneratedArtifact(metadata=metadata, body=body.strip())


def render_mdc(artifact: GeneratedArtifact) -> str:
    """Serialize an artifact to the stored format."""
    metadata = artifact.metadata
    lines = [
        "---",
        f'title: "{metadata.title}"',
        f'description: "{metadata.description}"',
        f"keywords: {', '.join(metadata.keywords)}",
        f'slug: "{metadata.identifier}"',
    ]
    if metadata.created_at:
        lines.append(f'createdAt: "{metadata.created_at}"')
    if metadata.updated_at:
        lines.append(f'updatedAt: "{metadata.updated_at}"')
    if metadata.content_type:
        lines.append(f'contentType: "{metadata.content_type.value}"')
    lines.extend(["---", "", artifact.body])
    return "\n".join(lines)


def title_from_identifier(identifier: str) -> str:
    """``ada_lovelace`` -> ``Ada Lovelace``."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), identifier.replace("_", " "))


def remove_references_section(body: str) -> str:
    """Drop everything from the references heading on."""
    index = body.find(REFERENCES_HEADING)
    if index == -1:
        return body
    return body[:index].strip()


def _description(body: str) -> str:
    first_paragraph = next(
        (
            p
            for p in body.split("\n\n")
            if len(p.strip()) > 50 and not p.startswith("#")
        ),
        "",
    )
    text = MARKDOWN_LINK.sub(r"\1", first_paragraph).replace("\n", " ").strip()
    # Quotes would break the front matter
    text = text.replace('"', "'")[:DESCRIPTION_LENGTH]
    return re.sub(r"\s+\S*$", "", text) + "..."


def _keywords(body: str, title: str) -> list[str]:
    keywords: list[str] = []
    for match in INTERNAL_LINK.finditer(body):
        if len(keywords) >= MAX_KEYWORDS:
            break
        keyword = match.group(1).lower()
        if 3 < len(keyword) < 30 and keyword not in keywords:
            keywords.append(keyword)

    if not keywords:
        keywords = [w for w in title.lower().split() if len(w) > 3][:5]
    return keywords


def metadata_from_content(
    identifier: str,
    body: str,
    created_at: str | None = None,
    content_type: ContentType = ContentType.REWRITTEN,
) -> ArticleMetadata:
    """Derive front matter from a generated body.

    Args:
        identifier: Topic identifier
        body: Generated markdown
        created_at: Creation time to keep when overwriting an article
        content_type: How the body was produced

    Returns:
        Article metadata stamped with the current time
    """
    title = title_from_identifier(identifier)
    now = datetime.now(timezone.utc).isoformat()
    return ArticleMetadata(
        title=title,
        description=_description(body),
        keywords=_keywords(body, title),
        identifier=identifier,
        created_at=created_at or now,
        updated_at=now,
        content_type=content_type,
    )
