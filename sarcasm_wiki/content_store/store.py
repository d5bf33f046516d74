"""File backed store of generated articles."""

import os
from pathlib import Path

from sarcasm_wiki.content_store.mdc import InvalidArticleFormat, parse_mdc, render_mdc
from sarcasm_wiki.content_store.models import GeneratedArtifact
from sarcasm_wiki.core.logging import get_logger

logger = get_logger().bind(module="article_store")

MDC_SUFFIX = ".mdc"
MIN_FILE_LENGTH = 50


def is_valid_identifier(identifier: str) -> bool:
    """Whether an identifier maps to a file inside the content directory."""
    return bool(identifier) and not identifier.startswith("/") and ".." not in Path(identifier).parts


class ArticleStore:
    """Stores one front matter markdown file per identifier."""

    def __init__(self, content_dir: Path) -> None:
        """Initialize article store.

        Args:
            content_dir: Directory holding ``<identifier>.mdc`` files
        """
        self.content_dir = content_dir
        self.content_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, identifier: str) -> Path:
        """Map an identifier to its file.

        Raises:
            ValueError: If the identifier would escape the content directory
        """
        if not is_valid_identifier(identifier):
            raise ValueError(f"Invalid article identifier: {identifier!r}")
        return self.content_dir / f"{identifier}{MDC_SUFFIX}"

    def read_artifact(self, identifier: str) -> GeneratedArtifact | None:
        """Read a cached article.

        Files that are nearly empty or have broken front matter count as
        absent so the article gets generated again.

        Args:
            identifier: Topic identifier

        Returns:
            The stored artifact, or None
        """
        path = self._get_path(identifier)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        if len(text.strip()) < MIN_FILE_LENGTH:
            logger.warning("Stored article too short, ignoring", identifier=identifier)
            return None

        try:
            return parse_mdc(text)
        except InvalidArticleFormat as e:
            logger.warning("Invalid stored article, ignoring", identifier=identifier, error=str(e))
            return None

    def write_artifact(self, identifier: str, artifact: GeneratedArtifact) -> None:
        """Write an article, replacing any previous version."""
        path = self._get_path(identifier)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.tmp")
        tmp_path.write_text(render_mdc(artifact), encoding="utf-8")
        os.replace(tmp_path, path)
        logger.info("Saved article", identifier=identifier, length=len(artifact.body))

    def exists(self, identifier: str) -> bool:
        return self._get_path(identifier).exists()

    def _files(self) -> list[Path]:
        return [p for p in self.content_dir.rglob(f"*{MDC_SUFFIX}") if p.is_file()]

    def count(self) -> int:
        """Number of stored articles."""
        return len(self._files())

    def latest(self, limit: int = 10) -> list[str]:
        """Identifiers of the most recently written articles, newest first."""
        files = sorted(self._files(), key=lambda p: p.stat().st_mtime, reverse=True)
        return [
            p.relative_to(self.content_dir).as_posix()[: -len(MDC_SUFFIX)]
            for p in files[:limit]
        ]
