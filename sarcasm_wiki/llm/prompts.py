"""Prompt templates for article rewriting."""

from pathlib import Path

from sarcasm_wiki.core.logging import get_logger

logger = get_logger().bind(module="prompts")

TEMPLATES_DIR = Path(__file__).parent / "templates"

SYSTEM_FIRST = "system.md"
SYSTEM_CONTINUE = "continue.md"
USER_FIRST = "user-first.md"
USER_CONTINUE = "user-continue.md"


class PromptLibrary:
    """Loads the four rewrite templates once and builds prompts from them.

    The "first" variants set up tone and structure for the opening chunk of
    an article; the "continue" variants keep later chunks consistent with it.
    """

    def __init__(self, templates_dir: Path = TEMPLATES_DIR) -> None:
        self.templates_dir = templates_dir
        self._cache: dict[str, str] = {}

    def _load(self, filename: str) -> str:
        if filename not in self._cache:
            path = self.templates_dir / filename
            try:
                self._cache[filename] = path.read_text(encoding="utf-8").strip()
            except OSError as e:
                logger.error("Error loading prompt template", path=str(path), error=str(e))
                raise
        return self._cache[filename]

    def system_prompt(self, first: bool = False) -> str:
        return self._load(SYSTEM_FIRST if first else SYSTEM_CONTINUE)

    def user_prompt(self, content: str, first: bool = False) -> str:
        """Prefix a chunk of source text with the matching instruction."""
        template = self._load(USER_FIRST if first else USER_CONTINUE)
        return f"{template}\n\n{content}"
