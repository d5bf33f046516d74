"""Source article fetcher for the Wikipedia parse API."""

import re
from dataclasses import dataclass, field

import httpx
from bs4 import BeautifulSoup, Tag

from sarcasm_wiki.core.logging import get_logger
from sarcasm_wiki.generation.errors import SourceUnavailableError

logger = get_logger().bind(module="wikipedia")

WIKI_PATH_PREFIX = "/wiki/"
WIKI_URL_PREFIX = "https://en.wikipedia.org/wiki/"
SKIPPED_LINK_MARKERS = ("action=edit", "redlink=1", "citeseerx", "jstor.org")
REMOVED_TAGS = ["script", "style", "nav", "header", "footer", "aside"]
REMOVED_SELECTORS = ["sup.reference", ".mw-editsection", ".mw-empty-elt"]
HEADING_PREFIX = {"h2": "## ", "h3": "### "}
MIN_CONTENT_LENGTH = 100
# MediaWiki error codes meaning the page does not exist; any other code is transient
MISSING_PAGE_CODES = frozenset({"missingtitle", "invalidtitle", "nosuchpageid"})


@dataclass
class SourceDocument:
    """Plain text of a source article and the wiki links found in it."""

    text: str
    links: dict[str, str] = field(default_factory=dict)


def internal_link_target(href: str) -> str | None:
    """Map a wiki href to a site path, e.g. ``/wiki/Cat#Diet`` -> ``/Cat``.

    Args:
        href: Link target from the source HTML

    Returns:
        Site path, or None when the link should be rendered as plain text
    """
    url = href.strip()
    if not url or url.startswith("#") or url.startswith("https://doi.org"):
        return None
    if any(marker in url for marker in SKIPPED_LINK_MARKERS):
        return None

    if url.startswith(WIKI_PATH_PREFIX):
        article = url[len(WIKI_PATH_PREFIX):]
    elif url.startswith(WIKI_URL_PREFIX):
        article = url[len(WIKI_URL_PREFIX):]
    else:
        return None

    article = article.split("#")[0].split("?")[0]
    return f"/{article}" if article else None


def html_to_text(html: str) -> SourceDocument:
    """Convert article HTML to markdown-ish text.

    Second level headings become ``## `` section markers so the text can be
    chunked on section boundaries. Internal wiki links become markdown links
    and are collected; every other link keeps only its text.

    Args:
        html: Rendered article HTML

    Returns:
        Extracted text and links
    """
    soup = BeautifulSoup(html, "html.parser")
    links: dict[str, str] = {}

    for tag in soup.find_all(REMOVED_TAGS):
        tag.decompose()
    for selector in REMOVED_SELECTORS:
        for tag in soup.select(selector):
            tag.decompose()

    for anchor in soup.find_all("a"):
        text = anchor.get_text(strip=True)
        target = internal_link_target(str(anchor.get("href") or ""))
        if text and target:
            links[text] = target
            anchor.replace_with(f"[{text}]({target})")
        else:
            anchor.replace_with(text)

    for heading in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
        prefix = HEADING_PREFIX.get(heading.name, "")
        heading.replace_with(f"\n\n{prefix}{heading.get_text(' ', strip=True)}\n")

    for br in soup.find_all("br"):
        br.replace_with("\n")

    for item in soup.find_all("li"):
        item.insert(0, "\n• ")

    for block in soup.find_all(["p", "div", "ul", "ol", "table", "tr"]):
        if isinstance(block, Tag):
            block.insert_before("\n")
            block.insert_after("\n")

    text = soup.get_text()
    text = re.sub(r"[ \t\xa0]+", " ", text)
    text = re.sub(r" ?\n ?", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return SourceDocument(text=text.strip(), links=links)


class WikipediaFetcher:
    """Fetches source articles through the MediaWiki ``action=parse`` API."""

    def __init__(
        self,
        api_url: str = "https://en.wikipedia.org/w/api.php",
        user_agent: str = "SarcasmWiki/1.0 (https://sarcasm.wiki)",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            api_url: MediaWiki API endpoint
            user_agent: User-Agent header required by Wikimedia
            timeout: Request timeout in seconds
            client: Optional shared HTTP client
        """
        self.api_url = api_url
        self.user_agent = user_agent
        self.timeout = timeout
        self._client = client

    async def _get(self, params: dict[str, str]) -> httpx.Response:
        headers = {"User-Agent": self.user_agent}
        if self._client is not None:
            return await self._client.get(self.api_url, params=params, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(self.api_url, params=params, headers=headers)

    async def fetch_source(self, identifier: str) -> SourceDocument | None:
        """Fetch and convert one article.

        Args:
            identifier: Article title, spaces or underscores

        Returns:
            The article, or None when it does not exist or is too short

        Raises:
            SourceUnavailableError: Network failure or unexpected HTTP status
        """
        params = {
            "action": "parse",
            "page": identifier.replace(" ", "_"),
            "prop": "text",
            "format": "json",
            "disableeditsection": "true",
            "disabletoc": "true",
            "redirects": "true",
        }
        try:
            response = await self._get(params)
        except httpx.HTTPError as e:
            logger.error("Error fetching source", identifier=identifier, error=str(e))
            raise SourceUnavailableError(f"Wikipedia request failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise SourceUnavailableError(f"Wikipedia API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise SourceUnavailableError("Wikipedia returned invalid JSON") from e

        if "error" in data:
            code = (data["error"] or {}).get("code")
            if code in MISSING_PAGE_CODES:
                logger.info("Source article not found", identifier=identifier, code=code)
                return None
            logger.warning("Wikipedia API returned an error", identifier=identifier, code=code)
            raise SourceUnavailableError(f"Wikipedia API error: {code}")

        html = (data.get("parse") or {}).get("text", {}).get("*")
        if not html or len(html.strip()) < MIN_CONTENT_LENGTH:
            return None

        document = html_to_text(html)
        if len(document.text.strip()) < MIN_CONTENT_LENGTH:
            return None

        logger.info(
            "Fetched source",
            identifier=identifier,
            length=len(document.text),
            links=len(document.links),
        )
        return document
