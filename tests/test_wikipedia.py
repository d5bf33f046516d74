"""Tests for the Wikipedia source fetcher."""

import httpx
import pytest
import respx

from sarcasm_wiki.generation.errors import SourceUnavailableError
from sarcasm_wiki.source.wikipedia import (
    WikipediaFetcher,
    html_to_text,
    internal_link_target,
)

API_URL = "https://en.wikipedia.org/w/api.php"

ARTICLE_HTML = """
<div class="mw-parser-output">
  <style>.hidden{display:none}</style>
  <p>The <b>cat</b> is a small <a href="/wiki/Carnivore">carnivorous</a> mammal
  kept by <a href="/wiki/Human#Society">humans</a> for thousands of years.<sup class="reference">[1]</sup></p>
  <h2>Behaviour<span class="mw-editsection">[edit]</span></h2>
  <p>Cats sleep a lot. See <a href="https://example.com/cats">this site</a>.</p>
  <ul><li>Purring</li><li>Scratching</li></ul>
  <h3>Diet</h3>
  <p>Mostly <a href="/w/index.php?title=Fish&amp;action=edit">fish</a> and contempt.</p>
</div>
"""


class TestHtmlToText:
    """Test conversion of article HTML."""

    def test_sections_and_links(self) -> None:
        document = html_to_text(ARTICLE_HTML)

        assert "\n\n## Behaviour" in document.text
        assert "### Diet" in document.text
        assert "[carnivorous](/Carnivore)" in document.text
        assert "[humans](/Human)" in document.text
        assert document.links == {"carnivorous": "/Carnivore", "humans": "/Human"}

    def test_noise_removed(self) -> None:
        document = html_to_text(ARTICLE_HTML)

        assert "[1]" not in document.text
        assert "[edit]" not in document.text
        assert "display:none" not in document.text
        assert "this site" in document.text
        assert "example.com" not in document.text
        assert "fish and contempt" in document.text

    def test_list_items_bulleted(self) -> None:
        document = html_to_text(ARTICLE_HTML)
        assert "• Purring" in document.text
        assert "• Scratching" in document.text

    @pytest.mark.parametrize(
        ("href", "expected"),
        [
            ("/wiki/Cat", "/Cat"),
            ("/wiki/Cat#Diet", "/Cat"),
            ("https://en.wikipedia.org/wiki/Dog", "/Dog"),
            ("#cite_note-1", None),
            ("https://doi.org/10.1000/1", None),
            ("/w/index.php?title=Cat&action=edit", None),
            ("https://example.com", None),
        ],
    )
    def test_internal_link_target(self, href: str, expected: str | None) -> None:
        assert internal_link_target(href) == expected


class TestWikipediaFetcher:
    """Test fetching through the parse API."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_source(self) -> None:
        route = respx.get(API_URL).mock(
            return_value=httpx.Response(200, json={"parse": {"text": {"*": ARTICLE_HTML}}})
        )
        fetcher = WikipediaFetcher(user_agent="TestAgent/1.0")

        document = await fetcher.fetch_source("Domestic cat")

        assert document is not None
        assert "## Behaviour" in document.text
        request = route.calls.last.request
        assert request.url.params["page"] == "Domestic_cat"
        assert request.url.params["action"] == "parse"
        assert request.headers["User-Agent"] == "TestAgent/1.0"

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_page_returns_none(self) -> None:
        respx.get(API_URL).mock(
            return_value=httpx.Response(
                200, json={"error": {"code": "missingtitle", "info": "The page does not exist."}}
            )
        )
        assert await WikipediaFetcher().fetch_source("Nonexistent_Topic") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["invalidtitle", "nosuchpageid"])
    async def test_other_missing_page_codes_return_none(self, code: str) -> None:
        with respx.mock:
            respx.get(API_URL).mock(
                return_value=httpx.Response(200, json={"error": {"code": code}})
            )
            assert await WikipediaFetcher().fetch_source("Cat") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["maxlag", "ratelimited", "internal_api_error_DBQueryError"])
    async def test_transient_api_error_is_unavailable(self, code: str) -> None:
        """Errors other than a missing page say nothing about the topic."""
        with respx.mock:
            respx.get(API_URL).mock(
                return_value=httpx.Response(200, json={"error": {"code": code, "info": "Try later"}})
            )
            with pytest.raises(SourceUnavailableError, match=code) as exc_info:
                await WikipediaFetcher().fetch_source("Cat")
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_not_found_status_returns_none(self) -> None:
        respx.get(API_URL).mock(return_value=httpx.Response(404))
        assert await WikipediaFetcher().fetch_source("Cat") is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_short_page_returns_none(self) -> None:
        respx.get(API_URL).mock(
            return_value=httpx.Response(200, json={"parse": {"text": {"*": "<p>Stub.</p>"}}})
        )
        assert await WikipediaFetcher().fetch_source("Stub") is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_is_unavailable(self) -> None:
        respx.get(API_URL).mock(return_value=httpx.Response(503))
        with pytest.raises(SourceUnavailableError):
            await WikipediaFetcher().fetch_source("Cat")

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error_is_unavailable(self) -> None:
        respx.get(API_URL).mock(side_effect=httpx.ConnectError("no route"))
        with pytest.raises(SourceUnavailableError) as exc_info:
            await WikipediaFetcher().fetch_source("Cat")
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_shared_client_is_used(self) -> None:
        respx.get(API_URL).mock(
            return_value=httpx.Response(200, json={"parse": {"text": {"*": ARTICLE_HTML}}})
        )
        async with httpx.AsyncClient() as client:
            fetcher = WikipediaFetcher(client=client)
            assert await fetcher.fetch_source("Cat") is not None
