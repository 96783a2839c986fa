"""Web tools: DuckDuckGo search and URL fetching.

web_search returns a JSON-serialized WebSearchOutput so the turn ledger can
extract the provider and source URLs for provenance. When DuckDuckGo has no
instant answer the search falls back to the Wikipedia REST API, and the first
few hits are enriched with a short excerpt of the linked page.
"""

import asyncio
import logging
import re
from typing import Any
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from verity_server.protocol.types import (
    WebSearchOutput,
    WebSearchResultItem,
    WebSearchStep,
)
from verity_server.tools.errors import InvalidArgument, NetworkError, SearchFailed

logger = logging.getLogger(__name__)

DUCKDUCKGO_API_URL = "https://api.duckduckgo.com/"
PROVIDER_NAME = "DuckDuckGo"
WIKIPEDIA_SEARCH_URL = "https://en.wikipedia.org/w/rest.php/v1/search/page"
WIKIPEDIA_SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary/{slug}"
WIKIPEDIA_PAGE_URL = "https://en.wikipedia.org/wiki/{slug}"
WIKIPEDIA_PROVIDER_NAME = "wikipedia_fallback"
DEFAULT_MAX_RESULTS = 5
DEFAULT_MAX_CHARS = 12000
PAGE_EXCERPT_MAX_CHARS = 2200
PAGE_EXCERPT_MAX_RESULTS = 4
PAGE_EXCERPT_MAX_BYTES = 512 * 1024
PAGE_EXCERPT_TIMEOUT_SECONDS = 8.0
USER_AGENT = "verity-server/0.1 (+local assistant)"


def _title_from_text(text: str) -> str:
    title = text.splitlines()[0].strip() if text else ""
    return title if len(title) <= 120 else title[:117] + "…"


def _result_from_topic(topic: dict[str, Any]) -> WebSearchResultItem | None:
    text = topic.get("Text") or ""
    url = topic.get("FirstURL") or ""
    if not text or not url:
        return None
    return WebSearchResultItem(title=_title_from_text(text), snippet=text, url=url)


def parse_duckduckgo_results(body: dict[str, Any], max_results: int) -> list[WebSearchResultItem]:
    """Extract results from a DuckDuckGo instant-answer response.

    Uses the abstract first, then related topics (including nested topic groups).
    """
    results: list[WebSearchResultItem] = []
    abstract = body.get("Abstract") or ""
    abstract_url = body.get("AbstractURL") or ""
    if abstract and abstract_url:
        results.append(
            WebSearchResultItem(
                title=body.get("Heading") or _title_from_text(abstract),
                snippet=abstract,
                url=abstract_url,
            )
        )

    for topic in body.get("RelatedTopics") or []:
        if len(results) >= max_results:
            break
        if not isinstance(topic, dict):
            continue
        nested = topic.get("Topics")
        candidates = nested if isinstance(nested, list) else [topic]
        for candidate in candidates:
            if len(results) >= max_results:
                break
            if isinstance(candidate, dict):
                item = _result_from_topic(candidate)
                if item is not None:
                    results.append(item)
    return results[:max_results]


async def wikipedia_fallback(client: httpx.AsyncClient, query: str) -> list[WebSearchResultItem]:
    """Look the query up on Wikipedia and summarize the best matching page.

    Returns:
        A single result for the top page, or an empty list on any failure
    """
    headers = {"User-Agent": USER_AGENT}
    try:
        response = await client.get(
            WIKIPEDIA_SEARCH_URL, params={"q": query, "limit": "10"}, headers=headers
        )
        response.raise_for_status()
        body = response.json()
        pages = body.get("pages") if isinstance(body, dict) else None
        first = pages[0] if isinstance(pages, list) and pages else None
        title = first.get("title") if isinstance(first, dict) else None
        if not isinstance(title, str) or not title:
            return []

        slug = title.replace(" ", "_")
        summary = await client.get(
            WIKIPEDIA_SUMMARY_URL.format(slug=quote(slug, safe="")), headers=headers
        )
        summary.raise_for_status()
        summary_body = summary.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.info(f"Wikipedia fallback failed for '{query}': {e}")
        return []

    extract = summary_body.get("extract") if isinstance(summary_body, dict) else None
    return [
        WebSearchResultItem(
            title=title,
            snippet=extract if isinstance(extract, str) else "",
            url=WIKIPEDIA_PAGE_URL.format(slug=slug),
        )
    ]


async def fetch_page_excerpt(client: httpx.AsyncClient, url: str) -> str | None:
    """Fetch a result page and return the start of its text, or None if unavailable."""
    if not url.startswith(("http://", "https://")):
        return None
    try:
        response = await client.get(
            url, headers={"User-Agent": USER_AGENT}, timeout=PAGE_EXCERPT_TIMEOUT_SECONDS
        )
    except httpx.HTTPError as e:
        logger.debug(f"Page excerpt fetch failed for {url}: {e}")
        return None
    if response.is_error or len(response.content) > PAGE_EXCERPT_MAX_BYTES:
        return None
    text = _page_text(response)
    if not text:
        return None
    return text[:PAGE_EXCERPT_MAX_CHARS]


def _failed_search(
    query: str, steps: list[WebSearchStep], detail: str, status: int = 0
) -> SearchFailed:
    logger.warning(f"web_search '{query}' failed: {detail}")
    steps.append(WebSearchStep(name="done", ok=False, detail=detail))
    output = WebSearchOutput(
        ok=False,
        provider=PROVIDER_NAME,
        query=query,
        status=status,
        results=[],
        result_count=0,
        error=detail,
        steps=steps,
    )
    return SearchFailed(detail, output.model_dump_json(exclude_none=True))


async def web_search(
    client: httpx.AsyncClient,
    query: str,
    max_results: int | None = None,
    include_page_excerpts: bool = True,
) -> str:
    """Run a web search and return the structured output as JSON.

    Args:
        client: HTTP client used for every request
        query: Search query
        max_results: Result cap (1-10, default 5)
        include_page_excerpts: Attach an excerpt of the page to the first results

    Raises:
        InvalidArgument: If the query is empty
        SearchFailed: If the search request, its status or its body fails; the
            error carries an ok=False WebSearchOutput as content
    """
    query = (query or "").strip()
    if not query:
        raise InvalidArgument("query required")
    limit = min(max(max_results or DEFAULT_MAX_RESULTS, 1), 10)
    steps = [WebSearchStep(name="validate", ok=True, detail=f"provider={PROVIDER_NAME}")]

    try:
        response = await client.get(
            DUCKDUCKGO_API_URL,
            params={"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"},
            headers={"User-Agent": USER_AGENT},
        )
    except httpx.HTTPError as e:
        steps.append(WebSearchStep(name="request", ok=False, detail=str(e)))
        raise _failed_search(query, steps, f"request failed: {e}")

    status = response.status_code
    if response.is_error:
        steps.append(WebSearchStep(name="request", ok=False, detail=f"status={status}"))
        raise _failed_search(query, steps, f"HTTP {status}", status)
    steps.append(WebSearchStep(name="request", ok=True, detail=f"status={status}"))

    try:
        body = response.json()
    except ValueError as e:
        steps.append(WebSearchStep(name="parse", ok=False, detail=str(e)))
        raise _failed_search(query, steps, f"invalid response body: {e}", status)
    results = parse_duckduckgo_results(body if isinstance(body, dict) else {}, limit)
    steps.append(WebSearchStep(name="parse", ok=True, detail=f"{len(results)} result(s)"))

    provider = PROVIDER_NAME
    if not results:
        results = (await wikipedia_fallback(client, query))[:limit]
        if results:
            provider = WIKIPEDIA_PROVIDER_NAME
            steps.append(
                WebSearchStep(name="wikipedia_fallback", ok=True, detail=f"{len(results)} result(s)")
            )
        else:
            steps.append(WebSearchStep(name="wikipedia_fallback", ok=False, detail="no results"))

    if include_page_excerpts and results:
        targets = results[:PAGE_EXCERPT_MAX_RESULTS]
        excerpts = await asyncio.gather(*(fetch_page_excerpt(client, item.url) for item in targets))
        for item, excerpt in zip(targets, excerpts):
            item.page_excerpt = excerpt
        fetched = sum(1 for excerpt in excerpts if excerpt)
        steps.append(
            WebSearchStep(name="page_excerpts", ok=True, detail=f"{fetched}/{len(targets)} page(s)")
        )

    steps.append(WebSearchStep(name="done", ok=True))
    logger.info(f"web_search '{query}' returned {len(results)} result(s) from {provider}")

    output = WebSearchOutput(
        ok=True,
        provider=provider,
        query=query,
        status=status,
        results=results,
        result_count=len(results),
        steps=steps,
    )
    return output.model_dump_json(exclude_none=True)


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "noscript", "head"]):
        element.decompose()
    text = soup.get_text(separator=" ")
    return re.sub(r"\s+", " ", text).strip()


def _page_text(response: httpx.Response) -> str:
    content_type = response.headers.get("content-type", "")
    return html_to_text(response.text) if "html" in content_type else response.text.strip()


async def fetch_url(client: httpx.AsyncClient, url: str, max_chars: int | None = None) -> str:
    """Fetch a page and return its text content, truncated to max_chars.

    Raises:
        InvalidArgument: If the URL is not http(s)
        NetworkError: If the request fails
    """
    url = (url or "").strip()
    if not url.startswith(("http://", "https://")):
        raise InvalidArgument(f"url must start with http:// or https://: {url!r}")
    limit = min(max(max_chars or DEFAULT_MAX_CHARS, 500), 20000)

    try:
        response = await client.get(url, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"fetch_url failed for {url}: {e}")
        raise NetworkError(f"fetch_url failed: {e}")

    text = _page_text(response)
    if len(text) > limit:
        text = text[:limit] + "…"
    return f"URL: {url}\n\n{text}"
