"""
Web research agent.

Searches the web with DuckDuckGo (DDGS, no API key), scrapes each hit with
httpx + BeautifulSoup, then asks the LLM to synthesize everything into a
SearchAnalysis. Progress is streamed as ResearchProgress events:

  initializing -> searching -> (scraping -> analyzing_result)* -> synthesizing
    -> complete | error
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx
from bs4 import BeautifulSoup
from duckduckgo_search import DDGS
from langchain_core.messages import HumanMessage, SystemMessage

from config import get_settings
from llm import Parsed, get_chat_model, message_text, parse_structured, schema_prompt
from models import RawResult, ResearchProgress, SearchAnalysis, TopResult, WebResult
from progress import final_event

logger = logging.getLogger(__name__)

# ── Config ────────────────────────────────────────────────────────────
SCRAPE_MAX_CHARS = 3000
PREVIEW_CHARS = 500
PROMPT_CONTENT_CHARS = 2000

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# search type -> domain filters
SEARCH_PRESETS: dict[str, dict[str, list[str]]] = {
    "general": {},
    "github_profiles": {"include": ["github.com"]},
    "linkedin": {"include": ["linkedin.com"]},
    "portfolio": {"exclude": ["github.com", "linkedin.com", "twitter.com", "facebook.com"]},
    "news": {},
    "technical": {
        "include": [
            "stackoverflow.com",
            "dev.to",
            "medium.com",
            "news.ycombinator.com",
            "reddit.com/r/programming",
            "github.com",
        ]
    },
}

NOISE_TAGS = ["script", "style", "noscript", "nav", "footer", "header", "svg", "form"]


class ResearchError(Exception):
    pass


def build_search_query(
    query: str,
    search_type: str = "general",
    include_domains: Optional[list[str]] = None,
    exclude_domains: Optional[list[str]] = None,
) -> str:
    """Turn a query plus domain filters into a DuckDuckGo query with site: operators.

    Caller-supplied domains replace the search-type preset.
    """
    preset = SEARCH_PRESETS.get(search_type, {})
    include = include_domains or preset.get("include") or []
    exclude = exclude_domains or preset.get("exclude") or []

    parts = [query.strip()]
    if len(include) == 1:
        parts.append(f"site:{include[0]}")
    elif include:
        parts.append("(" + " OR ".join(f"site:{d}" for d in include) + ")")
    parts.extend(f"-site:{d}" for d in exclude)
    return " ".join(parts)


def search_ddg(query: str, max_results: int = 10, news: bool = False) -> list[WebResult]:
    """Run one DDGS query. Errors propagate so callers can report them."""
    with DDGS() as ddgs:
        if news:
            raw = ddgs.news(query, max_results=max_results)
        else:
            raw = ddgs.text(query, max_results=max_results)
        results = list(raw) if raw else []
    hits = []
    for r in results:
        url = r.get("href") or r.get("url") or ""
        if not url:
            continue
        hits.append(WebResult(url=url, title=r.get("title") or "", snippet=r.get("body") or ""))
    return hits


def html_to_text(html: str, max_chars: int = SCRAPE_MAX_CHARS) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NOISE_TAGS):
        tag.decompose()
    text = " ".join(soup.get_text(" ").split())
    return text[:max_chars]


async def scrape_url(http: httpx.AsyncClient, url: str, max_chars: int = SCRAPE_MAX_CHARS) -> str:
    """Fetch a page and return its visible text, or "" when it cannot be read."""
    try:
        resp = await http.get(url)
    except httpx.HTTPError as e:
        logger.info("[Scrape] %s failed: %s", url[:80], e)
        return ""
    if resp.status_code >= 400:
        logger.info("[Scrape] %s returned %s", url[:80], resp.status_code)
        return ""
    content_type = resp.headers.get("content-type", "")
    if "html" in content_type or not content_type:
        return html_to_text(resp.text, max_chars)
    if content_type.startswith("text/"):
        return resp.text[:max_chars]
    return ""


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(headers=HEADERS, follow_redirects=True, timeout=10.0)


async def web_search(
    query: str,
    max_results: int = 5,
    search_type: str = "general",
    scrape: bool = False,
) -> list[WebResult]:
    """Search the web and optionally fill in each hit's page text."""
    search_query = build_search_query(query, search_type)
    hits = await asyncio.to_thread(search_ddg, search_query, max_results, search_type == "news")
    if scrape and hits:
        async with _http_client() as http:
            texts = await asyncio.gather(*(scrape_url(http, h.url) for h in hits))
        for hit, text in zip(hits, texts):
            hit.content = text or hit.snippet
    return hits


async def scrape_urls(urls: list[str], max_chars: int = SCRAPE_MAX_CHARS) -> list[WebResult]:
    async with _http_client() as http:
        texts = await asyncio.gather(*(scrape_url(http, u, max_chars) for u in urls))
    return [WebResult(url=u, content=t) for u, t in zip(urls, texts)]


# ============================================================================
# Synthesis
# ============================================================================

SYNTHESIS_SYSTEM = """You analyze scraped web search results and produce a structured JSON analysis.
Output ONLY valid JSON matching the schema, no markdown or explanation.
relevance_score is 0-100. content_type is one of article, profile, documentation, forum, news, other."""


def _synthesis_prompt(
    query: str,
    search_type: str,
    context: Optional[str],
    results: list[WebResult],
) -> str:
    blocks = []
    for i, r in enumerate(results, 1):
        content = r.content[:PROMPT_CONTENT_CHARS]
        if len(r.content) > PROMPT_CONTENT_CHARS:
            content += "\n... (truncated)"
        blocks.append(f"### Result {i}: {r.title}\nURL: {r.url}\n\nContent:\n{content}")
    joined = "\n\n---\n\n".join(blocks)
    context_line = f"\nContext: {context}\n" if context else ""
    return (
        f'You are analyzing web search results for the query: "{query}"\n'
        f"{context_line}\n"
        f"Search type: {search_type}\n\n"
        f"Here are {len(results)} search results that were scraped:\n\n"
        f"{joined}\n\n---\n\n"
        "Based on ALL the search results above, provide a comprehensive analysis. "
        "Extract key insights, identify patterns, and synthesize the information into a useful summary. "
        "Score each result's relevance to the original query.\n\n"
        f"JSON schema:\n{schema_prompt(SearchAnalysis)}"
    )


def _raw_results(results: list[WebResult]) -> list[RawResult]:
    return [RawResult(url=r.url, title=r.title, content_preview=r.content[:PREVIEW_CHARS]) for r in results]


def fallback_search_analysis(
    query: str,
    search_type: str,
    total_found: int,
    results: list[WebResult],
) -> SearchAnalysis:
    """Analysis built without the LLM when synthesis fails."""
    return SearchAnalysis(
        query=query,
        search_type=search_type,
        total_results_found=total_found,
        results_analyzed=len(results),
        summary=f'Found {total_found} results for "{query}". Analysis generation encountered an error.',
        top_results=[
            TopResult(
                url=r.url,
                title=r.title,
                relevance_score=80 - i * 10,
                snippet=r.content[:200],
                key_insights=["Result found but detailed analysis unavailable"],
            )
            for i, r in enumerate(results[:5])
        ],
        follow_up_suggestions=[f'Refine search: "{query}" with more specific terms'],
        raw_results=_raw_results(results),
    )


async def _synthesize(
    model,
    query: str,
    search_type: str,
    context: Optional[str],
    total_found: int,
    results: list[WebResult],
) -> Optional[SearchAnalysis]:
    """Ask the model for a SearchAnalysis. Returns None when the answer is unusable."""
    prompt = _synthesis_prompt(query, search_type, context, results)
    try:
        reply = await model.ainvoke([SystemMessage(content=SYNTHESIS_SYSTEM), HumanMessage(content=prompt)])
    except Exception as e:
        logger.warning("[Research] Synthesis call failed: %s", e)
        return None
    defaults = {
        "query": query,
        "search_type": search_type,
        "total_results_found": total_found,
        "results_analyzed": len(results),
        "raw_results": [r.model_dump() for r in _raw_results(results)],
    }
    outcome = parse_structured(message_text(reply), SearchAnalysis, defaults=defaults)
    if isinstance(outcome, Parsed):
        return outcome.value
    logger.warning("[Research] Could not parse synthesis: %s", outcome.reason[:200])
    return None


# ============================================================================
# Streaming agent
# ============================================================================

async def research_with_progress(
    query: str,
    search_type: str = "general",
    max_results: Optional[int] = None,
    include_domains: Optional[list[str]] = None,
    exclude_domains: Optional[list[str]] = None,
    context: Optional[str] = None,
    *,
    model=None,
    http: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[ResearchProgress]:
    """Search, scrape and synthesize, yielding progress. The last event is complete or error."""
    max_results = max_results or get_settings().research_max_results

    yield ResearchProgress(status="initializing", message=f'Initializing search for: "{query}"', query=query)
    yield ResearchProgress(
        status="searching",
        message=f'Searching the web for "{query}"...',
        query=query,
        current_step=1,
        total_steps=max_results + 2,
    )

    search_query = build_search_query(query, search_type, include_domains, exclude_domains)
    try:
        hits = await asyncio.to_thread(search_ddg, search_query, max_results, search_type == "news")
    except Exception as e:
        reason = str(e) or type(e).__name__
        logger.warning("[Research] Search failed for %r: %s", search_query[:60], reason)
        yield ResearchProgress(status="error", message=f"Search failed: {reason}", error=reason, query=query)
        return

    if not hits:
        yield ResearchProgress(
            status="error",
            message="No results found for this query",
            error="No results found",
            query=query,
        )
        return

    found = len(hits)
    total_steps = found + 2
    yield ResearchProgress(
        status="searching",
        message=f"Found {found} results. Starting to analyze...",
        query=query,
        results_found=found,
        current_step=1,
        total_steps=total_steps,
    )

    owns_http = http is None
    processed: list[WebResult] = []
    try:
        try:
            if owns_http:
                http = _http_client()
            for i, hit in enumerate(hits):
                title = hit.title or "Untitled"
                yield ResearchProgress(
                    status="scraping",
                    message=f"Scraping result {i + 1}/{found}",
                    query=query,
                    current_url=hit.url,
                    current_title=title,
                    results_found=found,
                    results_processed=i,
                    current_step=i + 2,
                    total_steps=total_steps,
                )
                content = await scrape_url(http, hit.url) or hit.snippet
                yield ResearchProgress(
                    status="analyzing_result",
                    message=f"Analyzing: {title}",
                    query=query,
                    current_url=hit.url,
                    current_title=title,
                    scraped_content=content[:PREVIEW_CHARS],
                    results_found=found,
                    results_processed=i + 1,
                    current_step=i + 2,
                    total_steps=total_steps,
                )
                processed.append(WebResult(url=hit.url, title=title, snippet=hit.snippet, content=content))
        finally:
            if owns_http and http is not None:
                await http.aclose()

        yield ResearchProgress(
            status="synthesizing",
            message="AI is synthesizing all scraped content into a comprehensive analysis...",
            query=query,
            results_found=found,
            results_processed=found,
            current_step=found + 1,
            total_steps=total_steps,
        )

        analysis = await _synthesize(model or get_chat_model(), query, search_type, context, found, processed)
    except Exception as e:
        reason = str(e) or type(e).__name__
        logger.exception("[Research] Research failed for %r", query[:60])
        yield ResearchProgress(
            status="error",
            message=f"Research failed: {reason}",
            error=reason,
            query=query,
            results_found=found,
            results_processed=len(processed),
        )
        return

    message = "Search and analysis complete!"
    if analysis is None:
        analysis = fallback_search_analysis(query, search_type, found, processed)
        message = "Search complete (with fallback analysis)"

    yield ResearchProgress(
        status="complete",
        message=message,
        query=query,
        result=analysis,
        results_found=found,
        results_processed=len(processed),
        current_step=total_steps,
        total_steps=total_steps,
    )


async def research(query: str, **kwargs) -> SearchAnalysis:
    """Run research to completion. Raises ResearchError on failure."""
    last = await final_event(research_with_progress(query, **kwargs))
    if last.status == "complete":
        return last.result
    raise ResearchError(last.error or last.message)
