"""
Source links: web pages pulled into a run next to (or instead of) a transcript.

Each page is fetched and reduced to readable text, summarised by the LLM
(claims, details, assumptions), and the summaries are then synthesised into a
few cross-source insights that join the transcript's insights in the pipeline.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, ValidationError

from linwheel.services import prompts
from linwheel.services.pipeline import InsightDraft

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 10.0
MAX_CONTENT_CHARS = 50_000
MAX_SOURCE_URLS = 10
USER_AGENT = "Mozilla/5.0 (compatible; LinWheel/1.0)"

_NOISE_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "aside", "form", "svg", "iframe"]
_BLOCK_TAGS = ["h1", "h2", "h3", "h4", "p", "li", "blockquote", "pre"]


class SourceError(Exception):
    pass


class FetchedSource(BaseModel):
    url: str
    title: str
    content: str
    excerpt: Optional[str] = None
    byline: Optional[str] = None
    site_name: Optional[str] = None
    fetched_at: datetime


class SourceSummaryDraft(BaseModel):
    main_claims: List[str] = []
    key_details: List[str] = []
    implied_assumptions: List[str] = []
    relevance: str = ""


class DistilledInsightDraft(BaseModel):
    theme: str = ""
    synthesized_claim: str
    supporting_sources: List[str] = []
    why_it_matters: str = ""
    common_misread: str = ""


def is_valid_url(url: Any) -> bool:
    if not isinstance(url, str):
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def valid_source_urls(urls: Optional[List[Any]]) -> List[str]:
    """Keep http(s) URLs only, stripped and de-duplicated, in order."""
    out: List[str] = []
    for url in urls or []:
        if is_valid_url(url) and url.strip() not in out:
            out.append(url.strip())
    return out[:MAX_SOURCE_URLS]


def _meta(soup: BeautifulSoup, *names: str) -> Optional[str]:
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None


def extract_readable(html: str, url: str, max_chars: int = MAX_CONTENT_CHARS) -> FetchedSource:
    """Strip page chrome and keep the article text. Raises SourceError when nothing readable is left."""
    soup = BeautifulSoup(html, "html.parser")
    host = urlparse(url).netloc
    title = _meta(soup, "og:title") or (soup.title.get_text(strip=True) if soup.title else "") or host
    excerpt = _meta(soup, "og:description", "description")
    byline = _meta(soup, "author", "article:author")
    site_name = _meta(soup, "og:site_name") or host

    for tag in soup(_NOISE_TAGS):
        tag.decompose()
    root = soup.find("article") or soup.find("main") or soup.body or soup
    blocks = [b.get_text(" ", strip=True) for b in root.find_all(_BLOCK_TAGS)]
    text = "\n\n".join(b for b in blocks if b)
    if not text:
        text = root.get_text("\n", strip=True)
    if not text:
        raise SourceError("Could not extract article content")
    if len(text) > max_chars:
        text = text[:max_chars] + "\n\n[Content truncated]"
    return FetchedSource(
        url=url,
        title=title,
        content=text,
        excerpt=excerpt,
        byline=byline,
        site_name=site_name,
        fetched_at=datetime.now(timezone.utc).replace(tzinfo=None),
    )


def fetch_source(url: str, client: Optional[httpx.Client] = None, timeout: float = FETCH_TIMEOUT) -> FetchedSource:
    if not is_valid_url(url):
        raise SourceError(f"Invalid URL: {url}")
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }
    own_client = client is None
    client = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        r = client.get(url, headers=headers)
    except httpx.TimeoutException as e:
        raise SourceError(f"Timeout fetching {url} after {timeout:g}s") from e
    except httpx.HTTPError as e:
        raise SourceError(f"Could not fetch {url}: {e}") from e
    finally:
        if own_client:
            client.close()
    if r.status_code >= 400:
        raise SourceError(f"HTTP {r.status_code}: {r.reason_phrase}")
    content_type = r.headers.get("content-type", "")
    if "text/html" not in content_type and "application/xhtml" not in content_type:
        raise SourceError(f"Unsupported content type: {content_type}")
    return extract_readable(r.text, url)


def fetch_sources(urls: List[str], client: Optional[httpx.Client] = None) -> Tuple[List[FetchedSource], List[Dict[str, str]]]:
    """Fetch every URL; one bad page never stops the others."""
    fetched, errors = [], []
    for url in urls:
        try:
            fetched.append(fetch_source(url, client=client))
        except SourceError as e:
            logger.warning("source %s failed: %s", url, e)
            errors.append({"url": url, "error": str(e)})
    return fetched, errors


def parse_source(llm, source: FetchedSource) -> SourceSummaryDraft:
    lines = [f"Source Title: {source.title}", f"Source URL: {source.url}"]
    if source.site_name:
        lines.append(f"Site: {source.site_name}")
    if source.byline:
        lines.append(f"Author: {source.byline}")
    user = "\n".join(lines) + f"\n\n---\n\nContent:\n{source.content}"
    return SourceSummaryDraft(**llm.generate_json(prompts.SOURCE_PARSER_PROMPT, user, temperature=0.4))


def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {i}" for i in items) or "- (none)"


def distill_source_insights(
    llm,
    summaries: List[Tuple[str, str, str, SourceSummaryDraft]],
    transcript_insights: Optional[List[InsightDraft]] = None,
) -> List[DistilledInsightDraft]:
    """summaries are (source_id, title, url, summary) tuples."""
    sections = []
    for n, (source_id, title, url, summary) in enumerate(summaries, start=1):
        sections.append(
            f"## Source {n}: {title}\n- ID: {source_id}\n- URL: {url}\n\n"
            f"Main claims:\n{_bullets(summary.main_claims)}\n\n"
            f"Key details:\n{_bullets(summary.key_details)}\n\n"
            f"Implied assumptions:\n{_bullets(summary.implied_assumptions)}\n\n"
            f"Relevance:\n{summary.relevance}"
        )
    user = "# Source analysis\n\n" + "\n\n---\n\n".join(sections)
    if transcript_insights:
        user += "\n\n---\n\n## Transcript insights (context)\n\n" + "\n\n".join(
            prompts.insight_brief(i.model_dump()) for i in transcript_insights
        )
    data = llm.generate_json(prompts.SOURCE_SUPERVISOR_PROMPT, user, temperature=0.6)
    out = []
    for raw in data.get("insights") or data.get("items") or []:
        if not isinstance(raw, dict):
            continue
        try:
            out.append(DistilledInsightDraft(**raw))
        except ValidationError as e:
            logger.warning("dropping malformed distilled insight: %s", e)
    return out


def to_insight_drafts(distilled: List[DistilledInsightDraft]) -> List[InsightDraft]:
    return [
        InsightDraft(
            topic=d.theme,
            claim=d.synthesized_claim,
            why_it_matters=d.why_it_matters,
            misconception=d.common_misread or None,
            professional_implication=d.why_it_matters,
        )
        for d in distilled
    ]
