from __future__ import annotations

import logging
import re
import typing as t

from .classifier import Intent
from .config import PipelineConfig
from .models import ContextBundle, ToolToggles, Turn, today_iso
from .web import PageFetcher, SearchClient, SearchHit, html_to_text

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"https?://[^\s<>\"'«»]+", re.IGNORECASE)
_URL_TRAILING = ".,;:!?)]}،؟…'\""

WEB_LABEL = "معلومة من بحث سريع (مقتطف)"
PAGE_LABEL = "نص من رابط (مختصر)"
DOCUMENT_LABEL = "المحتوى من الملف المرفوع (مختصر)"


def find_first_url(text: t.Any) -> str | None:
    if not isinstance(text, str) or not text:
        return None
    m = _URL_RE.search(text)
    if not m:
        return None
    url = m.group(0).rstrip(_URL_TRAILING)
    return url or None


def find_recent_url(message: str, history: t.Sequence[Turn], scan_turns: int = 10) -> str | None:
    url = find_first_url(message)
    if url:
        return url
    for turn in reversed(list(history)[-scan_turns:]):
        url = find_first_url(turn.text)
        if url:
            return url
    return None


def clean_document_text(text: t.Any, cap: int) -> str:
    if not isinstance(text, str):
        return ""
    return re.sub(r"\s+", " ", text).strip()[:cap]


def _truncate(text: str, cap: int) -> str:
    if len(text) <= cap:
        return text
    return text[: max(0, cap - 1)].rstrip() + "…"


class ContextAggregator:
    def __init__(
        self,
        *,
        config: PipelineConfig | None = None,
        search: SearchClient | None = None,
        fetcher: PageFetcher | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.search = search or SearchClient(timeout_s=self.config.http_timeout_s, user_agent=self.config.user_agent)
        self.fetcher = fetcher or PageFetcher(
            timeout_s=self.config.http_timeout_s,
            user_agent=self.config.user_agent,
            max_bytes=self.config.max_page_bytes,
        )

    def fetch_url_text(self, url: str) -> str | None:
        try:
            page = self.fetcher.fetch_page(url)
            if page is None:
                return None
            text = html_to_text(page.body_text) if "html" in page.content_type else page.body_text.strip()
        except Exception as e:
            # Grounding is optional; a broken page must never fail the turn.
            logger.info("Dropping fetched page %s: %s", url, e)
            return None
        return text[: self.config.fetched_page_chars] or None

    def search_query(self, message: str, intent: Intent | None = None) -> str:
        q = message.strip()[:200]
        if intent is not None and intent.location_dependent:
            q = f"{q} {self.config.default_place}"
        return f"[{today_iso()}] {q}"

    def web_snippet(self, query: str) -> str | None:
        try:
            result = self.search.search(query)
            hits: list[SearchHit] = list(result.results)
            if len(hits) < 2:
                for hit in self.search.search_html(query):
                    if all(hit.url != h.url for h in hits):
                        hits.append(hit)
        except Exception as e:
            logger.info("Web search degraded to no snippet: %s", e)
            return None

        lines: list[str] = []
        if result.abstract:
            lines.append(result.abstract.strip())
        for hit in hits[:2]:
            lines.append(f"- {hit.title} ({hit.url})")
        snippet = "\n".join(lines).strip()
        return _truncate(snippet, self.config.web_snippet_chars) if snippet else None

    def gather(
        self,
        *,
        message: str,
        history: t.Sequence[Turn] = (),
        document_text: str | None = None,
        tools: ToolToggles = ToolToggles(),
        intent: Intent | None = None,
        document_cap: int | None = None,
    ) -> ContextBundle:
        cap = document_cap if document_cap is not None else self.config.chat_document_chars
        document = clean_document_text(document_text, cap) or None

        page_text: str | None = None
        if tools.url_fetch:
            url = find_recent_url(message, history, self.config.url_scan_turns)
            if url:
                page_text = self.fetch_url_text(url)

        snippet: str | None = None
        if tools.web_search and (intent is None or intent.needs_web_search):
            snippet = self.web_snippet(self.search_query(message, intent))

        return ContextBundle(web_snippet=snippet, fetched_page_text=page_text, document_text=document)

    def render_context_block(self, bundle: ContextBundle) -> str:
        """Label each source and keep the whole block inside ``context_total_chars``."""
        if bundle.is_empty():
            return ""
        budget = self.config.context_total_chars
        # Budget goes to the smallest source first; rendering order is fixed below.
        granted: dict[str, str] = {}
        for label, text, cap in (
            (WEB_LABEL, bundle.web_snippet, self.config.web_snippet_chars),
            (PAGE_LABEL, bundle.fetched_page_text, self.config.fetched_page_prompt_chars),
            (DOCUMENT_LABEL, bundle.document_text, self.config.chat_document_chars),
        ):
            if not text or budget <= 0:
                continue
            body = _truncate(text, min(cap, budget))
            budget -= len(body)
            granted[label] = body
        order = (DOCUMENT_LABEL, PAGE_LABEL, WEB_LABEL)
        return "\n\n---\n\n".join(f"{label}:\n{granted[label]}" for label in order if label in granted)
