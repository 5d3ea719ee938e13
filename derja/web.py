from __future__ import annotations

import dataclasses
import html.parser
import json
import logging
import re
import urllib.error
import urllib.parse
import urllib.request

logger = logging.getLogger(__name__)


# Errors a best-effort network call may hit; each call site turns them into "no data".
NETWORK_ERRORS: tuple[type[BaseException], ...] = (
    urllib.error.URLError,
    TimeoutError,
    OSError,
    ValueError,
    UnicodeDecodeError,
)


@dataclasses.dataclass(frozen=True)
class SearchHit:
    title: str
    url: str


@dataclasses.dataclass(frozen=True)
class SearchResult:
    abstract: str | None
    results: tuple[SearchHit, ...]


@dataclasses.dataclass(frozen=True)
class FetchedPage:
    content_type: str
    body_text: str


class _VisibleTextParser(html.parser.HTMLParser):
    _SKIP = {"script", "style", "noscript", "template", "svg", "head"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._depth = 0
        self._chunks: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        # </head> is optional in HTML; <body> always ends whatever was being skipped.
        if tag == "body":
            self._depth = 0
        elif tag in self._SKIP:
            self._depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in self._SKIP and self._depth > 0:
            self._depth -= 1

    def handle_data(self, data: str) -> None:
        if self._depth == 0:
            self._chunks.append(data)

    def text(self) -> str:
        return re.sub(r"\s+", " ", " ".join(self._chunks)).strip()


def html_to_text(markup: str) -> str:
    """Visible text of an HTML document; scripts, styles and comments are dropped."""
    if not markup:
        return ""
    parser = _VisibleTextParser()
    parser.feed(markup)
    parser.close()
    return parser.text()


class _ResultLinkParser(html.parser.HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.links: list[tuple[str, str]] = []
        self._href: str | None = None
        self._title: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag != "a":
            return
        a = dict(attrs)
        classes = (a.get("class") or "").split()
        if "result__a" in classes and a.get("href"):
            self._href = a["href"]
            self._title = []

    def handle_endtag(self, tag: str) -> None:
        if tag == "a" and self._href is not None:
            title = re.sub(r"\s+", " ", "".join(self._title)).strip()
            self.links.append((title, self._href))
            self._href = None

    def handle_data(self, data: str) -> None:
        if self._href is not None:
            self._title.append(data)


def unwrap_redirect(href: str) -> str:
    """Resolve DuckDuckGo's ``/l/?uddg=<target>`` wrapper to the real target URL."""
    if href.startswith("//"):
        href = "https:" + href
    parsed = urllib.parse.urlparse(href)
    if parsed.path.startswith("/l/"):
        target = urllib.parse.parse_qs(parsed.query).get("uddg")
        if target and target[0]:
            return target[0]
    return href


class SearchClient:
    def __init__(
        self,
        *,
        api_url: str = "https://api.duckduckgo.com/",
        html_url: str = "https://html.duckduckgo.com/html/",
        timeout_s: float = 10.0,
        user_agent: str = "Mozilla/5.0",
    ) -> None:
        self.api_url = api_url
        self.html_url = html_url
        self.timeout_s = timeout_s
        self.user_agent = user_agent

    def _get(self, url: str) -> str:
        req = urllib.request.Request(url, headers={"User-Agent": self.user_agent}, method="GET")
        with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
            return resp.read().decode("utf-8", errors="replace")

    def search(self, query: str) -> SearchResult:
        q = query.strip()
        if not q:
            return SearchResult(abstract=None, results=())
        url = self.api_url + "?" + urllib.parse.urlencode(
            {"q": q, "format": "json", "no_redirect": "1", "no_html": "1", "skip_disambig": "1"}
        )
        try:
            data = json.loads(self._get(url))
        except NETWORK_ERRORS as e:
            logger.info("Instant-answer search failed: %s", e)
            return SearchResult(abstract=None, results=())
        if not isinstance(data, dict):
            return SearchResult(abstract=None, results=())

        abstract = str(data.get("AbstractText") or data.get("Abstract") or data.get("Answer") or "").strip()
        hits: list[SearchHit] = []
        for key in ("Results", "RelatedTopics"):
            for item in data.get(key) or []:
                if not isinstance(item, dict):
                    continue
                # RelatedTopics may nest groups under "Topics".
                for entry in [item, *(item.get("Topics") or [])]:
                    if not isinstance(entry, dict):
                        continue
                    link = entry.get("FirstURL")
                    text = entry.get("Text")
                    if isinstance(link, str) and link and isinstance(text, str) and text:
                        hits.append(SearchHit(title=text.strip(), url=link))
        return SearchResult(abstract=abstract or None, results=tuple(hits))

    def search_html(self, query: str) -> list[SearchHit]:
        q = query.strip()
        if not q:
            return []
        url = self.html_url + "?" + urllib.parse.urlencode({"q": q})
        try:
            markup = self._get(url)
        except NETWORK_ERRORS as e:
            logger.info("HTML search failed: %s", e)
            return []
        parser = _ResultLinkParser()
        parser.feed(markup)
        parser.close()
        hits: list[SearchHit] = []
        seen: set[str] = set()
        for title, href in parser.links:
            target = unwrap_redirect(href)
            if not target.startswith(("http://", "https://")) or target in seen:
                continue
            seen.add(target)
            hits.append(SearchHit(title=title or target, url=target))
        return hits


class PageFetcher:
    def __init__(
        self,
        *,
        timeout_s: float = 10.0,
        user_agent: str = "Mozilla/5.0",
        max_bytes: int = 2_000_000,
    ) -> None:
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self.max_bytes = max_bytes

    def fetch_page(self, url: str) -> FetchedPage | None:
        if not re.match(r"^https?://", url, flags=re.IGNORECASE):
            return None
        req = urllib.request.Request(url, headers={"User-Agent": self.user_agent}, method="GET")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                status = getattr(resp, "status", 200)
                if not 200 <= int(status) < 300:
                    return None
                content_type = str(resp.headers.get("Content-Type") or "").lower()
                charset = resp.headers.get_content_charset() or "utf-8"
                raw = resp.read(self.max_bytes)
        except urllib.error.HTTPError as e:
            logger.info("Page fetch returned HTTP %s for %s", e.code, url)
            return None
        except NETWORK_ERRORS as e:
            logger.info("Page fetch failed for %s: %s", url, e)
            return None
        try:
            body = raw.decode(charset, errors="replace")
        except LookupError:
            body = raw.decode("utf-8", errors="replace")
        return FetchedPage(content_type=content_type, body_text=body)
