"""Fetch a web page and reduce it to title + visible text."""

from __future__ import annotations

from dataclasses import dataclass
from html.parser import HTMLParser
from typing import List, Optional
import re

import httpx

from kbchat.errors import SourceUnavailable
from kbchat.services.sources.base import ContextSource

_WS_RE = re.compile(r"\s+")
_SKIP_TAGS = {"script", "style", "noscript", "template"}


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


@dataclass(frozen=True)
class WebPage:
    url: str
    title: str
    content: str


class _TextExtractor(HTMLParser):
    """Collects <title> text and body text, skipping script/style content."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.title_parts: List[str] = []
        self.body_parts: List[str] = []
        self.loose_parts: List[str] = []
        self._skip_depth = 0
        self._in_title = False
        self._in_head = False
        self._in_body = False
        self.saw_body = False

    def handle_starttag(self, tag, attrs):
        if tag in _SKIP_TAGS:
            self._skip_depth += 1
        elif tag == "title":
            self._in_title = True
        elif tag == "head":
            self._in_head = True
        elif tag == "body":
            self._in_body = True
            self.saw_body = True

    def handle_endtag(self, tag):
        if tag in _SKIP_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
        elif tag == "title":
            self._in_title = False
        elif tag == "head":
            self._in_head = False
        elif tag == "body":
            self._in_body = False

    def handle_data(self, data):
        if self._skip_depth:
            return
        if self._in_title:
            self.title_parts.append(data)
            return
        if self._in_body:
            self.body_parts.append(data)
        elif not self._in_head:
            self.loose_parts.append(data)


def extract_page_text(markup: str) -> tuple[str, str]:
    """Return (title, visible text) with whitespace collapsed."""
    parser = _TextExtractor()
    parser.feed(markup or "")
    parser.close()
    parts = parser.body_parts if parser.saw_body else parser.loose_parts
    return collapse_whitespace("".join(parser.title_parts)), collapse_whitespace(" ".join(parts))


class WebpageReader(ContextSource):
    kind = "webpage"
    label = "Webpage Knowledge Base:"

    def __init__(
        self,
        timeout_sec: float = 20.0,
        user_agent: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_sec = float(timeout_sec)
        self.user_agent = user_agent
        self._transport = transport

    async def fetch_page(self, url: str) -> WebPage:
        headers = {"User-Agent": self.user_agent} if self.user_agent else {}
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.timeout_sec,
                headers=headers,
                transport=self._transport,
            ) as client:
                resp = await client.get(url)
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"web fetch failed url={url}: {exc}") from exc

        if resp.status_code >= 400:
            raise SourceUnavailable(f"web fetch failed url={url} status={resp.status_code}")

        title, content = extract_page_text(resp.text)
        return WebPage(url=url, title=title, content=content)

    async def fetch(self, reference: str) -> str:
        page = await self.fetch_page(reference)
        return f"Title: {page.title}\nContent: {page.content}"
