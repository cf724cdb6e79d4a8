"""Heuristic extraction of news/event candidates from a listing page."""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import urljoin, urlparse

import structlog
from selectolax.parser import HTMLParser, Node

from ..models import RawEventDraft
from .dates import DateFragmentParser

DEFAULT_SEGMENTS = ("/news/", "/post/")
DEFAULT_BOILERPLATE = ("Política de", "Términos de", "Privacy")
MIN_OWN_TEXT_LENGTH = 5
MIN_TITLE_LENGTH = 10

_WHITESPACE = re.compile(r"\s+")
_BRACKET_PLACEHOLDER = re.compile(r"^\s*\[\s*\]\s*$")


def clean_text(text: str | None) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


class EventExtractor:
    """Turn anchors pointing at news/post pages into :class:`RawEventDraft` objects.

    Precision matters more than recall: anything that looks like navigation
    or legal boilerplate is dropped.
    """

    def __init__(
        self,
        date_parser: DateFragmentParser | None = None,
        content_segments: Iterable[str] = DEFAULT_SEGMENTS,
        boilerplate_phrases: Iterable[str] = DEFAULT_BOILERPLATE,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.date_parser = date_parser or DateFragmentParser()
        self.content_segments = tuple(content_segments)
        self.boilerplate_phrases = tuple(boilerplate_phrases)
        self.logger = logger or structlog.get_logger("calendar_crawler.extractor")

    def extract(self, html: str | HTMLParser, base_url: str) -> list[RawEventDraft]:
        tree = html if isinstance(html, HTMLParser) else HTMLParser(html or "")
        page_base = self._page_base(tree, base_url)
        drafts: list[RawEventDraft] = []
        seen: set[str] = set()
        for anchor in tree.css("a[href]"):
            href = (anchor.attributes.get("href") or "").strip()
            if not href or href.startswith(("javascript:", "#", "mailto:")):
                continue
            full_url = urljoin(page_base, href)
            if not self._is_content_link(full_url):
                continue
            title = self._derive_title(anchor)
            if not self._is_valid_title(title):
                continue
            if full_url in seen:
                continue
            seen.add(full_url)
            date = self.date_parser.parse(title)
            drafts.append(
                RawEventDraft(
                    title=title,
                    description=self._derive_description(anchor, title),
                    link=href,
                    full_url=full_url,
                    date=date.isoformat().replace("+00:00", "Z") if date else None,
                    image_url=self._find_image(anchor, page_base),
                )
            )
        self.logger.info("extraction_complete", base_url=base_url, candidates=len(drafts))
        return drafts

    # ------------------------------------------------------------------
    @staticmethod
    def _page_base(tree: HTMLParser, base_url: str) -> str:
        base_node = tree.css_first("base[href]")
        if base_node is not None:
            declared = (base_node.attributes.get("href") or "").strip()
            if declared:
                return urljoin(base_url, declared)
        return base_url

    def _is_content_link(self, url: str) -> bool:
        path = urlparse(url).path
        return any(segment in path for segment in self.content_segments)

    def _derive_title(self, anchor: Node) -> str:
        title = clean_text(anchor.text(separator=" ", strip=True))
        if len(title) < MIN_OWN_TEXT_LENGTH:
            parent = anchor.parent
            if parent is not None:
                title = clean_text(parent.text(separator=" ", strip=True))
        return title

    def _is_valid_title(self, title: str) -> bool:
        if not title or len(title) < MIN_TITLE_LENGTH:
            return False
        if _BRACKET_PLACEHOLDER.match(title):
            return False
        return not any(phrase in title for phrase in self.boilerplate_phrases)

    @staticmethod
    def _derive_description(anchor: Node, title: str) -> str:
        parent = anchor.parent
        if parent is not None:
            container_text = clean_text(parent.text(separator=" ", strip=True))
            if len(container_text) > len(title):
                return container_text
        return title

    @staticmethod
    def _find_image(anchor: Node, page_base: str) -> str:
        for scope in (anchor, anchor.parent):
            if scope is None:
                continue
            image = scope.css_first("img")
            if image is None:
                continue
            src = (image.attributes.get("src") or image.attributes.get("data-src") or "").strip()
            if src:
                return urljoin(page_base, src)
        return ""


__all__ = ["EventExtractor", "clean_text"]
