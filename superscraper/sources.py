"""Source configuration helpers, task building and the browser-extension bridge."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from superscraper.config import DEFAULT_SOURCE_NAMES, MANUAL_INPUT_MARKER, MIN_HTML_CHARS
from superscraper.logging_config import get_logger
from superscraper.models import MarketplaceType, SourceConfig

__all__ = [
    "DEFAULT_SOURCE_NAMES",
    "default_sources",
    "ExtractionTask",
    "build_tasks",
    "ExtensionPayload",
    "apply_extension_payload",
]

logger = get_logger("sources")


def default_sources() -> List[SourceConfig]:
    """The five default marketplaces, empty."""
    return [SourceConfig(name=name) for name in DEFAULT_SOURCE_NAMES]


@dataclass
class ExtractionTask:
    """One unit of extraction work: a page (or pasted HTML) for one source."""

    source: SourceConfig
    source_index: int
    url: str
    html: str = ""

    @property
    def is_manual(self) -> bool:
        return self.url == MANUAL_INPUT_MARKER


def build_tasks(sources: Sequence[SourceConfig]) -> List[ExtractionTask]:
    """Expand sources into tasks, in source order then URL order.

    A source with URLs yields one task per URL; its HTML hint rides along
    with the last URL, which is the page it was most recently captured from.
    A source without URLs yields a single manual-input task when its HTML
    hint is long enough to hold products.
    """
    tasks: List[ExtractionTask] = []
    for index, source in enumerate(sources, start=1):
        urls = [u.strip() for u in source.urls if u and u.strip()]
        hint = source.html_hint if len(source.html_hint.strip()) > MIN_HTML_CHARS else ""
        if urls:
            for pos, url in enumerate(urls):
                html = hint if pos == len(urls) - 1 else ""
                tasks.append(ExtractionTask(source, index, url, html))
        elif hint:
            tasks.append(ExtractionTask(source, index, MANUAL_INPUT_MARKER, hint))
    return tasks


@dataclass
class ExtensionPayload:
    """Page capture sent by the browser extension."""

    html: str
    url: str
    title: str = ""


def apply_extension_payload(
    sources: List[SourceConfig],
    payload: ExtensionPayload,
    focused_index: Optional[int] = None,
) -> int:
    """Route a captured page to a source, as if the user had pasted it.

    The target is the focused source if any, else the source whose
    marketplace matches the URL, else the first empty source, else source 1.

    Returns:
        The 1-based index of the source that received the page.
    """
    if not sources:
        raise ValueError("No sources configured")

    idx = -1
    if focused_index is not None and 1 <= focused_index <= len(sources):
        idx = focused_index - 1
    else:
        marketplace = MarketplaceType.from_name(payload.url)
        if marketplace != MarketplaceType.OTHER:
            idx = next(
                (i for i, s in enumerate(sources) if s.marketplace == marketplace), -1
            )
        if idx == -1:
            idx = next((i for i, s in enumerate(sources) if not s.has_input), -1)
        if idx == -1:
            idx = 0

    source = sources[idx]
    url = (payload.url or "").strip()
    if url:
        # the hint belongs to the last URL, so a repeated capture moves to the end
        source.urls = [u for u in source.urls if u.strip() and u.strip() != url] + [url]
    source.html_hint = payload.html or ""

    logger.info(f"Extension page {url or payload.title!r} routed to source {idx + 1} ({source.name})")
    return idx + 1
