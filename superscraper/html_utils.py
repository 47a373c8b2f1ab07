"""HTML cleanup and fetching for listing pages."""

import re
from typing import Optional
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup, Comment

from superscraper.config import HEADERS, MAX_HTML_CHARS, REQUEST_TIMEOUT
from superscraper.logging_config import get_logger

__all__ = [
    "clean_html",
    "truncate_html",
    "resolve_product_url",
    "is_http_url",
    "fetch_html",
]

logger = get_logger("html")

# Tags that never carry product grid content
NOISE_TAGS = [
    "script", "style", "svg", "iframe", "noscript", "meta", "link", "head",
    "footer", "header", "nav", "form", "button", "input", "select", "option",
]

# "Similar products" / "recommended for you" blocks confuse extraction
BLACKLIST_SELECTORS = [
    '[class*="recommend"]', '[id*="recommend"]',
    '[class*="suggestion"]', '[id*="suggestion"]',
    ".footer", "#footer", ".header", "#header",
]

KEEP_ATTRS = ("href", "src")

_WS_RE = re.compile(r"\s\s+")


def clean_html(raw_html: str) -> str:
    """Shrink a listing page to the markup needed to find products.

    Drops scripts, styles, comments, navigation chrome and recommendation
    widgets, then strips every attribute except ``href`` and ``src``.
    Inline ``data:image`` sources are removed.
    """
    if not raw_html:
        return ""

    soup = BeautifulSoup(raw_html, "html.parser")

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    for tag in soup.find_all(NOISE_TAGS):
        if not tag.decomposed:
            tag.decompose()

    for selector in BLACKLIST_SELECTORS:
        for el in soup.select(selector):
            if not el.decomposed:
                el.decompose()

    for el in soup.find_all(True):
        el.attrs = {k: v for k, v in el.attrs.items() if k in KEEP_ATTRS}
        src = el.attrs.get("src")
        if isinstance(src, str) and src.startswith("data:image"):
            del el.attrs["src"]

    html = soup.body.decode_contents() if soup.body is not None else soup.decode()
    return _WS_RE.sub(" ", html).strip()


def truncate_html(html: str, max_chars: int = MAX_HTML_CHARS) -> str:
    """Cut cleaned HTML down to the model input budget."""
    return html[:max_chars] if html else ""


def is_http_url(url: Optional[str]) -> bool:
    if not url:
        return False
    return urlparse(url).scheme in ("http", "https")


def resolve_product_url(raw_url: Optional[str], base_url: str) -> str:
    """Absolute product URL.

    Empty -> the page URL. Relative -> joined against the page URL. When the
    page "URL" is not http(s) (manual HTML input) the raw value is returned
    unchanged.

    Examples:
        >>> resolve_product_url("/p/123", "https://shop.vn/list")
        'https://shop.vn/p/123'
        >>> resolve_product_url("", "https://shop.vn/list")
        'https://shop.vn/list'
    """
    raw_url = (raw_url or "").strip()
    if not raw_url:
        return base_url
    if not is_http_url(base_url):
        return raw_url
    try:
        return urljoin(base_url, raw_url)
    except ValueError:
        return raw_url


def fetch_html(url: str, session: Optional[requests.Session] = None) -> str:
    """GET a listing page.

    Raises:
        requests.RequestException: On network or HTTP errors.
    """
    http = session or requests.Session()
    logger.info(f"Fetching {url}")
    resp = http.get(url, headers=HEADERS, timeout=REQUEST_TIMEOUT)
    resp.raise_for_status()
    return resp.text
