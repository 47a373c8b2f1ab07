"""Raw product extraction from listing-page HTML via the LLM."""

import re
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from superscraper.config import LLM_MODEL, MIN_HTML_CHARS
from superscraper.errors import ExtractionError, MalformedResponseError, RetryExhaustedError
from superscraper.html_utils import clean_html, is_http_url, resolve_product_url, truncate_html
from superscraper.keys import KeyRotator
from superscraper.llm import request_json
from superscraper.logging_config import get_logger
from superscraper.models import RawProductRecord, RecordStatus
from superscraper.retry import EXTRACTION_POLICY, RetryPolicy, with_retry

__all__ = ["PRODUCT_SCHEMA", "ProductExtractor", "parse_price", "parse_products"]

logger = get_logger("extraction")

PRODUCT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "products": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "price": {"type": "number"},
                    "productUrl": {"type": "string"},
                },
                "required": ["name", "price"],
            },
        }
    },
    "required": ["products"],
}

EXTRACTION_PROMPT = """
TASK: Extract the MAIN PRODUCT LIST from the HTML of a marketplace listing page.

CRITICAL RULES:
1. ONLY extract products from the MAIN GRID/LIST.
2. IGNORE "Recommended", "Suggestions", "Similar Products", "Seen Recently"
   (Gợi ý, Tương tự, Đã xem).
3. IGNORE footer items and sidebar promotions.
4. Focus on elements containing image + title + price.
5. Price is the number shown to the buyer in VND, without separators.

Input URL: {url}

Return JSON: {{"products": [{{"name": "...", "price": 0, "productUrl": "..."}}]}}

HTML (simplified):
{html}
""".strip()

_DIGITS_RE = re.compile(r"\d+")


def parse_price(value: Any) -> float:
    """Coerce a price value into a number.

    Strings keep only their digits, since VND prices carry no minor unit and
    use '.' or ',' as thousands separators.

    Examples:
        >>> parse_price("120.000đ")
        120000.0
        >>> parse_price(None)
        0.0
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else 0.0
    digits = "".join(_DIGITS_RE.findall(str(value)))
    return float(digits) if digits else 0.0


def parse_products(payload: Any) -> List[Dict[str, Any]]:
    """Product items from a decoded response.

    Accepts ``{"products": [...]}`` or a bare list.

    Raises:
        MalformedResponseError: If the payload has neither shape.
    """
    if isinstance(payload, dict):
        items = payload.get("products", [])
    elif isinstance(payload, list):
        items = payload
    else:
        raise MalformedResponseError(f"Unexpected extraction payload: {type(payload).__name__}")
    if not isinstance(items, list):
        raise MalformedResponseError("'products' is not a list")
    return [item for item in items if isinstance(item, dict)]


class ProductExtractor:
    """Turns one (URL, HTML) pair into pending raw records."""

    def __init__(
        self,
        rotator: KeyRotator,
        model: str = LLM_MODEL,
        policy: RetryPolicy = EXTRACTION_POLICY,
        sleep: Callable[[float], None] = time.sleep,
        fetch: Optional[Callable[[str], str]] = None,
    ):
        self.rotator = rotator
        self.model = model
        self.policy = policy
        self.sleep = sleep
        self.fetch = fetch

    def _prepare_html(self, url: str, html_hint: str) -> str:
        cleaned = clean_html(html_hint)
        if len(cleaned) >= MIN_HTML_CHARS or not is_http_url(url) or self.fetch is None:
            return cleaned
        try:
            return clean_html(self.fetch(url))
        except requests.RequestException as e:
            logger.warning(f"Could not fetch {url}: {e}")
            return cleaned

    def extract(self, url: str, html_hint: str, source_index: int) -> List[RawProductRecord]:
        """Extract raw records for one task.

        Args:
            url: Page URL, or the manual-input marker for pasted HTML.
            html_hint: Page HTML (may be empty when only a URL is known).
            source_index: 1-based source position stamped onto every record.

        Returns:
            Records in pending status, possibly empty.

        Raises:
            MissingCredentialsError: No usable key.
            ExtractionError: The service kept failing.
        """
        cleaned = self._prepare_html(url, html_hint)
        if len(cleaned) < MIN_HTML_CHARS and not is_http_url(url):
            logger.info(f"Source {source_index}: input too short, skipping")
            return []

        prompt = EXTRACTION_PROMPT.format(url=url, html=truncate_html(cleaned))

        def call(client: Any) -> List[Dict[str, Any]]:
            payload = request_json(
                client, prompt, model=self.model, schema=PRODUCT_SCHEMA, stage="extraction"
            )
            return parse_products(payload)

        try:
            items = with_retry(
                call,
                self.rotator,
                self.policy,
                sleep=self.sleep,
                label=f"extract[source {source_index}]",
            )
        except RetryExhaustedError as e:
            raise ExtractionError(str(e)) from e

        records = []
        for item in items:
            name = str(item.get("name") or item.get("sanPham") or "").strip()
            if not name:
                continue
            records.append(
                RawProductRecord(
                    raw_name=name,
                    price=parse_price(item.get("price", item.get("gia"))),
                    source_index=source_index,
                    product_url=resolve_product_url(item.get("productUrl"), url),
                    page_url=url,
                    status=RecordStatus.PENDING,
                )
            )
        logger.info(f"Source {source_index}: extracted {len(records)} products")
        return records
