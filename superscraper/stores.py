"""Web-search grounded lookup of stores selling a product."""

import time
from typing import Any, Callable, List, Optional, Sequence

from superscraper.config import (
    REGION_SEARCH_DELAY,
    SEARCH_MODELS,
    STORE_SEARCH_MAX_RETRIES,
    STORE_SEARCH_TIMEOUT,
    VIETNAM_REGIONS,
)
from superscraper.errors import MalformedResponseError, MissingCredentialsError, StoreSearchError
from superscraper.keys import KeyRotator
from superscraper.llm import request_json
from superscraper.logging_config import get_logger
from superscraper.models import StoreResult

__all__ = ["StoreSearcher", "parse_stores", "WEB_SEARCH_TOOL"]

logger = get_logger("stores")

WEB_SEARCH_TOOL = {"type": "web_search"}

STORE_PROMPT = """
Use web search to find physical stores, pharmacies and official resellers that
sell the cosmetics product "{product}" in or near "{location}", Vietnam.

Return ONLY a JSON array (no prose, no markdown) of objects:
[{{"storeName": "...", "address": "...", "phone": "...", "priceEstimate": "...",
   "isOpen": "...", "link": "..."}}]
Use empty strings for unknown fields. Return [] if nothing reliable is found.
""".strip()


def parse_stores(payload: Any) -> List[StoreResult]:
    """Stores from a decoded answer: a bare list or ``{"stores": [...]}``."""
    if isinstance(payload, dict):
        payload = payload.get("stores", [])
    if not isinstance(payload, list):
        raise MalformedResponseError("Store search answer is not a list")
    stores = [StoreResult.from_dict(item) for item in payload if isinstance(item, dict)]
    return [s for s in stores if s.store_name]


class StoreSearcher:
    """Store lookup with model fallback.

    Each failed attempt moves to the next model in ``models``; credentials are
    not rotated here.
    """

    def __init__(
        self,
        rotator: KeyRotator,
        models: Optional[Sequence[str]] = None,
        timeout: float = STORE_SEARCH_TIMEOUT,
        max_retries: int = STORE_SEARCH_MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
        region_delay: float = REGION_SEARCH_DELAY,
    ):
        self.rotator = rotator
        self.models = list(models or SEARCH_MODELS)
        if not self.models:
            raise ValueError("At least one search model is required")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.sleep = sleep
        self.region_delay = region_delay

    def search(self, product: str, location: str) -> List[StoreResult]:
        """Stores selling ``product`` around ``location``, tagged with it.

        Raises:
            MissingCredentialsError: No API key configured.
            StoreSearchError: Every attempt failed.
        """
        prompt = STORE_PROMPT.format(product=product, location=location)
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            model = self.models[attempt % len(self.models)]
            client = self.rotator.current_client()
            try:
                payload = request_json(
                    client,
                    prompt,
                    model=model,
                    tools=[WEB_SEARCH_TOOL],
                    timeout=self.timeout,
                    stage="store_search",
                )
                stores = parse_stores(payload)
            except MissingCredentialsError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(f"Store search with {model} failed ({e}), trying next model")
                continue

            for store in stores:
                store.province = location
            logger.info(f"Found {len(stores)} stores for {product!r} in {location}")
            return stores

        raise StoreSearchError(
            f"Store search for {product!r} in {location} failed after "
            f"{self.max_retries} attempts: {last_error}"
        ) from last_error

    def search_region(self, product: str, region: str, state: Any = None) -> List[StoreResult]:
        """Sweep every province of a region, one at a time.

        A province that fails is logged and skipped. Each result carries its
        province, also appended to the address when missing from it.
        """
        key = region.upper()
        if key not in VIETNAM_REGIONS:
            raise ValueError(f"Unknown region {region!r}, expected one of {sorted(VIETNAM_REGIONS)}")
        provinces = VIETNAM_REGIONS[key]

        results: List[StoreResult] = []
        for i, province in enumerate(provinces):
            if state is not None and state.stop_requested:
                state.log("Store search stopped by user", "warning")
                break
            if state is not None:
                state.log(f"[{i + 1}/{len(provinces)}] Searching {province}")

            try:
                found = self.search(product, province)
            except StoreSearchError as e:
                logger.warning(str(e))
                if state is not None:
                    state.log(f"{province}: {e}", "error")
                found = []

            for store in found:
                store.province = province
                if province not in store.address:
                    store.address = f"{store.address} ({province})".strip()
            results.extend(found)

            if state is not None:
                state.set_progress(i + 1, len(provinces))
            if i < len(provinces) - 1:
                self.sleep(self.region_delay)

        return results
