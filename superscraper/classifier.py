"""Classification of raw records: LLM batches with an algorithmic fallback."""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from superscraper.catalog import Catalog
from superscraper.config import CLASSIFY_BATCH_DELAY, CLASSIFY_BATCH_SIZE, CODE_CHUNK_SIZE, LLM_MODEL
from superscraper.errors import MalformedResponseError, MissingCredentialsError, SuperScraperError
from superscraper.keys import KeyRotator
from superscraper.llm import request_json
from superscraper.logging_config import get_logger, log_event
from superscraper.matcher import ProductMatcher
from superscraper.models import OTHER_CATEGORY, SINGLE_LABEL, Classification, RawProductRecord
from superscraper.retry import CLASSIFICATION_POLICY, RetryPolicy, with_retry

__all__ = [
    "AIClassifier",
    "classification_from_entry",
    "classify_records_algorithmically",
    "classify_records",
    "METHODS",
]

logger = get_logger("classifier")

METHODS = ("code", "ai")

CLASSIFY_PROMPT = """
YOU ARE A PRODUCT NAME NORMALIZER for a Vietnamese cosmetics brand.

INPUT: a list of raw marketplace listing names.
DICTIONARY (official product names, one per line):
{catalog}

RULES:
1. Decide whether each listing is a single item ("Lẻ") or a bundle ("Combo").
2. A bundle of several units of the same product gets a "Combo N " prefix on
   the official name, and bundleLabel "Combo N".
3. Map names onto the dictionary. A bundle of different products lists the
   official names joined with " + ".
4. categoryTop / categorySub describe the product type (e.g. "Làm sạch" /
   "Tẩy trang"). Use "Khác" when unsure.

Output a JSON object mapping each raw name exactly as given to
{{"canonicalName": ..., "bundleLabel": ..., "categoryTop": ..., "categorySub": ...}}

LIST: {names}
""".strip()


def _pick(entry: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def classification_from_entry(raw_name: str, entry: Dict[str, Any]) -> Classification:
    """Build a classification from one response entry, filling gaps.

    Both the current camelCase keys and the legacy Vietnamese ones are read.
    """
    bundle = _pick(entry, "bundleLabel", "plCombo")
    if not bundle:
        bundle = "Combo" if "combo" in raw_name.lower() else SINGLE_LABEL
    return Classification(
        canonical_name=_pick(entry, "canonicalName", "normalizedName") or raw_name,
        bundle_label=bundle,
        category_top=_pick(entry, "categoryTop", "phanLoaiTong") or OTHER_CATEGORY,
        category_sub=_pick(entry, "categorySub", "phanLoaiChiTiet") or OTHER_CATEGORY,
    )


def _stop_requested(state: Any) -> bool:
    return state is not None and state.stop_requested


def classify_records_algorithmically(
    records: Sequence[RawProductRecord],
    matcher: Optional[ProductMatcher] = None,
    state: Any = None,
    chunk_size: int = CODE_CHUNK_SIZE,
) -> List[RawProductRecord]:
    """Classify records with the fuzzy matcher, chunk by chunk.

    Records left behind by a stop request stay pending.
    """
    matcher = matcher or ProductMatcher()
    total = len(records)
    for start in range(0, total, chunk_size):
        if _stop_requested(state):
            state.log("Stopped before classifying all records", "warning")
            break
        for record in records[start:start + chunk_size]:
            record.apply(matcher.classify(record.raw_name))
        if state is not None:
            state.set_progress(min(start + chunk_size, total), total)
    return list(records)


class AIClassifier:
    """Batch classifier backed by the LLM, falling back to the matcher.

    Usage:
        classifier = AIClassifier(rotator)
        classifier.classify_records(records, state)
    """

    def __init__(
        self,
        rotator: KeyRotator,
        matcher: Optional[ProductMatcher] = None,
        model: str = LLM_MODEL,
        batch_size: int = CLASSIFY_BATCH_SIZE,
        batch_delay: float = CLASSIFY_BATCH_DELAY,
        policy: RetryPolicy = CLASSIFICATION_POLICY,
        sleep: Callable[[float], None] = time.sleep,
        catalog: Optional[Catalog] = None,
    ):
        self.rotator = rotator
        self.matcher = matcher or ProductMatcher(catalog)
        self.catalog = catalog or self.matcher.catalog
        self.model = model
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.policy = policy
        self.sleep = sleep

    def build_prompt(self, raw_names: Sequence[str]) -> str:
        return CLASSIFY_PROMPT.format(
            catalog=self.catalog.as_prompt_block(),
            names=json.dumps(list(raw_names), ensure_ascii=False),
        )

    def classify_batch(self, raw_names: Sequence[str]) -> Dict[str, Classification]:
        """Ask the LLM for one batch. Names missing from the answer are absent.

        Raises:
            MissingCredentialsError: No usable key.
            SuperScraperError: Retries exhausted or unusable response.
        """
        if not raw_names:
            return {}
        prompt = self.build_prompt(raw_names)

        def call(client: Any) -> Dict[str, Any]:
            payload = request_json(client, prompt, model=self.model, stage="classification")
            if not isinstance(payload, dict):
                raise MalformedResponseError("Classification response is not an object")
            return payload

        payload = with_retry(
            call, self.rotator, self.policy, sleep=self.sleep, label="classify"
        )
        return {
            name: classification_from_entry(name, entry)
            for name, entry in payload.items()
            if isinstance(entry, dict)
        }

    def classify_records(
        self, records: Sequence[RawProductRecord], state: Any = None
    ) -> List[RawProductRecord]:
        """Classify every record in place, batch by batch.

        A failed batch is classified algorithmically. On missing credentials
        the remaining records are classified algorithmically and the error is
        re-raised so the caller can prompt for keys.
        """
        total = len(records)
        for start in range(0, total, self.batch_size):
            if _stop_requested(state):
                state.log("Stopped before classifying all records", "warning")
                break

            batch = records[start:start + self.batch_size]
            names = list(dict.fromkeys(r.raw_name for r in batch))

            try:
                mapping = self.classify_batch(names)
            except MissingCredentialsError:
                logger.error("No usable API key, finishing with algorithmic matching")
                classify_records_algorithmically(records[start:], self.matcher)
                if state is not None:
                    state.set_progress(total, total)
                raise
            except SuperScraperError as e:
                log_event(
                    "batch_fallback",
                    {
                        "message": f"Batch {start // self.batch_size + 1} failed, using matcher: {e}",
                        "batch_start": start,
                        "batch_size": len(batch),
                    },
                    level=logging.WARNING,
                    logger_name="classifier",
                )
                mapping = {}

            missing = 0
            for record in batch:
                classification = mapping.get(record.raw_name)
                if classification is None:
                    classification = self.matcher.classify(record.raw_name)
                    missing += 1
                record.apply(classification)
            if missing and mapping:
                logger.info(f"{missing} name(s) missing from LLM answer, matched algorithmically")

            done = min(start + self.batch_size, total)
            if state is not None:
                state.set_progress(done, total)
            if done < total:
                self.sleep(self.batch_delay)

        return list(records)


def classify_records(
    records: Sequence[RawProductRecord],
    method: str = "code",
    classifier: Optional[AIClassifier] = None,
    matcher: Optional[ProductMatcher] = None,
    state: Any = None,
) -> List[RawProductRecord]:
    """Dispatch to the ``"code"`` or ``"ai"`` classification path."""
    if method == "code":
        return classify_records_algorithmically(records, matcher, state)
    if method == "ai":
        if classifier is None:
            raise ValueError("AI classification needs an AIClassifier")
        return classifier.classify_records(records, state)
    raise ValueError(f"Unknown classification method: {method!r} (expected one of {METHODS})")
