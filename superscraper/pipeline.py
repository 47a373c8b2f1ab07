"""Sequential extraction and classification runs with a pollable run state."""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from superscraper.classifier import AIClassifier, classify_records
from superscraper.config import MAX_LOG_LINES
from superscraper.errors import MissingCredentialsError, SuperScraperError
from superscraper.extraction import ProductExtractor
from superscraper.logging_config import get_logger, log_event
from superscraper.matcher import ProductMatcher
from superscraper.models import RawProductRecord, SourceConfig
from superscraper.sources import build_tasks

__all__ = [
    "AppStatus",
    "LogLine",
    "RunState",
    "run_extraction",
    "run_classification",
]

logger = get_logger("pipeline")


class AppStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class LogLine:
    message: str
    kind: str = "info"  # info | success | warning | error


class RunState:
    """Status, progress and log feed of the current run.

    Readers poll it between steps; the pipeline updates it after every task
    or batch. ``request_stop`` may be called from a signal handler.
    """

    def __init__(self, max_logs: int = MAX_LOG_LINES):
        self.max_logs = max_logs
        self.status = AppStatus.IDLE
        self.progress = 0
        self.logs: List[LogLine] = []
        self._stop = threading.Event()

    def log(self, message: str, kind: str = "info") -> None:
        self.logs.append(LogLine(message, kind))
        if len(self.logs) > self.max_logs:
            del self.logs[: len(self.logs) - self.max_logs]
        if kind == "error":
            logger.error(message)
        elif kind == "warning":
            logger.warning(message)
        else:
            logger.info(message)

    def set_progress(self, done: int, total: int) -> None:
        self.progress = int(round(100 * done / total)) if total else 100

    def request_stop(self) -> None:
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def begin(self) -> None:
        """Mark a new run as started. A pending stop request is kept."""
        self.status = AppStatus.PROCESSING
        self.progress = 0

    def reset(self) -> None:
        self.status = AppStatus.IDLE
        self.progress = 0
        self.logs.clear()
        self._stop.clear()


def run_extraction(
    sources: Sequence[SourceConfig],
    extractor: ProductExtractor,
    state: RunState,
    records: Optional[List[RawProductRecord]] = None,
) -> List[RawProductRecord]:
    """Extract raw records for every task, one task at a time.

    New records are prepended to ``records`` so the latest crawl reads first.
    Missing credentials halt the run; any other task failure is logged and
    the task skipped.

    Returns:
        The combined record list.
    """
    results = records if records is not None else []
    tasks = build_tasks(sources)
    state.begin()

    if not tasks:
        state.log("No URL or HTML input configured", "warning")
        state.status = AppStatus.COMPLETED
        state.progress = 100
        return results

    state.log(f"Starting extraction of {len(tasks)} task(s)")
    for done, task in enumerate(tasks):
        if state.stop_requested:
            state.log("Stopped by user", "warning")
            break

        label = "manual HTML" if task.is_manual else task.url
        state.log(f"[{task.source.name}] Extracting {label}")
        try:
            found = extractor.extract(task.url, task.html, task.source_index)
        except MissingCredentialsError as e:
            state.log(f"No usable API key ({e}), configure keys and retry", "error")
            state.status = AppStatus.ERROR
            return results
        except SuperScraperError as e:
            log_event(
                "task_error",
                {"message": f"Task failed: {e}", "source": task.source_index, "url": task.url},
                level=logging.DEBUG,
                logger_name="pipeline",
            )
            state.log(f"[{task.source.name}] Error: {e}", "error")
            found = None

        if found:
            results[:0] = found
            state.log(f"[{task.source.name}] Found {len(found)} products", "success")
        elif found is not None:
            state.log(f"[{task.source.name}] No products found", "warning")
        state.set_progress(done + 1, len(tasks))

    state.status = AppStatus.COMPLETED
    return results


def run_classification(
    records: Sequence[RawProductRecord],
    method: str = "code",
    classifier: Optional[AIClassifier] = None,
    matcher: Optional[ProductMatcher] = None,
    state: Optional[RunState] = None,
) -> List[RawProductRecord]:
    """Classify records in place and track the run in ``state``."""
    state = state or RunState()
    state.begin()
    state.log(f"Classifying {len(records)} record(s) ({method})")
    try:
        result = classify_records(records, method, classifier, matcher, state)
    except MissingCredentialsError:
        state.log("No usable API key, remaining records matched algorithmically", "error")
        state.status = AppStatus.ERROR
        raise
    state.status = AppStatus.COMPLETED
    state.log("Classification finished", "success")
    return result
