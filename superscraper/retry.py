"""Retry with key rotation and exponential backoff.

Rate-limit and bad-key errors rotate to the next API key; other transient
errors back off exponentially. Every attempt counts toward the policy bound.
Missing credentials are reported only once every key in the pool has been
rejected; a larger pool that runs out of attempts reports exhaustion.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from superscraper.config import (
    CLASSIFY_MAX_ATTEMPTS,
    EXTRACT_MAX_ATTEMPTS,
    MAX_RETRY_DELAY,
    RETRY_BACKOFF_MULTIPLIER,
    RETRY_BASE_DELAY,
    ROTATE_DELAY,
)
from superscraper.errors import MalformedResponseError, MissingCredentialsError, RetryExhaustedError
from superscraper.keys import KeyRotator
from superscraper.logging_config import get_logger, log_event

__all__ = [
    "RetryPolicy",
    "EXTRACTION_POLICY",
    "CLASSIFICATION_POLICY",
    "is_rotatable",
    "is_retryable",
    "with_retry",
]

logger = get_logger("retry")

T = TypeVar("T")

ROTATABLE_STATUS_CODES = (429, 400)
ROTATABLE_MARKERS = ("429", "RESOURCE_EXHAUSTED", "400", "INVALID_ARGUMENT", "API key")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds and delays for one kind of remote call."""

    max_attempts: int
    base_delay: float = RETRY_BASE_DELAY
    multiplier: float = RETRY_BACKOFF_MULTIPLIER
    max_delay: float = MAX_RETRY_DELAY
    rotate_delay: float = ROTATE_DELAY

    def backoff(self, failures: int) -> float:
        """Delay before the retry that follows ``failures`` earlier backoffs."""
        return min(self.base_delay * (self.multiplier ** failures), self.max_delay)


EXTRACTION_POLICY = RetryPolicy(max_attempts=EXTRACT_MAX_ATTEMPTS)
CLASSIFICATION_POLICY = RetryPolicy(max_attempts=CLASSIFY_MAX_ATTEMPTS)


def is_rotatable(exc: BaseException) -> bool:
    """True for quota or key errors that another key may not hit."""
    if isinstance(exc, MalformedResponseError):
        return False
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    if status in ROTATABLE_STATUS_CODES:
        return True
    message = str(exc)
    return any(marker in message for marker in ROTATABLE_MARKERS)


def is_retryable(exc: BaseException) -> bool:
    """Everything except a missing-credentials condition is worth retrying."""
    return not isinstance(exc, MissingCredentialsError)


def with_retry(
    operation: Callable[[Any], T],
    rotator: KeyRotator,
    policy: RetryPolicy = EXTRACTION_POLICY,
    is_retryable: Callable[[BaseException], bool] = is_retryable,
    is_rotatable: Callable[[BaseException], bool] = is_rotatable,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "request",
) -> T:
    """Run ``operation(client)`` until it succeeds or the policy gives up.

    Args:
        operation: Callable receiving a client bound to the current key.
        rotator: Key pool to draw clients from and rotate on key errors.
        policy: Attempt bound and delays.
        is_retryable: Predicate for errors worth another attempt.
        is_rotatable: Predicate for errors that call for the next key.
        sleep: Injected for tests.
        label: Short name used in log lines.

    Raises:
        MissingCredentialsError: No key is configured, or every key in the
            pool was rejected during this call.
        RetryExhaustedError: The bound was reached before the pool ran out.
    """
    failures = 0
    last_error: Optional[BaseException] = None
    rejected = set()

    for attempt in range(1, policy.max_attempts + 1):
        key = rotator.current_key()
        client = rotator.current_client()
        try:
            return operation(client)
        except MissingCredentialsError:
            raise
        except Exception as e:
            last_error = e

            if is_rotatable(e):
                log_event(
                    "key_error",
                    {
                        "message": f"{label}: key rejected on attempt {attempt}: {e}",
                        "label": label,
                        "attempt": attempt,
                        "key_position": rotator.position,
                    },
                    level=logging.WARNING,
                    logger_name="retry",
                )
                rejected.add(key)
                if len(rejected) >= len(rotator.keys()) or not rotator.rotate():
                    raise MissingCredentialsError() from e
                if attempt >= policy.max_attempts:
                    break
                sleep(policy.rotate_delay)
                continue

            if not is_retryable(e):
                raise

            if attempt >= policy.max_attempts:
                break

            delay = policy.backoff(failures)
            failures += 1
            logger.warning(
                f"{label}: attempt {attempt}/{policy.max_attempts} failed ({e}), "
                f"retrying in {delay:.1f}s"
            )
            sleep(delay)

    logger.error(f"{label}: giving up after {policy.max_attempts} attempts")
    raise RetryExhaustedError(
        f"{label} failed after {policy.max_attempts} attempts: {last_error}",
        attempts=policy.max_attempts,
    ) from last_error
