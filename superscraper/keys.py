"""API key pool with round-robin rotation on quota or auth errors."""

import os
import re
import threading
from typing import Any, Callable, List, Optional, Sequence

from superscraper.config import API_KEYS_ENV, MIN_KEY_LENGTH
from superscraper.errors import MissingCredentialsError
from superscraper.logging_config import get_logger

__all__ = ["parse_keys", "KeyRotator"]

logger = get_logger("keys")

_KEY_SPLIT_RE = re.compile(r"[,\n]+")


def parse_keys(raw: Optional[str]) -> List[str]:
    """Split a user-supplied key string on commas/newlines.

    Keys of ``MIN_KEY_LENGTH`` characters or fewer are dropped, duplicates are
    removed and the original order is kept.
    """
    if not raw:
        return []
    keys: List[str] = []
    for part in _KEY_SPLIT_RE.split(raw):
        key = part.strip()
        if len(key) > MIN_KEY_LENGTH and key not in keys:
            keys.append(key)
    return keys


def _default_client_factory(api_key: str) -> Any:
    from superscraper.llm import default_client_factory

    return default_client_factory(api_key)


class KeyRotator:
    """Owns the credential list and the rotation pointer.

    The override source (typically the key string the user saved in local
    state) wins over the default source whenever it yields at least one key.
    A changed key list resets the pointer to the first key.

    Usage:
        rotator = KeyRotator(default_keys=["sk-aaaaaaaaaaaa", "sk-bbbbbbbbbbbb"])
        client = rotator.current_client()
        if not rotator.rotate():
            raise MissingCredentialsError()
    """

    def __init__(
        self,
        default_keys: Optional[Sequence[str]] = None,
        override_source: Optional[Callable[[], Optional[str]]] = None,
        client_factory: Optional[Callable[[str], Any]] = None,
        env_var: str = API_KEYS_ENV,
    ):
        self._default_keys = list(default_keys) if default_keys is not None else None
        self._override_source = override_source
        self._client_factory = client_factory or _default_client_factory
        self._env_var = env_var
        self._keys: List[str] = []
        self._origin: Optional[str] = None
        self._index = 0
        self._lock = threading.Lock()

    def _load_default(self) -> List[str]:
        if self._default_keys is not None:
            return parse_keys(",".join(self._default_keys))
        return parse_keys(os.getenv(self._env_var, ""))

    def keys(self) -> List[str]:
        """Current key list, re-checking the override source first."""
        with self._lock:
            override = parse_keys(self._override_source()) if self._override_source else []
            if override:
                if override != self._keys or self._origin != "override":
                    logger.info(f"Loaded {len(override)} API key(s) from settings")
                    self._keys, self._origin, self._index = override, "override", 0
                return list(self._keys)

            if self._origin != "default":
                self._keys, self._origin, self._index = self._load_default(), "default", 0
                if self._keys:
                    logger.info(f"Loaded {len(self._keys)} API key(s) from {self._env_var}")
            return list(self._keys)

    @property
    def position(self) -> int:
        """Zero-based index of the key in use."""
        return self._index

    def current_key(self) -> str:
        """The key at the rotation pointer.

        Raises:
            MissingCredentialsError: If no key is configured.
        """
        keys = self.keys()
        if not keys:
            raise MissingCredentialsError()
        return keys[self._index % len(keys)]

    def current_client(self) -> Any:
        """A client bound to the current key."""
        return self._client_factory(self.current_key())

    def rotate(self) -> bool:
        """Advance to the next key. False when there is nothing to rotate to."""
        keys = self.keys()
        if len(keys) <= 1:
            logger.warning("Only one API key configured, cannot rotate")
            return False
        with self._lock:
            previous = self._index
            self._index = (self._index + 1) % len(keys)
            logger.warning(
                f"Rotating API key: #{previous + 1} -> #{self._index + 1} (of {len(keys)})"
            )
        return True
