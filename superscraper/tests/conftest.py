"""Shared fixtures: fake OpenAI responses, key pools and temp state."""

import json
from types import SimpleNamespace
from typing import Any, List
from unittest.mock import MagicMock

import pytest

from superscraper.keys import KeyRotator
from superscraper.models import RawProductRecord, SourceConfig

KEY_A = "sk-test-aaaaaaaaaaaa"
KEY_B = "sk-test-bbbbbbbbbbbb"


def make_response(payload: Any) -> SimpleNamespace:
    """A Responses API result whose text is ``payload`` (JSON-encoded unless str)."""
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    reasoning = SimpleNamespace(type="reasoning", content=None)
    message = SimpleNamespace(type="message", content=[SimpleNamespace(text=text)])
    return SimpleNamespace(output=[reasoning, message])


class StatusError(Exception):
    """Stand-in for an HTTP error carrying a status code."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


@pytest.fixture
def no_sleep():
    """Records requested delays instead of sleeping."""
    calls: List[float] = []

    def sleep(seconds: float) -> None:
        calls.append(seconds)

    sleep.calls = calls
    return sleep


@pytest.fixture
def mock_openai_client():
    """Create a mock OpenAI client for testing without API calls."""
    client = MagicMock()
    client.with_options.return_value = client
    return client


@pytest.fixture
def rotator_factory(mock_openai_client):
    """Build rotators whose clients all share one mock and record the key used."""

    def build(keys=(KEY_A, KEY_B)):
        used: List[str] = []

        def factory(api_key: str):
            used.append(api_key)
            return mock_openai_client

        rotator = KeyRotator(default_keys=list(keys), client_factory=factory)
        rotator.used_keys = used
        return rotator

    return build


@pytest.fixture
def rotator(rotator_factory):
    return rotator_factory()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "state" / "test.db")


@pytest.fixture
def sources():
    return [
        SourceConfig(name="SHOPEE", voucher_percent=10),
        SourceConfig(name="LAZADA", voucher_percent=10),
        SourceConfig(name="TIKTOK"),
        SourceConfig(name="TIKI"),
        SourceConfig(name="HASAKI"),
    ]


@pytest.fixture
def sample_records():
    return [
        RawProductRecord(
            raw_name="Nước tẩy trang sen Hậu Giang 140ml",
            price=50000,
            source_index=1,
            product_url="https://shopee.vn/p/1",
        ),
        RawProductRecord(
            raw_name="Combo 2 Nước Tẩy Trang Sen Hậu Giang 140Ml",
            price=90000,
            source_index=2,
            product_url="https://lazada.vn/p/2",
        ),
        RawProductRecord(
            raw_name="Dầu gội bưởi không sulfate 310ml",
            price=120000,
            source_index=2,
            product_url="https://lazada.vn/p/3",
        ),
    ]


@pytest.fixture
def respond():
    """Factory for fake Responses API results."""
    return make_response


@pytest.fixture
def status_error():
    """Exception class carrying an HTTP status code."""
    return StatusError
