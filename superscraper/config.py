"""Configuration and constants for the price-matrix engine."""

import os
from typing import Dict, FrozenSet, List

__all__ = [
    "LLM_MODEL",
    "SEARCH_MODELS",
    "API_KEYS_ENV",
    "MIN_KEY_LENGTH",
    "MATCH_THRESHOLD",
    "PARTIAL_MATCH_CREDIT",
    "EXTRACT_MAX_ATTEMPTS",
    "CLASSIFY_MAX_ATTEMPTS",
    "RETRY_BASE_DELAY",
    "RETRY_BACKOFF_MULTIPLIER",
    "MAX_RETRY_DELAY",
    "ROTATE_DELAY",
    "CLASSIFY_BATCH_SIZE",
    "CLASSIFY_BATCH_DELAY",
    "CODE_CHUNK_SIZE",
    "MAX_HTML_CHARS",
    "MIN_HTML_CHARS",
    "MANUAL_INPUT_MARKER",
    "PRICE_ROUNDING_STEP",
    "DEFAULT_SOURCE_NAMES",
    "MAX_SOURCES",
    "DISCOUNT_MARKETPLACES",
    "STORE_SEARCH_TIMEOUT",
    "STORE_SEARCH_MAX_RETRIES",
    "REGION_SEARCH_DELAY",
    "VIETNAM_REGIONS",
    "HEADERS",
    "REQUEST_TIMEOUT",
    "DB_PATH",
    "STORAGE_SCHEMA_VERSION",
    "MAX_LOG_LINES",
]

# LLM Configuration
LLM_MODEL = os.getenv("SUPERSCRAPER_MODEL", "gpt-4.1-mini")

# Store search cycles through models, not credentials
SEARCH_MODELS: List[str] = [
    m.strip()
    for m in os.getenv("SUPERSCRAPER_SEARCH_MODELS", "gpt-4.1-mini,gpt-4.1,gpt-4o-mini").split(",")
    if m.strip()
]

# Comma or newline separated list of keys
API_KEYS_ENV = "OPENAI_API_KEY"
MIN_KEY_LENGTH = 10  # keys must be strictly longer than this

# Fuzzy matching. Tuned for the bundled catalog; expose for tuning, don't "fix".
MATCH_THRESHOLD = float(os.getenv("SUPERSCRAPER_MATCH_THRESHOLD", "0.85"))
PARTIAL_MATCH_CREDIT = float(os.getenv("SUPERSCRAPER_PARTIAL_CREDIT", "0.8"))

# Retry settings (seconds)
EXTRACT_MAX_ATTEMPTS = 15
CLASSIFY_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 2.0
RETRY_BACKOFF_MULTIPLIER = 1.5
MAX_RETRY_DELAY = 30.0
ROTATE_DELAY = 1.0

# Classification batching
CLASSIFY_BATCH_SIZE = int(os.getenv("SUPERSCRAPER_BATCH_SIZE", "30"))
CLASSIFY_BATCH_DELAY = 0.5
CODE_CHUNK_SIZE = 50

# HTML payload limits
MAX_HTML_CHARS = 200_000
MIN_HTML_CHARS = 50
MANUAL_INPUT_MARKER = "html-input-manual"

# Voucher prices are rounded to the nearest step for display (lossy)
PRICE_ROUNDING_STEP = 100

# Sources
MAX_SOURCES = 5
DEFAULT_SOURCE_NAMES: List[str] = ["SHOPEE", "LAZADA", "TIKTOK", "TIKI", "HASAKI"]
DISCOUNT_MARKETPLACES: FrozenSet[str] = frozenset({"SHOPEE", "TIKTOK"})

# Store search
STORE_SEARCH_TIMEOUT = 45.0
STORE_SEARCH_MAX_RETRIES = 2
REGION_SEARCH_DELAY = 1.5

VIETNAM_REGIONS: Dict[str, List[str]] = {
    "NORTH": [
        "Hà Nội", "Hải Phòng", "Quảng Ninh", "Bắc Ninh", "Hải Dương",
        "Hưng Yên", "Nam Định", "Thái Bình", "Vĩnh Phúc", "Ninh Bình",
        "Hà Nam", "Phú Thọ", "Bắc Giang", "Thái Nguyên", "Lạng Sơn",
    ],
    "CENTRAL": [
        "Đà Nẵng", "Thừa Thiên Huế", "Khánh Hòa", "Nghệ An", "Thanh Hóa",
        "Hà Tĩnh", "Quảng Bình", "Quảng Trị", "Quảng Nam", "Quảng Ngãi",
        "Bình Định", "Phú Yên", "Ninh Thuận", "Bình Thuận", "Kon Tum",
        "Gia Lai", "Đắk Lắk", "Đắk Nông", "Lâm Đồng",
    ],
    "SOUTH": [
        "Hồ Chí Minh", "Bình Dương", "Đồng Nai", "Bà Rịa - Vũng Tàu", "Tây Ninh",
        "Bình Phước", "Long An", "Tiền Giang", "Bến Tre", "Trà Vinh",
        "Vĩnh Long", "Đồng Tháp", "An Giang", "Kiên Giang", "Cần Thơ",
        "Hậu Giang", "Sóc Trăng", "Bạc Liêu", "Cà Mau",
    ],
}

# HTTP settings for optional page fetching
HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; superscraper/0.1)",
    "Accept-Language": "vi-VN,vi;q=0.9,en;q=0.8",
}
REQUEST_TIMEOUT = 15

# Local state
DB_PATH = os.getenv("SUPERSCRAPER_DB", "data/superscraper.db")
STORAGE_SCHEMA_VERSION = 1

# Running log feed cap
MAX_LOG_LINES = 1000
