"""Cross-marketplace product price matrix engine."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from superscraper.catalog import Catalog, default_catalog
from superscraper.classifier import AIClassifier, classify_records
from superscraper.errors import (
    ExtractionError,
    MalformedResponseError,
    MissingCredentialsError,
    RetryExhaustedError,
    StoreSearchError,
    SuperScraperError,
)
from superscraper.extraction import ProductExtractor
from superscraper.keys import KeyRotator, parse_keys
from superscraper.matcher import ProductMatcher, classify
from superscraper.models import (
    CanonicalGroup,
    Classification,
    MarketplaceType,
    RawProductRecord,
    RecordStatus,
    SourceConfig,
    StoreResult,
)
from superscraper.pipeline import AppStatus, RunState, run_classification, run_extraction
from superscraper.reconcile import effective_price, filter_groups, gap_percent, reconcile, summarize
from superscraper.retry import RetryPolicy, with_retry
from superscraper.text import extract_quantity, normalize

__all__ = [
    # Version
    "__version__",
    # Catalog and matching
    "Catalog",
    "default_catalog",
    "ProductMatcher",
    "classify",
    "normalize",
    "extract_quantity",
    # Models
    "CanonicalGroup",
    "Classification",
    "MarketplaceType",
    "RawProductRecord",
    "RecordStatus",
    "SourceConfig",
    "StoreResult",
    # Pipeline
    "KeyRotator",
    "parse_keys",
    "RetryPolicy",
    "with_retry",
    "ProductExtractor",
    "AIClassifier",
    "classify_records",
    "AppStatus",
    "RunState",
    "run_extraction",
    "run_classification",
    # Reconciliation
    "effective_price",
    "reconcile",
    "gap_percent",
    "filter_groups",
    "summarize",
    # Errors
    "SuperScraperError",
    "MissingCredentialsError",
    "MalformedResponseError",
    "RetryExhaustedError",
    "ExtractionError",
    "StoreSearchError",
]
