"""
Processor package for price fetching and catalog reconciliation.
"""

from .models import (
    VariantQuote,
    ProductPriceSnapshot,
    FailureKind,
    FetchFailure,
    ExistingProduct,
    ProductRef,
    ReconciliationPlan,
    SyncOutcome,
    ResultStatus,
    SyncResult,
)
from .rules import (
    calculate_markup,
    calculate_markup_price,
    format_price,
    SIZE_OPTION_NAME,
)
from .pipeline import PriceFetchPipeline
from .reconcile import ReconciliationEngine
from .runner import sync_product, import_product, run_bulk_sync, run_bulk_import

__all__ = [
    "VariantQuote",
    "ProductPriceSnapshot",
    "FailureKind",
    "FetchFailure",
    "ExistingProduct",
    "ProductRef",
    "ReconciliationPlan",
    "SyncOutcome",
    "ResultStatus",
    "SyncResult",
    "calculate_markup",
    "calculate_markup_price",
    "format_price",
    "SIZE_OPTION_NAME",
    "PriceFetchPipeline",
    "ReconciliationEngine",
    "sync_product",
    "import_product",
    "run_bulk_sync",
    "run_bulk_import",
]
