"""
Domain types for fetching marketplace prices and reconciling the catalog.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class VariantQuote(BaseModel):
    """Lowest ask for one marketplace size. ``ask_price`` None means no ask."""

    model_config = ConfigDict(frozen=True)

    size_eu: str
    size_us: str
    ask_price: Optional[Decimal] = None
    marketplace_variant_id: Optional[str] = None

    @property
    def has_ask(self) -> bool:
        return self.ask_price is not None


class ProductPriceSnapshot(BaseModel):
    """Normalized marketplace prices for one SKU at one point in time."""

    model_config = ConfigDict(frozen=True)

    title: str
    sku: str
    image_url: Optional[str] = None
    brand: Optional[str] = None
    variants: List[VariantQuote] = []

    @property
    def priced_variants(self) -> List[VariantQuote]:
        return [v for v in self.variants if v.has_ask]


class FailureKind(str, Enum):
    """Why a price fetch produced no snapshot."""
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    UPSTREAM_ERROR = "upstream_error"
    VALIDATION_ERROR = "validation_error"
    INTERNAL_ERROR = "internal_error"


@dataclass
class FetchFailure:
    """A price fetch that did not produce a snapshot."""

    kind: FailureKind
    detail: str
    action_hint: Optional[str] = None

    @property
    def message(self) -> str:
        if self.action_hint:
            return f"{self.detail} {self.action_hint}"
        return self.detail


@dataclass
class StorefrontVariant:
    """A variant as currently stored in the storefront catalog."""

    id: str
    price: Optional[str]
    sku: Optional[str]
    inventory_item_id: Optional[str]
    size: Optional[str]  # Selected value of the size option


@dataclass
class DesiredVariant:
    """A priced size the storefront product should carry."""

    size: str
    price: Decimal
    sku: str


@dataclass
class ExistingProduct:
    """Reference to a storefront product being updated."""

    id: str
    title: Optional[str] = None


@dataclass
class CreatedProduct:
    """A product returned by the create mutation, with its initial variants."""

    id: str
    title: str
    variants: List[StorefrontVariant] = field(default_factory=list)


@dataclass
class ProductDraft:
    """Input for creating a storefront product."""

    title: str
    vendor: str
    product_type: str
    option_name: str
    option_values: List[str]
    tags: List[str]
    image_url: Optional[str] = None
    status: str = "ACTIVE"


@dataclass
class ProductOption:
    id: str
    name: str
    values: List[str]


@dataclass
class BrandCollection:
    """A storefront collection named after a brand."""

    id: str
    title: str
    is_smart: bool  # Rule based; picks products up by vendor automatically


@dataclass
class ProductRef:
    """A synced storefront product and the marketplace SKU it tracks."""

    id: str
    title: str
    sku: str


@dataclass
class ReconciliationPlan:
    """Operations that converge a product's variants to the desired set."""

    to_create: List[DesiredVariant] = field(default_factory=list)
    to_update_price: List[Tuple[StorefrontVariant, Decimal]] = field(default_factory=list)
    to_delete: List[StorefrontVariant] = field(default_factory=list)
    matched: List[Tuple[StorefrontVariant, DesiredVariant]] = field(default_factory=list)
    desired_option_order: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when the product already matches the snapshot."""
        return not (self.to_create or self.to_update_price or self.to_delete)


class SyncOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class SyncResult:
    """Outcome of syncing or importing one product."""

    outcome: SyncOutcome
    status: ResultStatus
    message: str
    title: Optional[str] = None
    product_id: Optional[str] = None
    variant_count: int = 0

    @property
    def success(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    @classmethod
    def from_failure(cls, failure: FetchFailure) -> "SyncResult":
        return cls(
            outcome=SyncOutcome.FAILED,
            status=ResultStatus.ERROR,
            message=failure.message,
        )

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "outcome": self.outcome.value,
            "message": self.message,
            "title": self.title,
            "product_id": self.product_id,
            "variant_count": self.variant_count,
        }
