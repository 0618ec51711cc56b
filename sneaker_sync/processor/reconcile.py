"""
Converges a storefront product to a marketplace price snapshot.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from ..shopify.client import ShopifyClientError, StorefrontMutationError
from .models import (
    BrandCollection,
    DesiredVariant,
    ExistingProduct,
    ProductDraft,
    ProductPriceSnapshot,
    ReconciliationPlan,
    ResultStatus,
    StorefrontVariant,
    SyncOutcome,
    SyncResult,
)
from .rules import (
    DEFAULT_PRICE_ENDING_OFFSET,
    SIZE_OPTION_NAME,
    calculate_markup_price,
    parse_size_number,
    price_changed,
    sort_size_values,
    variant_sku,
)

logger = logging.getLogger(__name__)


def _error_text(error: Exception) -> str:
    if isinstance(error, StorefrontMutationError):
        return ", ".join(error.messages)
    return str(error)


class ReconciliationEngine:
    """
    Creates or updates a storefront product from a ProductPriceSnapshot.

    Mutations for one product run strictly in sequence. Only a failed
    product create (or a product that cannot be read) fails the whole
    operation; the remaining steps are best-effort and logged.
    """

    def __init__(
        self,
        gateway,
        price_offset: Decimal = DEFAULT_PRICE_ENDING_OFFSET,
        sync_tag: str = "stockx-sync",
        default_vendor: str = "StockX Import",
        product_type: str = "Sneakers",
    ):
        self.gateway = gateway
        self.price_offset = Decimal(price_offset)
        self.sync_tag = sync_tag
        self.default_vendor = default_vendor
        self.product_type = product_type

    def desired_variants(self, snapshot: ProductPriceSnapshot) -> List[DesiredVariant]:
        """Priced sizes with storefront prices, ascending by size (first quote per size wins)."""
        seen = set()
        desired = []
        for quote in snapshot.priced_variants:
            if quote.size_eu in seen:
                continue
            seen.add(quote.size_eu)
            desired.append(DesiredVariant(
                size=quote.size_eu,
                price=calculate_markup_price(quote.ask_price, self.price_offset),
                sku=variant_sku(snapshot.sku, quote.size_eu),
            ))
        return sorted(desired, key=lambda d: parse_size_number(d.size))

    def compute_plan(
        self,
        existing: List[StorefrontVariant],
        desired: List[DesiredVariant],
    ) -> ReconciliationPlan:
        """
        Diff current variants against the desired set, keyed by size.

        A size present on both sides is matched (and repriced if needed),
        never deleted and recreated. Extra variants repeating a size are
        deleted; variants without a size value are left alone.
        """
        current: Dict[str, StorefrontVariant] = {}
        duplicates: List[StorefrontVariant] = []
        for variant in existing:
            if variant.size is None:
                continue
            if variant.size in current:
                duplicates.append(variant)
            else:
                current[variant.size] = variant
        wanted = {d.size: d for d in desired}

        plan = ReconciliationPlan(desired_option_order=[d.size for d in desired])
        for target in desired:
            variant = current.get(target.size)
            if variant is None:
                plan.to_create.append(target)
                continue
            plan.matched.append((variant, target))
            if price_changed(variant.price, target.price):
                plan.to_update_price.append((variant, target.price))

        plan.to_delete = [v for size, v in current.items() if size not in wanted] + duplicates
        return plan

    async def reconcile(
        self,
        existing: Optional[ExistingProduct],
        snapshot: ProductPriceSnapshot,
    ) -> SyncResult:
        """
        Import the snapshot as a new product, or update an existing one.

        Args:
            existing: Product to update, or None to import
            snapshot: Marketplace prices to converge to

        Returns:
            SyncResult; errors are reported in it rather than raised
        """
        try:
            if existing is None:
                return await self._import(snapshot)
            return await self._update(existing, snapshot)
        except Exception as e:
            logger.exception(f"Reconciliation failed for {snapshot.sku}")
            return SyncResult(
                outcome=SyncOutcome.FAILED,
                status=ResultStatus.ERROR,
                message=f"Sync failed: {e}",
                title=snapshot.title,
                product_id=existing.id if existing else None,
            )

    async def _import(self, snapshot: ProductPriceSnapshot) -> SyncResult:
        desired = self.desired_variants(snapshot)
        if not desired:
            return SyncResult(
                outcome=SyncOutcome.FAILED,
                status=ResultStatus.ERROR,
                message="No valid prices found for this product.",
                title=snapshot.title,
            )

        try:
            duplicate = await self.gateway.find_duplicate(snapshot.sku, snapshot.title)
        except ShopifyClientError as e:
            logger.error(f"Duplicate check failed for {snapshot.sku}: {e}")
            duplicate = None

        if duplicate is not None:
            logger.info(f"Skipping {snapshot.sku}: already exists as {duplicate.id}")
            return SyncResult(
                outcome=SyncOutcome.SKIPPED,
                status=ResultStatus.WARNING,
                message=f"Product already exists: {snapshot.title}",
                title=snapshot.title,
                product_id=duplicate.id,
            )

        collection = await self._ensure_collection(snapshot.brand)

        draft = ProductDraft(
            title=snapshot.title,
            vendor=snapshot.brand or self.default_vendor,
            product_type=self.product_type,
            option_name=SIZE_OPTION_NAME,
            option_values=[d.size for d in desired],
            tags=[self.sync_tag, snapshot.sku],
            image_url=snapshot.image_url,
        )
        try:
            created = await self.gateway.create_product(draft)
        except ShopifyClientError as e:
            logger.error(f"Product create failed for {snapshot.sku}: {e}")
            return SyncResult(
                outcome=SyncOutcome.FAILED,
                status=ResultStatus.ERROR,
                message=f"Shopify Create Error: {_error_text(e)}",
                title=snapshot.title,
            )

        logger.info(f"Created product {created.id} ({created.title})")

        plan = self.compute_plan(created.variants, desired)
        matched = await self._apply(created.id, plan, delete=False)
        await self._assign_inventory_skus(matched)

        if collection is not None and not collection.is_smart:
            try:
                await self.gateway.add_to_collection(collection.id, created.id)
            except ShopifyClientError as e:
                logger.error(f"Adding {created.id} to collection '{collection.title}' failed: {e}")

        return SyncResult(
            outcome=SyncOutcome.CREATED,
            status=ResultStatus.SUCCESS,
            message=f"Successfully imported {created.title}",
            title=created.title,
            product_id=created.id,
            variant_count=len(matched),
        )

    async def _update(self, existing: ExistingProduct, snapshot: ProductPriceSnapshot) -> SyncResult:
        desired = self.desired_variants(snapshot)
        if not desired:
            logger.warning(f"No valid prices found for {snapshot.sku}")
            return SyncResult(
                outcome=SyncOutcome.SKIPPED,
                status=ResultStatus.WARNING,
                message="No valid prices found to update.",
                title=existing.title or snapshot.title,
                product_id=existing.id,
            )

        current = await self.gateway.get_variants(existing.id)
        if current is None:
            return SyncResult(
                outcome=SyncOutcome.FAILED,
                status=ResultStatus.ERROR,
                message=f"Product not found: {existing.id}",
                title=existing.title or snapshot.title,
                product_id=existing.id,
            )

        plan = self.compute_plan(current, desired)
        logger.info(
            f"Plan for {existing.id}: {len(plan.to_create)} to create, "
            f"{len(plan.to_update_price)} to reprice, {len(plan.to_delete)} to delete"
        )

        matched = await self._apply(existing.id, plan, delete=True)
        await self._assign_inventory_skus(matched)
        await self._reorder_sizes(existing.id)

        return SyncResult(
            outcome=SyncOutcome.UPDATED,
            status=ResultStatus.SUCCESS,
            message=f"Updated {len(matched)} variants.",
            title=existing.title or snapshot.title,
            product_id=existing.id,
            variant_count=len(matched),
        )

    async def _apply(self, product_id: str, plan: ReconciliationPlan, delete: bool) -> list:
        """
        Run the plan's mutations (delete, create, reprice).

        Returns:
            (variant, desired) pairs the storefront now holds
        """
        matched = list(plan.matched)

        if delete and plan.to_delete:
            try:
                await self.gateway.delete_variants(product_id, [v.id for v in plan.to_delete])
                logger.info(f"Deleted {len(plan.to_delete)} variants from {product_id}")
            except ShopifyClientError as e:
                logger.error(f"Variant delete failed for {product_id}: {e}")

        if plan.to_create:
            try:
                created = await self.gateway.create_variants(product_id, plan.to_create)
                by_size = {d.size: d for d in plan.to_create}
                matched.extend((v, by_size[v.size]) for v in created if v.size in by_size)
                logger.info(f"Created {len(created)} variants on {product_id}")
            except ShopifyClientError as e:
                logger.error(f"Variant create failed for {product_id}: {e}")

        if plan.to_update_price:
            try:
                await self.gateway.update_prices(
                    product_id, [(v.id, price) for v, price in plan.to_update_price]
                )
                logger.info(f"Repriced {len(plan.to_update_price)} variants on {product_id}")
            except ShopifyClientError as e:
                logger.error(f"Price update failed for {product_id}: {e}")

        return sorted(matched, key=lambda pair: parse_size_number(pair[1].size))

    async def _assign_inventory_skus(self, matched: list) -> None:
        """Set SKU and tracking on each matched variant's inventory item, one at a time."""
        for variant, target in matched:
            if not variant.inventory_item_id:
                continue
            try:
                await self.gateway.update_inventory_item(variant.inventory_item_id, target.sku)
            except ShopifyClientError as e:
                logger.error(f"Inventory update failed for {target.sku}: {e}")

    async def _ensure_collection(self, brand: Optional[str]) -> Optional[BrandCollection]:
        """Find the brand's collection, creating a vendor-rule one if absent."""
        if not brand:
            return None

        try:
            collection = await self.gateway.find_collection(brand)
        except ShopifyClientError as e:
            logger.error(f"Collection lookup failed for '{brand}': {e}")
            return None

        if collection is not None:
            return collection

        try:
            return await self.gateway.create_smart_collection(brand)
        except ShopifyClientError as e:
            logger.error(f"Collection create failed for '{brand}': {e}")
            return None

    async def _reorder_sizes(self, product_id: str) -> None:
        """Sort the size option's values numerically if they are out of order."""
        try:
            option = await self.gateway.get_option(product_id, SIZE_OPTION_NAME)
            if option is None:
                return

            ordered = sort_size_values(option.values)
            if ordered == option.values:
                logger.debug(f"Size order already correct for {product_id}")
                return

            await self.gateway.reorder_option_values(product_id, option.id, ordered)
            logger.info(f"Reordered sizes for {product_id}")
        except ShopifyClientError as e:
            logger.error(f"Size reorder failed for {product_id}: {e}")
