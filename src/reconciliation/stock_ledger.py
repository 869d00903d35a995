# -*- coding: utf-8 -*-
"""Stock ledger: current stock from a baseline, a cutoff date and the sales log.

For each product:
- No cutoff: final = max(0, initial_stock - all matched sales)
- Cutoff set: sales strictly before the cutoff day are ignored (and flag the
  product as inconsistent); the rest are deducted

Sales are matched by name/category rather than product id so legacy sale logs
without a foreign key work too. Matched lists are cached per product id in a
ProductSalesCache that callers clear whenever the sales log changes.

Usage:
    cache = ProductSalesCache()
    result = calculate_stock_final(product, sales, cache)
    result.final_stock, result.has_inconsistent_stock
"""

import logging
import threading
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from src.reconciliation.models import (
    CanonicalProduct,
    SaleEvent,
    Severity,
    StockCalculationResult,
    StockConfigWarning,
)
from src.reconciliation.store import PRODUCTS_CLEAN, CanonicalStore
from src.utils.data_cleaning import cell_text, normalize_key, parse_amount, parse_date, parse_iso_day

logger = logging.getLogger(__name__)

SaleLike = Union[SaleEvent, Mapping[str, Any]]


def to_sale_event(sale: SaleLike) -> SaleEvent:
    """Ledger view of a sale document, SaleRecord-like mapping or SaleEvent."""
    if isinstance(sale, SaleEvent):
        return sale

    parsed = parse_date(sale.get("date"))
    return SaleEvent(
        id=cell_text(sale.get("id")),
        product=cell_text(sale.get("product")),
        category=cell_text(sale.get("category")),
        date=parsed.date() if parsed else None,
        quantity=parse_amount(sale.get("quantity")) or 0.0,
        register=cell_text(sale.get("register")),
        seller=cell_text(sale.get("seller")),
        price=parse_amount(sale.get("price")) or 0.0,
        total=parse_amount(sale.get("total")) or 0.0,
    )


def to_sale_events(sales: Iterable[SaleLike]) -> List[SaleEvent]:
    return [to_sale_event(sale) for sale in sales]


def as_count(value: float) -> Union[int, float]:
    return int(value) if float(value).is_integer() else value


def total_quantity(sales: Iterable[SaleEvent]) -> Union[int, float]:
    return as_count(sum(sale.quantity for sale in sales))


class ProductSalesCache:
    """Matched sales per product id.

    Must be cleared (or the product invalidated) whenever the sales log
    changes; stale entries are returned as-is.
    """

    def __init__(self):
        self._entries: Dict[str, List[SaleEvent]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, product_id: str) -> Optional[List[SaleEvent]]:
        with self._lock:
            entry = self._entries.get(product_id)
            if entry is None:
                self.misses += 1
            else:
                self.hits += 1
            return entry

    def put(self, product_id: str, sales: List[SaleEvent]) -> None:
        with self._lock:
            self._entries[product_id] = sales

    def invalidate(self, product_id: str) -> None:
        """Drop one product's entry."""
        with self._lock:
            self._entries.pop(product_id, None)

    def clear(self) -> None:
        """Drop every entry. Call after any change to the sales log."""
        with self._lock:
            self._entries.clear()
        logger.debug("Product sales cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, product_id: str) -> bool:
        with self._lock:
            return product_id in self._entries


def sale_matches_product(product: CanonicalProduct, sale: SaleEvent) -> bool:
    """Exact name+category match, or containment either way within one category."""
    product_name = normalize_key(product.name)
    product_category = normalize_key(product.category)
    sale_name = normalize_key(sale.product)

    if normalize_key(sale.category) != product_category:
        return False
    if sale_name == product_name:
        return True
    if not sale_name or not product_name:
        return False
    return sale_name in product_name or product_name in sale_name


def find_product_sales(
    product: CanonicalProduct,
    sales: Sequence[SaleLike],
    cache: Optional[ProductSalesCache] = None,
) -> List[SaleEvent]:
    """All sales matching a product, served from the cache when possible."""
    if cache is not None:
        cached = cache.get(product.id)
        if cached is not None:
            return cached

    matched = [event for event in to_sale_events(sales) if sale_matches_product(product, event)]

    if cache is not None:
        cache.put(product.id, matched)
    return matched


def cutoff_day(product: CanonicalProduct) -> Optional[date]:
    """The product's initial stock date, or None when unset or unparseable."""
    if not product.initial_stock_date:
        return None
    parsed = parse_iso_day(product.initial_stock_date)
    if parsed is None:
        parsed_dt = parse_date(product.initial_stock_date)
        parsed = parsed_dt.date() if parsed_dt else None
    if parsed is None:
        logger.warning(
            f"Product {product.id}: unparseable initial stock date "
            f"{product.initial_stock_date!r}, counting all sales"
        )
    return parsed


def _split_at(sales: Iterable[SaleEvent], cutoff: date):
    before: List[SaleEvent] = []
    after: List[SaleEvent] = []
    for sale in sales:
        # Undated sales are deducted.
        if sale.date is not None and sale.date < cutoff:
            before.append(sale)
        else:
            after.append(sale)
    return before, after


def calculate_stock_final(
    product: CanonicalProduct,
    sales: Sequence[SaleLike],
    cache: Optional[ProductSalesCache] = None,
) -> StockCalculationResult:
    """Compute a product's current stock.

    Args:
        product: Product with initial_stock and optional initial_stock_date
        sales: The full sales corpus, not only recent imports
        cache: Optional per-product match cache

    Returns:
        StockCalculationResult with final_stock >= 0.
    """
    initial_stock = product.initial_stock or 0
    product_sales = find_product_sales(product, sales, cache)

    cutoff = cutoff_day(product)
    if cutoff is None:
        sold = total_quantity(product_sales)
        return StockCalculationResult(
            final_stock=as_count(max(0, initial_stock - sold)),
            valid_sales=list(product_sales),
            ignored_sales=[],
            has_inconsistent_stock=False,
        )

    before, after = _split_at(product_sales, cutoff)
    final_stock = as_count(max(0, initial_stock - total_quantity(after)))

    warning_message = None
    if before:
        warning_message = (
            f"{len(before)} sale(s) before the stock date "
            f"({total_quantity(before)} units ignored)"
        )
        logger.debug(f"Product {product.id}: {warning_message}")

    return StockCalculationResult(
        final_stock=final_stock,
        valid_sales=after,
        ignored_sales=before,
        has_inconsistent_stock=bool(before),
        warning_message=warning_message,
    )


def validate_stock_configuration(
    product: CanonicalProduct,
    sales: Sequence[SaleLike],
    cache: Optional[ProductSalesCache] = None,
    today: Optional[date] = None,
) -> List[StockConfigWarning]:
    """Advisories about a product's stock baseline. Never blocks a calculation."""
    cutoff = cutoff_day(product)
    if cutoff is None:
        return [
            StockConfigWarning(
                type="no_initial_stock_date",
                message="No initial stock date set, all sales are counted",
                severity=Severity.INFO,
            )
        ]

    warnings: List[StockConfigWarning] = []
    today = today or date.today()
    if cutoff > today:
        warnings.append(
            StockConfigWarning(
                type="future_stock_date",
                message="The initial stock date is in the future",
                severity=Severity.WARNING,
            )
        )

    before, _ = _split_at(find_product_sales(product, sales, cache), cutoff)
    if before:
        warnings.append(
            StockConfigWarning(
                type="sales_before_stock_date",
                message=f"{len(before)} earlier sale(s) detected ({total_quantity(before)} units)",
                severity=Severity.WARNING,
            )
        )
    return warnings


def calculate_aggregated_stock_stats(
    products: Sequence[CanonicalProduct],
    sales: Sequence[SaleLike],
    cache: Optional[ProductSalesCache] = None,
) -> Dict[str, Union[int, float]]:
    """Fleet-wide stock figures, each product computed by calculate_stock_final.

    Returns:
        Dict with keys: total_products, total_stock, total_sold, out_of_stock,
        low_stock, inconsistent_stock
    """
    events = to_sale_events(sales)
    stats: Dict[str, Union[int, float]] = {
        "total_products": len(products),
        "total_stock": 0,
        "total_sold": 0,
        "out_of_stock": 0,
        "low_stock": 0,
        "inconsistent_stock": 0,
    }

    for product in products:
        result = calculate_stock_final(product, events, cache)
        stats["total_stock"] += result.final_stock
        stats["total_sold"] += total_quantity(result.valid_sales)

        if result.final_stock == 0:
            stats["out_of_stock"] += 1
        elif result.final_stock <= product.min_stock:
            stats["low_stock"] += 1

        if result.has_inconsistent_stock:
            stats["inconsistent_stock"] += 1

    return stats


def default_initial_stock_date(today: Optional[date] = None) -> str:
    """Today as YYYY-MM-DD."""
    return (today or date.today()).isoformat()


def format_stock_date(value: str) -> str:
    """Display form dd/mm/yyyy of a stored date; unparseable input is returned as-is."""
    parsed = parse_iso_day(value)
    return parsed.strftime("%d/%m/%Y") if parsed else value


def configure_product_stock(
    store: CanonicalStore,
    product_id: str,
    initial_stock: int,
    initial_stock_date: Optional[str],
    sales: Sequence[SaleLike],
    cache: Optional[ProductSalesCache] = None,
    min_stock: Optional[int] = None,
    collection: str = PRODUCTS_CLEAN,
) -> CanonicalProduct:
    """Persist a product's stock baseline and its recomputed current stock.

    Args:
        store: Canonical store
        product_id: Product to configure
        initial_stock: Baseline count (>= 0)
        initial_stock_date: Cutoff as YYYY-MM-DD, or None for no cutoff
        sales: Full sales corpus used to recompute stock
        cache: Cache whose entry for the product is invalidated
        min_stock: New alert threshold, if changing
        collection: Products collection

    Returns:
        The updated product.

    Raises:
        ValueError: If the product is unknown or the values are invalid.
    """
    if initial_stock < 0:
        raise ValueError(f"initial_stock must be >= 0, got {initial_stock}")
    if initial_stock_date and parse_iso_day(initial_stock_date) is None:
        raise ValueError(f"initial_stock_date must be YYYY-MM-DD, got {initial_stock_date!r}")

    doc = store.get_by_id(collection, product_id)
    if doc is None:
        raise ValueError(f"Product not found: {collection}/{product_id}")

    product = CanonicalProduct.from_document(product_id, doc)
    product.initial_stock = initial_stock
    product.initial_stock_date = initial_stock_date or None
    if min_stock is not None:
        product.min_stock = min_stock

    if cache is not None:
        cache.invalidate(product_id)
    result = calculate_stock_final(product, sales, cache)
    product.stock = result.final_stock
    product.updated_at = datetime.now().isoformat()

    batch = store.batch()
    batch.update(
        collection,
        product_id,
        {
            "initial_stock": product.initial_stock,
            "initial_stock_date": product.initial_stock_date,
            "min_stock": product.min_stock,
            "stock": product.stock,
            "updated_at": product.updated_at,
        },
    )
    batch.commit()

    logger.info(
        f"Configured stock for {product.name}: initial {initial_stock}"
        f" on {initial_stock_date or 'no date'}, current {product.stock}"
    )
    return product
