# -*- coding: utf-8 -*-
"""Rebuild the canonical product and sale collections from a sales log.

Reads the whole sales log (or accepts one), walks it in fixed-size batches,
resolves every sale onto a canonical product by signature and writes the
cleaned sale rows. Each batch commits atomically and must be acknowledged
before the next one starts, so products created in batch N are found, not
recreated, in batch N+1.

Callers must not run two rebuilds against the same store at once.

Usage:
    from src.reconciliation.rebuild import rebuild_clean_database

    result = rebuild_clean_database(store)
    print(result.summary)
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from tqdm import tqdm

from src.reconciliation.models import CanonicalProduct, CanonicalSale, RebuildResult, SaleRecord
from src.reconciliation.signature import (
    DEFAULT_MIN_STOCK,
    MIN_STOCK_RATIO,
    ProductResolver,
    create_product_signature,
)
from src.reconciliation.store import (
    PRODUCTS_CLEAN,
    REGISTER_SALES,
    SALES_CLEAN,
    CanonicalStore,
    StoreError,
)
from src.reconciliation.validators import derive_unit_price
from src.utils.data_cleaning import (
    cell_text,
    is_blank,
    parse_amount,
    parse_date,
    parse_integer,
)

logger = logging.getLogger(__name__)

BATCH_SIZE = 500
NO_DATA_MESSAGE = "No sales data found to process"

SourceSale = Union[Mapping[str, Any], SaleRecord]


def _as_document(sale: SourceSale) -> Dict[str, Any]:
    if isinstance(sale, SaleRecord):
        return {"id": f"row-{sale.row}", **sale.to_document()}
    return dict(sale)


def _number(doc: Mapping[str, Any], key: str) -> float:
    value = parse_amount(doc.get(key))
    if value is None:
        raise ValueError(f"invalid {key}: {doc.get(key)!r}")
    return value


def build_clean_sale(
    doc: Mapping[str, Any],
    sale_id: str,
    product_id: str,
    signature: str,
    now: str,
) -> CanonicalSale:
    """Canonical sale row referencing a resolved product.

    Raises:
        ValueError: If the source sale lacks a usable date or total, or its
            quantity is not a positive whole number.
    """
    parsed_date = parse_date(doc.get("date"))
    if parsed_date is None:
        raise ValueError(f"invalid date: {doc.get('date')!r}")

    quantity = parse_integer(doc.get("quantity"))
    if quantity is None or quantity < 1:
        raise ValueError(f"invalid quantity: {doc.get('quantity')!r}")
    total = _number(doc, "total")
    price = parse_amount(doc.get("price"))
    if price is None:
        price = derive_unit_price(total, quantity)

    return CanonicalSale(
        id=sale_id,
        product_id=product_id,
        product_signature=signature,
        product=cell_text(doc.get("product")),
        category=cell_text(doc.get("category")),
        register=cell_text(doc.get("register")),
        date=parsed_date.isoformat(),
        seller=cell_text(doc.get("seller")),
        quantity=quantity,
        price=price,
        total=total,
        created_at=now,
        cleaned=True,
    )


def _summary(sales_processed: int, products_created: int, error_count: int) -> str:
    return "\n".join(
        [
            "Database rebuild completed.",
            "",
            "Summary:",
            f"- {sales_processed} sales processed and cleaned",
            f"- {products_created} unique products created",
            f"- {error_count} errors encountered",
            "",
            "Collections written:",
            f"- {PRODUCTS_CLEAN}: deduplicated products with stable signatures",
            f"- {SALES_CLEAN}: cleaned sales referencing their product id",
            "",
            "Signature format: lower(trim(name)) + '|' + lower(trim(category))",
        ]
    )


def _fatal(
    error: Exception, products_created: int, sales_processed: int, errors: List[str]
) -> RebuildResult:
    return RebuildResult(
        success=False,
        products_created=products_created,
        sales_processed=sales_processed,
        errors=errors + [f"Fatal error: {error}"],
        summary=f"Failed to rebuild clean database: {error}",
    )


def rebuild_clean_database(
    store: CanonicalStore,
    source_sales: Optional[Sequence[SourceSale]] = None,
    batch_size: int = BATCH_SIZE,
    default_min_stock: int = DEFAULT_MIN_STOCK,
    min_stock_ratio: float = MIN_STOCK_RATIO,
    show_progress: bool = False,
) -> RebuildResult:
    """Rebuild products_clean and register_sales_clean.

    Args:
        store: Canonical store to read from and write to
        source_sales: Sales to process. If None, the register_sales log is read.
        batch_size: Records per atomic write
        default_min_stock: min_stock given to newly created products
        min_stock_ratio: Ratio used when a source sale carries a stock figure
        show_progress: Show a tqdm progress bar over batches

    Returns:
        RebuildResult. Never raises for data or store problems; a failed
        commit ends the run with success=False while earlier batches stay
        committed.
    """
    logger.info("=" * 70)
    logger.info("REBUILD CLEAN DATABASE")
    logger.info("=" * 70)

    errors: List[str] = []
    sales_processed = 0
    products_created = 0
    resolver = ProductResolver(store, PRODUCTS_CLEAN, default_min_stock, min_stock_ratio)

    try:
        if source_sales is None:
            logger.info(f"Fetching sales from {REGISTER_SALES}...")
            sales = store.list_documents(REGISTER_SALES)
            logger.info(f"Fetched {len(sales)} sales records")
        else:
            sales = [_as_document(sale) for sale in source_sales]

        if not sales:
            logger.warning(NO_DATA_MESSAGE)
            return RebuildResult(
                success=False,
                errors=[NO_DATA_MESSAGE],
                summary=NO_DATA_MESSAGE,
            )

        batches = [sales[i : i + batch_size] for i in range(0, len(sales), batch_size)]
        logger.info(f"Processing {len(batches)} batches of max {batch_size} sales each")

        for batch_index, chunk in enumerate(
            tqdm(batches, desc="Rebuilding", unit="batch", disable=not show_progress),
            start=1,
        ):
            logger.info(f"Processing batch {batch_index}/{len(batches)} ({len(chunk)} sales)...")
            write_batch = store.batch()
            batch_processed = 0

            for doc in chunk:
                sale_id = doc.get("id", "?")
                try:
                    if is_blank(doc.get("product")) or is_blank(doc.get("category")):
                        raise ValueError("product and category are required")

                    now = datetime.now().isoformat()
                    clean_sale = build_clean_sale(
                        doc,
                        store.new_id(SALES_CLEAN),
                        product_id="",
                        signature=create_product_signature(doc["product"], doc["category"]),
                        now=now,
                    )
                    stock = doc.get("stock")
                    resolution = resolver.resolve(
                        clean_sale.product,
                        clean_sale.category,
                        clean_sale.price,
                        write_batch,
                        stock=int(stock) if isinstance(stock, (int, float)) and stock > 0 else None,
                        now=now,
                    )
                    clean_sale.product_id = resolution.product_id
                    write_batch.set(SALES_CLEAN, clean_sale.id, clean_sale.to_document())
                    batch_processed += 1
                except Exception as e:
                    logger.error(f"Error processing sale {sale_id}: {e}")
                    errors.append(f"Error processing sale {sale_id}: {e}")

            write_batch.commit()
            sales_processed += batch_processed
            products_created = resolver.created
            logger.info(f"Batch {batch_index} committed")

    except StoreError as e:
        logger.error(f"Store failure, rebuild aborted: {e}")
        return _fatal(e, products_created, sales_processed, errors)
    except Exception as e:
        logger.exception(f"Rebuild aborted: {e}")
        return _fatal(e, products_created, sales_processed, errors)

    summary = _summary(sales_processed, products_created, len(errors))
    logger.info(
        f"Rebuild complete: {sales_processed} sales, "
        f"{products_created} new products, {len(errors)} errors"
    )
    return RebuildResult(
        success=True,
        products_created=products_created,
        sales_processed=sales_processed,
        errors=errors,
        summary=summary,
    )


def get_clean_product_by_signature(
    store: CanonicalStore, signature: str
) -> Optional[CanonicalProduct]:
    """Canonical product with a given signature, or None."""
    matches = store.query_by_field(PRODUCTS_CLEAN, "signature", signature)
    if not matches:
        return None
    doc = matches[0]
    return CanonicalProduct.from_document(doc["id"], doc)


def get_clean_sales_for_product(store: CanonicalStore, product_id: str) -> List[Dict[str, Any]]:
    """Cleaned sale documents referencing a product id."""
    return store.query_by_field(SALES_CLEAN, "product_id", product_id)
