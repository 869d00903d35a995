# -*- coding: utf-8 -*-
"""Stock sheet import: received quantities added to the product catalogue.

Rows are (Product, Category, Date, Quantity). Applying a validated sheet adds
each quantity to the matching product, or creates the product when nothing
matches, in sequential batches.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from tqdm import tqdm

from src.reconciliation.column_mapping import mapping_from_rows
from src.reconciliation.models import (
    CanonicalField,
    CanonicalProduct,
    FieldKind,
    ImportContext,
    RawRow,
    StockImportPreview,
    StockImportResult,
    StockRow,
    ValidationError,
    row_number,
)
from src.reconciliation.sales_import import no_data_error
from src.reconciliation.signature import create_product_signature, default_min_stock
from src.reconciliation.store import PRODUCTS, CanonicalStore, StoreError
from src.reconciliation.validators import validate_field
from src.utils.config import DEFAULT_VALIDATION_CONFIG, ValidationConfig
from src.utils.data_cleaning import cell_text, is_blank, normalize_key, normalize_whitespace

logger = logging.getLogger(__name__)

BATCH_SIZE = 100
WORD_MATCH_RATIO = 0.7


def validate_stock_import(
    raw_rows: Sequence[RawRow],
    config: Optional[ValidationConfig] = None,
) -> StockImportPreview:
    """Validate a stock sheet. Quantity is a whole number >= 0."""
    config = config or DEFAULT_VALIDATION_CONFIG
    preview = StockImportPreview()

    if not raw_rows:
        preview.errors.append(no_data_error())
        return preview

    mapping = mapping_from_rows(raw_rows, ImportContext.STOCK)
    structural = mapping.missing_columns_error()
    if structural is not None:
        logger.error(f"Stock file rejected, missing columns: {structural.value}")
        preview.errors.append(structural)
        return preview

    F = CanonicalField
    for index, raw in enumerate(raw_rows):
        row = row_number(raw, index)
        row_errors: List[ValidationError] = []

        product = cell_text(mapping.value(raw, F.PRODUCT))
        if not product:
            row_errors.append(
                ValidationError(row, F.PRODUCT.value, product, "Product name is required")
            )

        category = normalize_whitespace(cell_text(mapping.value(raw, F.CATEGORY)))
        if not category:
            row_errors.append(
                ValidationError(row, F.CATEGORY.value, category, "Category is required")
            )

        raw_quantity = mapping.value(raw, F.QUANTITY)
        quantity = None
        if is_blank(raw_quantity):
            row_errors.append(
                ValidationError(row, F.QUANTITY.value, raw_quantity, "Quantity is required")
            )
        else:
            result = validate_field(FieldKind.STOCK, raw_quantity, row, config, F.QUANTITY.value)
            row_errors.extend(result.errors)
            preview.warnings.extend(result.warnings)
            quantity = result.cleaned_value

        date_result = validate_field(
            FieldKind.DATE, mapping.value(raw, F.DATE), row, config, F.DATE.value
        )
        row_errors.extend(date_result.errors)

        preview.errors.extend(row_errors)
        if not row_errors:
            preview.data.append(
                StockRow(
                    row=row,
                    product=product,
                    category=category,
                    date=date_result.cleaned_value,
                    quantity=quantity,
                )
            )

    logger.info(
        f"Stock import: {len(raw_rows)} rows, {len(preview.data)} valid, "
        f"{len(preview.errors)} errors"
    )
    return preview


def find_matching_product(
    row: StockRow, products: Sequence[CanonicalProduct]
) -> Optional[CanonicalProduct]:
    """Product for a stock row within the same category.

    Tried in order: exact name, name containment either way, then at least
    70% of the row's significant words (longer than 2 characters) found in
    the product name.
    """
    name = normalize_key(row.product)
    category = normalize_key(row.category)
    candidates = [p for p in products if normalize_key(p.category) == category]

    for product in candidates:
        if normalize_key(product.name) == name:
            return product

    for product in candidates:
        product_name = normalize_key(product.name)
        if product_name and (product_name in name or name in product_name):
            return product

    import_words = [w for w in name.split(" ") if len(w) > 2]
    if not import_words:
        return None
    needed = math.ceil(len(import_words) * WORD_MATCH_RATIO)
    for product in candidates:
        product_words = [w for w in normalize_key(product.name).split(" ") if len(w) > 2]
        matching = [
            w for w in import_words if any(pw in w or w in pw for pw in product_words)
        ]
        if len(matching) >= needed:
            return product
    return None


@dataclass
class _Update:
    name: str
    old_stock: int
    new_stock: int
    added: int
    category: str = ""


def _units(updated: List[_Update], created: List[_Update]) -> int:
    return sum(u.added for u in updated) + sum(c.added for c in created)


def _summary(updated: List[_Update], created: List[_Update], batches: int, batch_size: int) -> str:
    units = _units(updated, created)
    lines = [
        "Stock import completed.",
        "",
        f"- {len(updated)} existing products updated",
        f"- {len(created)} new products created",
        f"- {units} units added in total",
        f"- Processed in {batches} batches of max {batch_size} products",
    ]
    if updated:
        lines += ["", "Updated products:"]
        lines += [f"- {u.name}: {u.old_stock} -> {u.new_stock} (+{u.added})" for u in updated]
    if created:
        lines += ["", "New products:"]
        lines += [f"- {c.name} ({c.category}): {c.added} units" for c in created]
    return "\n".join(lines)


def apply_stock_import(
    store: CanonicalStore,
    preview: StockImportPreview,
    batch_size: int = BATCH_SIZE,
    collection: str = PRODUCTS,
    show_progress: bool = False,
) -> StockImportResult:
    """Add a validated stock sheet to the product catalogue.

    Existing products get stock += quantity and initial_stock raised to the
    new stock when higher. Unknown products are created with price 0 and
    min_stock = max(ceil(0.2 * quantity), 5).

    Returns:
        StockImportResult. A failed batch commit stops the import; earlier
        batches stay applied.
    """
    if not preview.data:
        return StockImportResult(success=False, errors=["No stock rows to import"])

    products: List[CanonicalProduct] = [
        CanonicalProduct.from_document(doc["id"], doc) for doc in store.list_documents(collection)
    ]
    updated: List[_Update] = []
    created: List[_Update] = []
    batches = [preview.data[i : i + batch_size] for i in range(0, len(preview.data), batch_size)]
    logger.info(f"Applying {len(preview.data)} stock rows in {len(batches)} batches")

    for batch_index, chunk in enumerate(
        tqdm(batches, desc="Importing stock", unit="batch", disable=not show_progress), start=1
    ):
        write_batch = store.batch()
        pending_updates: List[_Update] = []
        pending_created: List[_Update] = []
        now = datetime.now().isoformat()

        for row in chunk:
            product = find_matching_product(row, products)
            if product is not None:
                old_stock = product.stock
                product.stock = old_stock + row.quantity
                product.initial_stock = max(product.initial_stock or old_stock, product.stock)
                product.updated_at = now
                write_batch.update(
                    collection,
                    product.id,
                    {
                        "stock": product.stock,
                        "initial_stock": product.initial_stock,
                        "updated_at": now,
                    },
                )
                pending_updates.append(_Update(product.name, old_stock, product.stock, row.quantity))
            else:
                product = CanonicalProduct(
                    id=store.new_id(collection),
                    name=row.product.strip(),
                    category=row.category.strip(),
                    signature=create_product_signature(row.product, row.category),
                    price=0.0,
                    stock=row.quantity,
                    initial_stock=row.quantity,
                    min_stock=default_min_stock(row.quantity),
                    description=f"Created automatically on {row.date.strftime('%d/%m/%Y')}",
                    created_at=now,
                    updated_at=now,
                )
                write_batch.set(collection, product.id, product.to_document())
                products.append(product)
                pending_created.append(
                    _Update(product.name, 0, row.quantity, row.quantity, product.category)
                )

        try:
            write_batch.commit()
        except StoreError as e:
            logger.error(f"Stock import batch {batch_index} failed: {e}")
            return StockImportResult(
                success=False,
                products_updated=len(updated),
                products_created=len(created),
                units_added=_units(updated, created),
                errors=[f"Batch {batch_index} failed: {e}"],
                summary=_summary(updated, created, batch_index - 1, batch_size),
            )

        updated.extend(pending_updates)
        created.extend(pending_created)
        logger.info(f"Batch {batch_index}/{len(batches)} committed ({len(chunk)} rows)")

    return StockImportResult(
        success=True,
        products_updated=len(updated),
        products_created=len(created),
        units_added=_units(updated, created),
        summary=_summary(updated, created, len(batches), batch_size),
    )
