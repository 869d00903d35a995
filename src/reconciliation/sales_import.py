# -*- coding: utf-8 -*-
"""Sales file import: header mapping, row validation and duplicate screening.

Usage:
    from src.reconciliation.sales_import import commit_sales_import, validate_sales_import

    preview = validate_sales_import(rows, existing_sales=store.list_documents(REGISTER_SALES))
    if preview.data:
        commit_sales_import(store, preview)
        cache.clear()
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from src.reconciliation.column_mapping import mapping_from_rows
from src.reconciliation.duplicates import SaleDuplicateDetector, sale_key
from src.reconciliation.models import (
    CanonicalField,
    FieldKind,
    FieldResult,
    ImportContext,
    ImportPreview,
    RawRow,
    SaleDuplicate,
    SaleRecord,
    Severity,
    ValidationError,
    row_number,
)
from src.reconciliation.sales_calculations import calculate_totals
from src.reconciliation.store import REGISTER_SALES, CanonicalStore
from src.reconciliation.validators import derive_unit_price, validate_field
from src.utils.config import DEFAULT_VALIDATION_CONFIG, ValidationConfig
from src.utils.data_cleaning import cell_text, is_blank, normalize_whitespace

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No data found in the file"


def normalize_register(value: Any) -> str:
    """Map a register label onto Register1/Register2 ("Caisse 2" -> "Register2")."""
    text = cell_text(value).lower()
    if "1" in text:
        return "Register1"
    if "2" in text:
        return "Register2"
    return "Register1"


def _required_text(row: int, field_name: str, value: Any, message: str) -> FieldResult:
    if is_blank(value):
        return FieldResult(
            is_valid=False,
            errors=[ValidationError(row, field_name, value, message, Severity.ERROR)],
        )
    return FieldResult(is_valid=True, cleaned_value=normalize_whitespace(cell_text(value)))


def no_data_error() -> ValidationError:
    return ValidationError(0, "structure", None, NO_DATA_MESSAGE, Severity.CRITICAL)


def validate_sale_row(
    raw: RawRow,
    row: int,
    mapping,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
):
    """Validate one sale row.

    Returns:
        Tuple (SaleRecord or None, errors, warnings).
    """
    F = CanonicalField
    results = {
        F.PRODUCT: validate_field(
            FieldKind.NAME, mapping.value(raw, F.PRODUCT), row, config, F.PRODUCT.value
        ),
        F.CATEGORY: _required_text(
            row, F.CATEGORY.value, mapping.value(raw, F.CATEGORY), "Product category is required"
        ),
        F.REGISTER: _required_text(
            row, F.REGISTER.value, mapping.value(raw, F.REGISTER), "Register is required"
        ),
        F.DATE: validate_field(FieldKind.DATE, mapping.value(raw, F.DATE), row, config, F.DATE.value),
        F.SELLER: _required_text(
            row, F.SELLER.value, mapping.value(raw, F.SELLER), "Seller is required"
        ),
        F.QUANTITY: validate_field(
            FieldKind.QUANTITY, mapping.value(raw, F.QUANTITY), row, config, F.QUANTITY.value
        ),
        F.AMOUNT: validate_field(
            FieldKind.AMOUNT, mapping.value(raw, F.AMOUNT), row, config, F.AMOUNT.value
        ),
    }

    errors = [e for result in results.values() for e in result.errors]
    warnings = [w for result in results.values() for w in result.warnings]
    if not all(result.is_valid for result in results.values()):
        return None, errors, warnings

    quantity = results[F.QUANTITY].cleaned_value
    total = results[F.AMOUNT].cleaned_value
    record = SaleRecord(
        row=row,
        product=results[F.PRODUCT].cleaned_value,
        category=results[F.CATEGORY].cleaned_value,
        register=normalize_register(results[F.REGISTER].cleaned_value),
        date=results[F.DATE].cleaned_value,
        seller=results[F.SELLER].cleaned_value,
        quantity=quantity,
        price=derive_unit_price(total, quantity),
        total=total,
    )
    return record, errors, warnings


def validate_sales_import(
    raw_rows: Sequence[RawRow],
    existing_sales: Iterable[Mapping[str, Any]] = (),
    config: Optional[ValidationConfig] = None,
) -> ImportPreview:
    """Validate a sales file and screen it for duplicates.

    Args:
        raw_rows: Rows keyed by original header, optionally carrying _row_index
        existing_sales: Sale documents already in the sales log
        config: Validation thresholds

    Returns:
        ImportPreview. A missing required column yields a single structural
        error and no row is validated.
    """
    config = config or DEFAULT_VALIDATION_CONFIG
    preview = ImportPreview()

    if not raw_rows:
        preview.errors.append(no_data_error())
        return preview

    mapping = mapping_from_rows(raw_rows, ImportContext.SALES)
    structural = mapping.missing_columns_error()
    if structural is not None:
        logger.error(f"Sales file rejected, missing columns: {structural.value}")
        preview.errors.append(structural)
        return preview

    detector = SaleDuplicateDetector(existing_sales)

    for index, raw in enumerate(raw_rows):
        row = row_number(raw, index)
        record, errors, warnings = validate_sale_row(raw, row, mapping, config)
        preview.errors.extend(errors)
        preview.warnings.extend(warnings)
        if record is None:
            continue

        kind = detector.classify(record)
        if kind is None:
            preview.data.append(record)
        else:
            preview.duplicates.append(SaleDuplicate(record=record, kind=kind, key=sale_key(record)))

    preview.totals = calculate_totals(preview.data)

    logger.info(
        f"Sales import: {len(raw_rows)} rows, {len(preview.data)} valid, "
        f"{len(preview.duplicates)} duplicates, {len(preview.errors)} errors"
    )
    return preview


def commit_sales_import(
    store: CanonicalStore,
    preview: ImportPreview,
    collection: str = REGISTER_SALES,
) -> int:
    """Append a preview's valid sales to the sales log in one atomic batch.

    Callers holding a ProductSalesCache must clear it afterwards.

    Returns:
        Number of sales written.
    """
    if not preview.data:
        logger.info("Nothing to import")
        return 0

    now = datetime.now().isoformat()
    batch = store.batch()
    for record in preview.data:
        batch.set(collection, store.new_id(collection), {**record.to_document(), "created_at": now})
    batch.commit()

    logger.info(f"Imported {len(preview.data)} sales into {collection}")
    return len(preview.data)
