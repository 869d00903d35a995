# -*- coding: utf-8 -*-
"""Product sheet validation: per-row cleaning, duplicates, statistics and suggestions.

A product sheet needs Product, Category and Price columns; Stock, MinStock and
Description are optional. Nothing is written: the report tells the caller
what an import would contain and what to fix first.

Usage:
    from src.reconciliation.product_validation import validate_product_sheet

    report = validate_product_sheet(rows, existing_products=store.list_documents(PRODUCTS))
    if report.is_valid:
        ...
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Set

from src.reconciliation.column_mapping import mapping_from_rows
from src.reconciliation.duplicates import detect_product_duplicates, product_key
from src.reconciliation.models import (
    CanonicalField,
    FieldKind,
    Impact,
    ImportContext,
    ProductRow,
    RawRow,
    StockValidationResult,
    SuggestionType,
    ValidationStatistics,
    ValidationSuggestion,
    ValidationWarning,
    row_number,
)
from src.reconciliation.sales_import import no_data_error
from src.reconciliation.signature import default_min_stock
from src.reconciliation.validators import validate_field
from src.utils.config import DEFAULT_VALIDATION_CONFIG, ValidationConfig
from src.utils.data_cleaning import cell_text, is_blank

logger = logging.getLogger(__name__)

MAX_CATEGORIES = 10
HIGH_PRICE = 1000


def _structure_suggestions(mapping) -> List[ValidationSuggestion]:
    suggestions = []
    if not mapping.has(CanonicalField.STOCK):
        suggestions.append(
            ValidationSuggestion(
                SuggestionType.STRUCTURE,
                'No "Stock" column, quantities default to 0',
                Impact.MEDIUM,
                auto_applicable=True,
            )
        )
    if not mapping.has(CanonicalField.MIN_STOCK):
        suggestions.append(
            ValidationSuggestion(
                SuggestionType.STRUCTURE,
                'No "Minimum stock" column, computed as 20% of stock (at least 5)',
                Impact.LOW,
                auto_applicable=True,
            )
        )
    return suggestions


def _statistics(
    total_rows: int,
    cleaned: List[ProductRow],
    warning_count: int,
    duplicate_rows: int,
    categories: List[str],
) -> ValidationStatistics:
    stats = ValidationStatistics(
        total_rows=total_rows,
        valid_rows=len(cleaned),
        error_rows=total_rows - len(cleaned),
        warning_rows=warning_count,
        duplicate_rows=duplicate_rows,
        categories_found=categories,
    )
    if cleaned:
        prices = [row.price for row in cleaned]
        stocks = [row.stock for row in cleaned]
        stats.price_range = {
            "min": min(prices),
            "max": max(prices),
            "average": sum(prices) / len(prices),
        }
        stats.stock_range = {"min": min(stocks), "max": max(stocks), "total": sum(stocks)}
    return stats


def validate_product_sheet(
    raw_rows: Sequence[RawRow],
    existing_products: Iterable[Mapping[str, Any]] = (),
    config: Optional[ValidationConfig] = None,
) -> StockValidationResult:
    """Validate a product sheet.

    Args:
        raw_rows: Rows keyed by original header
        existing_products: Product documents already in the catalogue
        config: Validation thresholds

    Returns:
        StockValidationResult; is_valid is False as soon as one critical or
        error finding exists.
    """
    config = config or DEFAULT_VALIDATION_CONFIG

    if not raw_rows:
        return StockValidationResult(is_valid=False, errors=[no_data_error()])

    mapping = mapping_from_rows(raw_rows, ImportContext.PRODUCT)
    logger.debug(f"Product sheet columns: {mapping.normalized}")

    structural = mapping.missing_columns_error()
    if structural is not None:
        logger.error(f"Product sheet rejected, missing columns: {structural.value}")
        return StockValidationResult(
            is_valid=False,
            errors=[structural],
            suggestions=_structure_suggestions(mapping),
            statistics=ValidationStatistics(total_rows=len(raw_rows), error_rows=len(raw_rows)),
        )

    report = StockValidationResult(is_valid=True, suggestions=_structure_suggestions(mapping))
    categories: List[str] = []
    F = CanonicalField

    for index, raw in enumerate(raw_rows):
        row = row_number(raw, index)

        name = validate_field(FieldKind.NAME, mapping.value(raw, F.PRODUCT), row, config, "name")
        category = validate_field(
            FieldKind.CATEGORY, mapping.value(raw, F.CATEGORY), row, config, "category"
        )
        price = validate_field(FieldKind.PRICE, mapping.value(raw, F.PRICE), row, config, "price")
        results = [name, category, price]

        if mapping.has(F.STOCK):
            stock = validate_field(FieldKind.STOCK, mapping.value(raw, F.STOCK), row, config, "stock")
            results.append(stock)
        else:
            stock = None

        for result in results:
            report.errors.extend(result.errors)
            if result.is_valid:
                report.warnings.extend(result.warnings)

        if not all(result.is_valid for result in results):
            continue

        stock_value = stock.cleaned_value if stock is not None else 0
        min_stock = default_min_stock(stock_value)
        raw_min = mapping.value(raw, F.MIN_STOCK)
        if mapping.has(F.MIN_STOCK) and not is_blank(raw_min):
            min_result = validate_field(FieldKind.STOCK, raw_min, row, config, "min_stock")
            if min_result.is_valid:
                min_stock = min_result.cleaned_value

        if category.cleaned_value not in categories:
            categories.append(category.cleaned_value)

        report.cleaned_data.append(
            ProductRow(
                row=row,
                name=name.cleaned_value,
                category=category.cleaned_value,
                price=price.cleaned_value,
                stock=stock_value,
                min_stock=min_stock,
                description=cell_text(mapping.value(raw, F.DESCRIPTION)),
            )
        )

    report.duplicates = detect_product_duplicates(report.cleaned_data)

    existing: Set[str] = {
        product_key(p.get("name"), p.get("category")) for p in existing_products
    }
    for product in report.cleaned_data:
        if product_key(product.name, product.category) in existing:
            report.warnings.append(
                ValidationWarning(
                    product.row,
                    "name",
                    product.name,
                    "Product already exists in the catalogue and will be skipped on import",
                )
            )

    report.statistics = _statistics(
        total_rows=len(raw_rows),
        cleaned=report.cleaned_data,
        warning_count=len(report.warnings),
        duplicate_rows=sum(len(d.rows) for d in report.duplicates),
        categories=categories,
    )

    if len(categories) > MAX_CATEGORIES:
        report.suggestions.append(
            ValidationSuggestion(
                SuggestionType.DATA,
                f"Many categories found ({len(categories)}), consider standardizing them",
                Impact.MEDIUM,
            )
        )
    if report.statistics.price_range["max"] > HIGH_PRICE:
        report.suggestions.append(
            ValidationSuggestion(
                SuggestionType.DATA,
                "High prices found, check the unit (euros vs cents)",
                Impact.HIGH,
            )
        )
    if report.duplicates:
        report.suggestions.append(
            ValidationSuggestion(
                SuggestionType.DATA,
                f"{len(report.duplicates)} duplicates found, clean up before importing",
                Impact.HIGH,
                auto_applicable=True,
            )
        )

    report.is_valid = not any(e.severity.blocking for e in report.errors)
    logger.info(
        f"Product sheet: {report.statistics.total_rows} rows, "
        f"{report.statistics.valid_rows} valid, {len(report.errors)} errors, "
        f"{len(report.warnings)} warnings, {len(report.duplicates)} duplicates"
    )
    return report
