# -*- coding: utf-8 -*-
"""Per-field cell validators.

Every validator is a pure function returning a FieldResult: is_valid, the
blocking errors, the non-blocking warnings (some describing an auto-fix that
was already applied to cleaned_value), and the cleaned value itself.

Usage:
    from src.reconciliation.validators import validate_field

    result = validate_field(FieldKind.PRICE, "12,50 €", row=2)
    result.cleaned_value  # 12.5
"""

import logging
import re
from typing import Any, Callable, Dict, Optional

from src.reconciliation.models import FieldKind, FieldResult, Severity, ValidationError, ValidationWarning
from src.utils.config import DEFAULT_VALIDATION_CONFIG, ValidationConfig
from src.utils.data_cleaning import (
    ACCEPTED_DATE_FORMATS,
    cell_text,
    is_blank,
    levenshtein_distance,
    normalize_whitespace,
    parse_amount,
    parse_date,
    parse_integer,
    round_half_up,
)

logger = logging.getLogger(__name__)

FORBIDDEN_NAME_CHARS = re.compile(r"[<>{}\[\]\\]")

Validator = Callable[[Any, int, ValidationConfig, str], FieldResult]


def _error(row, field_name, value, message, severity=Severity.ERROR, suggestion=None):
    return ValidationError(row, field_name, value, message, severity, suggestion)


def _invalid(error: ValidationError, result: Optional[FieldResult] = None) -> FieldResult:
    result = result or FieldResult(is_valid=False)
    result.is_valid = False
    result.errors.append(error)
    result.cleaned_value = None
    return result


def validate_name(
    value: Any,
    row: int,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
    field_name: str = "name",
) -> FieldResult:
    """Validate a product name, stripping forbidden characters and extra spaces."""
    if is_blank(value):
        return _invalid(
            _error(row, field_name, value, "Product name is required", Severity.CRITICAL)
        )

    result = FieldResult(is_valid=True)
    cleaned = cell_text(value)

    if FORBIDDEN_NAME_CHARS.search(cleaned):
        cleaned = FORBIDDEN_NAME_CHARS.sub("", cleaned).strip()
        result.warnings.append(
            ValidationWarning(
                row, field_name, value, "Special characters removed from name",
                auto_fix=True, fixed_value=cleaned,
            )
        )

    if re.search(r"\s{2,}", cleaned):
        cleaned = normalize_whitespace(cleaned)
        result.warnings.append(
            ValidationWarning(
                row, field_name, value, "Multiple spaces collapsed",
                auto_fix=True, fixed_value=cleaned,
            )
        )

    if len(cleaned) < config.name_min_length:
        return _invalid(
            _error(
                row, field_name, value,
                f"Name too short (minimum: {config.name_min_length} characters)",
            ),
            result,
        )
    if len(cleaned) > config.name_max_length:
        return _invalid(
            _error(
                row, field_name, value,
                f"Name too long (maximum: {config.name_max_length} characters)",
            ),
            result,
        )

    result.cleaned_value = cleaned
    return result


def suggest_category(cleaned: str, config: ValidationConfig = DEFAULT_VALIDATION_CONFIG) -> Optional[str]:
    """Closest known category (substring or edit distance <= 2), if any differs."""
    for known in config.common_categories:
        if known == cleaned:
            return None
    for known in config.common_categories:
        if known in cleaned or cleaned in known or levenshtein_distance(known, cleaned) <= 2:
            return known
    return None


def validate_category(
    value: Any,
    row: int,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
    field_name: str = "category",
) -> FieldResult:
    """Validate a category: uppercased, whitespace-normalized, bounded length.

    A near match against the known categories is reported as a warning and
    is not applied.
    """
    if is_blank(value):
        return _invalid(
            _error(
                row, field_name, value, "Category is required", Severity.CRITICAL,
                suggestion="Use a category such as: "
                + ", ".join(config.common_categories[:3]),
            )
        )

    cleaned = normalize_whitespace(cell_text(value)).upper()

    if len(cleaned) < config.category_min_length:
        return _invalid(
            _error(
                row, field_name, value,
                f"Category too short (minimum: {config.category_min_length} characters)",
            )
        )
    if len(cleaned) > config.category_max_length:
        return _invalid(
            _error(
                row, field_name, value,
                f"Category too long (maximum: {config.category_max_length} characters)",
            )
        )

    result = FieldResult(is_valid=True, cleaned_value=cleaned)
    similar = suggest_category(cleaned, config)
    if similar is not None:
        result.warnings.append(
            ValidationWarning(
                row, field_name, value, f'Similar category suggested: "{similar}"',
                auto_fix=False, fixed_value=similar,
            )
        )
    return result


def validate_price(
    value: Any,
    row: int,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
    field_name: str = "price",
) -> FieldResult:
    """Validate a unit price ("12,50 €" -> 12.5), bounded and rounded to cents."""
    if is_blank(value):
        return _invalid(
            _error(
                row, field_name, value, "Price is required", Severity.CRITICAL,
                suggestion="Enter a valid price (e.g. 1.50)",
            )
        )

    parsed = parse_amount(value)
    if parsed is None:
        return _invalid(
            _error(
                row, field_name, value, "Invalid price format",
                suggestion="Use a numeric format (e.g. 1.50, 2,30)",
            )
        )
    if parsed < config.price_min:
        return _invalid(
            _error(row, field_name, value, f"Price too low (minimum: {config.price_min})")
        )
    if parsed > config.price_max:
        return _invalid(
            _error(row, field_name, value, f"Price too high (maximum: {config.price_max})")
        )

    result = FieldResult(is_valid=True)
    if parsed > config.price_warning_threshold:
        result.warnings.append(
            ValidationWarning(row, field_name, value, f"High price detected ({parsed}), check the value")
        )

    rounded = round_half_up(parsed, 2)
    if rounded != parsed:
        result.warnings.append(
            ValidationWarning(
                row, field_name, value, "Price rounded to 2 decimals",
                auto_fix=True, fixed_value=rounded,
            )
        )

    result.cleaned_value = rounded
    return result


def _check_count(
    value: Any,
    row: int,
    config: ValidationConfig,
    field_name: str,
    minimum: int,
) -> FieldResult:
    parsed = parse_integer(value)
    if parsed is None:
        return _invalid(
            _error(
                row, field_name, value, "Quantity must be a whole number",
                suggestion="Use a whole number (e.g. 10, 25)",
            )
        )
    if parsed < minimum:
        message = (
            "Quantity must be a positive number" if minimum > 0 else "Negative stock is not allowed"
        )
        return _invalid(_error(row, field_name, value, message))
    if parsed > config.stock_max:
        return _invalid(
            _error(row, field_name, value, f"Quantity too high (maximum: {config.stock_max})")
        )

    result = FieldResult(is_valid=True, cleaned_value=parsed)
    if parsed > config.stock_warning_threshold:
        result.warnings.append(
            ValidationWarning(row, field_name, value, f"Very high quantity detected ({parsed}), check the value")
        )
    return result


def validate_stock(
    value: Any,
    row: int,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
    field_name: str = "stock",
) -> FieldResult:
    """Validate an on-hand stock count. Blank defaults to 0 with a warning."""
    if is_blank(value):
        return FieldResult(
            is_valid=True,
            warnings=[
                ValidationWarning(
                    row, field_name, value, "Stock not specified, defaulted to 0",
                    auto_fix=True, fixed_value=0,
                )
            ],
            cleaned_value=0,
        )
    return _check_count(value, row, config, field_name, minimum=config.stock_min)


def validate_quantity(
    value: Any,
    row: int,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
    field_name: str = "quantity",
) -> FieldResult:
    """Validate a sold quantity: required positive whole number."""
    if is_blank(value):
        return _invalid(_error(row, field_name, value, "Quantity is required"))
    return _check_count(value, row, config, field_name, minimum=1)


def validate_date(
    value: Any,
    row: int,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
    field_name: str = "date",
) -> FieldResult:
    """Validate a date cell in any accepted format."""
    if is_blank(value):
        return _invalid(_error(row, field_name, value, "Date is required"))

    parsed = parse_date(value)
    if parsed is None:
        return _invalid(
            _error(
                row, field_name, value,
                f"Invalid date format (use {', '.join(ACCEPTED_DATE_FORMATS)})",
            )
        )
    return FieldResult(is_valid=True, cleaned_value=parsed)


def validate_amount(
    value: Any,
    row: int,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
    field_name: str = "amount",
) -> FieldResult:
    """Validate a signed sale total. Negative values are refunds and are kept."""
    if is_blank(value):
        return _invalid(_error(row, field_name, value, "Amount is required"))

    parsed = parse_amount(value)
    if parsed is None:
        return _invalid(
            _error(
                row, field_name, value,
                "Amount must be a valid number (negative for refunds)",
            )
        )
    return FieldResult(is_valid=True, cleaned_value=parsed)


def derive_unit_price(total: float, quantity: int) -> float:
    """Unit price from a sale total: round(total / quantity, 2), or total if no quantity."""
    if quantity and quantity > 0:
        return round_half_up(total / quantity, 2)
    return total


VALIDATORS: Dict[FieldKind, Validator] = {
    FieldKind.NAME: validate_name,
    FieldKind.CATEGORY: validate_category,
    FieldKind.PRICE: validate_price,
    FieldKind.STOCK: validate_stock,
    FieldKind.QUANTITY: validate_quantity,
    FieldKind.DATE: validate_date,
    FieldKind.AMOUNT: validate_amount,
}

_unhandled = set(FieldKind) - set(VALIDATORS)
if _unhandled:
    raise RuntimeError(f"No validator registered for: {sorted(k.value for k in _unhandled)}")


def validate_field(
    kind: FieldKind,
    value: Any,
    row: int,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
    field_name: Optional[str] = None,
) -> FieldResult:
    """Run the validator registered for a field kind.

    Args:
        kind: Which validator to run
        value: Raw cell value
        row: Spreadsheet row number used in findings
        config: Validation thresholds
        field_name: Name reported in findings (defaults to the kind's value)

    Returns:
        FieldResult for the cell.
    """
    return VALIDATORS[kind](value, row, config, field_name or kind.value)
