# -*- coding: utf-8 -*-
"""Duplicate detection for sale rows and product sheet rows.

Sales use a composite key over every business field; a record is checked
against the already-persisted sales first, then against the rows accepted
earlier in the same import. Product rows are grouped by name|category and
reported (never merged) when they repeat.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from src.reconciliation.models import (
    ConflictType,
    DuplicateInfo,
    DuplicateKind,
    ProductRow,
    SaleRecord,
)
from src.utils.data_cleaning import cell_text, parse_date, round_half_up, strip_diacritics

logger = logging.getLogger(__name__)


def _norm(value: Any) -> str:
    return cell_text(value).lower()


def _number(value: float) -> str:
    value = float(value) + 0.0
    return str(int(value)) if value.is_integer() else repr(value)


def _day(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    parsed = parse_date(value)
    return parsed.date().isoformat() if parsed else ""


def composite_key(
    product: Any,
    category: Any,
    register: Any,
    day: Any,
    seller: Any,
    quantity: float,
    price: float,
    total: float,
) -> str:
    """Build the sale duplicate key.

    Text fields are lowercased and trimmed, the date is reduced to its day,
    price and total are rounded to 2 decimals.
    """
    return "|".join(
        [
            _norm(product),
            _norm(category),
            _norm(register),
            _day(day),
            _norm(seller),
            _number(quantity),
            _number(round_half_up(float(price), 2)),
            _number(round_half_up(float(total), 2)),
        ]
    )


def sale_key(record: SaleRecord) -> str:
    return composite_key(
        record.product,
        record.category,
        record.register,
        record.date,
        record.seller,
        record.quantity,
        record.price,
        record.total,
    )


def document_key(doc: Mapping[str, Any]) -> str:
    """Duplicate key of a stored sale document."""

    def _float(name: str) -> float:
        try:
            return float(doc.get(name) or 0)
        except (TypeError, ValueError):
            return 0.0

    return composite_key(
        doc.get("product"),
        doc.get("category"),
        doc.get("register"),
        doc.get("date"),
        doc.get("seller"),
        _float("quantity"),
        _float("price"),
        _float("total"),
    )


class SaleDuplicateDetector:
    """Two-tier duplicate classifier for one import batch.

    Usage:
        detector = SaleDuplicateDetector(existing_sales)
        kind = detector.classify(record)  # None means new and accepted
    """

    def __init__(self, existing_sales: Iterable[Mapping[str, Any]] = ()):
        self.existing: Dict[str, Mapping[str, Any]] = {}
        for doc in existing_sales:
            self.existing[document_key(doc)] = doc
        self.accepted: Dict[str, SaleRecord] = {}
        logger.debug(f"Built duplicate lookup with {len(self.existing)} existing sale keys")

    def classify(self, record: SaleRecord) -> Optional[DuplicateKind]:
        """Classify a record and remember it when it is new.

        Returns:
            DuplicateKind.EXISTING, DuplicateKind.WITHIN_IMPORT, or None if new.
        """
        key = sale_key(record)
        if key in self.existing:
            logger.debug(f"Row {record.row}: duplicate of existing sale ({key})")
            return DuplicateKind.EXISTING
        if key in self.accepted:
            logger.debug(
                f"Row {record.row}: duplicate of row {self.accepted[key].row} in this import"
            )
            return DuplicateKind.WITHIN_IMPORT
        self.accepted[key] = record
        return None


def product_key(name: Any, category: Any) -> str:
    return f"{_norm(name)}|{_norm(category)}"


def _loose_key(name: str, category: str) -> str:
    def loose(text: str) -> str:
        return re.sub(r"[^a-z0-9]", "", strip_diacritics(text.lower()))

    return f"{loose(name)}|{loose(category)}"


def detect_product_duplicates(rows: Sequence[ProductRow]) -> List[DuplicateInfo]:
    """Group product rows sharing a name|category key.

    Rows whose price differs from the first occurrence turn the group into a
    price_conflict for manual review. Names differing only in accents or
    punctuation are reported as similar.
    """
    groups: Dict[str, DuplicateInfo] = {}
    first_price: Dict[str, float] = {}
    loose_seen: Dict[str, str] = {}
    duplicates: List[DuplicateInfo] = []

    for row in rows:
        key = product_key(row.name, row.category)

        if key in first_price:
            info = groups.get(key)
            if info is None:
                first_row = next(r.row for r in rows if product_key(r.name, r.category) == key)
                info = DuplicateInfo(
                    rows=[first_row],
                    product=row.name,
                    category=row.category,
                    conflict_type=ConflictType.EXACT,
                    recommendation="Remove the duplicate row",
                )
                groups[key] = info
                duplicates.append(info)
            info.rows.append(row.row)
            if row.price != first_price[key]:
                info.conflict_type = ConflictType.PRICE_CONFLICT
                info.recommendation = (
                    f"Price conflict: {first_price[key]} vs {row.price}, resolve manually"
                )
            continue

        first_price[key] = row.price
        loose = _loose_key(row.name, row.category)
        if loose in loose_seen and loose_seen[loose] != key:
            other = loose_seen[loose]
            other_row = next(r.row for r in rows if product_key(r.name, r.category) == other)
            duplicates.append(
                DuplicateInfo(
                    rows=[other_row, row.row],
                    product=row.name,
                    category=row.category,
                    conflict_type=ConflictType.SIMILAR,
                    recommendation="Names differ only in accents or punctuation, check whether they are the same product",
                )
            )
        else:
            loose_seen.setdefault(loose, key)

    return duplicates
