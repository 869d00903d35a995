# -*- coding: utf-8 -*-
"""Tests for src/reconciliation/duplicates.py."""

from datetime import datetime

from src.reconciliation.duplicates import (
    SaleDuplicateDetector,
    composite_key,
    detect_product_duplicates,
    document_key,
    sale_key,
)
from src.reconciliation.models import ConflictType, DuplicateKind, ProductRow, SaleRecord


def _record(row=2, product="Coca Cola 33cl", price=1.5, total=3.0, when=None):
    return SaleRecord(
        row=row,
        product=product,
        category="Boissons",
        register="Register1",
        date=when or datetime(2024, 2, 15, 10, 30),
        seller="Marie",
        quantity=2,
        price=price,
        total=total,
    )


class TestCompositeKey:
    """Test the sale duplicate key."""

    def test_case_and_whitespace_insensitive(self):
        a = composite_key("Coca Cola", "Boissons", "Register1", "2024-02-15", "Marie", 2, 1.5, 3)
        b = composite_key(" COCA COLA ", "boissons", "register1", "15/02/2024", "MARIE ", 2, 1.5, 3)
        assert a == b

    def test_rounding_noise_collapses(self):
        """10.001 and 10.00 produce the same key."""
        a = composite_key("Mars", "Confiseries", "Register1", "2024-02-15", "Paul", 1, 10.001, 10.001)
        b = composite_key("Mars", "Confiseries", "Register1", "2024-02-15", "Paul", 1, 10.0, 10.0)
        assert a == b

    def test_time_of_day_ignored(self):
        assert sale_key(_record(when=datetime(2024, 2, 15, 9))) == sale_key(
            _record(when=datetime(2024, 2, 15, 18))
        )

    def test_different_total_differs(self):
        assert sale_key(_record(total=3.0)) != sale_key(_record(total=4.0))

    def test_document_key_matches_record_key(self):
        record = _record()
        assert document_key(record.to_document()) == sale_key(record)


class TestSaleDuplicateDetector:
    """Test the two-tier classification."""

    def test_existing_sale(self):
        detector = SaleDuplicateDetector([_record().to_document()])
        assert detector.classify(_record()) is DuplicateKind.EXISTING

    def test_within_import(self):
        detector = SaleDuplicateDetector()
        assert detector.classify(_record(row=2)) is None
        assert detector.classify(_record(row=3)) is DuplicateKind.WITHIN_IMPORT

    def test_existing_takes_precedence(self):
        detector = SaleDuplicateDetector([_record().to_document()])
        detector.classify(_record(row=2))
        assert detector.classify(_record(row=3)) is DuplicateKind.EXISTING

    def test_new_sale_accepted(self):
        detector = SaleDuplicateDetector([_record().to_document()])
        assert detector.classify(_record(product="Mars")) is None
        assert len(detector.accepted) == 1


class TestProductDuplicates:
    """Test product sheet duplicate grouping."""

    def _row(self, row, name="COCA", category="BOISSONS", price=1.5):
        return ProductRow(row=row, name=name, category=category, price=price, stock=0, min_stock=5)

    def test_exact_duplicate(self):
        duplicates = detect_product_duplicates([self._row(2), self._row(3)])
        assert len(duplicates) == 1
        assert duplicates[0].rows == [2, 3]
        assert duplicates[0].conflict_type is ConflictType.EXACT

    def test_price_conflict_never_merged(self):
        duplicates = detect_product_duplicates([self._row(2), self._row(3, price=1.8)])
        assert duplicates[0].conflict_type is ConflictType.PRICE_CONFLICT
        assert "resolve manually" in duplicates[0].recommendation

    def test_similar_names(self):
        duplicates = detect_product_duplicates(
            [self._row(2, name="CAFE CREME"), self._row(3, name="CAFÉ-CRÈME")]
        )
        assert len(duplicates) == 1
        assert duplicates[0].conflict_type is ConflictType.SIMILAR
        assert duplicates[0].rows == [2, 3]

    def test_distinct_products(self):
        assert detect_product_duplicates([self._row(2), self._row(3, name="MARS")]) == []
