# -*- coding: utf-8 -*-
"""Tests for src/reconciliation/stock_import.py."""

from datetime import datetime

import pytest

from src.reconciliation.models import CanonicalProduct, StockImportPreview, StockRow
from src.reconciliation.stock_import import (
    apply_stock_import,
    find_matching_product,
    validate_stock_import,
)
from src.reconciliation.store import PRODUCTS, StoreError


def _stock_row(product, category, quantity, day="01/03/2024"):
    return {"Produit": product, "Catégorie": category, "Date": day, "Quantité": quantity}


def _row(product, category="Boissons", quantity=10, row=2):
    return StockRow(row=row, product=product, category=category,
                    date=datetime(2024, 3, 1), quantity=quantity)


@pytest.fixture
def seeded(store, product):
    """Store whose product catalogue holds the Coca Cola fixture."""
    batch = store.batch()
    batch.set(PRODUCTS, product.id, product.to_document())
    batch.commit()
    return store


class TestValidateStockImport:
    def test_valid_rows(self):
        preview = validate_stock_import([
            _stock_row("Coca Cola 33cl", " Boissons ", "20"),
            _stock_row("Chips", "Alimentaire", 0),
        ])
        assert preview.is_valid
        assert [r.quantity for r in preview.data] == [20, 0]
        assert preview.data[0].category == "Boissons"
        assert preview.total_quantity == 20

    def test_row_errors(self):
        preview = validate_stock_import([
            _stock_row("", "Boissons", "5"),
            _stock_row("Mars", "Confiseries", ""),
            _stock_row("Twix", "Confiseries", "-3"),
            _stock_row("Bounty", "Confiseries", "2", day="demain"),
        ])
        assert preview.data == []
        assert [(e.row, e.field) for e in preview.errors] == [
            (2, "Product"),
            (3, "Quantity"),
            (4, "Quantity"),
            (5, "Date"),
        ]
        assert preview.errors[1].message == "Quantity is required"

    def test_missing_column(self):
        preview = validate_stock_import([{"Produit": "Mars", "Quantité": 3}])
        assert not preview.is_valid
        assert len(preview.errors) == 1
        assert preview.errors[0].field == "structure"


class TestFindMatchingProduct:
    @pytest.fixture
    def catalogue(self, product):
        return [
            product,
            CanonicalProduct(id="p2", name="Chocolat Noir Intense", category="Confiseries"),
        ]

    def test_exact_name(self, catalogue):
        assert find_matching_product(_row("coca cola 33CL", "BOISSONS"), catalogue).id == "p1"

    def test_containment(self, catalogue):
        assert find_matching_product(_row("Coca Cola"), catalogue).id == "p1"

    def test_word_ratio(self, catalogue):
        row = _row("Chocolat Intense Noir 70%", "Confiseries")
        assert find_matching_product(row, catalogue).id == "p2"

    def test_category_mismatch(self, catalogue):
        assert find_matching_product(_row("Coca Cola 33cl", "Confiseries"), catalogue) is None

    def test_short_words_only(self, catalogue):
        assert find_matching_product(_row("Le Lu", "Confiseries"), catalogue) is None


class TestApplyStockImport:
    def test_update_and_create(self, seeded):
        preview = StockImportPreview(data=[
            _row("Coca Cola 33cl", quantity=20),
            _row("Chips Paprika", "Alimentaire", 50, row=3),
        ])
        result = apply_stock_import(seeded, preview)

        assert result.success
        assert result.products_updated == 1
        assert result.products_created == 1
        assert result.units_added == 70

        coca = seeded.get_by_id(PRODUCTS, "p1")
        assert coca["stock"] == 120
        assert coca["initial_stock"] == 120

        chips = seeded.query_by_field(PRODUCTS, "name", "Chips Paprika")[0]
        assert chips["price"] == 0.0
        assert chips["stock"] == 50
        assert chips["initial_stock"] == 50
        assert chips["min_stock"] == 10
        assert chips["signature"] == "chips paprika|alimentaire"
        assert chips["description"] == "Created automatically on 01/03/2024"

    def test_created_product_matched_by_later_row(self, store):
        preview = StockImportPreview(data=[
            _row("Mars", "Confiseries", 10),
            _row("Mars", "Confiseries", 5, row=3),
        ])
        result = apply_stock_import(store, preview, batch_size=1)

        assert result.products_created == 1
        assert result.products_updated == 1
        assert result.units_added == 15
        assert store.count(PRODUCTS) == 1
        assert store.list_documents(PRODUCTS)[0]["stock"] == 15

    def test_summary(self, seeded):
        preview = StockImportPreview(data=[_row("Coca Cola 33cl", quantity=20)])
        summary = apply_stock_import(seeded, preview).summary
        assert summary.startswith("Stock import completed.")
        assert "- 20 units added in total" in summary
        assert "- Coca Cola 33cl: 100 -> 120 (+20)" in summary

    def test_empty_preview(self, store):
        result = apply_stock_import(store, StockImportPreview())
        assert not result.success
        assert result.errors == ["No stock rows to import"]

    def test_failed_batch_stops_import(self, store, monkeypatch):
        preview = StockImportPreview(data=[_row("Mars", "Confiseries", 10), _row("Twix", "Confiseries", 4)])
        calls = {"n": 0}
        original = store._apply

        def flaky_apply(ops):
            calls["n"] += 1
            if calls["n"] == 2:
                raise StoreError("unavailable")
            original(ops)

        monkeypatch.setattr(store, "_apply", flaky_apply)
        result = apply_stock_import(store, preview, batch_size=1)

        assert not result.success
        assert result.errors == ["Batch 2 failed: unavailable"]
        assert result.products_created == 1
        assert store.count(PRODUCTS) == 1
