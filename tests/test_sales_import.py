# -*- coding: utf-8 -*-
"""Tests for src/reconciliation/sales_import.py."""

from datetime import datetime

import pytest

from src.reconciliation.models import DuplicateKind, Severity
from src.reconciliation.sales_import import (
    NO_DATA_MESSAGE,
    commit_sales_import,
    normalize_register,
    validate_sales_import,
)
from src.reconciliation.store import REGISTER_SALES


class TestValidateSalesImport:
    """Test row validation and header mapping."""

    def test_valid_rows(self, sales_rows):
        preview = validate_sales_import(sales_rows)

        assert preview.is_valid
        assert len(preview.data) == 3
        first = preview.data[0]
        assert first.row == 2
        assert first.product == "Coca Cola 33cl"
        assert first.register == "Register1"
        assert first.date == datetime(2024, 2, 15)
        assert first.quantity == 2
        assert first.total == 3.0
        assert first.price == 1.5

    def test_no_data(self):
        preview = validate_sales_import([])
        assert not preview.is_valid
        assert preview.errors[0].message == NO_DATA_MESSAGE

    def test_missing_column_rejects_batch(self, sales_rows):
        rows = [{k: v for k, v in row.items() if k != "Vendeur"} for row in sales_rows]
        preview = validate_sales_import(rows)

        assert preview.structural_error
        assert len(preview.errors) == 1
        assert preview.errors[0].severity is Severity.CRITICAL
        assert "Missing columns: Seller" in preview.errors[0].message
        assert preview.data == []

    def test_english_headers(self):
        rows = [{
            "Product": "Mars", "Category": "Confiseries", "POS": "2", "Day": "2024-02-15",
            "Cashier": "Paul", "Qty": 3, "Total": 3.6,
        }]
        preview = validate_sales_import(rows)
        assert preview.is_valid
        assert preview.data[0].register == "Register2"
        assert preview.data[0].price == 1.2

    def test_unit_price_column_is_not_the_total(self):
        rows = [{
            "Produit": "Mars", "Catégorie": "Confiseries", "Caisse": "1", "Date": "15/02/2024",
            "Vendeur": "Paul", "Qté": 3, "Prix": "1,20", "Montant": "3,60",
        }]
        preview = validate_sales_import(rows)
        assert preview.is_valid
        assert preview.data[0].total == 3.6
        assert preview.data[0].price == 1.2

    def test_index_column_before_product(self, sales_rows):
        rows = [{"Unnamed: 0": index, **row} for index, row in enumerate(sales_rows)]
        preview = validate_sales_import(rows)
        assert preview.is_valid
        assert preview.data[0].product == "Coca Cola 33cl"

    def test_row_errors_keep_other_rows(self, make_sale_row):
        rows = [
            make_sale_row(),
            make_sale_row(quantity="1,5"),
            make_sale_row(day="32/13/2024"),
            make_sale_row(seller=""),
        ]
        preview = validate_sales_import(rows)

        assert len(preview.data) == 1
        assert not preview.is_valid
        assert [(e.row, e.field) for e in preview.errors] == [
            (3, "Quantity"),
            (4, "Date"),
            (5, "Seller"),
        ]

    def test_refund_kept(self, make_sale_row):
        preview = validate_sales_import([make_sale_row(quantity="2", amount="(3,00)")])
        record = preview.data[0]
        assert record.total == -3.0
        assert record.price == -1.5

    def test_row_index_used_for_errors(self, make_sale_row):
        row = make_sale_row(quantity="0")
        row["_row_index"] = 17
        preview = validate_sales_import([row])
        assert preview.errors[0].row == 17

    def test_totals(self, sales_rows):
        totals = validate_sales_import(sales_rows).totals
        assert totals.overall["quantity"] == 7
        assert totals.overall["revenue"] == pytest.approx(10.2)
        assert totals.by_seller["Marie"]["quantity"] == 6


class TestDuplicateScreening:
    def test_duplicate_within_file(self, make_sale_row):
        preview = validate_sales_import([make_sale_row(), make_sale_row()])

        assert len(preview.data) == 1
        assert len(preview.duplicates) == 1
        assert preview.duplicates[0].kind is DuplicateKind.WITHIN_IMPORT
        assert preview.duplicates[0].record.row == 3

    def test_duplicate_of_existing_sale(self, store, sales_rows):
        commit_sales_import(store, validate_sales_import(sales_rows[:1]))

        preview = validate_sales_import(
            sales_rows, existing_sales=store.list_documents(REGISTER_SALES)
        )

        assert len(preview.data) == 2
        assert len(preview.duplicates) == 1
        assert preview.duplicates[0].kind is DuplicateKind.EXISTING
        assert preview.totals.overall["quantity"] == 5

    def test_different_register_is_not_duplicate(self, make_sale_row):
        preview = validate_sales_import(
            [make_sale_row(), make_sale_row(register="Caisse 2")]
        )
        assert len(preview.data) == 2


class TestCommit:
    def test_writes_valid_rows(self, store, sales_rows):
        written = commit_sales_import(store, validate_sales_import(sales_rows))

        assert written == 3
        docs = store.list_documents(REGISTER_SALES)
        assert len(docs) == 3
        assert {d["product"] for d in docs} == {"Coca Cola 33cl", "Mars"}
        assert all(d["created_at"] for d in docs)

    def test_nothing_to_write(self, store):
        assert commit_sales_import(store, validate_sales_import([])) == 0
        assert store.count(REGISTER_SALES) == 0


@pytest.mark.parametrize(
    "label,expected",
    [("Caisse 1", "Register1"), ("caisse 2", "Register2"), ("POS-2", "Register2"),
     ("Boutique", "Register1"), ("", "Register1")],
)
def test_normalize_register(label, expected):
    assert normalize_register(label) == expected
