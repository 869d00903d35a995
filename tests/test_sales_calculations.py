# -*- coding: utf-8 -*-
"""Tests for src/reconciliation/sales_calculations.py."""

from datetime import datetime

import pytest

from src.reconciliation.models import SaleRecord
from src.reconciliation.sales_calculations import (
    calculate_average_ticket,
    calculate_total_quantity_sold,
    calculate_total_revenue,
    calculate_totals,
    get_unique_categories,
    get_unique_registers,
    get_unique_sellers,
)


def _record(product, seller, register, quantity, total, category="Boissons"):
    return SaleRecord(
        row=2,
        product=product,
        category=category,
        register=register,
        date=datetime(2024, 2, 15),
        seller=seller,
        quantity=quantity,
        price=total / quantity,
        total=total,
    )


@pytest.fixture
def records():
    return [
        _record("Coca", "Marie", "Register1", 2, 3.0),
        _record("Mars", "Paul", "Register2", 1, 1.2, category="Confiseries"),
        _record("Coca", "Paul", "Register1", 4, 6.0),
        _record("Coca", "Marie", "Register1", 1, -1.5),
    ]


class TestTotals:
    def test_grouped_totals(self, records):
        totals = calculate_totals(records)

        assert totals.by_product["Coca"] == {"quantity": 7, "revenue": pytest.approx(7.5)}
        assert totals.by_seller["Paul"]["quantity"] == 5
        assert totals.by_register["Register2"]["revenue"] == pytest.approx(1.2)
        assert totals.overall["quantity"] == 8
        assert totals.overall["revenue"] == pytest.approx(8.7)

    def test_empty(self):
        totals = calculate_totals([])
        assert totals.overall == {"quantity": 0, "revenue": 0.0}
        assert totals.by_product == {}

    def test_store_documents(self):
        docs = [{"product": "Mars", "seller": "Paul", "register": "Register1",
                 "quantity": "2", "total": "2.4"}]
        assert calculate_totals(docs).by_product["Mars"]["quantity"] == 2


class TestScalarAggregates:
    def test_quantity_and_revenue(self, records):
        assert calculate_total_quantity_sold(records) == 8
        assert calculate_total_revenue(records) == pytest.approx(8.7)

    def test_average_ticket(self, records):
        assert calculate_average_ticket(records) == pytest.approx(8.7 / 4)
        assert calculate_average_ticket([]) == 0.0

    def test_unique_values_in_first_seen_order(self, records):
        assert get_unique_categories(records) == ["Boissons", "Confiseries"]
        assert get_unique_sellers(records) == ["Marie", "Paul"]
        assert get_unique_registers(records) == ["Register1", "Register2"]
        assert get_unique_sellers([]) == []
