# -*- coding: utf-8 -*-
"""Tests for src/reconciliation/stock_history.py."""

from dataclasses import replace
from datetime import date

import pytest

from src.reconciliation.stock_history import (
    DEFAULT_INITIAL_DATE,
    MovementType,
    calculate_historical_stock,
    calculate_historical_summary,
    generate_stock_movements,
    get_movements_in_period,
    get_product_stock_timeline,
    validate_stock_consistency,
)


@pytest.fixture
def catalogue(product):
    mars = replace(
        product, id="p2", name="Mars", category="Confiseries",
        signature="mars|confiseries", initial_stock=10, stock=10,
    )
    return [replace(product, initial_stock_date="2024-02-01"), mars]


@pytest.fixture
def sales(make_sale_event):
    return [
        make_sale_event("s1", 10, date(2024, 2, 15)),
        make_sale_event("s2", 30, date(2024, 3, 10)),
        make_sale_event("s3", 4, date(2024, 2, 20), product="mars", category="CONFISERIES"),
        make_sale_event("s4", 1, None),
        make_sale_event("s5", 2, date(2024, 2, 20), product="Fanta"),
    ]


class TestGenerateMovements:
    def test_initial_and_sale_movements(self, catalogue, sales):
        movements = generate_stock_movements(catalogue, sales)

        # Undated and unknown-product sales are left out.
        assert [m.id for m in movements] == [
            "initial-p2",
            "initial-p1",
            "sale-s1",
            "sale-s3",
            "sale-s2",
        ]
        initial = movements[1]
        assert initial.type is MovementType.INITIAL
        assert initial.quantity == 100
        assert initial.date == date(2024, 2, 1)
        assert movements[0].date == DEFAULT_INITIAL_DATE
        assert movements[2].quantity == -10
        assert movements[2].reference == "s1"

    def test_initial_first_on_same_day(self, product, make_sale_event):
        product.initial_stock_date = "2024-02-15"
        movements = generate_stock_movements(
            [product], [make_sale_event("s1", 1, date(2024, 2, 15))]
        )
        assert [m.type for m in movements] == [MovementType.INITIAL, MovementType.SALE]

    def test_zero_baseline_has_no_initial_movement(self, product):
        product.initial_stock = 0
        assert generate_stock_movements([product], []) == []


class TestHistoricalStock:
    def test_stock_at_date(self, catalogue, sales):
        movements = generate_stock_movements(catalogue, sales)
        states = {s.product_id: s for s in calculate_historical_stock(catalogue, movements, date(2024, 2, 28))}

        assert states["p1"].stock_at_date == 90
        assert states["p1"].total_sold == 10
        assert states["p1"].last_movement_date == date(2024, 2, 15)
        assert states["p2"].stock_at_date == 6

    def test_before_any_movement(self, catalogue, sales):
        movements = generate_stock_movements(catalogue, sales)
        states = calculate_historical_stock(catalogue, movements, date(2023, 12, 31))
        assert [s.stock_at_date for s in states] == [0, 0]
        assert states[0].last_movement_date is None

    def test_summary_for_period(self, catalogue, sales):
        movements = generate_stock_movements(catalogue, sales)
        states = calculate_historical_stock(catalogue, movements, date(2024, 3, 31))
        summary = calculate_historical_summary(
            states, catalogue, date(2024, 2, 1), date(2024, 2, 29)
        )

        assert summary.total_products == 2
        assert summary.total_stock == 66
        assert summary.products_sold == 14
        assert summary.movements_summary == {
            "total_sales": 14,
            "total_imports": 100,
            "total_adjustments": 0,
        }
        assert summary.stock_by_category == {"Boissons": 60, "Confiseries": 6}
        assert summary.low_stock_items == 0

    def test_summary_without_period(self, catalogue, sales):
        movements = generate_stock_movements(catalogue, sales)
        states = calculate_historical_stock(catalogue, movements, date(2024, 3, 31))
        summary = calculate_historical_summary(states, catalogue)
        assert summary.products_sold == 44


class TestPeriodQueries:
    def test_movements_most_recent_first(self, catalogue, sales):
        movements = generate_stock_movements(catalogue, sales)
        selected = get_movements_in_period(movements, date(2024, 2, 15), date(2024, 3, 10))
        assert [m.id for m in selected] == ["sale-s2", "sale-s3", "sale-s1"]

    def test_timeline(self, catalogue, sales):
        movements = generate_stock_movements(catalogue, sales)
        timeline = get_product_stock_timeline("p1", movements, date(2024, 2, 10), date(2024, 3, 31))

        assert [(p.date, p.stock) for p in timeline] == [
            (date(2024, 2, 10), 100),
            (date(2024, 2, 15), 90),
            (date(2024, 3, 10), 60),
        ]
        assert timeline[0].movement is None


class TestConsistency:
    def test_mismatch_reported(self, catalogue, sales):
        movements = generate_stock_movements(catalogue, sales)
        issues = validate_stock_consistency(catalogue, movements)

        assert [i.product_id for i in issues] == ["p1", "p2"]
        assert issues[0].current_stock == 100
        assert issues[0].calculated_stock == 60

    def test_consistent_product(self, catalogue, sales):
        movements = generate_stock_movements(catalogue, sales)
        catalogue[0].stock = 60
        catalogue[1].stock = 6
        assert validate_stock_consistency(catalogue, movements) == []
