# -*- coding: utf-8 -*-
"""Stock movement history reconstructed from products and the sales log.

Each product with a positive baseline contributes an initial movement; each
sale matching a product by signature contributes a negative movement. The
movement list then answers point-in-time and per-period questions.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Sequence

from src.reconciliation.models import CanonicalProduct
from src.reconciliation.signature import create_product_signature
from src.reconciliation.stock_ledger import SaleLike, as_count, cutoff_day, to_sale_events

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_DATE = date(2024, 1, 1)


class MovementType(Enum):
    SALE = "sale"
    IMPORT = "import"
    ADJUSTMENT = "adjustment"
    INITIAL = "initial"


@dataclass(frozen=True)
class StockMovement:
    """Signed stock change: positive for additions, negative for sales."""

    id: str
    product_id: str
    product_name: str
    category: str
    type: MovementType
    quantity: float
    date: date
    reference: Optional[str] = None
    description: str = ""


@dataclass
class HistoricalStockState:
    product_id: str
    product_name: str
    category: str
    stock_at_date: float
    initial_stock: int
    total_sold: float
    total_added: float
    last_movement_date: Optional[date] = None
    movements: List[StockMovement] = field(default_factory=list)


@dataclass
class HistoricalStockSummary:
    total_products: int
    total_stock: float
    products_sold: float
    out_of_stock_items: int
    low_stock_items: int
    stock_by_category: Dict[str, float]
    movements_summary: Dict[str, float]


@dataclass(frozen=True)
class StockIssue:
    product_id: str
    product_name: str
    issue: str
    current_stock: float
    calculated_stock: float


@dataclass(frozen=True)
class TimelinePoint:
    date: date
    stock: float
    movement: Optional[StockMovement] = None


def generate_stock_movements(
    products: Sequence[CanonicalProduct], sales: Sequence[SaleLike]
) -> List[StockMovement]:
    """Movement list sorted by date (initial movements first on a tie)."""
    movements: List[StockMovement] = []
    by_signature: Dict[str, CanonicalProduct] = {}

    for product in products:
        by_signature.setdefault(create_product_signature(product.name, product.category), product)
        if product.initial_stock and product.initial_stock > 0:
            movements.append(
                StockMovement(
                    id=f"initial-{product.id}",
                    product_id=product.id,
                    product_name=product.name,
                    category=product.category,
                    type=MovementType.INITIAL,
                    quantity=product.initial_stock,
                    date=cutoff_day(product) or DEFAULT_INITIAL_DATE,
                    description="Initial stock",
                )
            )

    skipped = 0
    for sale in to_sale_events(sales):
        product = by_signature.get(create_product_signature(sale.product, sale.category))
        if product is None:
            continue
        if sale.date is None:
            skipped += 1
            continue
        movements.append(
            StockMovement(
                id=f"sale-{sale.id}",
                product_id=product.id,
                product_name=product.name,
                category=product.category,
                type=MovementType.SALE,
                quantity=-sale.quantity,
                date=sale.date,
                reference=sale.id,
                description=f"Sale - {sale.seller} ({sale.register})",
            )
        )

    if skipped:
        logger.warning(f"{skipped} undated sales left out of the movement history")

    movements.sort(key=lambda m: (m.date, m.type is not MovementType.INITIAL))
    return movements


def _in_period(movement: StockMovement, start: date, end: date) -> bool:
    return start <= movement.date <= end


def calculate_historical_stock(
    products: Sequence[CanonicalProduct],
    movements: Sequence[StockMovement],
    target_date: date,
) -> List[HistoricalStockState]:
    """Stock of every product at the end of target_date."""
    by_product: Dict[str, List[StockMovement]] = defaultdict(list)
    for movement in movements:
        if movement.date <= target_date:
            by_product[movement.product_id].append(movement)

    states: List[HistoricalStockState] = []
    for product in products:
        product_movements = by_product.get(product.id, [])
        added = sum(m.quantity for m in product_movements if m.quantity > 0)
        sold = sum(-m.quantity for m in product_movements if m.quantity < 0)
        states.append(
            HistoricalStockState(
                product_id=product.id,
                product_name=product.name,
                category=product.category,
                stock_at_date=as_count(max(0, added - sold)),
                initial_stock=product.initial_stock or 0,
                total_sold=as_count(sold),
                total_added=as_count(added),
                last_movement_date=max((m.date for m in product_movements), default=None),
                movements=product_movements,
            )
        )
    return states


def calculate_historical_summary(
    states: Sequence[HistoricalStockState],
    products: Sequence[CanonicalProduct],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> HistoricalStockSummary:
    """Totals over historical states, with movement counts for a period when given."""
    products_sold = 0.0
    totals = {"total_sales": 0.0, "total_imports": 0.0, "total_adjustments": 0.0}

    if start_date and end_date:
        for state in states:
            for movement in state.movements:
                if not _in_period(movement, start_date, end_date):
                    continue
                if movement.type is MovementType.SALE:
                    products_sold += abs(movement.quantity)
                    totals["total_sales"] += abs(movement.quantity)
                elif movement.type in (MovementType.IMPORT, MovementType.INITIAL):
                    totals["total_imports"] += movement.quantity
                elif movement.type is MovementType.ADJUSTMENT:
                    totals["total_adjustments"] += abs(movement.quantity)
    else:
        products_sold = sum(state.total_sold for state in states)
        totals["total_sales"] = products_sold

    min_stock = {product.id: product.min_stock for product in products}
    stock_by_category: Dict[str, float] = defaultdict(float)
    for state in states:
        stock_by_category[state.category] += state.stock_at_date

    return HistoricalStockSummary(
        total_products=len(states),
        total_stock=as_count(sum(state.stock_at_date for state in states)),
        products_sold=as_count(products_sold),
        out_of_stock_items=sum(1 for state in states if state.stock_at_date == 0),
        low_stock_items=sum(
            1
            for state in states
            if state.product_id in min_stock
            and 0 < state.stock_at_date <= min_stock[state.product_id]
        ),
        stock_by_category=dict(stock_by_category),
        movements_summary={key: as_count(value) for key, value in totals.items()},
    )


def get_movements_in_period(
    movements: Sequence[StockMovement], start_date: date, end_date: date
) -> List[StockMovement]:
    """Movements between two days inclusive, most recent first."""
    selected = [m for m in movements if _in_period(m, start_date, end_date)]
    return sorted(selected, key=lambda m: m.date, reverse=True)


def get_product_stock_timeline(
    product_id: str,
    movements: Sequence[StockMovement],
    start_date: date,
    end_date: date,
) -> List[TimelinePoint]:
    """Stock level of one product after each movement in a period.

    The first point is the stock carried into start_date.
    """
    product_movements = sorted(
        (m for m in movements if m.product_id == product_id), key=lambda m: m.date
    )

    current = sum(m.quantity for m in product_movements if m.date < start_date)
    timeline = [TimelinePoint(date=start_date, stock=as_count(max(0, current)))]

    for movement in product_movements:
        if not _in_period(movement, start_date, end_date):
            continue
        current += movement.quantity
        timeline.append(
            TimelinePoint(date=movement.date, stock=as_count(max(0, current)), movement=movement)
        )
    return timeline


def validate_stock_consistency(
    products: Sequence[CanonicalProduct], movements: Sequence[StockMovement]
) -> List[StockIssue]:
    """Products whose stored stock differs from the movement total."""
    totals: Dict[str, float] = defaultdict(float)
    for movement in movements:
        totals[movement.product_id] += movement.quantity

    issues: List[StockIssue] = []
    for product in products:
        calculated = max(0, totals.get(product.id, 0.0))
        if abs(calculated - product.stock) > 0.01:
            issues.append(
                StockIssue(
                    product_id=product.id,
                    product_name=product.name,
                    issue="Calculated stock does not match current stock",
                    current_stock=product.stock,
                    calculated_stock=as_count(calculated),
                )
            )
    return issues
