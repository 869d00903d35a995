# -*- coding: utf-8 -*-
"""Sales aggregates shared by the import preview and the stock report."""

import logging
from typing import Any, Dict, List, Mapping, Sequence, Union

import pandas as pd

from src.reconciliation.models import SaleRecord, SalesTotals

logger = logging.getLogger(__name__)

SaleRow = Union[SaleRecord, Mapping[str, Any]]

SALE_COLUMNS = ["product", "category", "register", "seller", "quantity", "total"]


def sales_frame(sales: Sequence[SaleRow]) -> pd.DataFrame:
    """DataFrame with one row per sale and the aggregation columns."""
    records = []
    for sale in sales:
        if isinstance(sale, SaleRecord):
            records.append({col: getattr(sale, col) for col in SALE_COLUMNS})
        else:
            records.append({col: sale.get(col) for col in SALE_COLUMNS})

    df = pd.DataFrame.from_records(records, columns=SALE_COLUMNS)
    df["quantity"] = pd.to_numeric(df["quantity"], errors="coerce").fillna(0)
    df["total"] = pd.to_numeric(df["total"], errors="coerce").fillna(0.0)
    return df


def _grouped(df: pd.DataFrame, column: str) -> Dict[str, Dict[str, float]]:
    grouped = df.groupby(column, sort=True)[["quantity", "total"]].sum()
    return {
        str(key): {"quantity": _native(row["quantity"]), "revenue": float(row["total"])}
        for key, row in grouped.iterrows()
    }


def _native(value: float):
    value = float(value)
    return int(value) if value.is_integer() else value


def calculate_totals(sales: Sequence[SaleRow]) -> SalesTotals:
    """Quantity and revenue (sum of signed totals) by product, seller and register."""
    if not sales:
        return SalesTotals()

    df = sales_frame(sales)
    return SalesTotals(
        by_product=_grouped(df, "product"),
        by_seller=_grouped(df, "seller"),
        by_register=_grouped(df, "register"),
        overall={
            "quantity": _native(df["quantity"].sum()),
            "revenue": float(df["total"].sum()),
        },
    )


def calculate_total_quantity_sold(sales: Sequence[SaleRow]):
    if not sales:
        return 0
    return _native(sales_frame(sales)["quantity"].sum())


def calculate_total_revenue(sales: Sequence[SaleRow]) -> float:
    if not sales:
        return 0.0
    return float(sales_frame(sales)["total"].sum())


def calculate_average_ticket(sales: Sequence[SaleRow]) -> float:
    """Mean sale total; 0 for no sales."""
    if not sales:
        return 0.0
    return calculate_total_revenue(sales) / len(sales)


def _unique(sales: Sequence[SaleRow], column: str) -> List[str]:
    if not sales:
        return []
    values = sales_frame(sales)[column].dropna().astype(str)
    return list(dict.fromkeys(values))


def get_unique_categories(sales: Sequence[SaleRow]) -> List[str]:
    return _unique(sales, "category")


def get_unique_sellers(sales: Sequence[SaleRow]) -> List[str]:
    return _unique(sales, "seller")


def get_unique_registers(sales: Sequence[SaleRow]) -> List[str]:
    return _unique(sales, "register")
