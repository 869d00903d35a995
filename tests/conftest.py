# -*- coding: utf-8 -*-
"""Shared fixtures for the reconciliation tests."""

from typing import Any, Dict, List

import pytest

from src.reconciliation.models import CanonicalProduct, SaleEvent
from src.reconciliation.store import InMemoryStore

SALES_HEADERS = ["Produit", "Catégorie", "Caisse", "Date", "Vendeur", "Qté", "Montant"]


def sale_row(
    product: str = "Coca Cola 33cl",
    category: str = "Boissons",
    register: str = "Caisse 1",
    day: str = "15/02/2024",
    seller: str = "Marie",
    quantity: Any = "2",
    amount: Any = "3,00 €",
) -> Dict[str, Any]:
    """Raw sales row keyed by French register-export headers."""
    return dict(zip(SALES_HEADERS, [product, category, register, day, seller, quantity, amount]))


def sale_event(sale_id: str, quantity: float, day, product="Coca Cola 33cl", category="Boissons") -> SaleEvent:
    return SaleEvent(id=sale_id, product=product, category=category, date=day, quantity=quantity)


@pytest.fixture
def store():
    """Empty in-memory canonical store."""
    return InMemoryStore()


@pytest.fixture
def sales_rows() -> List[Dict[str, Any]]:
    """Three valid sales rows for two products."""
    return [
        sale_row(),
        sale_row(product="Mars", category="Confiseries", register="Caisse 2", seller="Paul",
                 quantity="1", amount="1,20"),
        sale_row(day="16/02/2024", quantity="4", amount="6"),
    ]


@pytest.fixture
def product() -> CanonicalProduct:
    """Product with a baseline of 100 units and no cutoff date."""
    return CanonicalProduct(
        id="p1",
        name="Coca Cola 33cl",
        category="Boissons",
        signature="coca cola 33cl|boissons",
        price=1.5,
        stock=100,
        initial_stock=100,
        min_stock=5,
    )


@pytest.fixture
def make_sale_row():
    """Factory for raw sales rows."""
    return sale_row


@pytest.fixture
def make_sale_event():
    """Factory for ledger sale events."""
    return sale_event
