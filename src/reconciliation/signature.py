# -*- coding: utf-8 -*-
"""Product signatures and canonical product resolution.

A signature is the stable identity of a product: lower(trim(name)) + "|" +
lower(trim(category)). The resolver maps a sale onto the canonical product
with that signature, creating it when none exists, and memoizes each answer
for the rest of the run.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from src.reconciliation.store import PRODUCTS_CLEAN, CanonicalStore, WriteBatch
from src.utils.data_cleaning import cell_text

logger = logging.getLogger(__name__)

DEFAULT_MIN_STOCK = 5
MIN_STOCK_RATIO = 0.2


def create_product_signature(name: Any, category: Any) -> str:
    """Stable product identity: "coca cola 33cl|boissons"."""
    return f"{cell_text(name).lower()}|{cell_text(category).lower()}"


def default_min_stock(
    stock: Optional[int] = None,
    floor: int = DEFAULT_MIN_STOCK,
    ratio: float = MIN_STOCK_RATIO,
) -> int:
    """Alert threshold for a new product: max(ceil(ratio * stock), floor)."""
    if not stock:
        return floor
    return max(math.ceil(round(stock * ratio, 9)), floor)


@dataclass
class Resolution:
    product_id: str
    signature: str
    created: bool


class ProductResolver:
    """Resolve (name, category) pairs to canonical product ids within one run.

    Lookups go memo map -> store query by signature -> create. New products
    are queued on the caller's write batch, so they become visible in the
    store once that batch commits; the memo map covers the meantime.
    """

    def __init__(
        self,
        store: CanonicalStore,
        collection: str = PRODUCTS_CLEAN,
        min_stock_floor: int = DEFAULT_MIN_STOCK,
        min_stock_ratio: float = MIN_STOCK_RATIO,
    ):
        self.store = store
        self.collection = collection
        self.min_stock_floor = min_stock_floor
        self.min_stock_ratio = min_stock_ratio
        self.memo: Dict[str, str] = {}
        self.created = 0

    def lookup(self, signature: str) -> Optional[str]:
        """Existing product id for a signature, from the memo map or the store."""
        if signature in self.memo:
            return self.memo[signature]

        matches = self.store.query_by_field(self.collection, "signature", signature)
        if not matches:
            return None

        if len(matches) > 1:
            logger.warning(
                f"{len(matches)} products share signature {signature!r}, using {matches[0]['id']}"
            )
        self.memo[signature] = matches[0]["id"]
        return matches[0]["id"]

    def resolve(
        self,
        name: str,
        category: str,
        price: float,
        batch: WriteBatch,
        stock: Optional[int] = None,
        now: Optional[str] = None,
    ) -> Resolution:
        """Find or create the canonical product for a sale.

        Args:
            name: Product name as written on the sale
            category: Category as written on the sale
            price: Unit price of the first sale seen for a new product
            batch: Write batch the new product is queued on
            stock: Explicit stock figure, when the source has one
            now: ISO timestamp for created_at/updated_at

        Returns:
            Resolution with the product id and whether it was created.
        """
        signature = create_product_signature(name, category)
        product_id = self.lookup(signature)
        if product_id is not None:
            return Resolution(product_id, signature, created=False)

        now = now or datetime.now().isoformat()
        product_id = self.store.new_id(self.collection)
        batch.set(
            self.collection,
            product_id,
            {
                "name": name,
                "category": category,
                "signature": signature,
                "price": price,
                "stock": 0,
                "initial_stock": 0,
                "min_stock": default_min_stock(stock, self.min_stock_floor, self.min_stock_ratio),
                "created_at": now,
                "updated_at": now,
            },
        )
        self.memo[signature] = product_id
        self.created += 1
        logger.debug(f"Queued new product {product_id} for signature {signature!r}")
        return Resolution(product_id, signature, created=True)
