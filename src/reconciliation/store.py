# -*- coding: utf-8 -*-
"""Canonical document store: collection-scoped reads plus atomic batched writes.

Two implementations share the CanonicalStore interface:
- InMemoryStore: dict-backed, for library callers and tests
- CsvStore: one UTF-8 CSV per collection, the layout used for staging files

Usage:
    store = CsvStore(path_config.store_dir)
    batch = store.batch()
    batch.set(PRODUCTS_CLEAN, store.new_id(), {"name": "Coca", ...})
    batch.commit()
"""

import logging
import os
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

REGISTER_SALES = "register_sales"
PRODUCTS_CLEAN = "products_clean"
SALES_CLEAN = "register_sales_clean"
PRODUCTS = "products"

COLLECTIONS = (REGISTER_SALES, PRODUCTS_CLEAN, SALES_CLEAN, PRODUCTS)

ID_LENGTH = 20

Document = Dict[str, Any]
WriteOp = Tuple[str, str, str, Document]


class StoreError(Exception):
    """Raised when a store read or an atomic commit fails."""


class WriteBatch:
    """Queued writes applied all-or-nothing by commit()."""

    def __init__(self, store: "CanonicalStore"):
        self._store = store
        self._ops: List[WriteOp] = []
        self._committed = False

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        """Create or overwrite a document."""
        self._ops.append(("set", collection, doc_id, dict(data)))

    def update(self, collection: str, doc_id: str, fields: Document) -> None:
        """Merge fields into an existing document."""
        self._ops.append(("update", collection, doc_id, dict(fields)))

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> None:
        """Apply every queued write, or none of them.

        Raises:
            StoreError: If the batch was already committed or the store rejects it.
        """
        if self._committed:
            raise StoreError("Batch already committed")
        if self._ops:
            self._store._apply(self._ops)
        self._committed = True
        logger.debug(f"Committed batch of {len(self._ops)} writes")


class CanonicalStore(ABC):
    """Collection-scoped document store."""

    @abstractmethod
    def _read(self, collection: str) -> Dict[str, Document]:
        """Return {doc_id: data} for a collection (empty if it does not exist)."""

    @abstractmethod
    def _apply(self, ops: List[WriteOp]) -> None:
        """Apply write operations atomically."""

    def new_id(self, collection: Optional[str] = None) -> str:
        return uuid.uuid4().hex[:ID_LENGTH]

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def list_documents(self, collection: str) -> List[Document]:
        """All documents of a collection, each with its "id" key."""
        return [{"id": doc_id, **data} for doc_id, data in self._read(collection).items()]

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        data = self._read(collection).get(doc_id)
        return {"id": doc_id, **data} if data is not None else None

    def query_by_field(self, collection: str, field: str, value: Any) -> List[Document]:
        """Documents whose field equals value."""
        return [
            {"id": doc_id, **data}
            for doc_id, data in self._read(collection).items()
            if data.get(field) == value
        ]

    def create(self, collection: str, data: Document) -> str:
        """Create a document with a store-assigned id."""
        doc_id = self.new_id(collection)
        batch = self.batch()
        batch.set(collection, doc_id, data)
        batch.commit()
        return doc_id

    def count(self, collection: str) -> int:
        return len(self._read(collection))


def _staged(current: Dict[str, Dict[str, Document]], ops: List[WriteOp]) -> Dict[str, Dict[str, Document]]:
    """Apply ops to copies of the touched collections."""
    staged: Dict[str, Dict[str, Document]] = {}
    for op, collection, doc_id, data in ops:
        if collection not in staged:
            staged[collection] = {k: dict(v) for k, v in current.get(collection, {}).items()}
        docs = staged[collection]
        if op == "set":
            docs[doc_id] = dict(data)
        elif op == "update":
            if doc_id not in docs:
                raise StoreError(f"Cannot update missing document {collection}/{doc_id}")
            docs[doc_id].update(data)
        else:
            raise StoreError(f"Unknown write operation: {op}")
    return staged


class InMemoryStore(CanonicalStore):
    """Dict-backed store."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Document]]] = None):
        self._collections: Dict[str, Dict[str, Document]] = {
            name: {k: dict(v) for k, v in docs.items()} for name, docs in (initial or {}).items()
        }

    def _read(self, collection: str) -> Dict[str, Document]:
        return self._collections.get(collection, {})

    def _apply(self, ops: List[WriteOp]) -> None:
        staged = _staged(self._collections, ops)
        self._collections.update(staged)


# Columns kept as text when a CSV collection is read back.
TEXT_COLUMNS = {
    "id",
    "name",
    "category",
    "signature",
    "description",
    "product",
    "register",
    "seller",
    "date",
    "product_id",
    "product_signature",
    "initial_stock_date",
    "created_at",
    "updated_at",
}

_INT_PATTERN = re.compile(r"^-?\d+$")
_FLOAT_PATTERN = re.compile(r"^-?(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?$")


def _decode(column: str, raw: str) -> Any:
    if raw == "":
        return None
    if column in TEXT_COLUMNS:
        return raw
    if raw in ("True", "False"):
        return raw == "True"
    if _INT_PATTERN.match(raw):
        return int(raw)
    if _FLOAT_PATTERN.match(raw):
        return float(raw)
    return raw


class CsvStore(CanonicalStore):
    """One CSV file per collection inside a directory.

    A commit writes every touched collection to a temporary file first and
    only replaces the originals once all of them were written. A failure while
    replacing the originals raises StoreError naming the collections already
    replaced.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._cache: Dict[str, Dict[str, Document]] = {}

    def path_for(self, collection: str) -> Path:
        return self.directory / f"{collection}.csv"

    def _read(self, collection: str) -> Dict[str, Document]:
        if collection in self._cache:
            return self._cache[collection]

        path = self.path_for(collection)
        docs: Dict[str, Document] = {}
        if path.exists():
            try:
                df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8")
            except (OSError, ValueError) as e:
                raise StoreError(f"Failed to read {path.name}: {e}") from e
            for record in df.to_dict("records"):
                doc_id = record.pop("id")
                docs[doc_id] = {col: _decode(col, val) for col, val in record.items()}
            logger.debug(f"Loaded {len(docs)} documents from {path.name}")

        self._cache[collection] = docs
        return docs

    def _apply(self, ops: List[WriteOp]) -> None:
        current = {collection: self._read(collection) for _, collection, _, _ in ops}
        staged = _staged(current, ops)

        temp_paths: Dict[str, Path] = {}
        try:
            for collection, docs in staged.items():
                temp_path = self.path_for(collection).with_suffix(".csv.tmp")
                temp_paths[collection] = temp_path
                self._write(docs, temp_path)
        except (OSError, ValueError) as e:
            for temp_path in temp_paths.values():
                temp_path.unlink(missing_ok=True)
            raise StoreError(f"Commit failed, no collection was modified: {e}") from e

        replaced: List[str] = []
        try:
            for collection, temp_path in temp_paths.items():
                os.replace(temp_path, self.path_for(collection))
                self._cache[collection] = staged[collection]
                replaced.append(collection)
        except OSError as e:
            for temp_path in temp_paths.values():
                temp_path.unlink(missing_ok=True)
            done = ", ".join(replaced) or "none"
            raise StoreError(f"Commit interrupted after replacing: {done}: {e}") from e
        logger.debug(f"Committed {len(ops)} writes to {', '.join(staged)}")

    @staticmethod
    def _write(docs: Dict[str, Document], path: Path) -> None:
        columns: List[str] = ["id"]
        for data in docs.values():
            for key in data:
                if key not in columns:
                    columns.append(key)

        records = [{"id": doc_id, **data} for doc_id, data in docs.items()]
        df = pd.DataFrame.from_records(records, columns=columns)
        df.to_csv(path, index=False, encoding="utf-8")
