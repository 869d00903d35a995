# -*- coding: utf-8 -*-
"""Tests for src/reconciliation/store.py."""

import os

import pandas as pd
import pytest

from src.reconciliation.store import (
    ID_LENGTH,
    PRODUCTS_CLEAN,
    SALES_CLEAN,
    CsvStore,
    InMemoryStore,
    StoreError,
)


@pytest.fixture(params=["memory", "csv"])
def any_store(request, tmp_path):
    """Each store implementation."""
    if request.param == "memory":
        return InMemoryStore()
    return CsvStore(tmp_path / "store")


class TestStoreInterface:
    """Behavior shared by every store."""

    def test_create_and_get(self, any_store):
        doc_id = any_store.create(PRODUCTS_CLEAN, {"name": "Mars", "stock": 3})
        assert len(doc_id) == ID_LENGTH
        doc = any_store.get_by_id(PRODUCTS_CLEAN, doc_id)
        assert doc == {"id": doc_id, "name": "Mars", "stock": 3}

    def test_get_missing(self, any_store):
        assert any_store.get_by_id(PRODUCTS_CLEAN, "nope") is None

    def test_query_by_field(self, any_store):
        any_store.create(PRODUCTS_CLEAN, {"name": "Mars", "signature": "mars|confiseries"})
        any_store.create(PRODUCTS_CLEAN, {"name": "Twix", "signature": "twix|confiseries"})
        matches = any_store.query_by_field(PRODUCTS_CLEAN, "signature", "twix|confiseries")
        assert [m["name"] for m in matches] == ["Twix"]

    def test_empty_collection(self, any_store):
        assert any_store.list_documents(SALES_CLEAN) == []
        assert any_store.count(SALES_CLEAN) == 0

    def test_batch_spans_collections(self, any_store):
        batch = any_store.batch()
        batch.set(PRODUCTS_CLEAN, "p1", {"name": "Mars"})
        batch.set(SALES_CLEAN, "s1", {"product_id": "p1", "quantity": 2})
        assert len(batch) == 2
        batch.commit()
        assert any_store.count(PRODUCTS_CLEAN) == 1
        assert any_store.get_by_id(SALES_CLEAN, "s1")["quantity"] == 2

    def test_update_merges_fields(self, any_store):
        batch = any_store.batch()
        batch.set(PRODUCTS_CLEAN, "p1", {"name": "Mars", "stock": 3})
        batch.commit()

        batch = any_store.batch()
        batch.update(PRODUCTS_CLEAN, "p1", {"stock": 10})
        batch.commit()
        assert any_store.get_by_id(PRODUCTS_CLEAN, "p1") == {"id": "p1", "name": "Mars", "stock": 10}

    def test_failed_batch_applies_nothing(self, any_store):
        """An update of a missing document aborts the whole batch."""
        batch = any_store.batch()
        batch.set(PRODUCTS_CLEAN, "p1", {"name": "Mars"})
        batch.update(PRODUCTS_CLEAN, "missing", {"stock": 1})
        with pytest.raises(StoreError):
            batch.commit()
        assert any_store.count(PRODUCTS_CLEAN) == 0

    def test_batch_commits_once(self, any_store):
        batch = any_store.batch()
        batch.set(PRODUCTS_CLEAN, "p1", {"name": "Mars"})
        batch.commit()
        with pytest.raises(StoreError):
            batch.commit()


class TestCsvStore:
    """File-backed specifics."""

    def test_round_trip_types(self, tmp_path):
        directory = tmp_path / "store"
        CsvStore(directory).create(
            SALES_CLEAN,
            {
                "product": "007",
                "date": "2024-03-10T00:00:00",
                "quantity": 2,
                "price": 1.5,
                "cleaned": True,
                "seller": None,
            },
        )

        reopened = CsvStore(directory)
        doc = reopened.list_documents(SALES_CLEAN)[0]
        assert doc["product"] == "007"
        assert doc["date"] == "2024-03-10T00:00:00"
        assert doc["quantity"] == 2
        assert doc["price"] == 1.5
        assert doc["cleaned"] is True
        assert doc["seller"] is None

    def test_id_column_first(self, tmp_path):
        store = CsvStore(tmp_path)
        store.create(PRODUCTS_CLEAN, {"name": "Mars"})
        df = pd.read_csv(store.path_for(PRODUCTS_CLEAN))
        assert list(df.columns) == ["id", "name"]

    def test_write_failure_leaves_collections_untouched(self, tmp_path, monkeypatch):
        store = CsvStore(tmp_path)
        store.create(PRODUCTS_CLEAN, {"name": "Mars"})
        before = store.path_for(PRODUCTS_CLEAN).read_text(encoding="utf-8")

        calls = {"n": 0}
        original = CsvStore._write

        def failing_write(docs, path):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OSError("disk full")
            original(docs, path)

        monkeypatch.setattr(CsvStore, "_write", staticmethod(failing_write))

        batch = store.batch()
        batch.set(PRODUCTS_CLEAN, "p2", {"name": "Twix"})
        batch.set(SALES_CLEAN, "s1", {"product_id": "p2"})
        with pytest.raises(StoreError):
            batch.commit()

        assert store.path_for(PRODUCTS_CLEAN).read_text(encoding="utf-8") == before
        assert not store.path_for(SALES_CLEAN).exists()
        assert list(tmp_path.glob("*.tmp")) == []
        assert store.count(PRODUCTS_CLEAN) == 1

    def test_replace_failure_names_replaced_collections(self, tmp_path, monkeypatch):
        store = CsvStore(tmp_path)
        calls = {"n": 0}
        original = os.replace

        def failing_replace(src, dst):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OSError("device busy")
            original(src, dst)

        monkeypatch.setattr(os, "replace", failing_replace)

        batch = store.batch()
        batch.set(PRODUCTS_CLEAN, "p1", {"name": "Mars"})
        batch.set(SALES_CLEAN, "s1", {"product_id": "p1"})
        with pytest.raises(StoreError, match=f"after replacing: {PRODUCTS_CLEAN}:"):
            batch.commit()

        assert store.path_for(PRODUCTS_CLEAN).exists()
        assert not store.path_for(SALES_CLEAN).exists()
        assert list(tmp_path.glob("*.tmp")) == []
