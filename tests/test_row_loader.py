# -*- coding: utf-8 -*-
"""Tests for src/reconciliation/row_loader.py."""

from datetime import datetime

import pandas as pd
import pytest

from src.reconciliation.row_loader import (
    detect_delimiter,
    frame_to_rows,
    load_raw_rows,
    parse_clipboard_data,
)


class TestLoadRawRows:
    """Test file loading."""

    def test_semicolon_csv(self, tmp_path):
        path = tmp_path / "ventes.csv"
        path.write_text(
            "Produit;Catégorie;Qté;Montant\n"
            "Coca Cola;Boissons;2;3,00 €\n"
            ";;;\n"
            "Mars;Confiseries;;1,20\n",
            encoding="utf-8-sig",
        )
        rows = load_raw_rows(path)

        assert len(rows) == 2
        assert rows[0] == {
            "Produit": "Coca Cola",
            "Catégorie": "Boissons",
            "Qté": "2",
            "Montant": "3,00 €",
            "_row_index": 2,
        }
        assert rows[1]["Qté"] is None
        assert rows[1]["_row_index"] == 4

    def test_leading_zeros_kept(self, tmp_path):
        path = tmp_path / "codes.csv"
        path.write_text("Produit,Code\nMars,007\n", encoding="utf-8")
        assert load_raw_rows(path)[0]["Code"] == "007"

    def test_xlsx(self, tmp_path):
        path = tmp_path / "stock.xlsx"
        pd.DataFrame(
            {
                "Produit": ["Coca Cola", "Mars"],
                "Date": [datetime(2024, 3, 1), datetime(2024, 3, 2)],
                "Quantité": [10, 4],
            }
        ).to_excel(path, index=False, engine="openpyxl")

        rows = load_raw_rows(path)

        assert rows[1]["Produit"] == "Mars"
        assert rows[1]["Quantité"] == 4
        assert isinstance(rows[1]["Quantité"], int)
        assert rows[0]["Date"].startswith("2024-03-01")
        assert rows[1]["_row_index"] == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_raw_rows(tmp_path / "absent.csv")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "ventes.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported file type"):
            load_raw_rows(path)

    def test_header_only(self, tmp_path):
        path = tmp_path / "vide.csv"
        path.write_text("Produit,Catégorie\n", encoding="utf-8")
        with pytest.raises(ValueError, match="at least one data row"):
            load_raw_rows(path)


class TestClipboard:
    @pytest.mark.parametrize(
        "text,expected",
        [("a\tb;c", "\t"), ("a;b,c", ";"), ("a,b", ","), ("ab", "\t"), ("", "\t")],
    )
    def test_detect_delimiter(self, text, expected):
        assert detect_delimiter(text) == expected

    def test_tab_separated(self):
        rows = parse_clipboard_data("Produit\tQté\n Coca Cola \t2\nMars\t\n")
        assert rows[0]["Produit"] == "Coca Cola"
        assert rows[0]["Qté"] == "2"
        assert rows[1]["Qté"] is None

    def test_needs_data_row(self):
        with pytest.raises(ValueError):
            parse_clipboard_data("Produit;Qté\n")


def test_frame_to_rows_converts_missing_values():
    df = pd.DataFrame({"Produit": ["Mars", None], "Prix": [1.2, float("nan")]})
    rows = frame_to_rows(df)
    assert rows == [{"Produit": "Mars", "Prix": 1.2, "_row_index": 2}]
