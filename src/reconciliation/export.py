# -*- coding: utf-8 -*-
"""Sales and product exports: delimited text and formatted XLSX.

The CSV layout is fixed: Product, Category, Register, Date, Seller,
Quantity, Amount (unit price), Total, with quoted text fields and dd/mm/yyyy
dates.

Usage:
    from src.reconciliation.export import SalesExportTemplate, export_sales_to_csv, export_to_xlsx

    export_sales_to_csv(store.list_documents(REGISTER_SALES), "ventes.csv")
    export_to_xlsx(store.list_documents(REGISTER_SALES), "ventes.xlsx", SalesExportTemplate)
"""

import logging
from dataclasses import asdict, dataclass, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Union

import pandas as pd

from src.reconciliation.stock_ledger import SaleLike, as_count, to_sale_events
from src.utils.data_cleaning import parse_date
from src.utils.xlsx_formatting import XLSXFormatter

logger = logging.getLogger(__name__)

CSV_HEADERS = ["Product", "Category", "Register", "Date", "Seller", "Quantity", "Amount", "Total"]
CSV_DATE_FORMAT = "%d/%m/%Y"


@dataclass(frozen=True)
class ExportColumn:
    """One output column: header, source key, data type and Excel number format."""

    name: str
    key: str
    data_type: str = "text"
    format_code: str = ""


class ExportTemplate:
    """Base for export layouts; subclasses list their COLUMNS."""

    COLUMNS: List[ExportColumn] = []
    SHEET_NAME = "Sheet1"

    @classmethod
    def column_names(cls) -> List[str]:
        return [col.name for col in cls.COLUMNS]


class SalesExportTemplate(ExportTemplate):
    SHEET_NAME = "Sales"
    COLUMNS = [
        ExportColumn("Product", "product"),
        ExportColumn("Category", "category"),
        ExportColumn("Register", "register"),
        ExportColumn("Date", "date", "date", "DD/MM/YYYY"),
        ExportColumn("Seller", "seller"),
        ExportColumn("Quantity", "quantity", "number", "0"),
        ExportColumn("Amount", "price", "number", "#,##0.00"),
        ExportColumn("Total", "total", "number", "#,##0.00"),
    ]


class ProductExportTemplate(ExportTemplate):
    SHEET_NAME = "Products"
    COLUMNS = [
        ExportColumn("Name", "name"),
        ExportColumn("Category", "category"),
        ExportColumn("Price", "price", "number", "#,##0.00"),
        ExportColumn("Stock", "stock", "number", "0"),
        ExportColumn("MinStock", "min_stock", "number", "0"),
        ExportColumn("InitialStock", "initial_stock", "number", "0"),
        ExportColumn("InitialStockDate", "initial_stock_date", "date", "DD/MM/YYYY"),
        ExportColumn("Description", "description"),
    ]


def _quoted(value: Any) -> str:
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'


def _number(value: float) -> str:
    return str(as_count(value))


def sales_to_csv(sales: Sequence[SaleLike]) -> str:
    """Serialize sales to comma-separated text with a header line."""
    lines = [",".join(CSV_HEADERS)]
    for sale in to_sale_events(sales):
        lines.append(
            ",".join(
                [
                    _quoted(sale.product),
                    _quoted(sale.category),
                    _quoted(sale.register),
                    sale.date.strftime(CSV_DATE_FORMAT) if sale.date else "",
                    _quoted(sale.seller),
                    _number(sale.quantity),
                    _number(sale.price),
                    _number(sale.total),
                ]
            )
        )
    return "\n".join(lines) + "\n"


def export_sales_to_csv(sales: Sequence[SaleLike], output_path: Union[str, Path]) -> Path:
    """Write sales_to_csv output to a UTF-8 file.

    Returns:
        Path of the written file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(sales_to_csv(sales), encoding="utf-8")
    logger.info(f"Exported {len(sales)} sales to {output_path}")
    return output_path


def _as_mapping(record: Any) -> Mapping[str, Any]:
    if is_dataclass(record):
        return asdict(record)
    return record


def records_frame(records: Sequence[Any], template: type) -> pd.DataFrame:
    """DataFrame with one column per template column, dates parsed."""
    rows: List[Dict[str, Any]] = []
    for record in records:
        data = _as_mapping(record)
        row = {}
        for col in template.COLUMNS:
            value = data.get(col.key)
            if col.data_type == "date" and value is not None:
                value = parse_date(value) or value
            row[col.name] = value
        rows.append(row)
    return pd.DataFrame(rows, columns=template.column_names())


def export_to_xlsx(records: Sequence[Any], output_path: Union[str, Path], template: type) -> Path:
    """Write records (dicts or dataclasses) to a formatted workbook.

    Args:
        records: Sale or product documents
        output_path: Target .xlsx path
        template: ExportTemplate subclass describing the columns

    Returns:
        Path of the written workbook.
    """
    df = records_frame(records, template)
    return XLSXFormatter.write_xlsx(df, Path(output_path), template, sheet_name=template.SHEET_NAME)
