# -*- coding: utf-8 -*-
"""Shared XLSX formatting utilities for the sales and product exports."""

import logging
from datetime import date, datetime
from pathlib import Path

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
DEFAULT_COLUMN_WIDTH = 20


class XLSXFormatter:
    """XLSX writer driven by an export template's COLUMNS list."""

    @staticmethod
    def format_header(
        worksheet,
        template: "ExportTemplate",
        column_width: int = DEFAULT_COLUMN_WIDTH,
    ) -> None:
        """Apply header styling and set column widths.

        Args:
            worksheet: openpyxl Worksheet to format
            template: ExportTemplate with COLUMNS definitions
            column_width: Default column width
        """
        for col_idx, _ in enumerate(template.COLUMNS, start=1):
            cell = worksheet.cell(row=1, column=col_idx)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.alignment = Alignment(horizontal="center", vertical="center")
            worksheet.column_dimensions[cell.column_letter].width = column_width

    @staticmethod
    def apply_column_formats(
        worksheet,
        template: "ExportTemplate",
        start_row: int = 2,
    ) -> None:
        """Apply number/date formats to data columns."""
        max_row = worksheet.max_row
        if max_row < start_row:
            return

        for col_idx, col_spec in enumerate(template.COLUMNS, start=1):
            if not col_spec.format_code:
                continue
            for row in range(start_row, max_row + 1):
                cell = worksheet.cell(row=row, column=col_idx)
                cell.number_format = col_spec.format_code
                if col_spec.data_type == "number":
                    cell.alignment = Alignment(horizontal="right")

    @staticmethod
    def write_xlsx(
        df: pd.DataFrame,
        output_path: Path,
        template: "ExportTemplate",
        sheet_name: str = "Sheet1",
        column_width: int = DEFAULT_COLUMN_WIDTH,
    ) -> Path:
        """Write DataFrame to XLSX with standard formatting.

        Args:
            df: DataFrame whose columns are named after the template columns
            output_path: Path to output XLSX file
            template: ExportTemplate with COLUMNS definitions
            sheet_name: Name for the worksheet
            column_width: Default column width

        Returns:
            Path of the written workbook.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = sheet_name

        for col_idx, col_spec in enumerate(template.COLUMNS, start=1):
            worksheet.cell(row=1, column=col_idx, value=col_spec.name)

        for row_offset, (_, row) in enumerate(df.iterrows()):
            for col_idx, col_spec in enumerate(template.COLUMNS, start=1):
                value = row.get(col_spec.name)
                if value is None or (not isinstance(value, str) and pd.isna(value)):
                    value = ""
                elif col_spec.data_type == "date":
                    if isinstance(value, pd.Timestamp):
                        value = value.to_pydatetime()
                    elif not isinstance(value, (date, datetime)):
                        value = str(value)
                elif col_spec.data_type == "number":
                    value = float(value)
                elif not isinstance(value, str):
                    value = str(value)
                worksheet.cell(row=row_offset + 2, column=col_idx, value=value)

        XLSXFormatter.format_header(worksheet, template, column_width)
        XLSXFormatter.apply_column_formats(worksheet, template)

        workbook.save(output_path)
        logger.info(f"Wrote XLSX: {output_path}")
        return output_path
