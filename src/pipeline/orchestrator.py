#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Reconciliation Orchestrator

Commands:
1. validate-sales / import-sales: check a sales file, then append it to the sales log
2. validate-products: report on a product sheet without writing anything
3. import-stock: add received quantities to the product catalogue
4. rebuild: rebuild canonical products and sales from the sales log
5. stock / configure-stock: stock report and per-product baseline
6. export-sales: write the sales log (or the canonical sales) to CSV or XLSX

The store is a directory of CSV files configured under [dirs] in pipeline.toml.
Files rejected for structural problems are copied to the rejected directory.
"""

import argparse
import logging
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.reconciliation.export import SalesExportTemplate, export_sales_to_csv, export_to_xlsx
from src.reconciliation.lineage import ImportLineage
from src.reconciliation.models import CanonicalProduct
from src.reconciliation.product_validation import validate_product_sheet
from src.reconciliation.rebuild import rebuild_clean_database
from src.reconciliation.row_loader import load_raw_rows
from src.reconciliation.sales_import import commit_sales_import, validate_sales_import
from src.reconciliation.stock_import import apply_stock_import, validate_stock_import
from src.reconciliation.stock_ledger import (
    ProductSalesCache,
    calculate_aggregated_stock_stats,
    calculate_stock_final,
    configure_product_stock,
    validate_stock_configuration,
)
from src.reconciliation.store import (
    PRODUCTS,
    PRODUCTS_CLEAN,
    REGISTER_SALES,
    SALES_CLEAN,
    CsvStore,
    StoreError,
)
from src.utils.config import load_pipeline_config, load_validation_config
from src.utils.path_config import PathConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LISTED_FINDINGS = 20

logger = logging.getLogger(__name__)


class Context:
    """Configuration, paths and store shared by every command."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config = load_pipeline_config(config_path)
        self.paths = PathConfig(config=self.config)
        self.paths.ensure_all()
        self.validation = load_validation_config(self.config)
        self.store = CsvStore(self.paths.store_dir)

    def reject(self, source: Path) -> Path:
        """Copy a rejected input file to the rejected directory."""
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        target = self.paths.rejected_dir / f"{stamp}_{source.name}"
        shutil.copy2(source, target)
        logger.warning(f"Rejected file copied to {target}")
        return target


# === REPORTING ===


def _log_findings(errors: List[Any], warnings: List[Any]) -> None:
    for error in errors[:MAX_LISTED_FINDINGS]:
        logger.error(f"Row {error.row} [{error.field}] {error.message}")
    if len(errors) > MAX_LISTED_FINDINGS:
        logger.error(f"... and {len(errors) - MAX_LISTED_FINDINGS} more errors")
    for warning in warnings[:MAX_LISTED_FINDINGS]:
        logger.warning(f"Row {warning.row} [{warning.field}] {warning.message}")
    if len(warnings) > MAX_LISTED_FINDINGS:
        logger.warning(f"... and {len(warnings) - MAX_LISTED_FINDINGS} more warnings")


def _banner(title: str) -> None:
    logger.info("=" * 70)
    logger.info(title)
    logger.info("=" * 70)


# === COMMANDS ===


def cmd_validate_sales(ctx: Context, path: Path, commit: bool = False) -> bool:
    """Validate a sales file and optionally append its valid rows to the log."""
    _banner(f"{'IMPORT' if commit else 'VALIDATE'} SALES: {path.name}")
    rows = load_raw_rows(path)
    preview = validate_sales_import(
        rows, existing_sales=ctx.store.list_documents(REGISTER_SALES), config=ctx.validation
    )
    _log_findings(preview.errors, preview.warnings)

    lineage = ImportLineage(ctx.paths.lineage_dir)
    lineage.track_preview(path.name, "import_sales" if commit else "validate_sales", preview)
    lineage.save()

    if preview.structural_error:
        ctx.reject(path)
        return False

    overall = preview.totals.overall
    logger.info(
        f"{len(preview.data)} valid sales, {len(preview.duplicates)} duplicates, "
        f"{len(preview.errors)} errors ({overall['quantity']} units, revenue {overall['revenue']:.2f})"
    )
    if not commit:
        return preview.is_valid

    written = commit_sales_import(ctx.store, preview)
    logger.info(f"{written} sales appended to {REGISTER_SALES}")
    return True


def cmd_validate_products(ctx: Context, path: Path) -> bool:
    _banner(f"VALIDATE PRODUCTS: {path.name}")
    rows = load_raw_rows(path)
    report = validate_product_sheet(
        rows, existing_products=ctx.store.list_documents(PRODUCTS), config=ctx.validation
    )
    _log_findings(report.errors, report.warnings)
    for suggestion in report.suggestions:
        logger.info(f"Suggestion ({suggestion.impact.value}): {suggestion.message}")

    stats = report.statistics
    logger.info(
        f"{stats.valid_rows}/{stats.total_rows} valid rows, {stats.duplicate_rows} duplicate rows, "
        f"{len(stats.categories_found)} categories, prices {stats.price_range['min']}"
        f"-{stats.price_range['max']}, stock total {stats.stock_range['total']}"
    )

    lineage = ImportLineage(ctx.paths.lineage_dir)
    lineage.track_preview(path.name, "validate_products", report)
    lineage.save()

    if any(e.field == "structure" for e in report.errors):
        ctx.reject(path)
    return report.is_valid


def cmd_import_stock(ctx: Context, path: Path) -> bool:
    _banner(f"IMPORT STOCK: {path.name}")
    rows = load_raw_rows(path)
    preview = validate_stock_import(rows, config=ctx.validation)
    _log_findings(preview.errors, preview.warnings)

    lineage = ImportLineage(ctx.paths.lineage_dir)
    lineage.track_preview(path.name, "import_stock", preview)
    lineage.save()

    if not preview.is_valid:
        ctx.reject(path)
        logger.error("Stock file has errors, nothing imported")
        return False

    result = apply_stock_import(
        ctx.store,
        preview,
        batch_size=ctx.config["stock_import"]["batch_size"],
        show_progress=True,
    )
    for line in result.summary.splitlines():
        logger.info(line)
    for error in result.errors:
        logger.error(error)
    return result.success


def cmd_rebuild(ctx: Context) -> bool:
    settings = ctx.config["rebuild"]
    result = rebuild_clean_database(
        ctx.store,
        batch_size=settings["batch_size"],
        default_min_stock=settings["default_min_stock"],
        min_stock_ratio=settings["min_stock_ratio"],
        show_progress=True,
    )
    for line in result.summary.splitlines():
        logger.info(line)
    for error in result.errors[:MAX_LISTED_FINDINGS]:
        logger.error(error)
    return result.success


def _clean_products(ctx: Context) -> List[CanonicalProduct]:
    return [
        CanonicalProduct.from_document(doc["id"], doc)
        for doc in ctx.store.list_documents(PRODUCTS_CLEAN)
    ]


def cmd_stock(ctx: Context) -> bool:
    """Log the stock of every canonical product and fleet-wide figures."""
    _banner("STOCK REPORT")
    products = _clean_products(ctx)
    sales = ctx.store.list_documents(REGISTER_SALES)
    cache = ProductSalesCache()

    for product in sorted(products, key=lambda p: (p.category, p.name)):
        result = calculate_stock_final(product, sales, cache)
        line = f"{product.category} / {product.name}: {result.final_stock} (min {product.min_stock})"
        if result.has_inconsistent_stock:
            line += f" - {result.warning_message}"
        logger.info(line)
        for warning in validate_stock_configuration(product, sales, cache):
            logger.debug(f"{product.name}: {warning.message}")

    stats: Dict[str, Any] = calculate_aggregated_stock_stats(products, sales, cache)
    logger.info(
        f"{stats['total_products']} products, {stats['total_stock']} units in stock, "
        f"{stats['total_sold']} sold, {stats['out_of_stock']} out of stock, "
        f"{stats['low_stock']} low, {stats['inconsistent_stock']} inconsistent"
    )
    return True


def cmd_configure_stock(
    ctx: Context,
    product_id: str,
    initial_stock: int,
    initial_stock_date: Optional[str],
    min_stock: Optional[int],
) -> bool:
    try:
        product = configure_product_stock(
            ctx.store,
            product_id,
            initial_stock,
            initial_stock_date,
            ctx.store.list_documents(REGISTER_SALES),
            min_stock=min_stock,
        )
    except ValueError as e:
        logger.error(str(e))
        return False
    logger.info(f"{product.name}: current stock {product.stock}")
    return True


def cmd_export_sales(ctx: Context, output: Optional[Path], clean: bool = False) -> bool:
    collection = SALES_CLEAN if clean else REGISTER_SALES
    sales = ctx.store.list_documents(collection)
    if output is None:
        output = ctx.paths.export_path(f"{collection}.csv")

    if output.suffix.lower() == ".xlsx":
        export_to_xlsx(sales, output, SalesExportTemplate)
    else:
        export_sales_to_csv(sales, output)
    logger.info(f"Exported {len(sales)} sales from {collection} to {output}")
    return True


# === MAIN ===


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sales and stock reconciliation",
        epilog="""
Examples:
   # Check a register export before importing it
   reconcile validate-sales data/00-raw/ventes_mars.xlsx

   # Append it to the sales log, then rebuild canonical products and sales
   reconcile import-sales data/00-raw/ventes_mars.xlsx
   reconcile rebuild

   # Set a stock baseline and print the stock report
   reconcile configure-stock 3f2a9c... --initial-stock 100 --date 2024-03-01
   reconcile stock
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="Path to pipeline.toml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logging")

    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("validate-sales", "Validate a sales file without writing"),
        ("import-sales", "Validate a sales file and append its valid rows to the sales log"),
        ("validate-products", "Validate a product sheet"),
        ("import-stock", "Add a stock sheet's quantities to the product catalogue"),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument("file", type=Path, help="CSV, XLSX or XLS file")

    sub.add_parser("rebuild", help="Rebuild canonical products and sales from the sales log")
    sub.add_parser("stock", help="Print the stock report")

    configure = sub.add_parser("configure-stock", help="Set a product's stock baseline")
    configure.add_argument("product_id", help="Canonical product id")
    configure.add_argument("--initial-stock", type=int, required=True)
    configure.add_argument("--date", help="Initial stock date (YYYY-MM-DD)")
    configure.add_argument("--min-stock", type=int)

    export = sub.add_parser("export-sales", help="Export sales to CSV or XLSX")
    export.add_argument("--output", type=Path, help="Output path (.csv or .xlsx)")
    export.add_argument(
        "--clean", action="store_true", help="Export canonical sales instead of the sales log"
    )
    return parser


def run(args: argparse.Namespace) -> bool:
    ctx = Context(args.config)
    if args.command == "validate-sales":
        return cmd_validate_sales(ctx, args.file)
    if args.command == "import-sales":
        return cmd_validate_sales(ctx, args.file, commit=True)
    if args.command == "validate-products":
        return cmd_validate_products(ctx, args.file)
    if args.command == "import-stock":
        return cmd_import_stock(ctx, args.file)
    if args.command == "rebuild":
        return cmd_rebuild(ctx)
    if args.command == "stock":
        return cmd_stock(ctx)
    if args.command == "configure-stock":
        return cmd_configure_stock(
            ctx, args.product_id, args.initial_stock, args.date, args.min_stock
        )
    if args.command == "export-sales":
        return cmd_export_sales(ctx, args.output, clean=args.clean)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        success = run(args)
    except (FileNotFoundError, ValueError, StoreError) as e:
        logger.error(str(e))
        success = False

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
