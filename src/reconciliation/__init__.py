"""Sales/stock reconciliation engine."""

from src.reconciliation.column_mapping import ColumnMapping, build_column_mapping, normalize_header
from src.reconciliation.duplicates import SaleDuplicateDetector, composite_key, detect_product_duplicates
from src.reconciliation.models import (
    CanonicalField,
    CanonicalProduct,
    CanonicalSale,
    FieldKind,
    ImportContext,
    Severity,
)
from src.reconciliation.product_validation import validate_product_sheet
from src.reconciliation.rebuild import rebuild_clean_database
from src.reconciliation.sales_import import commit_sales_import, validate_sales_import
from src.reconciliation.signature import ProductResolver, create_product_signature
from src.reconciliation.stock_import import apply_stock_import, validate_stock_import
from src.reconciliation.stock_ledger import (
    ProductSalesCache,
    calculate_stock_final,
    configure_product_stock,
    validate_stock_configuration,
)
from src.reconciliation.store import CanonicalStore, CsvStore, InMemoryStore, StoreError
from src.reconciliation.validators import validate_field

__all__ = [
    "CanonicalField",
    "CanonicalProduct",
    "CanonicalSale",
    "CanonicalStore",
    "ColumnMapping",
    "CsvStore",
    "FieldKind",
    "ImportContext",
    "InMemoryStore",
    "ProductResolver",
    "ProductSalesCache",
    "SaleDuplicateDetector",
    "Severity",
    "StoreError",
    "apply_stock_import",
    "build_column_mapping",
    "calculate_stock_final",
    "commit_sales_import",
    "composite_key",
    "configure_product_stock",
    "create_product_signature",
    "detect_product_duplicates",
    "normalize_header",
    "rebuild_clean_database",
    "validate_field",
    "validate_product_sheet",
    "validate_sales_import",
    "validate_stock_configuration",
    "validate_stock_import",
]
