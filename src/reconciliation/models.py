# -*- coding: utf-8 -*-
"""Record types shared by the reconciliation components.

Raw input rows are loose records (header -> str | number | None). Everything
produced from them is a typed dataclass: validation findings, validated sale
and product rows, canonical store documents and the report objects returned
by each operation.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

LooseValue = Union[str, int, float, None]
RawRow = Mapping[str, LooseValue]

ROW_INDEX_KEY = "_row_index"


def row_number(row: RawRow, index: int) -> int:
    """Spreadsheet row number of a raw row (header is row 1)."""
    annotated = row.get(ROW_INDEX_KEY)
    if isinstance(annotated, (int, float)) and annotated:
        return int(annotated)
    return index + 2


class Severity(Enum):
    """How much a finding affects an import."""

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def blocking(self) -> bool:
        return self in (Severity.CRITICAL, Severity.ERROR)


class ImportContext(Enum):
    """Target schema of an import batch."""

    SALES = "sales"
    STOCK = "stock"
    PRODUCT = "product"


class CanonicalField(Enum):
    """Canonical column names across all import contexts."""

    PRODUCT = "Product"
    CATEGORY = "Category"
    REGISTER = "Register"
    DATE = "Date"
    SELLER = "Seller"
    QUANTITY = "Quantity"
    AMOUNT = "Amount"
    PRICE = "Price"
    STOCK = "Stock"
    MIN_STOCK = "MinStock"
    DESCRIPTION = "Description"


class FieldKind(Enum):
    """Validator selector for a single cell."""

    NAME = "name"
    CATEGORY = "category"
    PRICE = "price"
    STOCK = "stock"
    QUANTITY = "quantity"
    DATE = "date"
    AMOUNT = "amount"


class ConflictType(Enum):
    EXACT = "exact"
    SIMILAR = "similar"
    PRICE_CONFLICT = "price_conflict"


class DuplicateKind(Enum):
    """Where a duplicate sale was first seen."""

    EXISTING = "existing"
    WITHIN_IMPORT = "within_import"


class SuggestionType(Enum):
    FORMAT = "format"
    NAMING = "naming"
    DATA = "data"
    STRUCTURE = "structure"


class Impact(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ValidationError:
    """A finding that blocks its row (critical/error) or the whole batch."""

    row: int
    field: str
    value: Any
    message: str
    severity: Severity = Severity.ERROR
    suggestion: Optional[str] = None


@dataclass(frozen=True)
class ValidationWarning:
    """A non-blocking finding; auto_fix marks a correction already applied."""

    row: int
    field: str
    value: Any
    message: str
    auto_fix: bool = False
    fixed_value: Any = None


@dataclass(frozen=True)
class ValidationSuggestion:
    type: SuggestionType
    message: str
    impact: Impact
    auto_applicable: bool = False


@dataclass
class FieldResult:
    """Outcome of validating one cell."""

    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    cleaned_value: Any = None


@dataclass
class DuplicateInfo:
    """Rows of a product sheet sharing the same name|category key."""

    rows: List[int]
    product: str
    category: str
    conflict_type: ConflictType
    recommendation: str


@dataclass(frozen=True)
class SaleRecord:
    """A validated sale row. Quantity is always positive; total is signed."""

    row: int
    product: str
    category: str
    register: str
    date: datetime
    seller: str
    quantity: int
    price: float
    total: float

    def to_document(self) -> Dict[str, Any]:
        """Store representation (dates as ISO strings)."""
        return {
            "product": self.product,
            "category": self.category,
            "register": self.register,
            "date": self.date.isoformat(),
            "seller": self.seller,
            "quantity": self.quantity,
            "price": self.price,
            "total": self.total,
        }


@dataclass(frozen=True)
class SaleDuplicate:
    record: SaleRecord
    kind: DuplicateKind
    key: str


@dataclass(frozen=True)
class ProductRow:
    """A validated product sheet row."""

    row: int
    name: str
    category: str
    price: float
    stock: int
    min_stock: int
    description: str = ""


@dataclass(frozen=True)
class StockRow:
    """A validated stock sheet row: units received on a date."""

    row: int
    product: str
    category: str
    date: datetime
    quantity: int


@dataclass
class CanonicalProduct:
    """A product document. The signature never changes after creation."""

    id: str
    name: str
    category: str
    signature: str = ""
    price: float = 0.0
    stock: int = 0
    initial_stock: int = 0
    initial_stock_date: Optional[str] = None
    min_stock: int = 5
    description: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "CanonicalProduct":
        def _int(value: Any, default: int = 0) -> int:
            try:
                return int(float(value))
            except (TypeError, ValueError):
                return default

        def _opt_str(value: Any) -> Optional[str]:
            if value is None or (isinstance(value, float) and value != value):
                return None
            text = str(value).strip()
            return text or None

        try:
            price = float(data.get("price") or 0.0)
        except (TypeError, ValueError):
            price = 0.0

        return cls(
            id=doc_id,
            name=str(data.get("name") or ""),
            category=str(data.get("category") or ""),
            signature=_opt_str(data.get("signature")) or "",
            price=price,
            stock=_int(data.get("stock")),
            initial_stock=_int(data.get("initial_stock")),
            initial_stock_date=_opt_str(data.get("initial_stock_date")),
            min_stock=_int(data.get("min_stock"), 5),
            description=_opt_str(data.get("description")) or "",
            created_at=_opt_str(data.get("created_at")),
            updated_at=_opt_str(data.get("updated_at")),
        )

    def to_document(self) -> Dict[str, Any]:
        document = asdict(self)
        document.pop("id")
        return document


@dataclass
class CanonicalSale:
    """A sale document in the cleaned sales collection."""

    id: str
    product_id: str
    product_signature: str
    product: str
    category: str
    register: str
    date: str
    seller: str
    quantity: int
    price: float
    total: float
    created_at: Optional[str] = None
    cleaned: bool = True

    def to_document(self) -> Dict[str, Any]:
        document = asdict(self)
        document.pop("id")
        return document


@dataclass(frozen=True)
class SaleEvent:
    """A sale as seen by the stock ledger: any log entry with a day and quantity."""

    id: str
    product: str
    category: str
    date: Optional[date]
    quantity: float
    register: str = ""
    seller: str = ""
    price: float = 0.0
    total: float = 0.0


@dataclass
class StockCalculationResult:
    """Computed stock view for one product. Never persisted."""

    final_stock: int
    valid_sales: List[SaleEvent] = field(default_factory=list)
    ignored_sales: List[SaleEvent] = field(default_factory=list)
    has_inconsistent_stock: bool = False
    warning_message: Optional[str] = None


@dataclass
class SalesTotals:
    """Quantity/revenue totals grouped by product, seller and register."""

    by_product: Dict[str, Dict[str, float]] = field(default_factory=dict)
    by_seller: Dict[str, Dict[str, float]] = field(default_factory=dict)
    by_register: Dict[str, Dict[str, float]] = field(default_factory=dict)
    overall: Dict[str, float] = field(
        default_factory=lambda: {"quantity": 0, "revenue": 0.0}
    )


@dataclass
class ImportPreview:
    """Result of validating a sales file before it is written."""

    data: List[SaleRecord] = field(default_factory=list)
    duplicates: List[SaleDuplicate] = field(default_factory=list)
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    totals: SalesTotals = field(default_factory=SalesTotals)

    @property
    def is_valid(self) -> bool:
        return not any(e.severity.blocking for e in self.errors)

    @property
    def structural_error(self) -> bool:
        return any(e.field == "structure" for e in self.errors)


@dataclass
class StockImportPreview:
    data: List[StockRow] = field(default_factory=list)
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(e.severity.blocking for e in self.errors)

    @property
    def total_quantity(self) -> int:
        return sum(row.quantity for row in self.data)


@dataclass
class StockImportResult:
    success: bool
    products_updated: int = 0
    products_created: int = 0
    units_added: int = 0
    errors: List[str] = field(default_factory=list)
    summary: str = ""


@dataclass
class ValidationStatistics:
    total_rows: int = 0
    valid_rows: int = 0
    error_rows: int = 0
    warning_rows: int = 0
    duplicate_rows: int = 0
    categories_found: List[str] = field(default_factory=list)
    price_range: Dict[str, float] = field(
        default_factory=lambda: {"min": 0.0, "max": 0.0, "average": 0.0}
    )
    stock_range: Dict[str, int] = field(
        default_factory=lambda: {"min": 0, "max": 0, "total": 0}
    )


@dataclass
class StockValidationResult:
    """Full report for a product sheet."""

    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    suggestions: List[ValidationSuggestion] = field(default_factory=list)
    cleaned_data: List[ProductRow] = field(default_factory=list)
    duplicates: List[DuplicateInfo] = field(default_factory=list)
    statistics: ValidationStatistics = field(default_factory=ValidationStatistics)


@dataclass
class RebuildResult:
    success: bool
    products_created: int = 0
    sales_processed: int = 0
    errors: List[str] = field(default_factory=list)
    summary: str = ""


@dataclass(frozen=True)
class StockConfigWarning:
    """Advisory produced when checking a product's stock baseline."""

    type: str
    message: str
    severity: Severity
