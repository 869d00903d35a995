# -*- coding: utf-8 -*-
"""Header normalization for sales, stock and product sheets.

Maps uncontrolled, often French and accented, header names onto the canonical
field set of an import context. Matching runs in three passes: exact lookup in
the context's synonym table, substring containment in either direction, then a
title-cased fallback that keeps the column as an unmapped field. When several
headers claim one field the strongest match keeps it.

Usage:
    from src.reconciliation.column_mapping import build_column_mapping

    mapping = build_column_mapping(["Produit", "Qté", "Montant"], ImportContext.SALES)
    error = mapping.missing_columns_error()
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.reconciliation.models import (
    ROW_INDEX_KEY,
    CanonicalField,
    ImportContext,
    RawRow,
    Severity,
    ValidationError,
)
from src.utils.data_cleaning import normalize_whitespace, strip_diacritics, title_case_words

logger = logging.getLogger(__name__)

F = CanonicalField

_PRODUCT_SYNONYMS = ("product", "produit", "article", "nom", "name", "item")
_CATEGORY_SYNONYMS = ("category", "categorie", "type", "famille", "group", "groupe")
_DATE_SYNONYMS = ("date", "jour", "day", "time", "timestamp")
_QUANTITY_SYNONYMS = ("quantity", "quantite", "qty", "qte", "stock", "nb", "nombre", "count")


def _table(*groups: Tuple[Iterable[str], CanonicalField]) -> Dict[str, CanonicalField]:
    table: Dict[str, CanonicalField] = {}
    for synonyms, canonical in groups:
        for synonym in synonyms:
            table.setdefault(synonym, canonical)
    return table


SYNONYMS: Dict[ImportContext, Dict[str, CanonicalField]] = {
    ImportContext.SALES: _table(
        (_PRODUCT_SYNONYMS, F.PRODUCT),
        (_CATEGORY_SYNONYMS, F.CATEGORY),
        (("register", "caisse", "pos", "till", "checkout"), F.REGISTER),
        (_DATE_SYNONYMS, F.DATE),
        (
            ("seller", "vendeur", "employe", "employee", "cashier", "caissier",
             "user", "utilisateur"),
            F.SELLER,
        ),
        (_QUANTITY_SYNONYMS, F.QUANTITY),
        (
            ("amount", "montant", "prix", "price", "total", "cost", "cout",
             "value", "valeur"),
            F.AMOUNT,
        ),
    ),
    ImportContext.STOCK: _table(
        (_PRODUCT_SYNONYMS, F.PRODUCT),
        (_CATEGORY_SYNONYMS, F.CATEGORY),
        (_DATE_SYNONYMS, F.DATE),
        (_QUANTITY_SYNONYMS, F.QUANTITY),
    ),
    ImportContext.PRODUCT: _table(
        (_PRODUCT_SYNONYMS + ("designation", "libelle"), F.PRODUCT),
        (_CATEGORY_SYNONYMS, F.CATEGORY),
        (
            ("price", "prix", "montant", "tarif", "cout", "cost", "value", "valeur"),
            F.PRICE,
        ),
        (
            ("stock", "quantity", "quantite", "qty", "qte", "inventaire", "disponible"),
            F.STOCK,
        ),
        (("minstock", "stockmin", "minimum", "seuil", "alerte"), F.MIN_STOCK),
        (
            ("description", "desc", "details", "commentaire", "note", "remarque"),
            F.DESCRIPTION,
        ),
    ),
}

REQUIRED_COLUMNS: Dict[ImportContext, Tuple[CanonicalField, ...]] = {
    ImportContext.SALES: (
        F.PRODUCT, F.CATEGORY, F.REGISTER, F.DATE, F.SELLER, F.QUANTITY, F.AMOUNT,
    ),
    ImportContext.STOCK: (F.PRODUCT, F.CATEGORY, F.DATE, F.QUANTITY),
    ImportContext.PRODUCT: (F.PRODUCT, F.CATEGORY, F.PRICE),
}

RECOGNIZED_VARIANTS: Dict[CanonicalField, str] = {
    F.PRODUCT: '"Produit", "Article", "Nom"',
    F.CATEGORY: '"Catégorie", "Type", "Famille"',
    F.REGISTER: '"Caisse", "POS"',
    F.DATE: '"Date", "Jour"',
    F.SELLER: '"Vendeur", "Employé", "Caissier"',
    F.QUANTITY: '"Quantité", "Qty", "Qté"',
    F.AMOUNT: '"Montant", "Prix", "Price"',
    F.PRICE: '"Prix", "Tarif", "Price"',
    F.STOCK: '"Stock", "Quantité", "Inventaire"',
    F.MIN_STOCK: '"Stock Min", "Seuil", "Alerte"',
    F.DESCRIPTION: '"Description", "Commentaire", "Note"',
}


# Match ranks: exact, then space-less, then containment.
EXACT, SPACELESS, CONTAINS = 3, 2, 1

# Below this length a header is never matched by being inside a synonym
# ("N°" -> "n" would otherwise claim "nom").
MIN_REVERSE_CONTAINMENT = 3

# Synonyms that only claim a field when no stronger header does. A unit
# price column loses Amount to a total column in the same sales file.
WEAK_SYNONYMS: Dict[ImportContext, Tuple[str, ...]] = {
    ImportContext.SALES: ("prix", "price", "cost", "cout", "value", "valeur"),
}

_PANDAS_UNNAMED = re.compile(r"^unnamed \d+$")


def clean_header(header: str) -> str:
    """Strip accents and punctuation and collapse whitespace ("Qté." -> "Qte")."""
    cleaned = strip_diacritics(str(header).strip())
    cleaned = re.sub(r"[^a-zA-Z0-9\s]", "", cleaned)
    return normalize_whitespace(cleaned)


Strength = Tuple[bool, int]


def _match(lowered: str, context: ImportContext) -> Optional[Tuple[CanonicalField, Strength]]:
    """Best canonical field for a cleaned, lowercased header and its strength.

    Strength orders strong synonyms above weak ones, then by match rank.
    """
    table = SYNONYMS[context]
    weak = WEAK_SYNONYMS.get(context, ())

    for candidate, rank in ((lowered, EXACT), (lowered.replace(" ", ""), SPACELESS)):
        if candidate in table:
            return table[candidate], (candidate not in weak, rank)

    # Longest overlap wins so "stock minimum" maps to MinStock, not Stock.
    best: Optional[str] = None
    best_overlap = 0
    for synonym in table:
        inside = len(lowered) >= MIN_REVERSE_CONTAINMENT and lowered in synonym
        if synonym in lowered or inside:
            overlap = min(len(synonym), len(lowered))
            if overlap > best_overlap:
                best, best_overlap = synonym, overlap
    if best is None:
        return None
    return table[best], (best not in weak, CONTAINS)


def normalize_header(header: str, context: ImportContext) -> str:
    """Map one raw header to a canonical field value or a title-cased fallback.

    Never raises. Deterministic for a given header and context. Blank headers
    and the "Unnamed: N" columns pandas gives them map to "".
    """
    cleaned = clean_header(header)
    lowered = cleaned.lower()
    if not lowered or _PANDAS_UNNAMED.match(lowered):
        return ""

    match = _match(lowered, context)
    if match is not None:
        return match[0].value
    return title_case_words(cleaned)


@dataclass
class ColumnMapping:
    """Header mapping for one import batch. Built once from the first row."""

    context: ImportContext
    raw_headers: List[str]
    normalized: Dict[str, str] = field(default_factory=dict)
    by_field: Dict[CanonicalField, str] = field(default_factory=dict)

    @property
    def missing(self) -> List[CanonicalField]:
        return [f for f in REQUIRED_COLUMNS[self.context] if f not in self.by_field]

    def has(self, canonical: CanonicalField) -> bool:
        return canonical in self.by_field

    def raw_header(self, canonical: CanonicalField) -> Optional[str]:
        return self.by_field.get(canonical)

    def value(self, row: RawRow, canonical: CanonicalField):
        """Cell value of a canonical field in a raw row (None if unmapped)."""
        header = self.by_field.get(canonical)
        if header is None:
            return None
        return row.get(header)

    def missing_columns_error(self) -> Optional[ValidationError]:
        """Single structural error for the batch, or None if nothing is missing."""
        missing = self.missing
        if not missing:
            return None

        required = REQUIRED_COLUMNS[self.context]
        required_values = {f.value for f in required}
        lines = [
            "Missing or misnamed columns.",
            "",
            f"Required columns: {', '.join(f.value for f in required)}",
            f"Columns found: {', '.join(self.normalized.values())}",
            f"Missing columns: {', '.join(f.value for f in missing)}",
            "",
            "Automatic mapping:",
        ]
        for raw in self.raw_headers:
            target = self.normalized[raw]
            if target in required_values:
                lines.append(f'  "{raw}" -> "{target}"')
            else:
                lines.append(f'  "{raw}" -> "{target}" (not recognized)')
        lines.append("")
        lines.append("Recognized variants:")
        for canonical in missing:
            lines.append(f"  - {canonical.value}: {RECOGNIZED_VARIANTS[canonical]}")

        return ValidationError(
            row=1,
            field="structure",
            value=[f.value for f in missing],
            message="\n".join(lines),
            severity=Severity.CRITICAL,
            suggestion="Rename the columns or use one of the recognized variants",
        )


def build_column_mapping(headers: Sequence[str], context: ImportContext) -> ColumnMapping:
    """Build the mapping for a batch from its header names.

    Args:
        headers: Raw header strings of the first row
        context: Target schema

    Returns:
        ColumnMapping. When two headers map to the same field the stronger
        match wins (strong synonym over weak, then exact over space-less over
        containment). Ties go to the first header.
    """
    raw_headers = [h for h in headers if h != ROW_INDEX_KEY]
    mapping = ColumnMapping(context=context, raw_headers=raw_headers)
    strengths: Dict[CanonicalField, Strength] = {}

    for raw in raw_headers:
        target = normalize_header(raw, context)
        mapping.normalized[raw] = target
        if not target:
            continue
        match = _match(clean_header(raw).lower(), context)
        if match is None:
            continue
        canonical, strength = match
        if canonical not in strengths or strength > strengths[canonical]:
            mapping.by_field[canonical] = raw
            strengths[canonical] = strength

    logger.debug(f"{context.value} column mapping: {mapping.normalized}")
    return mapping


def mapping_from_rows(rows: Sequence[RawRow], context: ImportContext) -> ColumnMapping:
    """Build the mapping from the first row of a batch."""
    headers = list(rows[0].keys()) if rows else []
    return build_column_mapping(headers, context)
