# -*- coding: utf-8 -*-
"""Row-level audit trail for imports.

Every source row of an import ends up in exactly one state:
- accepted: written (or ready to be written) to the store
- rejected: failed validation, with the reason
- duplicate: already present in the store or earlier in the same file
"""

import csv
import logging
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from src.reconciliation.models import ImportPreview, StockImportPreview, StockValidationResult

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
REJECTED = "rejected"
DUPLICATE = "duplicate"

FIELDNAMES = ["source_file", "source_row", "operation", "status", "reason", "timestamp"]


class ImportLineage:
    """Track what happened to each source row of an import.

    Usage:
        lineage = ImportLineage(paths.lineage_dir)
        lineage.track_preview("ventes.xlsx", "import_sales", preview)
        lineage.save()
    """

    def __init__(self, output_dir: Union[str, Path]):
        """Initialize lineage tracker.

        Args:
            output_dir: Directory where lineage CSV files are saved
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.entries: List[Dict] = []
        self.timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    def track(
        self,
        source_file: str,
        source_row: int,
        operation: str,
        status: str,
        reason: str = "",
    ) -> None:
        """Track a single source row.

        Args:
            source_file: Name of the imported file
            source_row: Spreadsheet row number (header is row 1)
            operation: Name of operation (e.g., "import_sales")
            status: accepted, rejected or duplicate
            reason: Rejection or duplicate reason
        """
        if status not in (ACCEPTED, REJECTED, DUPLICATE):
            raise ValueError(f"Unknown lineage status: {status!r}")
        self.entries.append(
            {
                "source_file": source_file,
                "source_row": source_row,
                "operation": operation,
                "status": status,
                "reason": reason,
                "timestamp": datetime.now().isoformat(),
            }
        )

    def track_preview(
        self,
        source_file: str,
        operation: str,
        preview: Union[ImportPreview, StockImportPreview, StockValidationResult],
    ) -> None:
        """Track every row of a validation result.

        Rows with several errors are recorded once, with the messages joined.
        """
        reasons: Dict[int, List[str]] = defaultdict(list)
        for error in preview.errors:
            reasons[error.row].append(error.message.splitlines()[0])

        accepted = getattr(preview, "data", None)
        if accepted is None:
            accepted = preview.cleaned_data
        for record in accepted:
            self.track(source_file, record.row, operation, ACCEPTED)

        for duplicate in getattr(preview, "duplicates", []):
            record = getattr(duplicate, "record", None)
            if record is not None:
                self.track(
                    source_file, record.row, operation, DUPLICATE,
                    f"{duplicate.kind.value}: {duplicate.key}",
                )

        for row, messages in sorted(reasons.items()):
            self.track(source_file, row, operation, REJECTED, "; ".join(messages))

    def save(self) -> Optional[Path]:
        """Save lineage entries to a CSV file.

        Returns:
            Path of the saved file, or None when there is nothing to save.
        """
        if not self.entries:
            logger.warning("No lineage entries to save")
            return None

        lineage_filepath = self.output_dir / f"lineage_{self.timestamp}.csv"
        with open(lineage_filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
            writer.writeheader()
            writer.writerows(self.entries)

        logger.info(f"Lineage saved to: {lineage_filepath}")
        return lineage_filepath

    def summary(self) -> Dict:
        """Get summary statistics of lineage.

        Returns:
            Dict with keys: total, accepted, rejected, duplicate, success_rate
        """
        total = len(self.entries)
        counts = {status: 0 for status in (ACCEPTED, REJECTED, DUPLICATE)}
        for entry in self.entries:
            counts[entry["status"]] += 1

        return {
            "total": total,
            **counts,
            "success_rate": (counts[ACCEPTED] / total * 100) if total > 0 else 0,
        }
