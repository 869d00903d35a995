# -*- coding: utf-8 -*-
"""Centralized path configuration for all data directories.

Reads the [dirs] section of pipeline.toml and provides a consistent directory
structure for the store, exports, rejected inputs and lineage files.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from src.utils.config import load_pipeline_config

logger = logging.getLogger(__name__)


class PathConfig:
    """Centralized path configuration.

    Usage:
        path_config = PathConfig()
        store_dir = path_config.store_dir
        export_file = path_config.export_path("register_sales_clean.csv")
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[Dict[str, Any]] = None,
        base_dir: Optional[Path] = None,
    ):
        """Initialize PathConfig from pipeline.toml.

        Args:
            config_path: Path to pipeline.toml. If None, uses default location.
            config: Already-loaded config dict (takes precedence over config_path).
            base_dir: Directory relative paths are resolved against. Defaults to cwd.
        """
        if config is None:
            config = load_pipeline_config(config_path)

        dirs = config["dirs"]
        base = Path(base_dir) if base_dir is not None else Path.cwd()

        self.raw_data_dir = base / dirs["raw_data"]
        self.store_dir = base / dirs["store"]
        self.export_dir = base / dirs["export"]
        self.rejected_dir = base / dirs["rejected"]
        self.lineage_dir = base / dirs["lineage"]

    def export_path(self, filename: str) -> Path:
        """Get path for an export file, creating the export directory.

        Args:
            filename: Name of the export file.

        Returns:
            Path inside the export directory.
        """
        self.export_dir.mkdir(parents=True, exist_ok=True)
        return self.export_dir / filename

    def ensure_all(self) -> None:
        """Create every configured directory."""
        for path in (
            self.raw_data_dir,
            self.store_dir,
            self.export_dir,
            self.rejected_dir,
            self.lineage_dir,
        ):
            path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured data directories under {self.store_dir.parent}")
