# -*- coding: utf-8 -*-
"""Pipeline configuration loaded from pipeline.toml.

Every section has built-in defaults; values present in pipeline.toml are
merged on top of them, so library callers work without a config file while
the command-line orchestrator picks up local overrides.

Usage:
    from src.utils.config import load_pipeline_config, load_validation_config

    config = load_pipeline_config()
    batch_size = config["rebuild"]["batch_size"]
    validation = load_validation_config(config)
"""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from src.utils import get_workspace_root

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = get_workspace_root() / "pipeline.toml"

DEFAULT_COMMON_CATEGORIES = (
    "CONFISERIES",
    "BOISSONS",
    "ALIMENTAIRE",
    "GRATTAGE",
    "FDJ",
    "TABAC",
    "HYGIENE",
    "ENTRETIEN",
    "DIVERS",
)

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "dirs": {
        "raw_data": "data/00-raw",
        "store": "data/01-store",
        "export": "data/03-export",
        "rejected": "data/00-rejected",
        "lineage": "data/lineage",
    },
    "rebuild": {
        "batch_size": 500,
        "default_min_stock": 5,
        "min_stock_ratio": 0.2,
    },
    "stock_import": {
        "batch_size": 100,
    },
    "validation": {
        "price": {"min": 0.01, "max": 100000.0, "warning_threshold": 10000.0},
        "stock": {"min": 0, "max": 999999, "warning_threshold": 1000},
        "name": {"min_length": 2, "max_length": 100},
        "category": {
            "min_length": 2,
            "max_length": 50,
            "common_categories": list(DEFAULT_COMMON_CATEGORIES),
        },
    },
}


class ConfigError(ValueError):
    """Raised when pipeline.toml holds a value the pipeline cannot use."""


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_pipeline_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load pipeline configuration, merged over the built-in defaults.

    Args:
        config_path: Path to pipeline.toml. Defaults to the repository root copy.

    Returns:
        Dict with dirs, rebuild, stock_import and validation sections.

    Raises:
        ConfigError: If a batch size is not a positive integer.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    file_config: Dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "rb") as f:
            file_config = tomllib.load(f)
        logger.debug(f"Loaded pipeline config from {config_path}")
    else:
        logger.debug(f"No pipeline config at {config_path}, using defaults")

    config = _merge(DEFAULTS, file_config)

    for section in ("rebuild", "stock_import"):
        batch_size = config[section]["batch_size"]
        if not isinstance(batch_size, int) or batch_size <= 0:
            raise ConfigError(
                f"[{section}] batch_size must be a positive integer, got {batch_size!r}"
            )

    return config


@dataclass(frozen=True)
class ValidationConfig:
    """Thresholds used by the field validators."""

    price_min: float = 0.01
    price_max: float = 100000.0
    price_warning_threshold: float = 10000.0
    stock_min: int = 0
    stock_max: int = 999999
    stock_warning_threshold: int = 1000
    name_min_length: int = 2
    name_max_length: int = 100
    category_min_length: int = 2
    category_max_length: int = 50
    common_categories: Tuple[str, ...] = DEFAULT_COMMON_CATEGORIES


def load_validation_config(config: Optional[Dict[str, Any]] = None) -> ValidationConfig:
    """Build a ValidationConfig from the [validation] section.

    Args:
        config: Loaded pipeline config. If None, loads pipeline.toml.

    Returns:
        ValidationConfig with file overrides applied.
    """
    if config is None:
        config = load_pipeline_config()

    section = config.get("validation", DEFAULTS["validation"])
    price = section.get("price", {})
    stock = section.get("stock", {})
    name = section.get("name", {})
    category = section.get("category", {})

    return ValidationConfig(
        price_min=float(price.get("min", 0.01)),
        price_max=float(price.get("max", 100000.0)),
        price_warning_threshold=float(price.get("warning_threshold", 10000.0)),
        stock_min=int(stock.get("min", 0)),
        stock_max=int(stock.get("max", 999999)),
        stock_warning_threshold=int(stock.get("warning_threshold", 1000)),
        name_min_length=int(name.get("min_length", 2)),
        name_max_length=int(name.get("max_length", 100)),
        category_min_length=int(category.get("min_length", 2)),
        category_max_length=int(category.get("max_length", 50)),
        common_categories=tuple(
            str(c).upper()
            for c in category.get("common_categories", DEFAULT_COMMON_CATEGORIES)
        ),
    )


DEFAULT_VALIDATION_CONFIG = ValidationConfig()
