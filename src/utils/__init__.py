"""Shared helpers for the sales/stock reconciliation project.

Path helpers live here; configuration, cleaning and spreadsheet formatting
live in their own modules.
"""

from pathlib import Path


def get_workspace_root() -> Path:
    """Get the project workspace root directory (parent of src/).

    Returns:
        Path: The workspace root directory.
    """
    return Path(__file__).parent.parent.parent
