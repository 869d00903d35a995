# -*- coding: utf-8 -*-
"""Tests for src/utils/path_config.py."""

from pathlib import Path

import pytest

from src.utils.path_config import PathConfig


class TestPathConfig:
    """Test PathConfig class."""

    @pytest.fixture
    def config_path(self, tmp_path):
        """Create a test pipeline.toml with custom directories."""
        path = tmp_path / "pipeline.toml"
        path.write_text(
            """
[dirs]
raw_data = "in"
store = "db"
export = "out"
rejected = "in/rejected"
lineage = "audit"
""",
            encoding="utf-8",
        )
        return path

    def test_dirs_resolved_against_base(self, config_path, tmp_path):
        paths = PathConfig(config_path=config_path, base_dir=tmp_path)
        assert paths.store_dir == tmp_path / "db"
        assert paths.rejected_dir == tmp_path / "in" / "rejected"
        assert paths.lineage_dir == tmp_path / "audit"

    def test_defaults_to_cwd(self, config_path, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert PathConfig(config_path=config_path).export_dir == Path.cwd() / "out"

    def test_loaded_config_takes_precedence(self, config_path, tmp_path):
        config = {
            "dirs": {
                "raw_data": "r",
                "store": "s",
                "export": "e",
                "rejected": "x",
                "lineage": "l",
            }
        }
        paths = PathConfig(config_path=config_path, config=config, base_dir=tmp_path)
        assert paths.store_dir == tmp_path / "s"

    def test_export_path_creates_dir(self, config_path, tmp_path):
        paths = PathConfig(config_path=config_path, base_dir=tmp_path)
        export_file = paths.export_path("register_sales.csv")
        assert export_file == tmp_path / "out" / "register_sales.csv"
        assert export_file.parent.exists()

    def test_ensure_all(self, config_path, tmp_path):
        paths = PathConfig(config_path=config_path, base_dir=tmp_path)
        paths.ensure_all()
        for name in ("in", "db", "out", "in/rejected", "audit"):
            assert (tmp_path / name).is_dir()
