"""Command-line orchestration."""

from src.pipeline.orchestrator import build_parser, main, run

__all__ = [
    "build_parser",
    "main",
    "run",
]
