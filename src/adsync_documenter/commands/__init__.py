"""Command implementations for adsync-documenter CLI."""

from .changes import list_changes
from .report import generate_report

__all__ = ["generate_report", "list_changes"]
