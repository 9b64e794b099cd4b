"""stagecalc -- spreadsheet-derived process timeline calculator."""

__version__ = "0.1.0"
