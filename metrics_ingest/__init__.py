"""Weekly business metrics ingestion: workbook and CSV parsing, import and rollback."""

__version__ = "0.1.0"
