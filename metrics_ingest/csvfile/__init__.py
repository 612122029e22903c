from .reader import CsvParseError, detect_delimiter, infer_type, parse_csv
from .validation import detect_duplicates, validate_row, validate_rows

__all__ = [
    "CsvParseError",
    "detect_delimiter",
    "infer_type",
    "parse_csv",
    "detect_duplicates",
    "validate_row",
    "validate_rows",
]
