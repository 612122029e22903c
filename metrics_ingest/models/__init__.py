"""Domain models for the weekly metrics ingestion engine."""

from .cell import NO_RESULT, CellError, CellExtraction, Formula, Hyperlink, RichText
from .csv_result import (
    ColumnInfo,
    DuplicateInfo,
    FieldMapping,
    InferredType,
    ParseResult,
    RowStatus,
    RowValidation,
    ValidationResult,
    ValidationSummary,
)
from .data_type import DataTypeDefinition, FieldDefinition
from .error_record import ErrorRecord
from .records import ParsedWeek, RowMapping, StructuralRecord
from .upload import (
    DataSource,
    DuplicateStrategy,
    ImportRequest,
    ImportResult,
    OverwrittenRecord,
    RollbackData,
    RollbackResult,
    RowError,
    SavedMapping,
    UploadRecord,
    UploadStatus,
)

__all__ = [
    # Cells
    "NO_RESULT",
    "CellError",
    "CellExtraction",
    "Formula",
    "Hyperlink",
    "RichText",
    # Workbook records
    "ParsedWeek",
    "RowMapping",
    "StructuralRecord",
    # CSV
    "ColumnInfo",
    "DuplicateInfo",
    "FieldMapping",
    "InferredType",
    "ParseResult",
    "RowStatus",
    "RowValidation",
    "ValidationResult",
    "ValidationSummary",
    # Registry
    "DataTypeDefinition",
    "FieldDefinition",
    # Import / audit
    "DataSource",
    "DuplicateStrategy",
    "ErrorRecord",
    "ImportRequest",
    "ImportResult",
    "OverwrittenRecord",
    "RollbackData",
    "RollbackResult",
    "RowError",
    "SavedMapping",
    "UploadRecord",
    "UploadStatus",
]
