"""Core: ingesta y validación de datos de máquinas. Sin dependencias de Streamlit."""
from core.models import (
    FieldDescriptor,
    IngestionResult,
    MachineRecord,
    PredictionVerdict,
    VibrationLevel,
)
from core.errors import (
    EmptyInputError,
    IngestionError,
    MissingColumnsError,
    PredictionError,
    UnsupportedFormatError,
)
from core.schema import FIELD_SCHEMA, normalize_header, resolve_alias
from core.ingestor import (
    SUPPORTED_EXTENSIONS,
    map_row,
    parse_machine_file,
    records_to_frame,
    run_ingestion,
    validate_headers,
)

__all__ = [
    # Modelos
    "FieldDescriptor",
    "IngestionResult",
    "MachineRecord",
    "PredictionVerdict",
    "VibrationLevel",
    # Errores
    "EmptyInputError",
    "IngestionError",
    "MissingColumnsError",
    "PredictionError",
    "UnsupportedFormatError",
    # Esquema
    "FIELD_SCHEMA",
    "normalize_header",
    "resolve_alias",
    # Pipeline
    "SUPPORTED_EXTENSIONS",
    "map_row",
    "parse_machine_file",
    "records_to_frame",
    "run_ingestion",
    "validate_headers",
]
