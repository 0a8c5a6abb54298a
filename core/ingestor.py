"""
core/ingestor.py
================
Ingesta tolerante de archivos de máquinas (CSV / Excel).

Flujo:
  1. Detectar formato por la extensión del nombre (sin inspeccionar contenido).
  2. Separar cabecera y filas de datos.
  3. Validar cabeceras una sola vez: error consolidado si faltan obligatorias.
  4. Mapear cada fila a MachineRecord; las filas inválidas se descartan y
     se registran en el log, sin abortar el lote.
"""
from __future__ import annotations

import io
import logging
import os
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from core.errors import EmptyInputError, IngestionError, MissingColumnsError, UnsupportedFormatError
from core.models import UNPARSEABLE, FieldDescriptor, IngestionResult, MachineRecord
from core.schema import FIELD_SCHEMA, known_header_forms, lookup, normalize_header

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv"}
EXCEL_EXTENSIONS = {".xlsx", ".xls"}
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS | EXCEL_EXTENSIONS

# Solo LF y CRLF separan registros; \f, \x85 o \u2028 son contenido de la celda
_LINE_BREAK = re.compile(r"\r?\n")

# Exportaciones de Excel en Windows suelen venir en cp1252
CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")

RawRow = Dict[str, Any]


# ===========
# Detección de formato
# ===========
def detect_format(filename: str) -> str:
    """'csv' o 'excel' según la extensión. Lanza UnsupportedFormatError."""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext in CSV_EXTENSIONS:
        return "csv"
    if ext in EXCEL_EXTENSIONS:
        return "excel"
    raise UnsupportedFormatError(filename)


# ===========
# Validación de cabeceras
# ===========
def validate_headers(
    headers: Sequence[str],
    schema: Sequence[FieldDescriptor] = FIELD_SCHEMA,
) -> None:
    """Comprueba que cada campo obligatorio tiene alguna columna en el archivo.

    Recorre todos los campos antes de fallar: un único MissingColumnsError
    enumera todos los que faltan junto con las cabeceras detectadas.
    """
    present = {normalize_header(h) for h in headers}
    missing = [
        desc.display_name
        for desc in schema
        if desc.required
        and not any(normalize_header(alias) in present for alias in desc.aliases)
    ]
    if missing:
        raise MissingColumnsError(missing, [str(h) for h in headers])


# ===========
# Mapeo de filas
# ===========
def map_row(
    raw_row: RawRow,
    row_number: int,
    schema: Sequence[FieldDescriptor] = FIELD_SCHEMA,
) -> Optional[MachineRecord]:
    """Convierte una fila cruda en MachineRecord, o None si se rechaza.

    Args:
        raw_row:    cabecera original → valor crudo.
        row_number: número de fila de datos (1-based) para los mensajes.
        schema:     campos destino en orden.

    Returns:
        El registro, o None si algún campo obligatorio no es parseable. Un
        campo obligatorio inválido corta el procesado del resto de la fila.
    """
    values: Dict[str, Any] = {}
    for desc in schema:
        _header, raw_value = lookup(raw_row, desc.aliases)
        parsed = desc.parse(raw_value)
        if parsed is UNPARSEABLE:
            if desc.required:
                logger.warning(
                    "Fila %d: campo obligatorio '%s' ausente, vacío o con formato inválido "
                    "(valor crudo: %r). Fila descartada.",
                    row_number, desc.display_name, raw_value,
                )
                return None
            parsed = desc.default
        values[desc.key] = parsed

    known = known_header_forms(schema)
    extra = {
        header: value
        for header, value in raw_row.items()
        if header and normalize_header(header) not in known
    }
    return MachineRecord(extra=extra, **values)


# ===========
# Separación de filas
# ===========
def decode_csv(file_bytes: bytes) -> str:
    """Texto del CSV probando UTF-8 (con o sin BOM), cp1252 y latin-1."""
    for encoding in CSV_ENCODINGS[:-1]:
        try:
            return file_bytes.decode(encoding)
        except UnicodeDecodeError:
            continue
    return file_bytes.decode(CSV_ENCODINGS[-1])


def split_csv(content: str) -> Tuple[List[str], List[RawRow]]:
    """Cabecera + filas de un CSV simple separado por comas (sin comillas).

    Las líneas vacías se ignoran. Las celdas que faltan al final de una fila
    quedan como None.
    """
    lines = [line for line in _LINE_BREAK.split(content) if line.strip()]
    if not lines:
        raise EmptyInputError("El archivo CSV está vacío: no hay cabecera ni datos.")

    headers = [h.strip() for h in lines[0].split(",")]
    rows: List[RawRow] = []
    for line in lines[1:]:
        cells = line.split(",")
        rows.append({
            header: (cells[i].strip() if i < len(cells) else None)
            for i, header in enumerate(headers)
        })
    return headers, rows


def _read_excel_first_sheet(file_bytes: bytes, filename: str) -> pd.DataFrame:
    """Primera hoja sin cabecera interpretada (fila 0 = cabeceras).

    Prueba openpyxl y después xlrd (este último solo lee .xls).
    """
    last_error: Optional[Exception] = None
    for engine in ("openpyxl", "xlrd"):
        bio = io.BytesIO(file_bytes)
        try:
            with pd.ExcelFile(bio, engine=engine) as book:
                if not book.sheet_names:
                    raise EmptyInputError(f"El archivo Excel '{filename}' no contiene hojas.")
                # Solo la celda vacía es NaN: "NA" o "None" son valores válidos
                return book.parse(
                    book.sheet_names[0], header=None, keep_default_na=False, na_values=[""]
                )
        except EmptyInputError:
            raise
        except Exception as e:  # engine no válido para este archivo: se prueba el siguiente
            last_error = e
    raise IngestionError(f"No se pudo leer {filename} con ningún engine válido: {last_error}")


def split_excel(file_bytes: bytes, filename: str) -> Tuple[List[str], List[RawRow]]:
    """Cabecera + filas de la primera hoja. Celdas vacías → cadena vacía."""
    df = _read_excel_first_sheet(file_bytes, filename)
    df = df.dropna(how="all")
    if df.empty:
        raise EmptyInputError(
            f"La hoja de '{filename}' está vacía o no se pudo leer la fila de cabeceras."
        )

    header_cells = df.iloc[0].tolist()
    headers = ["" if pd.isna(h) else str(h).strip() for h in header_cells]
    if not any(headers):
        raise EmptyInputError(f"No se pudo leer la fila de cabeceras de '{filename}'.")

    rows: List[RawRow] = []
    for _, series in df.iloc[1:].iterrows():
        row: RawRow = {}
        for header, value in zip(headers, series.tolist()):
            # Columnas sin cabecera no se pueden mapear ni conservar
            if not header:
                continue
            row[header] = "" if pd.isna(value) else value
        rows.append(row)
    return headers, rows


# ===========
# Orquestación
# ===========
def run_ingestion(
    file_bytes: bytes,
    filename: str,
    schema: Sequence[FieldDescriptor] = FIELD_SCHEMA,
) -> IngestionResult:
    """Procesa un archivo completo y devuelve registros aceptados y rechazados.

    Los errores de formato y de cabecera abortan todo el archivo. Las filas
    inválidas solo afectan a sí mismas. Un archivo sin filas válidas no es un
    error: ``has_results`` queda en False y lo decide quien llama.

    Raises:
        UnsupportedFormatError: extensión no reconocida (antes de leer nada).
        EmptyInputError: sin cabecera, o libro sin hojas.
        MissingColumnsError: faltan columnas obligatorias.
        IngestionError: archivo Excel ilegible.
    """
    kind = detect_format(filename)

    if kind == "csv":
        headers, rows = split_csv(decode_csv(file_bytes))
    else:
        headers, rows = split_excel(file_bytes, filename)

    validate_headers(headers, schema)

    result = IngestionResult(filename=filename, headers=headers)
    for index, raw_row in enumerate(rows, start=1):
        record = map_row(raw_row, index, schema)
        if record is None:
            result.rejected_rows.append(index)
        else:
            result.records.append(record)

    logger.info(
        "Ingesta de '%s' completada: %d fila(s) válidas, %d descartada(s)",
        filename, len(result.records), len(result.rejected_rows),
    )
    return result


def parse_machine_file(file_bytes: bytes, filename: str) -> List[MachineRecord]:
    """Solo los registros aceptados de ``run_ingestion``."""
    return run_ingestion(file_bytes, filename).records


def records_to_frame(records: Sequence[MachineRecord]) -> pd.DataFrame:
    """DataFrame para mostrar: campos canónicos y después columnas de paso."""
    if not records:
        return pd.DataFrame(columns=[desc.key for desc in FIELD_SCHEMA])
    return pd.DataFrame([r.as_dict() for r in records])
