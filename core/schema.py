"""
core/schema.py
==============
Esquema de columnas del archivo de máquinas.

- normalize_header: forma canónica de una cabecera para comparar.
- resolve_alias: busca la columna del archivo que corresponde a un campo.
- FIELD_SCHEMA: tabla ordenada de campos destino (alias, obligatoriedad, parser).

Cada parser es una función pura que devuelve el valor tipado o UNPARSEABLE.
"""
from __future__ import annotations

import math
import re
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from core.models import UNPARSEABLE, FieldDescriptor, VibrationLevel

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_FLOAT_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INT_PREFIX = re.compile(r"^[+-]?\d+")

ERROR_LOGS_DEFAULT = "None"


# ===========
# Normalización de cabeceras
# ===========
def normalize_header(header: Any) -> str:
    """Minúsculas y solo letras/dígitos ASCII. Nunca falla.

    >>> normalize_header("Temperature (°C)")
    'temperaturec'
    """
    if header is None:
        return ""
    if isinstance(header, float) and math.isnan(header):
        return ""
    return _NON_ALNUM.sub("", str(header).lower())


def resolve_alias(
    row_headers: Iterable[str],
    aliases: Sequence[str],
) -> Optional[str]:
    """Devuelve la cabecera original que casa con el primer alias posible.

    Los alias se prueban en orden; para cada uno se recorren las cabeceras del
    archivo en su orden de origen. Si dos cabeceras normalizan igual gana la
    primera que aparece en el archivo.
    """
    normalized = [(h, normalize_header(h)) for h in row_headers]
    for alias in aliases:
        target = normalize_header(alias)
        if not target:
            continue
        for original, norm in normalized:
            if norm == target:
                return original
    return None


def lookup(raw_row: Mapping[str, Any], aliases: Sequence[str]) -> Tuple[Optional[str], Any]:
    """(cabecera encontrada, valor crudo) o (None, None) si no hay columna."""
    header = resolve_alias(raw_row.keys(), aliases)
    if header is None:
        return None, None
    return header, raw_row[header]


# ===========
# Conversión de celdas
# ===========
def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def cell_text(value: Any) -> str:
    """Texto de una celda. Los floats enteros de Excel pierden el '.0'."""
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_float(value: Any) -> Any:
    if isinstance(value, bool):
        return UNPARSEABLE
    if isinstance(value, (int, float)):
        return UNPARSEABLE if math.isnan(value) else float(value)
    m = _FLOAT_PREFIX.match(cell_text(value))
    if not m:
        return UNPARSEABLE
    return float(m.group(0))


def parse_int(value: Any) -> Any:
    if isinstance(value, bool):
        return UNPARSEABLE
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return UNPARSEABLE if not math.isfinite(value) else int(value)
    m = _INT_PREFIX.match(cell_text(value))
    if not m:
        return UNPARSEABLE
    return int(m.group(0))


def parse_identifier(value: Any) -> Any:
    text = cell_text(value)
    return text if text else UNPARSEABLE


def parse_vibration(value: Any) -> Any:
    text = cell_text(value).lower()
    for level in VibrationLevel:
        if text == level.value.lower():
            return level
    return UNPARSEABLE


def parse_error_logs(value: Any) -> str:
    return cell_text(value) or ERROR_LOGS_DEFAULT


# ===========
# Esquema
# ===========
FIELD_SCHEMA: Tuple[FieldDescriptor, ...] = (
    FieldDescriptor(
        key="machine_id",
        aliases=("Machine ID", "Machine_ID", "ID", "Asset ID"),
        required=True,
        parse=parse_identifier,
    ),
    FieldDescriptor(
        key="temperature",
        aliases=("Temperature (°C)", "Temperature(°C)", "Temp C", "Temperature C",
                 "Temperature_C", "Temperature"),
        required=True,
        parse=parse_float,
    ),
    FieldDescriptor(
        key="vibration_level",
        aliases=("Vibration Level", "Vibration_Level", "Vibration"),
        required=True,
        parse=parse_vibration,
    ),
    FieldDescriptor(
        key="pressure",
        aliases=("Pressure (bar)", "Pressure(bar)", "Pressure bar", "Pressure_bar", "Pressure"),
        required=True,
        parse=parse_float,
    ),
    FieldDescriptor(
        key="operating_hours",
        aliases=("Operating Hours", "Operating_Hours", "Op Hours", "Total Hours"),
        required=True,
        parse=parse_int,
    ),
    FieldDescriptor(
        key="last_maintenance_days",
        aliases=(
            "Last Maintenance (days ago)",
            "Last_Maintenance_Days",
            "Last Maintenance Days",
            "Days Since Last Maintenance",
            "Last Maintenance Days Ago",
        ),
        required=True,
        parse=parse_int,
    ),
    FieldDescriptor(
        key="error_logs",
        aliases=("Error Logs", "Error_Logs", "Logs", "Errors", "Faults"),
        required=False,
        parse=parse_error_logs,
        default=ERROR_LOGS_DEFAULT,
    ),
)


def known_header_forms(schema: Sequence[FieldDescriptor] = FIELD_SCHEMA) -> frozenset[str]:
    """Formas normalizadas de todos los alias del esquema."""
    return frozenset(
        normalize_header(alias) for desc in schema for alias in desc.aliases
    )
