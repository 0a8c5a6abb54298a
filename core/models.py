"""
core/models.py
==============
Modelos de datos puros del asistente de mantenimiento predictivo.

Sin dependencias de Streamlit ni del ingestor: 100% testeable en
aislamiento. Todos los demás módulos importan desde aquí.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional


class VibrationLevel(str, Enum):
    """Nivel de vibración aceptado en el archivo (sin distinguir mayúsculas)."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# Marcador devuelto por un parser cuando el valor no es utilizable.
# Se distingue de None para no confundirlo con un valor ausente válido.
UNPARSEABLE = object()


# ---------------------------------------------------------------------------
# FieldDescriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldDescriptor:
    """Describe un campo destino del registro de máquina.

    Attributes:
        key:      Clave canónica usada en MachineRecord.
        aliases:  Cabeceras aceptadas. La primera es la preferida para mensajes.
        required: Si la fila se rechaza cuando el valor no es parseable.
        parse:    Función pura valor crudo → valor tipado o UNPARSEABLE.
        default:  Valor usado para campos opcionales ausentes o inválidos.
    """
    key: str
    aliases: tuple[str, ...]
    required: bool
    parse: Callable[[Any], Any]
    default: Any = None

    def __post_init__(self) -> None:
        if not self.aliases:
            raise ValueError(f"El campo '{self.key}' necesita al menos un alias.")

    @property
    def display_name(self) -> str:
        return self.aliases[0]


# ---------------------------------------------------------------------------
# MachineRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MachineRecord:
    """Registro validado de una máquina.

    Los siete campos canónicos están tipados; las columnas del archivo que no
    coinciden con ningún alias se conservan tal cual en ``extra``.
    """
    machine_id: str
    temperature: float
    vibration_level: VibrationLevel
    pressure: float
    operating_hours: int
    last_maintenance_days: int
    error_logs: str = "None"
    extra: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        # Copia de solo lectura: el registro no se muta tras construirse
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def canonical_dict(self) -> dict[str, Any]:
        """Solo los siete campos canónicos, en orden de esquema."""
        return {
            "machine_id": self.machine_id,
            "temperature": self.temperature,
            "vibration_level": self.vibration_level.value,
            "pressure": self.pressure,
            "operating_hours": self.operating_hours,
            "last_maintenance_days": self.last_maintenance_days,
            "error_logs": self.error_logs,
        }

    def as_dict(self) -> dict[str, Any]:
        """Campos canónicos seguidos de las columnas de paso."""
        out = self.canonical_dict()
        for key, value in self.extra.items():
            out.setdefault(key, value)
        return out


# ---------------------------------------------------------------------------
# IngestionResult
# ---------------------------------------------------------------------------

@dataclass
class IngestionResult:
    """Resultado de la ingesta de un archivo.

    Attributes:
        filename:      Nombre del archivo procesado.
        headers:       Cabeceras detectadas, tal como aparecen en el archivo.
        records:       Registros aceptados, en el orden del archivo.
        rejected_rows: Números de fila (1-based, filas de datos) descartadas.
    """
    filename: str
    headers: list[str] = field(default_factory=list)
    records: list[MachineRecord] = field(default_factory=list)
    rejected_rows: list[int] = field(default_factory=list)

    @property
    def has_results(self) -> bool:
        """True si al menos una fila fue aceptada."""
        return len(self.records) > 0

    @property
    def total_rows(self) -> int:
        return len(self.records) + len(self.rejected_rows)

    def find(self, machine_id: str) -> Optional[MachineRecord]:
        """Primer registro con ese identificador, o None."""
        return next((r for r in self.records if r.machine_id == machine_id), None)


# ---------------------------------------------------------------------------
# PredictionVerdict
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PredictionVerdict:
    """Veredicto del servicio externo de predicción.

    Solo define la forma; el contenido lo produce el colaborador.
    """
    maintenance_required: str
    reason: str
    suggested_action: str
    urgency_level: str

    # Claves JSON esperadas en la respuesta del servicio
    JSON_KEYS = {
        "maintenance_required": "Maintenance Required",
        "reason": "Reason",
        "suggested_action": "Suggested Action",
        "urgency_level": "Urgency Level",
    }

    @property
    def requires_maintenance(self) -> bool:
        return self.maintenance_required.strip().lower() == "yes"
