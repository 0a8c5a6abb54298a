"""
core/errors.py
==============
Excepciones del asistente. Las de ingesta heredan de ValueError para que
app.py las trate como errores de entrada del usuario.
"""
from __future__ import annotations

from typing import Sequence


class IngestionError(ValueError):
    """Fallo que impide procesar el archivo completo."""


class UnsupportedFormatError(IngestionError):
    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(
            f"Formato no soportado: '{filename}'. Sube un archivo CSV o Excel (.csv, .xlsx, .xls)."
        )


class EmptyInputError(IngestionError):
    """Archivo sin cabecera, sin filas de datos o sin hojas."""


class MissingColumnsError(IngestionError):
    """Una o más columnas obligatorias no aparecen en el archivo.

    Attributes:
        missing:  Nombre preferido de cada campo obligatorio no encontrado.
        detected: Cabeceras detectadas en el archivo, para diagnóstico.
    """

    def __init__(self, missing: Sequence[str], detected: Sequence[str]) -> None:
        self.missing = list(missing)
        self.detected = list(detected)
        super().__init__(
            "Al archivo le faltan columnas obligatorias (o usa nombres no reconocidos). "
            f"No se encontró: {', '.join(self.missing)}. "
            f"Cabeceras detectadas: {', '.join(self.detected)}"
        )


class PredictionError(RuntimeError):
    """Fallo del servicio externo de predicción. Reintentable por el usuario."""
