"""
core/config.py
==============
Configuración del servicio externo de predicción.

Orden de prioridad: tabla ``[gemini]`` de los secrets de Streamlit y después
variables de entorno. Sin import de Streamlit: app.py pasa ``st.secrets``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"


@dataclass(frozen=True)
class PredictorSettings:
    """Parámetros de llamada al modelo.

    Attributes:
        api_key:     Clave de la API. Vacía = servicio no configurado.
        model:       Nombre del modelo.
        temperature: Temperatura de muestreo (baja para respuestas deterministas).
        timeout:     Segundos máximos de espera por respuesta.
        endpoint:    URL base de la API REST.
    """
    api_key: str = ""
    model: str = DEFAULT_MODEL
    temperature: float = 0.2
    timeout: float = 60.0
    endpoint: str = DEFAULT_ENDPOINT

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


def load_settings(
    secrets: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PredictorSettings:
    """Construye PredictorSettings a partir de secrets y entorno."""
    environ = os.environ if environ is None else environ
    section = dict((secrets or {}).get("gemini", {}))

    api_key = (
        section.get("api_key")
        or environ.get("GEMINI_API_KEY")
        or environ.get("API_KEY")
        or ""
    )
    model = section.get("model") or environ.get("GEMINI_MODEL") or DEFAULT_MODEL

    try:
        temperature = float(section.get("temperature", 0.2))
        timeout = float(section.get("timeout", 60.0))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Configuración [gemini] inválida: {e}") from e

    return PredictorSettings(
        api_key=str(api_key).strip(),
        model=str(model),
        temperature=temperature,
        timeout=timeout,
        endpoint=str(section.get("endpoint", DEFAULT_ENDPOINT)).rstrip("/"),
    )
