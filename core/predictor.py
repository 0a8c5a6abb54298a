"""
core/predictor.py
=================
Llamada al servicio externo de predicción (API REST de Gemini).

Un MachineRecord entra, un PredictionVerdict sale o se lanza PredictionError.
La respuesta puede venir envuelta en un bloque ```json ... ```; se limpia
antes de parsear. Un JSON incompleto nunca se devuelve como veredicto parcial.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

import requests

from core.config import PredictorSettings
from core.errors import PredictionError
from core.models import MachineRecord, PredictionVerdict

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)

PROMPT_TEMPLATE = """
You are a predictive maintenance assistant for industrial equipment.
Analyze the following data for a single machine and determine if maintenance is required.

Machine Data:
Machine ID: {machine_id}
Temperature (°C): {temperature}
Vibration Level: {vibration_level}
Pressure (bar): {pressure}
Operating Hours: {operating_hours}
Last Maintenance (days ago): {last_maintenance_days}
Error Logs: "{error_logs}"

Guidelines for analysis:
- If temperature is unusually high (> 90°C), consider it a risk factor for overheating.
- If vibration level is "High", flag it as a potential mechanical wear issue.
- If pressure is outside typical ranges (e.g., < 3 bar or > 5 bar), mention pressure anomalies.
- If operating hours exceed 1000 AND last maintenance was more than 60 days ago, consider that excessive usage.
- If error logs contain any warning (text other than "None" or an empty string, or keywords like "warning", "error", "detected", "failed"), include it in the reason.

Respond ONLY with a JSON object in the following strict format, with no text before or after it:
{{
  "Maintenance Required": "Yes" or "No",
  "Reason": "<Brief technical explanation that cites the input values that triggered the assessment>",
  "Suggested Action": "<Specific, actionable steps for the maintenance team>",
  "Urgency Level": "Low", "Medium", or "High"
}}

If no issues are found, state that all parameters are within normal operating ranges.
Urgency: High for critical issues, Medium for warnings, Low for minor or preventative checks.
"""


# ===========
# Prompt y parseo de respuesta
# ===========
def build_prompt(record: MachineRecord) -> str:
    """Texto enviado al modelo con los siete campos del registro."""
    return PROMPT_TEMPLATE.format(**record.canonical_dict())


def strip_code_fence(text: str) -> str:
    """Quita un bloque ```lang ... ``` que envuelva toda la respuesta."""
    stripped = text.strip()
    m = _FENCE_RE.match(stripped)
    if m and m.group(2):
        return m.group(2).strip()
    return stripped


def parse_verdict(text: Optional[str]) -> PredictionVerdict:
    """Convierte el texto del modelo en PredictionVerdict.

    Raises:
        PredictionError: texto vacío, JSON inválido o campos ausentes.
    """
    if not text or not text.strip():
        raise PredictionError("El servicio de IA devolvió una respuesta vacía.")

    payload = strip_code_fence(text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.error("Respuesta no es JSON válido: %s", e)
        raise PredictionError(
            "No se pudo interpretar la respuesta JSON del servicio de IA."
        ) from e

    if not isinstance(data, dict):
        raise PredictionError("La respuesta del servicio de IA no es un objeto JSON.")

    values: Dict[str, str] = {}
    missing: List[str] = []
    for attr, json_key in PredictionVerdict.JSON_KEYS.items():
        value = data.get(json_key)
        if not isinstance(value, str) or not value.strip():
            missing.append(json_key)
        else:
            values[attr] = value.strip()

    if missing:
        raise PredictionError(
            "La respuesta del servicio de IA es JSON válido pero le faltan campos: "
            + ", ".join(missing)
        )
    return PredictionVerdict(**values)


def _response_text(body: Dict[str, Any]) -> str:
    """Concatena las partes de texto del primer candidato."""
    candidates = body.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


# ===========
# Cliente
# ===========
class GeminiClient:
    def __init__(self, settings: PredictorSettings) -> None:
        self.settings = settings

    @property
    def url(self) -> str:
        return f"{self.settings.endpoint}/models/{self.settings.model}:generateContent"

    def generate(self, prompt: str) -> str:
        if not self.settings.is_configured:
            raise PredictionError(
                "La clave de la API de Gemini no está configurada. "
                "Define GEMINI_API_KEY o la sección [gemini] en secrets."
            )
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": self.settings.temperature,
            },
        }
        try:
            response = requests.post(
                self.url,
                params={"key": self.settings.api_key},
                json=payload,
                timeout=self.settings.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            logger.error("Error llamando a la API de Gemini: %s", type(e).__name__)
            raise PredictionError(f"Error de la API de Gemini: {type(e).__name__}") from e
        except ValueError as e:
            raise PredictionError("La API de Gemini devolvió un cuerpo no JSON.") from e
        return _response_text(body)

    def analyze(self, record: MachineRecord) -> PredictionVerdict:
        """Veredicto de mantenimiento para un registro."""
        text = self.generate(build_prompt(record))
        verdict = parse_verdict(text)
        logger.info(
            "Predicción para %s: mantenimiento=%s, urgencia=%s",
            record.machine_id, verdict.maintenance_required, verdict.urgency_level,
        )
        return verdict
