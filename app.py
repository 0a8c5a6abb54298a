"""
app.py: Asistente de Mantenimiento Predictivo
==============================================
Entrypoint principal para Streamlit Cloud.

Flujo:
  1. Sidebar: subida de un archivo CSV / Excel con datos de máquinas.
  2. Área principal: tabla de máquinas válidas y selector de máquina.
  3. Al elegir una máquina se pide el informe al servicio de IA.
  4. Informe de mantenimiento (decisión, urgencia, motivo, acción).
"""
from __future__ import annotations

import logging
from typing import Any

import streamlit as st

from core.config import PredictorSettings, load_settings
from core.errors import IngestionError, PredictionError
from core.ingestor import SUPPORTED_EXTENSIONS, run_ingestion
from core.predictor import GeminiClient
from core.session import PredictionTracker
from ui.styling import (
    render_ingestion_feedback,
    render_machine_selector,
    render_maintenance_report,
    render_records_table,
)

# ---------------------------------------------------------------------------
# Configuración de logging (no verbose, no exponer datos sensibles)
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuración de página
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Mantenimiento Predictivo",
    page_icon="🛠️",
    layout="wide",
    initial_sidebar_state="expanded",
    menu_items={
        "About": "Asistente de mantenimiento predictivo para equipos industriales.",
        "Report a bug": None,
        "Get help": None,
    },
)

# ---------------------------------------------------------------------------
# Helpers de session_state
# ---------------------------------------------------------------------------

def _init_state() -> None:
    """Inicializa claves de session_state si no existen."""
    defaults: dict[str, Any] = {
        "upload_id": None,
        "ingestion": None,
        "ingestion_error": None,
        "tracker": PredictionTracker(),
    }
    for key, val in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = val


def _load_settings() -> PredictorSettings:
    """Lee [gemini] de st.secrets si existe; si no, solo variables de entorno."""
    try:
        secrets = {k: st.secrets[k] for k in st.secrets.keys()}
    except FileNotFoundError:
        secrets = {}
    return load_settings(secrets)


def _ingest_upload(uploaded) -> None:
    """Procesa un archivo nuevo y reinicia selección e informe."""
    tracker: PredictionTracker = st.session_state.tracker
    tracker.reset()
    st.session_state.ingestion = None
    st.session_state.ingestion_error = None
    st.session_state.pop("machine_selector", None)

    try:
        st.session_state.ingestion = run_ingestion(uploaded.getvalue(), uploaded.name)
    except IngestionError as e:
        st.session_state.ingestion_error = str(e)
        logger.warning("Archivo rechazado '%s': %s", uploaded.name, e)
    except Exception as e:
        st.session_state.ingestion_error = f"Error inesperado leyendo el archivo: {e}"
        logger.exception("Error inesperado en run_ingestion")


def _request_prediction(client: GeminiClient, ticket: int, machine_id: str) -> None:
    """Pide el veredicto y solo lo guarda si la selección sigue vigente."""
    tracker: PredictionTracker = st.session_state.tracker
    record = st.session_state.ingestion.find(machine_id)
    if record is None:
        tracker.fail(ticket, f"La máquina '{machine_id}' ya no está en los datos cargados.")
        return
    try:
        verdict = client.analyze(record)
    except PredictionError as e:
        if not tracker.fail(ticket, str(e)):
            logger.info("Fallo descartado: la selección cambió (ticket %d)", ticket)
        return
    if not tracker.resolve(ticket, verdict):
        logger.info("Respuesta descartada: la selección cambió (ticket %d)", ticket)


# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------

def render_sidebar(settings: PredictorSettings) -> None:
    """Renderiza el sidebar: subida de archivo y estado del servicio."""
    with st.sidebar:
        st.title("🛠️ Mantenimiento Predictivo")
        st.caption("Análisis de equipos industriales asistido por IA")
        st.divider()

        st.header("📂 Datos de equipos")
        uploaded = st.file_uploader(
            "Selecciona un archivo",
            type=sorted(ext.lstrip(".") for ext in SUPPORTED_EXTENSIONS),
            accept_multiple_files=False,
            help="CSV separado por comas o Excel (.xlsx, .xls). Solo se lee la primera hoja.",
            key="uploader_machines",
        )
        if uploaded is not None and uploaded.file_id != st.session_state.upload_id:
            st.session_state.upload_id = uploaded.file_id
            with st.spinner("⏳ Procesando archivo..."):
                _ingest_upload(uploaded)

        st.divider()
        st.header("🤖 Servicio de IA")
        if settings.is_configured:
            st.success(f"✅ Modelo: `{settings.model}`")
        else:
            st.warning("⚠️ Falta la clave de la API (GEMINI_API_KEY).")

        st.divider()
        st.caption("© Todos los derechos reservados")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    _init_state()
    settings = _load_settings()
    render_sidebar(settings)

    st.title("🛠️ Asistente de Mantenimiento Predictivo")
    st.caption(
        "Sube un archivo con los datos de las máquinas en el sidebar, elige una "
        "máquina y obtén un informe de mantenimiento."
    )
    st.divider()

    if st.session_state.ingestion_error:
        st.error(f"❌ {st.session_state.ingestion_error}")

    result = st.session_state.ingestion
    if result is None:
        if not st.session_state.ingestion_error:
            st.info("📌 Carga un archivo CSV o Excel en el sidebar para empezar.")
        return

    render_ingestion_feedback(result)
    if not result.has_results:
        return

    render_records_table(result.records)
    st.divider()

    tracker: PredictionTracker = st.session_state.tracker
    selected = render_machine_selector(result.records, tracker.selected_id)
    ticket = tracker.select(selected)

    if selected is None:
        return

    # Una ejecución anterior interrumpida (rerun de Streamlit) deja la selección
    # sin veredicto ni error: se vuelve a pedir con un ticket nuevo
    if ticket is None and tracker.pending:
        ticket = tracker.retry()

    if ticket is not None:
        with st.spinner("⏳ Analizando datos de la máquina..."):
            _request_prediction(GeminiClient(settings), ticket, selected)

    if tracker.error:
        st.error(f"❌ {tracker.error}")
        if st.button("🔄 Reintentar", type="primary"):
            retry_ticket = tracker.retry()
            if retry_ticket is not None:
                with st.spinner("⏳ Analizando datos de la máquina..."):
                    _request_prediction(GeminiClient(settings), retry_ticket, selected)
            st.rerun()
    elif tracker.verdict is not None:
        st.divider()
        render_maintenance_report(selected, tracker.verdict)


if __name__ == "__main__":
    main()
