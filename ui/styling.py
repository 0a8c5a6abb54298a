"""
ui/styling.py
=============
Componentes de presentación para Streamlit.

IMPORTANTE: Este módulo SÍ puede importar streamlit.
No debe contener lógica de negocio (parseo, validación, predicción).
Solo renderiza datos ya procesados por core/.
"""
from __future__ import annotations

from typing import Optional, Sequence

import streamlit as st

from core.ingestor import records_to_frame
from core.models import IngestionResult, MachineRecord, PredictionVerdict

# ---------------------------------------------------------------------------
# Colores CSS por nivel Low / Medium / High
# ---------------------------------------------------------------------------

LEVEL_CSS = {
    "high": "background-color: #FF6666; color: #3a0000; font-weight: bold;",
    "medium": "background-color: #FFEB9C; color: #5a4a00; font-weight: bold;",
    "low": "background-color: #92D050; color: #1a3a1a; font-weight: bold;",
}

DECISION_LABELS = {
    "yes": "🔴 Sí",
    "no": "🟢 No",
}

URGENCY_LABELS = {
    "high": "🔴 Alta",
    "medium": "🟡 Media",
    "low": "🟢 Baja",
}

DISPLAY_COLUMNS = {
    "machine_id": "ID Máquina",
    "temperature": "Temperatura (°C)",
    "vibration_level": "Vibración",
    "pressure": "Presión (bar)",
    "operating_hours": "Horas de operación",
    "last_maintenance_days": "Días desde mantenimiento",
    "error_logs": "Registro de errores",
}


# ---------------------------------------------------------------------------
# Helpers de color (internos)
# ---------------------------------------------------------------------------

def _color_for_level(val: str) -> str:
    """CSS para una celda con nivel Low / Medium / High."""
    return LEVEL_CSS.get(str(val).strip().lower(), "")


# ---------------------------------------------------------------------------
# Componentes de feedback
# ---------------------------------------------------------------------------

def render_ingestion_feedback(result: IngestionResult) -> None:
    """Muestra el resumen de filas aceptadas y descartadas."""
    if not result.has_results:
        st.warning(
            "⚠️ No se encontraron datos de máquinas válidos en el archivo "
            "o el archivo no contiene filas."
        )
        return

    st.success(f"✅ {len(result.records)} fila(s) válida(s) encontradas en `{result.filename}`.")

    if result.rejected_rows:
        rows = ", ".join(str(n) for n in result.rejected_rows)
        st.warning(
            f"⚠️ **{len(result.rejected_rows)} fila(s) descartada(s)** por valores "
            f"obligatorios ausentes o inválidos: {rows}"
        )


# ---------------------------------------------------------------------------
# Componentes de datos
# ---------------------------------------------------------------------------

def render_records_table(records: Sequence[MachineRecord]) -> None:
    """Tabla con todas las máquinas aceptadas, vibración coloreada."""
    st.subheader("📋 Máquinas cargadas")
    display = records_to_frame(records).rename(columns=DISPLAY_COLUMNS)
    vib_col = DISPLAY_COLUMNS["vibration_level"]
    if vib_col in display.columns and not display.empty:
        styled = display.style.map(_color_for_level, subset=[vib_col])
        st.dataframe(styled, use_container_width=True)
    else:
        st.dataframe(display, use_container_width=True)


def render_machine_selector(
    records: Sequence[MachineRecord],
    selected_id: Optional[str],
) -> Optional[str]:
    """Selector de máquina por identificador. Devuelve el id elegido o None."""
    options = [r.machine_id for r in records]
    index = options.index(selected_id) if selected_id in options else None
    return st.selectbox(
        "Selecciona una máquina para analizar",
        options=options,
        index=index,
        placeholder="Elige una máquina",
        key="machine_selector",
    )


def render_maintenance_report(machine_id: str, verdict: PredictionVerdict) -> None:
    """Informe de mantenimiento con decisión y urgencia coloreadas."""
    st.subheader(f"🛠️ Informe de mantenimiento: **{machine_id}**")

    decision = verdict.maintenance_required.strip().lower()
    urgency = verdict.urgency_level.strip().lower()

    col1, col2 = st.columns(2)
    with col1:
        st.metric("Mantenimiento requerido", DECISION_LABELS.get(decision, verdict.maintenance_required))
    with col2:
        st.metric("Urgencia", URGENCY_LABELS.get(urgency, verdict.urgency_level))

    st.markdown(f"**Motivo:** {verdict.reason}")
    st.markdown(f"**Acción sugerida:** {verdict.suggested_action}")
