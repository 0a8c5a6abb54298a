"""UI: componentes de presentación Streamlit. Solo renderiza, no calcula."""
from ui.styling import (
    render_ingestion_feedback,
    render_machine_selector,
    render_maintenance_report,
    render_records_table,
)

__all__ = [
    "render_ingestion_feedback",
    "render_machine_selector",
    "render_maintenance_report",
    "render_records_table",
]
