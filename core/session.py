"""
core/session.py
===============
Seguimiento de la máquina seleccionada y de su predicción.

Solo hay una petición vigente a la vez. Cada selección emite un ticket nuevo;
una respuesta solo se guarda si su ticket sigue siendo el actual, de modo que
una respuesta tardía nunca pisa el estado de una selección posterior.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.models import PredictionVerdict


@dataclass
class PredictionTracker:
    selected_id: Optional[str] = None
    ticket: int = 0
    verdict: Optional[PredictionVerdict] = None
    error: Optional[str] = None

    def select(self, machine_id: Optional[str]) -> Optional[int]:
        """Cambia la selección. Devuelve el ticket nuevo, o None si no cambia."""
        if machine_id == self.selected_id:
            return None
        self.selected_id = machine_id
        self.ticket += 1
        self.verdict = None
        self.error = None
        return self.ticket

    def retry(self) -> Optional[int]:
        """Nuevo ticket para la misma selección tras un fallo."""
        if self.selected_id is None:
            return None
        self.ticket += 1
        self.verdict = None
        self.error = None
        return self.ticket

    def reset(self) -> None:
        """Olvida selección y resultado (p. ej. al subir otro archivo)."""
        self.selected_id = None
        self.ticket += 1
        self.verdict = None
        self.error = None

    def is_current(self, ticket: int) -> bool:
        return ticket == self.ticket

    def resolve(self, ticket: int, verdict: PredictionVerdict) -> bool:
        if not self.is_current(ticket):
            return False
        self.verdict = verdict
        self.error = None
        return True

    def fail(self, ticket: int, message: str) -> bool:
        if not self.is_current(ticket):
            return False
        self.verdict = None
        self.error = message
        return True

    @property
    def pending(self) -> bool:
        """Hay selección pero todavía no hay veredicto ni error."""
        return self.selected_id is not None and self.verdict is None and self.error is None
