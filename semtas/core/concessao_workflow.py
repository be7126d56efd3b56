"""
Concession workflow and state machine for SEMTAS.
Holds the single transition table every concession status change goes through.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from semtas.core.exceptions import TransicaoInvalidaError, ValidationError
from semtas.db.models import StatusConcessao

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConcessaoTransition:
    """Represents a valid concession status transition."""
    from_status: StatusConcessao
    to_status: StatusConcessao
    requires_reason: bool = True
    operation: str = ""


class ConcessaoWorkflowEngine:
    """Validates concession status transitions."""

    TERMINAL_STATUSES = frozenset({StatusConcessao.CESSADO, StatusConcessao.CANCELADO})

    VALID_TRANSITIONS: List[ConcessaoTransition] = [
        # From APTO
        ConcessaoTransition(StatusConcessao.APTO, StatusConcessao.ATIVO, requires_reason=False, operation="ativar"),
        ConcessaoTransition(StatusConcessao.APTO, StatusConcessao.SUSPENSO, operation="suspender"),
        ConcessaoTransition(StatusConcessao.APTO, StatusConcessao.BLOQUEADO, operation="bloquear"),
        ConcessaoTransition(StatusConcessao.APTO, StatusConcessao.CESSADO, operation="encerrar"),
        ConcessaoTransition(StatusConcessao.APTO, StatusConcessao.CANCELADO, operation="cancelar"),

        # From ATIVO
        ConcessaoTransition(StatusConcessao.ATIVO, StatusConcessao.SUSPENSO, operation="suspender"),
        ConcessaoTransition(StatusConcessao.ATIVO, StatusConcessao.BLOQUEADO, operation="bloquear"),
        ConcessaoTransition(StatusConcessao.ATIVO, StatusConcessao.CESSADO, operation="encerrar"),
        ConcessaoTransition(StatusConcessao.ATIVO, StatusConcessao.CANCELADO, operation="cancelar"),

        # From SUSPENSO
        ConcessaoTransition(StatusConcessao.SUSPENSO, StatusConcessao.ATIVO, operation="reativar"),
        ConcessaoTransition(StatusConcessao.SUSPENSO, StatusConcessao.BLOQUEADO, operation="bloquear"),
        ConcessaoTransition(StatusConcessao.SUSPENSO, StatusConcessao.CESSADO, operation="encerrar"),
        ConcessaoTransition(StatusConcessao.SUSPENSO, StatusConcessao.CANCELADO, operation="cancelar"),

        # From BLOQUEADO
        ConcessaoTransition(StatusConcessao.BLOQUEADO, StatusConcessao.ATIVO, operation="desbloquear"),
        ConcessaoTransition(StatusConcessao.BLOQUEADO, StatusConcessao.CESSADO, operation="encerrar"),
        ConcessaoTransition(StatusConcessao.BLOQUEADO, StatusConcessao.CANCELADO, operation="cancelar"),

        # CESSADO and CANCELADO are terminal
    ]

    def __init__(self):
        self._build_transition_map()

    def _build_transition_map(self) -> None:
        """Build a lookup map for valid transitions."""
        self.transition_map: Dict[StatusConcessao, List[ConcessaoTransition]] = {}
        for transition in self.VALID_TRANSITIONS:
            self.transition_map.setdefault(transition.from_status, []).append(transition)

    def is_terminal(self, status: StatusConcessao) -> bool:
        return status in self.TERMINAL_STATUSES

    def get_valid_transitions(self, current_status: StatusConcessao) -> List[StatusConcessao]:
        """Get list of statuses reachable from the current one."""
        return [t.to_status for t in self.transition_map.get(current_status, [])]

    def validate_transition(
        self,
        current_status: StatusConcessao,
        new_status: StatusConcessao,
        motivo: Optional[str] = None,
    ) -> ConcessaoTransition:
        """
        Validate if a status transition is allowed.

        Args:
            current_status: Current concession status
            new_status: Desired new status
            motivo: Reason for the transition

        Returns:
            ConcessaoTransition object if valid

        Raises:
            TransicaoInvalidaError: If the concession is terminal or the transition is not listed
            ValidationError: If a required reason is missing
        """
        if self.is_terminal(current_status):
            raise TransicaoInvalidaError(
                f"Concession in terminal status '{current_status.value}' accepts no further transitions",
                {"current_status": current_status.value, "new_status": new_status.value}
            )

        transition = None
        for t in self.transition_map.get(current_status, []):
            if t.to_status == new_status:
                transition = t
                break

        if not transition:
            raise TransicaoInvalidaError(
                f"Invalid transition from '{current_status.value}' to '{new_status.value}'",
                {"current_status": current_status.value, "new_status": new_status.value}
            )

        if transition.requires_reason and (not motivo or not motivo.strip()):
            raise ValidationError(
                f"A reason is required for transition to '{new_status.value}'",
                {"transition": f"{current_status.value} -> {new_status.value}"}
            )

        return transition
