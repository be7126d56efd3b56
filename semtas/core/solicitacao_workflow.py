"""Request (solicitação) status transitions."""

from typing import Dict, FrozenSet

from semtas.core.exceptions import TransicaoInvalidaError
from semtas.db.models import StatusSolicitacao


class SolicitacaoWorkflowEngine:

    VALID_TRANSITIONS: Dict[StatusSolicitacao, FrozenSet[StatusSolicitacao]] = {
        StatusSolicitacao.PENDENTE: frozenset({StatusSolicitacao.EM_ANALISE, StatusSolicitacao.CANCELADA}),
        StatusSolicitacao.EM_ANALISE: frozenset({
            StatusSolicitacao.APROVADA,
            StatusSolicitacao.INDEFERIDA,
            StatusSolicitacao.PENDENTE,  # devolvida para complementação
        }),
        StatusSolicitacao.APROVADA: frozenset(),
        StatusSolicitacao.INDEFERIDA: frozenset(),
        StatusSolicitacao.CANCELADA: frozenset(),
    }

    def get_valid_transitions(self, current_status: StatusSolicitacao) -> FrozenSet[StatusSolicitacao]:
        return self.VALID_TRANSITIONS.get(current_status, frozenset())

    def validate_transition(self, current_status: StatusSolicitacao, new_status: StatusSolicitacao) -> None:
        if new_status not in self.get_valid_transitions(current_status):
            raise TransicaoInvalidaError(
                f"Invalid request transition from '{current_status.value}' to '{new_status.value}'",
                {"current_status": current_status.value, "new_status": new_status.value}
            )
