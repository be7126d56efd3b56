"""
Payment workflow for SEMTAS installments.
Handles payment status transitions and the dates each transition stamps.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

from dateutil.relativedelta import relativedelta

from semtas.core.exceptions import TransicaoInvalidaError
from semtas.db.models import Pagamento, StatusPagamento

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PagamentoTransition:
    """Represents a valid payment status transition."""
    from_status: StatusPagamento
    to_status: StatusPagamento
    requires_previous_settled: bool = False
    date_field: Optional[str] = None


class PagamentoWorkflowEngine:
    """Manages payment status transitions."""

    TERMINAL_STATUSES = frozenset({StatusPagamento.PAGO, StatusPagamento.CANCELADO})

    VALID_TRANSITIONS: List[PagamentoTransition] = [
        # From PENDENTE
        PagamentoTransition(StatusPagamento.PENDENTE, StatusPagamento.PROCESSADO),
        PagamentoTransition(StatusPagamento.PENDENTE, StatusPagamento.VENCIDO, date_field="data_vencido"),
        PagamentoTransition(StatusPagamento.PENDENTE, StatusPagamento.CANCELADO),

        # From PROCESSADO
        PagamentoTransition(StatusPagamento.PROCESSADO, StatusPagamento.LIBERADO, requires_previous_settled=True, date_field="data_liberacao"),
        PagamentoTransition(StatusPagamento.PROCESSADO, StatusPagamento.PAGO, requires_previous_settled=True, date_field="data_pagamento"),
        PagamentoTransition(StatusPagamento.PROCESSADO, StatusPagamento.VENCIDO, date_field="data_vencido"),
        PagamentoTransition(StatusPagamento.PROCESSADO, StatusPagamento.CANCELADO),

        # From LIBERADO
        PagamentoTransition(StatusPagamento.LIBERADO, StatusPagamento.PAGO, date_field="data_pagamento"),

        # From VENCIDO
        PagamentoTransition(StatusPagamento.VENCIDO, StatusPagamento.REGULARIZADO, date_field="data_regularizacao"),
        PagamentoTransition(StatusPagamento.VENCIDO, StatusPagamento.CANCELADO),

        # From REGULARIZADO
        PagamentoTransition(StatusPagamento.REGULARIZADO, StatusPagamento.PROCESSADO),
        PagamentoTransition(StatusPagamento.REGULARIZADO, StatusPagamento.CANCELADO),
    ]

    SETTLED_STATUSES = frozenset({StatusPagamento.LIBERADO, StatusPagamento.PAGO})

    def __init__(self):
        self._build_transition_map()

    def _build_transition_map(self) -> None:
        self.transition_map: Dict[StatusPagamento, List[PagamentoTransition]] = {}
        for transition in self.VALID_TRANSITIONS:
            self.transition_map.setdefault(transition.from_status, []).append(transition)

    def get_valid_transitions(self, current_status: StatusPagamento) -> List[StatusPagamento]:
        return [t.to_status for t in self.transition_map.get(current_status, [])]

    def validate_transition(self, current_status: StatusPagamento, new_status: StatusPagamento) -> PagamentoTransition:
        """
        Validate if a payment status transition is allowed.

        Raises:
            TransicaoInvalidaError: If the transition is not valid
        """
        for t in self.transition_map.get(current_status, []):
            if t.to_status == new_status:
                return t

        raise TransicaoInvalidaError(
            f"Invalid payment transition from '{current_status.value}' to '{new_status.value}'",
            {"current_status": current_status.value, "new_status": new_status.value}
        )

    def apply(self, pagamento: Pagamento, transition: PagamentoTransition, when: Optional[datetime] = None) -> None:
        """Set the new status and stamp the lifecycle date tied to it."""
        pagamento.status = transition.to_status
        if transition.date_field:
            setattr(pagamento, transition.date_field, when or datetime.utcnow())

    @staticmethod
    def due_dates(first_due: date, total: int) -> List[date]:
        """Monthly due dates starting at `first_due`, month-end safe."""
        return [first_due + relativedelta(months=i) for i in range(total)]
