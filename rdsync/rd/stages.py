"""
Pipeline stage <-> local status mapping, and the local status machine.

Stage ordinals drift because pipelines are edited by hand in the CRM, so
a stage label that names an outcome ("Pago", "Negado", "Concluído") wins
over the ordinal position.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from rdsync.models.enums import SinistroStatus

@dataclass(frozen=True)
class StageMap:
    status_to_index: Mapping[str, int]
    index_to_status: Mapping[int, str]
    # ordered (substrings, status); first match wins
    label_rules: tuple[tuple[tuple[str, ...], str], ...] = field(default_factory=tuple)
    default_index: int = 0

    def stage_index_for(self, status: str, stage_count: int) -> int:
        if stage_count < 1:
            raise ValueError("pipeline has no stages")
        idx = self.status_to_index.get(str(status), self.default_index)
        return max(0, min(idx, stage_count - 1))

    def status_from_label(self, label: str | None) -> str | None:
        text = (label or "").strip().lower()
        if not text:
            return None
        for needles, status in self.label_rules:
            if any(n in text for n in needles):
                return status
        return None

    def status_for_stage(
        self,
        order: int | None,
        label: str | None,
        current: str | None = None,
    ) -> str | None:
        by_label = self.status_from_label(label)
        if by_label is not None:
            return by_label
        if order is None:
            return current
        return self.index_to_status.get(order, current)

SINISTRO_STAGE_MAP = StageMap(
    status_to_index={
        SinistroStatus.em_analise.value: 0,
        SinistroStatus.pendente_documentos.value: 1,
        SinistroStatus.em_andamento.value: 2,
        SinistroStatus.enviado_operadora.value: 3,
        SinistroStatus.aprovado.value: 4,
        SinistroStatus.negado.value: 4,
        SinistroStatus.pago.value: 5,
        SinistroStatus.concluido.value: 5,
    },
    index_to_status={
        0: SinistroStatus.em_analise.value,
        1: SinistroStatus.pendente_documentos.value,
        2: SinistroStatus.em_andamento.value,
        3: SinistroStatus.enviado_operadora.value,
        4: SinistroStatus.aprovado.value,
        5: SinistroStatus.concluido.value,
    },
    label_rules=(
        (("negado", "recusado"), SinistroStatus.negado.value),
        (("pago",), SinistroStatus.pago.value),
        (("conclu",), SinistroStatus.concluido.value),
    ),
)

SINISTRO_TERMINAL_STATUSES = frozenset(
    {SinistroStatus.negado.value, SinistroStatus.pago.value, SinistroStatus.concluido.value}
)

_NEXT: dict[str, frozenset[str]] = {
    SinistroStatus.em_analise.value: frozenset({SinistroStatus.pendente_documentos.value}),
    SinistroStatus.pendente_documentos.value: frozenset({SinistroStatus.em_andamento.value}),
    SinistroStatus.em_andamento.value: frozenset({SinistroStatus.enviado_operadora.value}),
    SinistroStatus.enviado_operadora.value: frozenset(
        {SinistroStatus.aprovado.value, SinistroStatus.negado.value}
    ),
    SinistroStatus.aprovado.value: frozenset(
        {SinistroStatus.pago.value, SinistroStatus.concluido.value}
    ),
    SinistroStatus.negado.value: frozenset(),
    SinistroStatus.pago.value: frozenset(),
    SinistroStatus.concluido.value: frozenset(),
}

def reachable_from(status: str) -> frozenset[str]:
    seen: set[str] = set()
    stack = list(_NEXT.get(status, ()))
    while stack:
        s = stack.pop()
        if s in seen:
            continue
        seen.add(s)
        stack.extend(_NEXT.get(s, ()))
    return frozenset(seen)

def can_transition(current: str, target: str) -> bool:
    """Local edits may skip intermediate steps but never move backwards
    or leave a terminal status."""
    return target in reachable_from(current)
