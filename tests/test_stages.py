import pytest

from rdsync.models.enums import SinistroStatus
from rdsync.rd.stages import (
    SINISTRO_STAGE_MAP,
    SINISTRO_TERMINAL_STATUSES,
    can_transition,
    reachable_from,
)

S = SinistroStatus

FORWARD = {
    S.em_analise: 0,
    S.pendente_documentos: 1,
    S.em_andamento: 2,
    S.enviado_operadora: 3,
    S.aprovado: 4,
    S.negado: 4,
    S.pago: 5,
    S.concluido: 5,
}

def test_forward_table_covers_every_status():
    assert set(FORWARD) == set(SinistroStatus)

@pytest.mark.parametrize("status,index", list(FORWARD.items()))
def test_stage_index_for_full_pipeline(status, index):
    assert SINISTRO_STAGE_MAP.stage_index_for(status.value, 6) == index

@pytest.mark.parametrize("status", list(SinistroStatus))
@pytest.mark.parametrize("stage_count", [1, 2, 3, 4])
def test_stage_index_is_clamped_to_short_pipelines(status, stage_count):
    idx = SINISTRO_STAGE_MAP.stage_index_for(status.value, stage_count)
    assert 0 <= idx <= stage_count - 1
    assert idx == min(FORWARD[status], stage_count - 1)

def test_stage_index_for_unknown_status_uses_first_stage():
    assert SINISTRO_STAGE_MAP.stage_index_for("whatever", 6) == 0

def test_stage_index_for_empty_pipeline_raises():
    with pytest.raises(ValueError):
        SINISTRO_STAGE_MAP.stage_index_for(S.em_analise.value, 0)

REVERSE = {
    0: S.em_analise,
    1: S.pendente_documentos,
    2: S.em_andamento,
    3: S.enviado_operadora,
    4: S.aprovado,
    5: S.concluido,
}

@pytest.mark.parametrize("order,status", list(REVERSE.items()))
def test_status_for_stage_by_ordinal(order, status):
    assert SINISTRO_STAGE_MAP.status_for_stage(order, "Etapa neutra") == status.value

def test_status_for_stage_out_of_range_keeps_current():
    assert SINISTRO_STAGE_MAP.status_for_stage(42, None, S.aprovado.value) == S.aprovado.value

def test_status_for_stage_without_ordinal_keeps_current():
    assert SINISTRO_STAGE_MAP.status_for_stage(None, None, S.em_andamento.value) == S.em_andamento.value

@pytest.mark.parametrize("order", [None, 0, 1, 2, 3, 4, 5, 9])
def test_pago_label_wins_at_any_ordinal(order):
    assert SINISTRO_STAGE_MAP.status_for_stage(order, "Pago") == S.pago.value

@pytest.mark.parametrize(
    "label,status",
    [
        ("Sinistro NEGADO", S.negado),
        ("Recusado pela operadora", S.negado),
        ("Sinistro PAGO", S.pago),
        ("Concluído", S.concluido),
        ("  conclusão  ", S.concluido),
    ],
)
def test_label_rules_are_case_insensitive_substrings(label, status):
    assert SINISTRO_STAGE_MAP.status_from_label(label) == status.value

@pytest.mark.parametrize("label", [None, "", "   ", "Em análise"])
def test_neutral_labels_do_not_match(label):
    assert SINISTRO_STAGE_MAP.status_from_label(label) is None

def test_negado_rule_is_checked_before_pago():
    assert SINISTRO_STAGE_MAP.status_from_label("Negado - não pago") == S.negado.value

def test_terminal_statuses():
    assert SINISTRO_TERMINAL_STATUSES == {S.negado.value, S.pago.value, S.concluido.value}

@pytest.mark.parametrize("status", list(SINISTRO_TERMINAL_STATUSES))
def test_terminal_statuses_have_no_successors(status):
    assert reachable_from(status) == frozenset()

@pytest.mark.parametrize(
    "current,target,ok",
    [
        (S.em_analise, S.pendente_documentos, True),
        (S.em_analise, S.concluido, True),
        (S.em_andamento, S.enviado_operadora, True),
        (S.enviado_operadora, S.negado, True),
        (S.aprovado, S.pago, True),
        (S.em_andamento, S.em_analise, False),
        (S.aprovado, S.negado, False),
        (S.negado, S.aprovado, False),
        (S.pago, S.concluido, False),
        (S.em_andamento, S.em_andamento, False),
    ],
)
def test_can_transition(current, target, ok):
    assert can_transition(current.value, target.value) is ok
