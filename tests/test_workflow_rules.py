from datetime import datetime

from services.workflow.checklist import (
    BASIC_CHECKLIST,
    PHASES,
    PREGAO_ELETRONICO_CHECKLIST,
    REJECTION_MARKER,
    StepTemplate,
    classify_phase,
    group_by_phase,
    mark_rejected,
    strip_rejection_marker,
    templates_for_modality,
)
from services.workflow.flow import DepartmentFlow, load_flow

FLOW = DepartmentFlow(order=[10, 20, 30], names={10: "A", 20: "B", 30: "C", 99: "Outside"})


def test_flow_navigation():
    assert FLOW.first == 10
    assert FLOW.last == 30
    assert FLOW.next_department(10) == 20
    assert FLOW.next_department(30) is None
    assert FLOW.next_department(None) == 10
    assert FLOW.previous_department(20) == 10
    assert FLOW.previous_department(10) is None
    assert FLOW.is_final_department(30)
    assert not FLOW.is_final_department(20)


def test_departments_outside_the_flow():
    assert 99 not in FLOW
    assert FLOW.position(99) is None
    assert FLOW.next_department(99) is None
    assert FLOW.previous_department(99) is None
    assert FLOW.department_at(4) is None


def test_flow_describe():
    assert FLOW.describe(20) == {"id": 20, "name": "B", "position": 2}
    assert FLOW.describe(None) is None
    assert [d["id"] for d in FLOW.to_list()] == [10, 20, 30]


def test_load_flow_follows_flow_order(db):
    flow = load_flow(db)
    assert flow.order == [1, 2, 3, 4, 5, 6]
    assert flow.names[1] == "Setor de Solicitação"
    assert flow.names[6] == "Arquivo/Finalização"


def test_pregao_template_is_matched_without_accents():
    assert len(PREGAO_ELETRONICO_CHECKLIST) == 21
    assert templates_for_modality("Pregão Eletrônico") == PREGAO_ELETRONICO_CHECKLIST
    assert templates_for_modality("pregao eletronico") == PREGAO_ELETRONICO_CHECKLIST
    assert templates_for_modality("Concorrência") == BASIC_CHECKLIST
    assert templates_for_modality(None) == BASIC_CHECKLIST


def test_template_phases_are_known():
    for template in PREGAO_ELETRONICO_CHECKLIST + BASIC_CHECKLIST:
        assert template.phase in PHASES


def test_template_due_date_uses_business_days():
    start = datetime(2025, 1, 3, 9, 0)
    assert StepTemplate("x", 1, "Iniciação", 1).due_date(start) == datetime(2025, 1, 6, 9, 0)
    assert StepTemplate("x", 1, "Iniciação").due_date(start) is None


def test_classify_phase():
    assert classify_phase("Estudo Técnico Preliminar - ETP") == "Iniciação"
    assert classify_phase("Fazer pesquisa de preços") == "Preparação"
    assert classify_phase("Assinatura do Contrato") == "Finalização"
    assert classify_phase("Publicar Edital") == "Execução"


def test_group_by_phase_keeps_phase_order():
    class Row:
        def __init__(self, name, phase=None):
            self.step_name = name
            self.phase = phase

    grouped = group_by_phase([Row("Assinatura do Contrato"), Row("DFD", "Iniciação")])
    assert list(grouped)[:4] == PHASES
    assert [r.step_name for r in grouped["Finalização"]] == ["Assinatura do Contrato"]
    assert grouped["Preparação"] == []


def test_rejection_marker():
    marked = mark_rejected("  documento ilegível ")
    assert marked == f"{REJECTION_MARKER} documento ilegível"
    assert strip_rejection_marker(marked) == "documento ilegível"
    assert strip_rejection_marker(REJECTION_MARKER) is None
    assert strip_rejection_marker("nota comum") == "nota comum"
