"""Default checklist templates and phase classification for process steps."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from core.business_days import add_business_days

PHASES = ["Iniciação", "Preparação", "Execução", "Finalização"]

REJECTION_MARKER = "[REJEITADO]"


@dataclass(frozen=True)
class StepTemplate:
    name: str
    flow_position: int  # position of the owning department in the routing flow
    phase: str
    time_limit_days: Optional[int] = None

    def due_date(self, start: datetime) -> Optional[datetime]:
        if not self.time_limit_days:
            return None
        return add_business_days(start, self.time_limit_days)


PREGAO_ELETRONICO_CHECKLIST = [
    StepTemplate("1. Documento de Formalização da Demanda - DFD", 1, "Iniciação"),
    StepTemplate("2. Estudo Técnico Preliminar - ETP", 1, "Iniciação"),
    StepTemplate("3. Mapa de Risco - MR", 1, "Iniciação"),
    StepTemplate("4. Termo de Referência - TR", 1, "Iniciação"),
    StepTemplate("5. Autorização pelo Ordenador de Despesa", 4, "Iniciação", 10),
    StepTemplate("6. Criar Processo no Órgão", 2, "Preparação", 2),
    StepTemplate("7. Fazer Pesquisa de Preços", 2, "Preparação", 2),
    StepTemplate("8. Elaborar Mapa Comparativo de Preços", 2, "Preparação", 10),
    StepTemplate("9. Metodologia da Pesquisa de Preços", 2, "Preparação", 10),
    StepTemplate("10. Consultar Disponibilidade Orçamentária", 4, "Preparação", 1),
    StepTemplate("11. Emitir Reserva Orçamentária - R.O.", 4, "Preparação", 1),
    StepTemplate("12. Autorização Final pelo Secretário SEAP", 5, "Execução"),
    StepTemplate("13. Elaborar Edital e seus Anexos", 2, "Execução", 10),
    StepTemplate("14. Consultar Comitê Gestor de Gasto Público", 2, "Execução", 2),
    StepTemplate("15. Solicitar Elaboração de Nota Técnica", 3, "Execução", 1),
    StepTemplate("16. Publicar Edital", 2, "Execução"),
    StepTemplate("17. Realizar Sessão Pública de Lances", 2, "Execução"),
    StepTemplate("18. Análise de Documentação dos Licitantes", 2, "Execução"),
    StepTemplate("19. Adjudicação e Homologação", 2, "Finalização"),
    StepTemplate("20. Elaboração do Contrato", 3, "Finalização"),
    StepTemplate("21. Assinatura do Contrato", 5, "Finalização"),
]

BASIC_CHECKLIST = [
    StepTemplate("Elaboração do Termo de Referência", 1, "Iniciação"),
    StepTemplate("Pesquisa de Preço", 1, "Preparação"),
    StepTemplate("Aprovação do Ordenador de Despesa", 4, "Execução"),
]

# Checked in order; first phase with a matching keyword wins
PHASE_KEYWORDS = [
    ("Iniciação", ["DFD", "ETP", "Mapa de Risco", "Termo de Referência", "Ordenador"]),
    ("Preparação", ["Processo no Órgão", "Pesquisa", "Orçament", "Reserva"]),
    ("Finalização", ["Elaboração", "Contrato", "Assinatura", "Adjudica", "Homologa"]),
]


def _fold(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch)).casefold()


def templates_for_modality(modality_name: Optional[str]) -> List[StepTemplate]:
    if modality_name and _fold(modality_name) == _fold("Pregão Eletrônico"):
        return list(PREGAO_ELETRONICO_CHECKLIST)
    return list(BASIC_CHECKLIST)


def classify_phase(step_name: str) -> str:
    """Guess the phase of a step from keywords in its name."""
    folded = _fold(step_name or "")
    for phase, keywords in PHASE_KEYWORDS:
        if any(_fold(keyword) in folded for keyword in keywords):
            return phase
    return "Execução"


def phase_index(phase: Optional[str]) -> int:
    if phase in PHASES:
        return PHASES.index(phase)
    return len(PHASES)


def group_by_phase(steps: Iterable) -> Dict[str, List]:
    """Group step rows by phase, keeping the canonical phase order."""
    grouped: Dict[str, List] = {phase: [] for phase in PHASES}
    for step in steps:
        phase = step.phase or classify_phase(step.step_name)
        grouped.setdefault(phase, []).append(step)
    return grouped


def mark_rejected(reason: str) -> str:
    return f"{REJECTION_MARKER} {reason.strip()}"


def strip_rejection_marker(observations: Optional[str]) -> Optional[str]:
    if observations and observations.startswith(REJECTION_MARKER):
        cleaned = observations[len(REJECTION_MARKER):].strip()
        return cleaned or None
    return observations
