"""Process routing workflow package."""

from .flow import DepartmentFlow, load_flow
from .checklist import PHASES, REJECTION_MARKER, StepTemplate, classify_phase, group_by_phase, templates_for_modality
from .access import (
    ProcessFilters,
    can_access_process,
    filter_processes,
    get_accessible_process,
    visible_processes,
)
from .engine import (
    GateReport,
    create_process,
    department_gate,
    return_process,
    transfer_process,
    workflow_state,
)

__all__ = [
    "DepartmentFlow",
    "load_flow",
    "PHASES",
    "REJECTION_MARKER",
    "StepTemplate",
    "classify_phase",
    "group_by_phase",
    "templates_for_modality",
    "ProcessFilters",
    "can_access_process",
    "filter_processes",
    "get_accessible_process",
    "visible_processes",
    "GateReport",
    "create_process",
    "department_gate",
    "return_process",
    "transfer_process",
    "workflow_state",
]
