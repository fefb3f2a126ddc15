"""Collects and resolves everything a process report needs (names, checklist, history)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from database import (
    BiddingModalityDB,
    ProcessDB,
    ProcessStepDB,
    ResourceSourceDB,
    department_names,
    user_names,
)
from services.workflow.checklist import group_by_phase
from services.workflow.engine import movement_history
from .labels import (
    MOVEMENT_LABELS,
    days_since,
    format_currency,
    format_date,
    format_duration,
    priority_label,
    status_label,
)


def _lookup(db: Session, processes: List[ProcessDB]) -> Dict[str, Dict[int, str]]:
    return {
        "departments": department_names(db),
        "modalities": {m.id: m.name for m in db.query(BiddingModalityDB).all()},
        "sources": {s.id: f"{s.code} - {s.description}" for s in db.query(ResourceSourceDB).all()},
        "users": user_names(db, [p.responsible_id for p in processes]),
    }


def process_rows(db: Session, processes: List[ProcessDB]) -> List[Dict[str, Any]]:
    """Flattened, display-ready rows for list exports."""
    names = _lookup(db, processes)
    rows = []
    for process in processes:
        rows.append({
            "id": process.id,
            "pbdoc_number": process.pbdoc_number,
            "description": process.description,
            "modality": names["modalities"].get(process.modality_id, "-"),
            "source": names["sources"].get(process.source_id, "-"),
            "responsible": names["users"].get(process.responsible_id, "-"),
            "department": names["departments"].get(process.current_department_id, "-"),
            "priority": priority_label(process.priority),
            "status": status_label(process.status, process.is_overdue),
            "estimated_value": process.estimated_value,
            "created_at": format_date(process.created_at),
            "deadline": format_date(process.deadline),
        })
    return rows


def enrich_processes(db: Session, processes: List[ProcessDB]) -> List[Dict[str, Any]]:
    """`to_dict()` plus resolved names and deadline figures, as served by the API."""
    names = _lookup(db, processes)
    today = datetime.utcnow().date()
    result = []
    for process in processes:
        data = process.to_dict()
        data.update({
            "modality_name": names["modalities"].get(process.modality_id),
            "source_name": names["sources"].get(process.source_id),
            "responsible_name": names["users"].get(process.responsible_id),
            "current_department_name": names["departments"].get(process.current_department_id),
            "days_until_deadline": (process.deadline.date() - today).days if process.deadline else None,
        })
        result.append(data)
    return result


def enrich_process(db: Session, process: ProcessDB) -> Dict[str, Any]:
    return enrich_processes(db, [process])[0]


def process_report_context(db: Session, process: ProcessDB) -> Dict[str, Any]:
    steps = db.query(ProcessStepDB).filter(ProcessStepDB.process_id == process.id).order_by(
        ProcessStepDB.display_order, ProcessStepDB.id
    ).all()
    movements = movement_history(db, process.id)
    names = _lookup(db, [process])
    people = user_names(
        db,
        [process.responsible_id]
        + [s.completed_by for s in steps]
        + [s.rejected_by for s in steps]
        + [m.user_id for m in movements],
    )
    departments = names["departments"]

    phases = []
    for phase, phase_steps in group_by_phase(steps).items():
        if not phase_steps:
            continue
        phases.append({
            "name": phase,
            "completed": sum(1 for s in phase_steps if s.is_completed),
            "total": len(phase_steps),
            "steps": [{
                "name": s.step_name,
                "department": departments.get(s.department_id, "-"),
                "status": "Concluído" if s.is_completed else ("Rejeitado" if s.is_rejected else "Pendente"),
                "completed_at": format_date(s.completed_at, with_time=True),
                "completed_by": people.get(s.completed_by, "-"),
                "due_date": format_date(s.due_date),
                "observations": s.observations or "",
            } for s in phase_steps],
        })

    history = [{
        "kind": MOVEMENT_LABELS.get(m.kind, m.kind),
        "from": departments.get(m.from_department_id, "-"),
        "to": departments.get(m.to_department_id, "-"),
        "user": people.get(m.user_id, "-"),
        "comment": m.comment or "",
        "date": format_date(m.created_at, with_time=True),
    } for m in movements]

    completed_steps = sum(1 for s in steps if s.is_completed)
    return {
        "process": process,
        "pbdoc_number": process.pbdoc_number,
        "description": process.description,
        "modality": names["modalities"].get(process.modality_id, "-"),
        "source": names["sources"].get(process.source_id, "-"),
        "responsible": people.get(process.responsible_id, "-"),
        "department": departments.get(process.current_department_id, "-"),
        "central_de_compras": process.central_de_compras or "-",
        "estimated_value": format_currency(process.estimated_value),
        "priority": priority_label(process.priority),
        "status": status_label(process.status, process.is_overdue),
        "created_at": format_date(process.created_at, with_time=True),
        "deadline": format_date(process.deadline),
        "age": format_duration(days_since(process.created_at)),
        "responsible_for": format_duration(days_since(process.responsible_since)),
        "return_comments": process.return_comments,
        "progress": {
            "completed": completed_steps,
            "total": len(steps),
            "percentage": round(completed_steps / len(steps) * 100) if steps else 0,
        },
        "phases": phases,
        "movements": history,
        "generated_at": format_date(datetime.utcnow(), with_time=True),
    }


def timeline_events(db: Session, process: ProcessDB) -> List[Dict[str, Any]]:
    """Chronological list of what happened to a process."""
    steps = db.query(ProcessStepDB).filter(ProcessStepDB.process_id == process.id).all()
    movements = movement_history(db, process.id)
    people = user_names(
        db,
        [s.completed_by for s in steps] + [s.rejected_by for s in steps] + [m.user_id for m in movements],
    )
    departments = department_names(db)

    events = [{"at": process.created_at, "title": "Processo criado", "detail": process.description}]
    for movement in movements:
        detail = f"{departments.get(movement.from_department_id, '-')} -> {departments.get(movement.to_department_id, '-')}"
        if movement.comment:
            detail += f": {movement.comment}"
        events.append({
            "at": movement.created_at,
            "title": f"{MOVEMENT_LABELS.get(movement.kind, movement.kind)} por {people.get(movement.user_id, '-')}",
            "detail": detail,
        })
    for step in steps:
        if step.is_completed and step.completed_at:
            events.append({
                "at": step.completed_at,
                "title": f"Etapa concluída por {people.get(step.completed_by, '-')}",
                "detail": step.step_name,
            })
        elif step.is_rejected:
            events.append({
                "at": step.rejected_at,
                "title": f"Etapa rejeitada por {people.get(step.rejected_by, '-')}",
                "detail": f"{step.step_name}: {step.rejection_reason or ''}",
            })
    if process.deleted_at:
        events.append({"at": process.deleted_at, "title": "Processo enviado para a lixeira", "detail": ""})

    events.sort(key=lambda event: event["at"])
    for event in events:
        event["date"] = format_date(event["at"], with_time=True)
    return events
