"""
Process lifecycle: creation, departmental routing (transfer / return), checklist
completion and rejection, status changes and the trash.

Every function works on an open session and commits on success. Rule violations raise
the exceptions from `core.exceptions`; callers translate nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Query, Session

from core.business_days import add_business_days
from core.exceptions import (
    BadRequestError,
    ConflictError,
    InvalidStatusTransition,
    NotFoundError,
    PermissionDenied,
    ReturnNotAllowed,
    TransferBlocked,
    TransferNotAllowed,
)
from database import (
    BiddingModalityDB,
    DepartmentDB,
    ProcessDB,
    ProcessMovementDB,
    ProcessParticipantDB,
    ProcessStepDB,
    ResourceSourceDB,
    UserDB,
)
from .access import CLOSED_STATUSES, attach_participant
from .checklist import classify_phase, mark_rejected, strip_rejection_marker, templates_for_modality
from .flow import DepartmentFlow, load_flow

logger = logging.getLogger(__name__)

STATUSES = ("draft", "in_progress", "completed", "canceled")
PRIORITIES = ("low", "medium", "high")

# Columns that can never be cleared through a partial update
REQUIRED_FIELDS = {"pbdoc_number", "description", "modality_id", "source_id", "responsible_id", "priority", "status"}

STATUS_TRANSITIONS = {
    "draft": {"in_progress", "canceled"},
    "in_progress": {"completed", "canceled"},
    "completed": set(),
    "canceled": set(),
}


@dataclass
class GateReport:
    """Checklist state of the department a process currently sits in."""

    pending: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)

    @property
    def clear(self) -> bool:
        return not self.pending and not self.rejected


# ==================== Creation ====================


def _require(db: Session, model, record_id: Optional[int], label: str):
    if record_id is None:
        raise BadRequestError(f"{label} is required")
    record = db.get(model, record_id)
    if record is None:
        raise BadRequestError(f"Unknown {label.lower()} {record_id}")
    return record


def create_default_steps(db: Session, process: ProcessDB, flow: Optional[DepartmentFlow] = None,
                         start: Optional[datetime] = None) -> List[ProcessStepDB]:
    """Instantiate the modality checklist for a process that has no steps yet."""
    if db.query(ProcessStepDB).filter(ProcessStepDB.process_id == process.id).count():
        raise ConflictError("Process already has checklist steps")

    flow = flow or load_flow(db)
    modality = db.get(BiddingModalityDB, process.modality_id)
    start = start or datetime.utcnow()

    steps = []
    for order, template in enumerate(templates_for_modality(modality.name if modality else None), start=1):
        department_id = flow.department_at(template.flow_position)
        if department_id is None:
            logger.warning(f"⚠ No department at flow position {template.flow_position}, skipping '{template.name}'")
            continue
        step = ProcessStepDB(
            process_id=process.id,
            step_name=template.name,
            department_id=department_id,
            phase=template.phase,
            display_order=order,
            time_limit_days=template.time_limit_days,
            due_date=template.due_date(start),
            is_completed=False,
        )
        db.add(step)
        steps.append(step)
    return steps


def create_process(db: Session, user: UserDB, data: Dict[str, Any]) -> ProcessDB:
    pbdoc_number = (data.get("pbdoc_number") or "").strip()
    if not pbdoc_number:
        raise BadRequestError("PBDOC number is required")
    if db.query(ProcessDB).filter(ProcessDB.pbdoc_number == pbdoc_number).first():
        raise ConflictError(f"A process with PBDOC number {pbdoc_number} already exists")

    modality = _require(db, BiddingModalityDB, data.get("modality_id"), "Modality")
    _require(db, ResourceSourceDB, data.get("source_id"), "Source")
    responsible = _require(db, UserDB, data.get("responsible_id") or user.id, "Responsible")

    priority = data.get("priority") or "medium"
    if priority not in PRIORITIES:
        raise BadRequestError(f"Invalid priority '{priority}'")

    flow = load_flow(db)
    department_id = data.get("current_department_id") or flow.first
    if department_id is not None:
        _require(db, DepartmentDB, department_id, "Department")

    now = datetime.utcnow()
    deadline = data.get("deadline")
    if deadline is None and modality.deadline_days:
        deadline = add_business_days(now, modality.deadline_days)

    process = ProcessDB(
        pbdoc_number=pbdoc_number,
        description=data.get("description"),
        modality_id=modality.id,
        source_id=data["source_id"],
        responsible_id=responsible.id,
        current_department_id=department_id,
        central_de_compras=data.get("central_de_compras"),
        estimated_value=data.get("estimated_value"),
        priority=priority,
        status="draft",
        created_at=now,
        updated_at=now,
        responsible_since=now,
        deadline=deadline,
    )
    db.add(process)
    db.flush()

    create_default_steps(db, process, flow, start=now)

    attach_participant(db, process.id, user, "owner")
    if responsible.id != user.id:
        attach_participant(db, process.id, responsible, "editor")

    db.commit()
    db.refresh(process)
    logger.info(f"Process {process.pbdoc_number} created by {user.username}")
    return process


# ==================== Updates & status ====================


def check_status_transition(db: Session, user: UserDB, process: ProcessDB, target: str) -> None:
    current = process.status
    if target not in STATUSES:
        raise InvalidStatusTransition(current, target, "unknown status")
    if target == current:
        return

    reopening = current in CLOSED_STATUSES and target == "in_progress"
    if reopening:
        if not user.is_admin:
            raise InvalidStatusTransition(current, target, "only administrators can reopen a process")
        return

    if target not in STATUS_TRANSITIONS[current]:
        raise InvalidStatusTransition(current, target)

    if target == "completed":
        open_steps = db.query(ProcessStepDB).filter(
            ProcessStepDB.process_id == process.id,
            ProcessStepDB.is_completed.is_(False),
        ).count()
        if open_steps:
            raise InvalidStatusTransition(current, target, f"{open_steps} checklist step(s) still open")


def update_process(db: Session, user: UserDB, process: ProcessDB, changes: Dict[str, Any]) -> ProcessDB:
    """Apply a partial update. Status changes are validated; a new responsible restarts the clock."""
    if "pbdoc_number" in changes and changes["pbdoc_number"] != process.pbdoc_number:
        duplicate = db.query(ProcessDB).filter(
            ProcessDB.pbdoc_number == changes["pbdoc_number"],
            ProcessDB.id != process.id,
        ).first()
        if duplicate:
            raise ConflictError(f"A process with PBDOC number {changes['pbdoc_number']} already exists")

    if changes.get("modality_id") is not None:
        _require(db, BiddingModalityDB, changes["modality_id"], "Modality")
    if changes.get("source_id") is not None:
        _require(db, ResourceSourceDB, changes["source_id"], "Source")
    if changes.get("priority") is not None and changes["priority"] not in PRIORITIES:
        raise BadRequestError(f"Invalid priority '{changes['priority']}'")

    if "current_department_id" in changes and changes["current_department_id"] != process.current_department_id:
        raise BadRequestError("Use the transfer or return actions to move a process between departments")

    if changes.get("status") is not None:
        check_status_transition(db, user, process, changes["status"])

    new_responsible = changes.get("responsible_id")
    if new_responsible is not None and new_responsible != process.responsible_id:
        _require(db, UserDB, new_responsible, "Responsible")
        process.responsible_since = datetime.utcnow()

    for key, value in changes.items():
        if value is None and key in REQUIRED_FIELDS:
            continue
        setattr(process, key, value)
    process.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(process)
    return process


# ==================== Routing ====================


def department_gate(db: Session, process: ProcessDB) -> GateReport:
    """Steps of the current department that keep the process from moving on."""
    report = GateReport()
    if process.current_department_id is None:
        return report
    steps = db.query(ProcessStepDB).filter(
        ProcessStepDB.process_id == process.id,
        ProcessStepDB.department_id == process.current_department_id,
    ).order_by(ProcessStepDB.display_order, ProcessStepDB.id).all()
    for step in steps:
        if step.is_rejected:
            report.rejected.append(step.step_name)
        elif not step.is_completed:
            report.pending.append(step.step_name)
    return report


def _record_movement(db: Session, process: ProcessDB, kind: str, from_id: Optional[int], to_id: Optional[int],
                     user: UserDB, comment: Optional[str] = None) -> ProcessMovementDB:
    movement = ProcessMovementDB(
        process_id=process.id,
        kind=kind,
        from_department_id=from_id,
        to_department_id=to_id,
        user_id=user.id,
        comment=comment,
        created_at=datetime.utcnow(),
    )
    db.add(movement)
    return movement


def transfer_process(db: Session, user: UserDB, process: ProcessDB, department_id: int,
                     responsible_id: Optional[int] = None, force: bool = False) -> ProcessDB:
    """
    Move a process to another department.

    Common users may only follow the flow one department forward, and only once the
    current department has finished its checklist. Administrators may pick any
    department; `force=True` additionally skips the checklist gate.
    """
    if process.status in CLOSED_STATUSES:
        raise TransferNotAllowed(f"Process is {process.status} and cannot be transferred")

    target = db.get(DepartmentDB, department_id)
    if target is None:
        raise NotFoundError("Department", department_id)

    current_id = process.current_department_id
    if target.id == current_id:
        raise TransferNotAllowed("Process is already in this department")

    flow = load_flow(db)
    if not user.is_admin:
        expected = flow.next_department(current_id)
        if expected is None:
            raise TransferNotAllowed("Process is in the final department; complete it instead of transferring")
        if target.id != expected:
            expected_name = flow.names.get(expected, expected)
            raise TransferNotAllowed(
                f"Process can only be transferred to the next department in the flow ({expected_name})",
                details={"expected_department_id": expected},
            )

    if not (user.is_admin and force):
        gate = department_gate(db, process)
        if not gate.clear:
            raise TransferBlocked(gate.pending, gate.rejected)

    if responsible_id is not None and responsible_id != process.responsible_id:
        responsible = db.get(UserDB, responsible_id)
        if responsible is None or not responsible.is_active:
            raise BadRequestError(f"Unknown or inactive responsible {responsible_id}")
        process.responsible_id = responsible.id
        process.responsible_since = datetime.utcnow()

    process.current_department_id = target.id
    process.return_comments = None
    if process.status == "draft":
        process.status = "in_progress"
    process.updated_at = datetime.utcnow()

    # Visibility follows the department after a hand-over
    db.query(ProcessParticipantDB).filter(ProcessParticipantDB.process_id == process.id).delete(
        synchronize_session=False
    )
    _record_movement(db, process, "transfer", current_id, target.id, user)

    db.commit()
    db.refresh(process)
    logger.info(
        f"Process {process.pbdoc_number} transferred from {flow.names.get(current_id)} "
        f"to {target.name} by {user.username}{' (forced)' if force else ''}"
    )
    return process


def return_process(db: Session, user: UserDB, process: ProcessDB, comment: Optional[str],
                   target_department_id: Optional[int] = None) -> ProcessDB:
    """Send a process back (by default to the previous department) with a mandatory comment."""
    comment = (comment or "").strip()
    if not comment:
        raise BadRequestError("A return comment is required")
    if process.status in CLOSED_STATUSES:
        raise ReturnNotAllowed(f"Process is {process.status} and cannot be returned")

    flow = load_flow(db)
    current_id = process.current_department_id

    if target_department_id is not None:
        if not user.is_admin:
            raise PermissionDenied("Only administrators can choose the department a process returns to")
        target = db.get(DepartmentDB, target_department_id)
        if target is None:
            raise NotFoundError("Department", target_department_id)
    else:
        previous_id = flow.previous_department(current_id)
        if previous_id is None:
            raise ReturnNotAllowed("Process has no previous department to return to")
        target = db.get(DepartmentDB, previous_id)

    if target.id == current_id:
        raise ReturnNotAllowed("Process is already in this department")

    process.current_department_id = target.id
    process.return_comments = comment
    process.updated_at = datetime.utcnow()
    _record_movement(db, process, "return", current_id, target.id, user, comment)

    db.commit()
    db.refresh(process)
    logger.info(f"Process {process.pbdoc_number} returned to {target.name} by {user.username}")
    return process


def movement_history(db: Session, process_id: int) -> List[ProcessMovementDB]:
    return db.query(ProcessMovementDB).filter(
        ProcessMovementDB.process_id == process_id
    ).order_by(ProcessMovementDB.created_at, ProcessMovementDB.id).all()


def workflow_state(db: Session, user: UserDB, process: ProcessDB) -> Dict[str, Any]:
    flow = load_flow(db)
    current_id = process.current_department_id
    next_id = flow.next_department(current_id)
    gate = department_gate(db, process)
    open_process = process.status not in CLOSED_STATUSES
    return {
        "process_id": process.id,
        "current_department": flow.describe(current_id),
        "next_department": flow.describe(next_id),
        "previous_department": flow.describe(flow.previous_department(current_id)),
        "is_final_department": flow.is_final_department(current_id),
        "pending_steps": gate.pending,
        "rejected_steps": gate.rejected,
        "can_transfer": open_process and gate.clear and (user.is_admin or next_id is not None),
        # Admins may still move a blocked process with force=true
        "can_force": open_process and user.is_admin,
        "return_comments": process.return_comments,
        "movements": [m.to_dict() for m in movement_history(db, process.id)],
    }


# ==================== Checklist ====================


def get_process_step(db: Session, process: ProcessDB, step_id: int) -> ProcessStepDB:
    step = db.get(ProcessStepDB, step_id)
    if step is None or step.process_id != process.id:
        raise NotFoundError("Step", step_id)
    return step


def add_step(db: Session, process: ProcessDB, step_name: str, department_id: int,
             phase: Optional[str] = None, due_date: Optional[datetime] = None,
             time_limit_days: Optional[int] = None, observations: Optional[str] = None) -> ProcessStepDB:
    if not (step_name or "").strip():
        raise BadRequestError("Step name is required")
    _require(db, DepartmentDB, department_id, "Department")

    last = db.query(ProcessStepDB).filter(ProcessStepDB.process_id == process.id).order_by(
        ProcessStepDB.display_order.desc()
    ).first()
    if due_date is None and time_limit_days:
        due_date = add_business_days(datetime.utcnow(), time_limit_days)

    step = ProcessStepDB(
        process_id=process.id,
        step_name=step_name.strip(),
        department_id=department_id,
        phase=phase or classify_phase(step_name),
        display_order=(last.display_order + 1) if last else 1,
        time_limit_days=time_limit_days,
        due_date=due_date,
        observations=observations,
        is_completed=False,
    )
    db.add(step)
    db.commit()
    db.refresh(step)
    return step


def update_step(db: Session, user: UserDB, step: ProcessStepDB, changes: Dict[str, Any]) -> ProcessStepDB:
    """Check/uncheck a step or edit its observations and due date."""
    if "observations" in changes:
        step.observations = changes["observations"]
    if "due_date" in changes:
        step.due_date = changes["due_date"]

    is_completed = changes.get("is_completed")
    if is_completed is True and not step.is_completed:
        step.is_completed = True
        step.completed_at = datetime.utcnow()
        step.completed_by = user.id
        step.rejected_at = None
        step.rejected_by = None
        step.rejection_reason = None
        step.observations = strip_rejection_marker(step.observations)
    elif is_completed is False and step.is_completed:
        step.is_completed = False
        step.completed_at = None
        step.completed_by = None

    db.commit()
    db.refresh(step)
    return step


def reject_step(db: Session, user: UserDB, step: ProcessStepDB, reason: Optional[str]) -> ProcessStepDB:
    reason = (reason or "").strip()
    if not reason:
        raise BadRequestError("A rejection reason is required")

    step.is_completed = False
    step.completed_at = None
    step.completed_by = None
    step.rejected_at = datetime.utcnow()
    step.rejected_by = user.id
    step.rejection_reason = reason
    step.observations = mark_rejected(reason)

    db.commit()
    db.refresh(step)
    logger.info(f"Step {step.id} ('{step.step_name}') of process {step.process_id} rejected by {user.username}")
    return step


def rejected_steps(processes: Query) -> List[Tuple[ProcessStepDB, ProcessDB]]:
    """Currently rejected steps of the given (visible) processes, newest first."""
    return processes.join(
        ProcessStepDB, ProcessStepDB.process_id == ProcessDB.id
    ).filter(
        ProcessStepDB.rejected_at.isnot(None),
        ProcessStepDB.is_completed.is_(False),
    ).with_entities(ProcessStepDB, ProcessDB).order_by(ProcessStepDB.rejected_at.desc()).all()


# ==================== Trash ====================


def soft_delete_process(db: Session, user: UserDB, process: ProcessDB) -> ProcessDB:
    process.deleted_at = datetime.utcnow()
    process.deleted_by = user.id
    db.commit()
    db.refresh(process)
    logger.info(f"Process {process.pbdoc_number} moved to trash by {user.username}")
    return process


def restore_process(db: Session, user: UserDB, process_id: int) -> ProcessDB:
    process = db.get(ProcessDB, process_id)
    if process is None or process.deleted_at is None:
        raise NotFoundError("Process", process_id, "Process not found in trash")
    process.deleted_at = None
    process.deleted_by = None
    process.updated_at = datetime.utcnow()
    _record_movement(db, process, "restore", None, process.current_department_id, user)
    db.commit()
    db.refresh(process)
    logger.info(f"Process {process.pbdoc_number} restored by {user.username}")
    return process


def purge_process(db: Session, process: ProcessDB) -> None:
    """Delete a trashed process and everything hanging off it."""
    if process.deleted_at is None:
        raise BadRequestError("Only processes in the trash can be deleted permanently")
    pbdoc_number = process.pbdoc_number
    for model in (ProcessStepDB, ProcessParticipantDB, ProcessMovementDB):
        db.query(model).filter(model.process_id == process.id).delete(synchronize_session=False)
    db.delete(process)
    db.commit()
    logger.info(f"Process {pbdoc_number} permanently deleted")
