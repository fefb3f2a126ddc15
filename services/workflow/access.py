"""Process visibility, filtering and participant management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Query, Session

from core.exceptions import BadRequestError, ConflictError, NotFoundError, PermissionDenied
from database import DepartmentDB, ProcessDB, ProcessParticipantDB, UserDB

logger = logging.getLogger(__name__)

PARTICIPANT_ROLES = ("viewer", "editor", "owner")
CLOSED_STATUSES = ("completed", "canceled")


@dataclass
class ProcessFilters:
    pbdoc_number: Optional[str] = None
    modality_id: Optional[int] = None
    source_id: Optional[int] = None
    responsible_id: Optional[int] = None
    status: Optional[str] = None
    department_id: Optional[int] = None


def start_of_today() -> datetime:
    return datetime.combine(datetime.utcnow().date(), time.min)


def overdue_condition():
    return (
        ProcessDB.deadline.isnot(None)
        & (ProcessDB.deadline < start_of_today())
        & ProcessDB.status.notin_(CLOSED_STATUSES)
    )


def visible_processes(db: Session, user: UserDB, deleted: bool = False) -> Query:
    """Processes the user may see. `deleted=True` returns the trash instead."""
    query = db.query(ProcessDB)
    if deleted:
        query = query.filter(ProcessDB.deleted_at.isnot(None))
    else:
        query = query.filter(ProcessDB.deleted_at.is_(None))

    if user.is_admin:
        return query

    participant_ids = select(ProcessParticipantDB.process_id).where(
        ProcessParticipantDB.user_id == user.id,
        ProcessParticipantDB.is_active.is_(True),
    )
    department_ids = select(DepartmentDB.id).where(DepartmentDB.name == user.department)
    return query.filter(or_(
        ProcessDB.responsible_id == user.id,
        ProcessDB.id.in_(participant_ids),
        ProcessDB.current_department_id.in_(department_ids),
    ))


def filter_processes(query: Query, filters: Optional[ProcessFilters]) -> Query:
    if filters is None:
        return query
    if filters.pbdoc_number:
        query = query.filter(ProcessDB.pbdoc_number.ilike(f"%{filters.pbdoc_number.strip()}%"))
    if filters.modality_id:
        query = query.filter(ProcessDB.modality_id == filters.modality_id)
    if filters.source_id:
        query = query.filter(ProcessDB.source_id == filters.source_id)
    if filters.responsible_id:
        query = query.filter(ProcessDB.responsible_id == filters.responsible_id)
    if filters.department_id:
        query = query.filter(ProcessDB.current_department_id == filters.department_id)
    if filters.status == "overdue":
        query = query.filter(overdue_condition())
    elif filters.status:
        query = query.filter(ProcessDB.status == filters.status)
    return query


def can_access_process(db: Session, user: UserDB, process: ProcessDB) -> bool:
    if user.is_admin or process.responsible_id == user.id:
        return True

    participant = db.query(ProcessParticipantDB).filter(
        ProcessParticipantDB.process_id == process.id,
        ProcessParticipantDB.user_id == user.id,
        ProcessParticipantDB.is_active.is_(True),
    ).first()
    if participant:
        return True

    if process.current_department_id is not None:
        department = db.get(DepartmentDB, process.current_department_id)
        return department is not None and department.name == user.department
    return False


def get_accessible_process(db: Session, user: UserDB, process_id: int) -> ProcessDB:
    """Fetch a live process the user may access; missing and forbidden look the same."""
    process = db.get(ProcessDB, process_id)
    if process is None or process.deleted_at is not None or not can_access_process(db, user, process):
        raise NotFoundError("Process", process_id, "Process not found or access denied")
    return process


def is_process_owner(db: Session, user: UserDB, process_id: int) -> bool:
    return db.query(ProcessParticipantDB).filter(
        ProcessParticipantDB.process_id == process_id,
        ProcessParticipantDB.user_id == user.id,
        ProcessParticipantDB.role == "owner",
        ProcessParticipantDB.is_active.is_(True),
    ).first() is not None


def list_participants(db: Session, process_id: int) -> List[ProcessParticipantDB]:
    return db.query(ProcessParticipantDB).filter(
        ProcessParticipantDB.process_id == process_id,
        ProcessParticipantDB.is_active.is_(True),
    ).order_by(ProcessParticipantDB.added_at).all()


def attach_participant(db: Session, process_id: int, user: UserDB, role: str) -> ProcessParticipantDB:
    department = db.query(DepartmentDB).filter(DepartmentDB.name == user.department).first()
    participant = ProcessParticipantDB(
        process_id=process_id,
        user_id=user.id,
        department_id=department.id if department else None,
        role=role,
        added_at=datetime.utcnow(),
        is_active=True,
    )
    db.add(participant)
    return participant


def add_participant(db: Session, actor: UserDB, process: ProcessDB, user_id: int, role: str = "viewer") -> ProcessParticipantDB:
    """Administrators and process owners may add participants."""
    if role not in PARTICIPANT_ROLES:
        raise BadRequestError(f"Invalid participant role '{role}'")
    if not actor.is_admin and not is_process_owner(db, actor, process.id):
        raise PermissionDenied("Only administrators or the process owner can add participants")

    user = db.get(UserDB, user_id)
    if user is None:
        raise NotFoundError("User", user_id)

    existing = db.query(ProcessParticipantDB).filter(
        ProcessParticipantDB.process_id == process.id,
        ProcessParticipantDB.user_id == user_id,
        ProcessParticipantDB.is_active.is_(True),
    ).first()
    if existing:
        raise ConflictError("User is already a participant of this process")

    participant = attach_participant(db, process.id, user, role)
    db.commit()
    db.refresh(participant)
    logger.info(f"Participant {user.username} ({role}) added to process {process.pbdoc_number} by {actor.username}")
    return participant


def remove_participant(db: Session, actor: UserDB, process: ProcessDB, user_id: int) -> None:
    """Administrators and owners may remove anyone; everybody may remove themselves."""
    if not (actor.is_admin or actor.id == user_id or is_process_owner(db, actor, process.id)):
        raise PermissionDenied("You are not allowed to remove this participant")

    participants = db.query(ProcessParticipantDB).filter(
        ProcessParticipantDB.process_id == process.id,
        ProcessParticipantDB.user_id == user_id,
    ).all()
    if not participants:
        raise NotFoundError("Participant", user_id)

    for participant in participants:
        db.delete(participant)
    db.commit()
    logger.info(f"Participant {user_id} removed from process {process.pbdoc_number} by {actor.username}")
