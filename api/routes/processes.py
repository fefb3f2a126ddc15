"""
Process routes: CRUD, participants, departmental routing and the trash.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from database import ProcessDB, UserDB
from core.dependencies import get_db, get_process_filters, require_user, require_admin
from core.exceptions import NotFoundError
from services.reporting import enrich_process, enrich_processes
from services.workflow import (
    ProcessFilters,
    create_process,
    filter_processes,
    get_accessible_process,
    return_process,
    transfer_process,
    visible_processes,
    workflow_state,
)
from services.workflow.access import add_participant, list_participants, remove_participant
from services.workflow.engine import purge_process, restore_process, soft_delete_process, update_process
from websocket_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter()

PRIORITY_PATTERN = "^(low|medium|high)$"
STATUS_PATTERN = "^(draft|in_progress|completed|canceled)$"


def _normalize_deadline(value):
    if value in ("", None):
        return None
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CreateProcessRequest(BaseModel):
    pbdoc_number: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    modality_id: int
    source_id: int
    responsible_id: Optional[int] = None
    current_department_id: Optional[int] = None
    central_de_compras: Optional[str] = None
    estimated_value: Optional[float] = Field(default=None, ge=0)
    priority: str = Field(default="medium", pattern=PRIORITY_PATTERN)
    deadline: Optional[datetime] = None

    @field_validator("deadline", mode="before")
    @classmethod
    def empty_deadline(cls, value):
        return None if value == "" else value

    @field_validator("deadline")
    @classmethod
    def naive_deadline(cls, value):
        return _normalize_deadline(value)


class UpdateProcessRequest(BaseModel):
    pbdoc_number: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    modality_id: Optional[int] = None
    source_id: Optional[int] = None
    responsible_id: Optional[int] = None
    central_de_compras: Optional[str] = None
    estimated_value: Optional[float] = Field(default=None, ge=0)
    priority: Optional[str] = Field(default=None, pattern=PRIORITY_PATTERN)
    status: Optional[str] = Field(default=None, pattern=STATUS_PATTERN)
    deadline: Optional[datetime] = None

    @field_validator("deadline", mode="before")
    @classmethod
    def empty_deadline(cls, value):
        return None if value == "" else value

    @field_validator("deadline")
    @classmethod
    def naive_deadline(cls, value):
        return _normalize_deadline(value)


class TransferRequest(BaseModel):
    department_id: int
    responsible_id: Optional[int] = None
    force: bool = False


class ReturnRequest(BaseModel):
    return_comment: Optional[str] = None
    target_department_id: Optional[int] = None


class ParticipantRequest(BaseModel):
    user_id: int
    role: str = Field(default="viewer", pattern="^(viewer|editor|owner)$")


# ==================== Listing & trash ====================


@router.get("/api/processes")
async def list_processes(filters: ProcessFilters = Depends(get_process_filters), db: Session = Depends(get_db),
                         current_user: UserDB = Depends(require_user)):
    query = filter_processes(visible_processes(db, current_user), filters)
    processes = query.order_by(ProcessDB.created_at.desc(), ProcessDB.id.desc()).all()
    return enrich_processes(db, processes)


@router.get("/api/processes/deleted")
async def list_deleted_processes(db: Session = Depends(get_db), current_user: UserDB = Depends(require_admin)):
    processes = visible_processes(db, current_user, deleted=True).order_by(ProcessDB.deleted_at.desc()).all()
    return enrich_processes(db, processes)


@router.post("/api/processes/{process_id}/restore")
async def restore(process_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_admin)):
    process = restore_process(db, current_user, process_id)
    await manager.broadcast_event("process_restored", process.id, f"Processo {process.pbdoc_number} restaurado")
    return enrich_process(db, process)


@router.delete("/api/processes/{process_id}/permanent")
async def delete_permanently(process_id: int, db: Session = Depends(get_db),
                             current_user: UserDB = Depends(require_admin)):
    process = db.get(ProcessDB, process_id)
    if process is None:
        raise NotFoundError("Process", process_id)
    purge_process(db, process)
    return {"success": True}


# ==================== CRUD ====================


@router.get("/api/processes/{process_id}")
async def get_process(process_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    return enrich_process(db, process)


@router.post("/api/processes", status_code=201)
async def create(payload: CreateProcessRequest, db: Session = Depends(get_db),
                 current_user: UserDB = Depends(require_user)):
    process = create_process(db, current_user, payload.model_dump())
    await manager.broadcast_event(
        "new_process", process.id, f"Novo processo {process.pbdoc_number} criado por {current_user.full_name}"
    )
    return enrich_process(db, process)


@router.patch("/api/processes/{process_id}")
async def update(process_id: int, payload: UpdateProcessRequest, db: Session = Depends(get_db),
                 current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    process = update_process(db, current_user, process, payload.model_dump(exclude_unset=True))
    await manager.broadcast_event("process_updated", process.id, f"Processo {process.pbdoc_number} atualizado")
    return enrich_process(db, process)


@router.delete("/api/processes/{process_id}")
async def delete(process_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_admin)):
    process = get_accessible_process(db, current_user, process_id)
    soft_delete_process(db, current_user, process)
    await manager.broadcast_event("process_deleted", process.id, f"Processo {process.pbdoc_number} enviado para a lixeira")
    return {"success": True}


# ==================== Routing ====================


@router.get("/api/processes/{process_id}/workflow")
async def get_workflow(process_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    return workflow_state(db, current_user, process)


@router.post("/api/processes/{process_id}/transfer")
async def transfer(process_id: int, payload: TransferRequest, db: Session = Depends(get_db),
                   current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    process = transfer_process(
        db, current_user, process, payload.department_id,
        responsible_id=payload.responsible_id, force=payload.force,
    )
    data = enrich_process(db, process)
    await manager.broadcast_event(
        "process_transferred", process.id,
        f"Processo {process.pbdoc_number} tramitado para {data['current_department_name']}",
        data={"department_id": process.current_department_id},
    )
    return data


@router.post("/api/processes/{process_id}/return")
async def return_to_department(process_id: int, payload: ReturnRequest, db: Session = Depends(get_db),
                               current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    process = return_process(db, current_user, process, payload.return_comment, payload.target_department_id)
    data = enrich_process(db, process)
    await manager.broadcast_event(
        "process_returned", process.id,
        f"Processo {process.pbdoc_number} devolvido para {data['current_department_name']}",
        data={"department_id": process.current_department_id, "comment": process.return_comments},
    )
    return data


# ==================== Participants ====================


@router.get("/api/processes/{process_id}/participants")
async def get_participants(process_id: int, db: Session = Depends(get_db),
                           current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    participants = list_participants(db, process.id)
    users = {u.id: u for u in db.query(UserDB).filter(UserDB.id.in_([p.user_id for p in participants])).all()}
    result = []
    for participant in participants:
        data = participant.to_dict()
        user = users.get(participant.user_id)
        data["user"] = user.to_dict() if user else None
        result.append(data)
    return result


@router.post("/api/processes/{process_id}/participants", status_code=201)
async def post_participant(process_id: int, payload: ParticipantRequest, db: Session = Depends(get_db),
                           current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    participant = add_participant(db, current_user, process, payload.user_id, payload.role)
    await manager.broadcast_event(
        "process_participant_added", process.id,
        f"Participante adicionado ao processo {process.pbdoc_number}",
        data={"user_id": participant.user_id, "role": participant.role},
    )
    return participant.to_dict()


@router.delete("/api/processes/{process_id}/participants/{user_id}")
async def delete_participant(process_id: int, user_id: int, db: Session = Depends(get_db),
                             current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    remove_participant(db, current_user, process, user_id)
    return {"success": True}
