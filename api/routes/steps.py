"""
Checklist step routes.
"""

import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from database import ProcessStepDB, UserDB, department_names, user_names
from core.dependencies import get_db, require_user
from services.workflow import get_accessible_process, visible_processes
from services.workflow.engine import (
    add_step,
    create_default_steps,
    get_process_step,
    reject_step,
    rejected_steps,
    update_step,
)
from websocket_manager import manager, process_room

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateStepRequest(BaseModel):
    step_name: str = Field(..., min_length=1)
    department_id: int
    phase: Optional[str] = None
    due_date: Optional[datetime] = None
    time_limit_days: Optional[int] = Field(default=None, ge=0)
    observations: Optional[str] = None


class UpdateStepRequest(BaseModel):
    is_completed: Optional[bool] = None
    observations: Optional[str] = None
    due_date: Optional[datetime] = None


class RejectStepRequest(BaseModel):
    reason: Optional[str] = None


@router.get("/api/processes/{process_id}/steps")
async def list_steps(process_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    steps = db.query(ProcessStepDB).filter(ProcessStepDB.process_id == process.id).order_by(
        ProcessStepDB.display_order, ProcessStepDB.id
    ).all()
    return [step.to_dict() for step in steps]


@router.post("/api/processes/{process_id}/steps", status_code=201)
async def create_step(process_id: int, payload: CreateStepRequest, db: Session = Depends(get_db),
                      current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    step = add_step(
        db, process, payload.step_name, payload.department_id,
        phase=payload.phase, due_date=payload.due_date,
        time_limit_days=payload.time_limit_days, observations=payload.observations,
    )
    return step.to_dict()


@router.post("/api/processes/{process_id}/steps/defaults", status_code=201)
async def create_defaults(process_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    """Instantiate the modality checklist for a process that has none."""
    process = get_accessible_process(db, current_user, process_id)
    steps = create_default_steps(db, process)
    db.commit()
    return [step.to_dict() for step in steps]


@router.patch("/api/processes/{process_id}/steps/{step_id}")
async def patch_step(process_id: int, step_id: int, payload: UpdateStepRequest, db: Session = Depends(get_db),
                     current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    step = get_process_step(db, process, step_id)
    step = update_step(db, current_user, step, payload.model_dump(exclude_unset=True))
    await manager.broadcast_event(
        "step_updated", process.id, f"Etapa '{step.step_name}' atualizada",
        data=step.to_dict(), room=process_room(process.id),
    )
    return step.to_dict()


@router.post("/api/processes/{process_id}/steps/{step_id}/reject")
async def post_reject(process_id: int, step_id: int, payload: RejectStepRequest, db: Session = Depends(get_db),
                      current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    step = get_process_step(db, process, step_id)
    step = reject_step(db, current_user, step, payload.reason)
    await manager.broadcast_event(
        "step_rejected", process.id,
        f"Etapa '{step.step_name}' do processo {process.pbdoc_number} rejeitada",
        data={"step_id": step.id, "reason": step.rejection_reason},
    )
    return step.to_dict()


@router.get("/api/steps/rejected")
async def list_rejected_steps(db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    rows = rejected_steps(visible_processes(db, current_user))
    departments = department_names(db)
    people = user_names(db, [step.rejected_by for step, _ in rows])
    result = []
    for step, process in rows:
        data = step.to_dict()
        data.update({
            "pbdoc_number": process.pbdoc_number,
            "process_description": process.description,
            "department_name": departments.get(step.department_id),
            "rejected_by_name": people.get(step.rejected_by),
        })
        result.append(data)
    return result
