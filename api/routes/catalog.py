"""
Catalog routes: departments, bidding modalities and resource sources.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from database import DepartmentDB, BiddingModalityDB, ResourceSourceDB, UserDB
from core.cache import catalog_cache
from core.dependencies import get_db, require_user, require_admin
from core.exceptions import ConflictError, NotFoundError
from services.workflow import load_flow

logger = logging.getLogger(__name__)

router = APIRouter()


class DepartmentRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    flow_order: Optional[int] = Field(default=None, ge=1)


class DepartmentUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    flow_order: Optional[int] = Field(default=None, ge=1)


class ModalityRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    deadline_days: Optional[int] = Field(default=None, ge=0)


class ModalityUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    deadline_days: Optional[int] = Field(default=None, ge=0)


class SourceRequest(BaseModel):
    code: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class SourceUpdateRequest(BaseModel):
    code: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)


def _check_unique(db: Session, column, value, exclude_id: Optional[int] = None) -> None:
    model = column.class_
    query = db.query(model).filter(column == value)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first():
        raise ConflictError(f"'{value}' already exists")


def _create(db: Session, kind: str, record):
    db.add(record)
    db.commit()
    db.refresh(record)
    catalog_cache.invalidate(kind)
    return record.to_dict()


def _update(db: Session, kind: str, record, changes: dict):
    for key, value in changes.items():
        setattr(record, key, value)
    db.commit()
    db.refresh(record)
    catalog_cache.invalidate(kind)
    return record.to_dict()


# ==================== Departments ====================


@router.get("/api/departments")
async def list_departments(db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    return catalog_cache.get_catalog(db, "departments")


@router.post("/api/departments", status_code=201)
async def create_department(payload: DepartmentRequest, db: Session = Depends(get_db),
                            current_user: UserDB = Depends(require_admin)):
    _check_unique(db, DepartmentDB.name, payload.name.strip())
    department = DepartmentDB(name=payload.name.strip(), description=payload.description, flow_order=payload.flow_order)
    logger.info(f"Department '{department.name}' created by {current_user.username}")
    return _create(db, "departments", department)


@router.patch("/api/departments/{department_id}")
async def update_department(department_id: int, payload: DepartmentUpdateRequest, db: Session = Depends(get_db),
                            current_user: UserDB = Depends(require_admin)):
    department = db.get(DepartmentDB, department_id)
    if department is None:
        raise NotFoundError("Department", department_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name"):
        _check_unique(db, DepartmentDB.name, changes["name"], exclude_id=department_id)
    elif "name" in changes:
        changes.pop("name")
    return _update(db, "departments", department, changes)


@router.get("/api/workflow/flow")
async def department_flow(db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    """Departments in routing order."""
    return load_flow(db).to_list()


# ==================== Modalities ====================


@router.get("/api/modalities")
async def list_modalities(db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    return catalog_cache.get_catalog(db, "modalities")


@router.post("/api/modalities", status_code=201)
async def create_modality(payload: ModalityRequest, db: Session = Depends(get_db),
                          current_user: UserDB = Depends(require_admin)):
    _check_unique(db, BiddingModalityDB.name, payload.name.strip())
    modality = BiddingModalityDB(
        name=payload.name.strip(),
        description=payload.description,
        deadline_days=payload.deadline_days,
    )
    return _create(db, "modalities", modality)


@router.patch("/api/modalities/{modality_id}")
async def update_modality(modality_id: int, payload: ModalityUpdateRequest, db: Session = Depends(get_db),
                          current_user: UserDB = Depends(require_admin)):
    modality = db.get(BiddingModalityDB, modality_id)
    if modality is None:
        raise NotFoundError("Modality", modality_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name"):
        _check_unique(db, BiddingModalityDB.name, changes["name"], exclude_id=modality_id)
    elif "name" in changes:
        changes.pop("name")
    return _update(db, "modalities", modality, changes)


# ==================== Resource sources ====================


@router.get("/api/sources")
@router.get("/api/resource-sources")
async def list_sources(db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    return catalog_cache.get_catalog(db, "sources")


@router.post("/api/sources", status_code=201)
async def create_source(payload: SourceRequest, db: Session = Depends(get_db),
                        current_user: UserDB = Depends(require_admin)):
    _check_unique(db, ResourceSourceDB.code, payload.code.strip())
    source = ResourceSourceDB(code=payload.code.strip(), description=payload.description.strip())
    return _create(db, "sources", source)


@router.patch("/api/sources/{source_id}")
async def update_source(source_id: int, payload: SourceUpdateRequest, db: Session = Depends(get_db),
                        current_user: UserDB = Depends(require_admin)):
    source = db.get(ResourceSourceDB, source_id)
    if source is None:
        raise NotFoundError("Source", source_id)
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    if changes.get("code"):
        _check_unique(db, ResourceSourceDB.code, changes["code"], exclude_id=source_id)
    return _update(db, "sources", source, changes)
