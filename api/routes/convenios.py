"""
Convênio (funding agreement) routes.
"""

import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import ConvenioDB, UserDB
from core.dependencies import get_db, require_user, require_admin
from core.exceptions import BadRequestError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_PATTERN = "^(ativo|vencido|cancelado)$"


class ConvenioRequest(BaseModel):
    numero: str = Field(..., min_length=1)
    objeto: str = Field(..., min_length=1)
    orgao_convenente: Optional[str] = None
    valor: Optional[float] = Field(default=None, ge=0)
    data_inicio: Optional[date] = None
    data_fim: Optional[date] = None
    status: str = Field(default="ativo", pattern=STATUS_PATTERN)
    observacoes: Optional[str] = None


class ConvenioUpdateRequest(BaseModel):
    numero: Optional[str] = Field(default=None, min_length=1)
    objeto: Optional[str] = Field(default=None, min_length=1)
    orgao_convenente: Optional[str] = None
    valor: Optional[float] = Field(default=None, ge=0)
    data_inicio: Optional[date] = None
    data_fim: Optional[date] = None
    status: Optional[str] = Field(default=None, pattern=STATUS_PATTERN)
    observacoes: Optional[str] = None


def _get_convenio(db: Session, convenio_id: int) -> ConvenioDB:
    convenio = db.get(ConvenioDB, convenio_id)
    if convenio is None:
        raise NotFoundError("Convênio", convenio_id)
    return convenio


def _check_period(data_inicio: Optional[date], data_fim: Optional[date]) -> None:
    if data_inicio and data_fim and data_fim < data_inicio:
        raise BadRequestError("End date cannot precede start date")


def _check_numero(db: Session, numero: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(ConvenioDB).filter(ConvenioDB.numero == numero)
    if exclude_id is not None:
        query = query.filter(ConvenioDB.id != exclude_id)
    if query.first():
        raise ConflictError(f"Convênio {numero} already exists")


@router.get("/api/convenios")
async def list_convenios(q: Optional[str] = Query(default=None), db: Session = Depends(get_db),
                         current_user: UserDB = Depends(require_user)):
    query = db.query(ConvenioDB)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(
            ConvenioDB.numero.ilike(pattern),
            ConvenioDB.objeto.ilike(pattern),
            ConvenioDB.orgao_convenente.ilike(pattern),
        ))
    return [c.to_dict() for c in query.order_by(ConvenioDB.created_at.desc(), ConvenioDB.id.desc()).all()]


@router.get("/api/convenios/{convenio_id}")
async def get_convenio(convenio_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    return _get_convenio(db, convenio_id).to_dict()


@router.post("/api/convenios", status_code=201)
async def create_convenio(payload: ConvenioRequest, db: Session = Depends(get_db),
                          current_user: UserDB = Depends(require_admin)):
    _check_period(payload.data_inicio, payload.data_fim)
    _check_numero(db, payload.numero.strip())
    convenio = ConvenioDB(**payload.model_dump())
    convenio.numero = payload.numero.strip()
    db.add(convenio)
    db.commit()
    db.refresh(convenio)
    logger.info(f"Convênio {convenio.numero} created by {current_user.username}")
    return convenio.to_dict()


@router.patch("/api/convenios/{convenio_id}")
async def update_convenio(convenio_id: int, payload: ConvenioUpdateRequest, db: Session = Depends(get_db),
                          current_user: UserDB = Depends(require_admin)):
    convenio = _get_convenio(db, convenio_id)
    changes = payload.model_dump(exclude_unset=True)
    for key in ("numero", "objeto", "status"):
        if key in changes and changes[key] is None:
            changes.pop(key)

    _check_period(changes.get("data_inicio", convenio.data_inicio), changes.get("data_fim", convenio.data_fim))
    if changes.get("numero"):
        _check_numero(db, changes["numero"], exclude_id=convenio_id)

    for key, value in changes.items():
        setattr(convenio, key, value)
    db.commit()
    db.refresh(convenio)
    return convenio.to_dict()


@router.delete("/api/convenios/{convenio_id}")
async def delete_convenio(convenio_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_admin)):
    convenio = _get_convenio(db, convenio_id)
    numero = convenio.numero
    db.delete(convenio)
    db.commit()
    logger.info(f"Convênio {numero} deleted by {current_user.username}")
    return {"success": True}
