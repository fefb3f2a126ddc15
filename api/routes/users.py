"""
User administration routes.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from database import (
    UserDB, ProcessDB, ProcessMovementDB, ProcessParticipantDB, ProcessStepDB, SettingDB
)
from core import config
from core.dependencies import get_db, require_user, require_admin
from core.exceptions import ConflictError, NotFoundError
from core.security import hash_password, delete_user_sessions

logger = logging.getLogger(__name__)

router = APIRouter()

ROLE_PATTERN = "^(common|admin)$"


class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    department: str = Field(..., min_length=1)
    role: str = Field(default="common", pattern=ROLE_PATTERN)
    is_active: bool = True


class UpdateUserRequest(BaseModel):
    password: Optional[str] = Field(default=None, min_length=6)
    full_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    department: Optional[str] = Field(default=None, min_length=1)
    role: Optional[str] = Field(default=None, pattern=ROLE_PATTERN)
    is_active: Optional[bool] = None


def _get_user(db: Session, user_id: int) -> UserDB:
    user = db.get(UserDB, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


@router.get("/api/users")
async def list_users(db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    users = db.query(UserDB).order_by(UserDB.full_name).all()
    return [user.to_dict() for user in users]


@router.get("/api/users/{user_id}")
async def get_user(user_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    return _get_user(db, user_id).to_dict()


@router.post("/api/users", status_code=201)
async def create_user(payload: CreateUserRequest, db: Session = Depends(get_db),
                      current_user: UserDB = Depends(require_admin)):
    if db.query(UserDB).filter(UserDB.username == payload.username.strip()).first():
        raise ConflictError("Username already exists")

    user = UserDB(
        username=payload.username.strip(),
        password_hash=hash_password(payload.password),
        full_name=payload.full_name.strip(),
        email=payload.email,
        department=payload.department.strip(),
        role=payload.role,
        is_active=payload.is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.username} created by {current_user.username}")
    return user.to_dict()


@router.patch("/api/users/{user_id}")
async def update_user(user_id: int, payload: UpdateUserRequest, db: Session = Depends(get_db),
                      current_user: UserDB = Depends(require_admin)):
    user = _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if user.id == config.PROTECTED_USER_ID and (
        changes.get("role") not in (None, "admin") or changes.get("is_active") is False
    ):
        raise HTTPException(status_code=403, detail="The default administrator cannot be demoted or deactivated")

    password = changes.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
    for key, value in changes.items():
        if value is not None:
            setattr(user, key, value)

    db.commit()
    db.refresh(user)
    if not user.is_active:
        delete_user_sessions(user.id)
    logger.info(f"User {user.username} updated by {current_user.username}")
    return user.to_dict()


@router.delete("/api/users/{user_id}")
async def delete_user(user_id: int, db: Session = Depends(get_db), current_user: UserDB = Depends(require_admin)):
    if user_id == config.PROTECTED_USER_ID:
        raise HTTPException(status_code=403, detail="The default administrator cannot be deleted")

    user = _get_user(db, user_id)
    owned = db.query(ProcessDB).filter(ProcessDB.responsible_id == user.id).count()
    if owned:
        raise ConflictError(f"User is responsible for {owned} process(es); reassign them first")

    username = user.username
    db.query(ProcessParticipantDB).filter(ProcessParticipantDB.user_id == user.id).delete(synchronize_session=False)
    # Keep history rows, drop the reference
    for column in (ProcessStepDB.completed_by, ProcessStepDB.rejected_by, ProcessMovementDB.user_id,
                   ProcessDB.deleted_by, SettingDB.updated_by):
        db.query(column.class_).filter(column == user.id).update({column: None}, synchronize_session=False)
    db.delete(user)
    db.commit()
    delete_user_sessions(user_id)
    logger.info(f"User {username} deleted by {current_user.username}")
    return {"success": True}
