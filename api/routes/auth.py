"""
Authentication routes: login, logout, session status and self-registration.
"""

import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Request, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from database import UserDB
from core import config
from core.dependencies import get_db, require_user
from core.exceptions import ConflictError
from core.security import hash_password, verify_password, create_session, delete_session

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    department: str = Field(..., min_length=1)


@router.post("/api/auth/login")
async def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(UserDB).filter(UserDB.username == payload.username.strip()).first()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info(f"Failed login attempt for '{payload.username}'")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account awaiting administrator approval")

    user.last_login = datetime.utcnow()
    db.commit()

    session_token = create_session(user.id)
    response = JSONResponse({"user": user.to_dict()})
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=session_token,
        httponly=True,
        samesite="lax",
        max_age=config.SESSION_EXPIRE_DAYS * 24 * 60 * 60,
    )
    logger.info(f"User {user.username} logged in")
    return response


@router.get("/api/auth/status")
async def auth_status(current_user: UserDB = Depends(require_user)):
    return {"user": current_user.to_dict()}


@router.post("/api/auth/logout")
async def logout(request: Request):
    delete_session(request.cookies.get(config.SESSION_COOKIE_NAME))
    response = JSONResponse({"success": True})
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return response


@router.post("/api/auth/register", status_code=201)
async def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """Public sign-up. New accounts are common users and stay inactive until an administrator approves them."""
    username = payload.username.strip()
    if db.query(UserDB).filter(UserDB.username == username).first():
        raise ConflictError("Username already exists")

    user = UserDB(
        username=username,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name.strip(),
        email=payload.email,
        department=payload.department.strip(),
        role="common",
        is_active=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"New registration '{user.username}' awaiting approval")
    return {
        "user": user.to_dict(),
        "message": "Registration received. Your account will be available after administrator approval.",
    }
