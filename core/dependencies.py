"""
Shared dependencies for FastAPI routes.
"""

from typing import Optional
from fastapi import Request, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import SessionLocal, UserDB
from core import config
from core.security import get_session
from services.workflow.access import ProcessFilters

PROCESS_FILTER_STATUSES = ("draft", "in_progress", "completed", "canceled", "overdue")


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[UserDB]:
    """Get current user from session. Deactivated accounts count as logged out."""
    session_token = request.cookies.get(config.SESSION_COOKIE_NAME)
    if not session_token:
        return None

    session_data = get_session(session_token)
    if not session_data:
        return None

    user = db.query(UserDB).filter(UserDB.id == session_data['user_id']).first()
    if user is None or not user.is_active:
        return None
    return user


def require_user(current_user: Optional[UserDB] = Depends(get_current_user)) -> UserDB:
    if current_user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return current_user


def require_admin(current_user: UserDB = Depends(require_user)) -> UserDB:
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return current_user


def get_process_filters(
    pbdoc_number: Optional[str] = Query(default=None),
    modality_id: Optional[int] = Query(default=None),
    source_id: Optional[int] = Query(default=None),
    responsible_id: Optional[int] = Query(default=None),
    status: Optional[str] = Query(default=None),
    department_id: Optional[int] = Query(default=None),
) -> ProcessFilters:
    """Process list filters shared by listings, dashboards and exports."""
    if status and status not in PROCESS_FILTER_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status filter '{status}'")
    return ProcessFilters(
        pbdoc_number=pbdoc_number,
        modality_id=modality_id,
        source_id=source_id,
        responsible_id=responsible_id,
        status=status,
        department_id=department_id,
    )
