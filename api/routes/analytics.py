"""
Dashboard routes: statistics, rankings, distributions, deadline alerts and the monthly goal.
"""

import logging
import math
from typing import Any
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from database import UserDB, set_setting
from core.dependencies import get_db, get_process_filters, require_user, require_admin
from core.exceptions import BadRequestError
from services.reporting import analytics
from services.workflow import ProcessFilters, filter_processes, visible_processes

logger = logging.getLogger(__name__)

router = APIRouter()


class MonthlyGoalRequest(BaseModel):
    # Validated by hand so non-numbers get 400 rather than pydantic's 422
    value: Any = None


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _scoped(db: Session, user: UserDB, filters: ProcessFilters):
    return filter_processes(visible_processes(db, user), filters)


@router.get("/api/analytics/process-statistics")
async def process_statistics(filters: ProcessFilters = Depends(get_process_filters), db: Session = Depends(get_db),
                             current_user: UserDB = Depends(require_user)):
    return analytics.process_statistics(_scoped(db, current_user, filters))


@router.get("/api/analytics/processes-by-month")
async def processes_by_month(filters: ProcessFilters = Depends(get_process_filters), db: Session = Depends(get_db),
                             current_user: UserDB = Depends(require_user)):
    return analytics.processes_by_month(_scoped(db, current_user, filters))


@router.get("/api/analytics/processes-by-source")
async def processes_by_source(filters: ProcessFilters = Depends(get_process_filters), db: Session = Depends(get_db),
                              current_user: UserDB = Depends(require_user)):
    return analytics.processes_by_source(_scoped(db, current_user, filters))


@router.get("/api/analytics/processes-by-responsible")
async def processes_by_responsible(filters: ProcessFilters = Depends(get_process_filters),
                                   db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    return analytics.processes_by_responsible(_scoped(db, current_user, filters))


@router.get("/api/analytics/temporal-distribution")
async def temporal_distribution(period: str = Query(default="month", pattern="^(month|week)$"),
                                filters: ProcessFilters = Depends(get_process_filters),
                                db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    return analytics.temporal_distribution(_scoped(db, current_user, filters), period=period)


@router.get("/api/analytics/department-ranking")
async def department_ranking(filters: ProcessFilters = Depends(get_process_filters), db: Session = Depends(get_db),
                             current_user: UserDB = Depends(require_user)):
    return analytics.department_ranking(db, _scoped(db, current_user, filters))


@router.get("/api/analytics/overdue-ranking")
async def overdue_ranking(filters: ProcessFilters = Depends(get_process_filters), db: Session = Depends(get_db),
                          current_user: UserDB = Depends(require_user)):
    return analytics.overdue_ranking(db, _scoped(db, current_user, filters))


@router.get("/api/alerts/deadlines")
async def deadline_alerts(days: int = Query(default=3, ge=0, le=60), db: Session = Depends(get_db),
                          current_user: UserDB = Depends(require_user)):
    return analytics.deadline_alerts(visible_processes(db, current_user), days=days)


# ==================== Monthly goal ====================


@router.get("/api/settings/monthly-goal")
async def get_monthly_goal(db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    return {"value": analytics.get_monthly_goal(db)}


@router.post("/api/settings/monthly-goal")
async def set_monthly_goal(payload: MonthlyGoalRequest, db: Session = Depends(get_db),
                           current_user: UserDB = Depends(require_admin)):
    if not _is_positive_number(payload.value):
        raise BadRequestError("Monthly goal must be a positive number")
    set_setting(db, analytics.MONTHLY_GOAL_KEY, payload.value, user_id=current_user.id)
    logger.info(f"Monthly goal set to {payload.value} by {current_user.username}")
    return {"value": payload.value}


@router.get("/api/settings/monthly-goal/progress")
async def monthly_goal_progress(db: Session = Depends(get_db), current_user: UserDB = Depends(require_user)):
    return analytics.monthly_goal_progress(db, visible_processes(db, current_user))
