"""
Dashboard aggregations over a (visibility-scoped, filtered) process query.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session

from core import config
from core.business_days import business_days_between
from database import DepartmentDB, ProcessDB, ResourceSourceDB, UserDB, get_setting
from services.workflow.access import CLOSED_STATUSES, overdue_condition
from .labels import MONTH_ABBR

MONTHLY_GOAL_KEY = "monthly_goal"


def _bucket(process: ProcessDB) -> Optional[str]:
    if process.is_overdue:
        return "overdue"
    if process.status == "completed":
        return "completed"
    if process.status in ("draft", "in_progress"):
        return "in_progress"
    return None


def process_statistics(query: Query) -> Dict[str, int]:
    counts = dict(query.with_entities(ProcessDB.status, func.count(ProcessDB.id)).group_by(ProcessDB.status).all())
    return {
        "total": sum(counts.values()),
        "draft": counts.get("draft", 0),
        "in_progress": counts.get("in_progress", 0),
        "completed": counts.get("completed", 0),
        "canceled": counts.get("canceled", 0),
        "overdue": query.filter(overdue_condition()).count(),
    }


def processes_by_month(query: Query, year: Optional[int] = None) -> List[Dict[str, Any]]:
    """Process creations per month of `year` (current year by default), zero-filled."""
    year = year or datetime.utcnow().year
    created = query.filter(
        ProcessDB.created_at >= datetime(year, 1, 1),
        ProcessDB.created_at < datetime(year + 1, 1, 1),
    ).with_entities(ProcessDB.created_at).all()
    per_month = Counter(row[0].month for row in created)
    return [
        {"month": month, "label": MONTH_ABBR[month - 1], "count": per_month.get(month, 0)}
        for month in range(1, 13)
    ]


def processes_by_source(query: Query) -> List[Dict[str, Any]]:
    rows = query.join(ResourceSourceDB, ResourceSourceDB.id == ProcessDB.source_id).with_entities(
        ResourceSourceDB.id, ResourceSourceDB.code, ResourceSourceDB.description, func.count(ProcessDB.id)
    ).group_by(ResourceSourceDB.id, ResourceSourceDB.code, ResourceSourceDB.description).order_by(
        ResourceSourceDB.code
    ).all()
    return [
        {"source_id": source_id, "source_code": code, "description": description, "count": count}
        for source_id, code, description, count in rows
    ]


def processes_by_responsible(query: Query) -> List[Dict[str, Any]]:
    completed = func.sum(case((ProcessDB.status == "completed", 1), else_=0))
    rows = query.join(UserDB, UserDB.id == ProcessDB.responsible_id).with_entities(
        UserDB.id, UserDB.full_name, func.count(ProcessDB.id), completed
    ).group_by(UserDB.id, UserDB.full_name).order_by(func.count(ProcessDB.id).desc(), UserDB.full_name).all()
    return [
        {"responsible_id": user_id, "name": name, "total": total, "completed": int(done or 0)}
        for user_id, name, total, done in rows
        if total > 0
    ]


def _month_start(day: date, months_back: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def temporal_distribution(query: Query, period: str = "month", today: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    In progress / overdue / completed counts of processes created in each of the
    last 6 months (`period="month"`) or last 8 weeks (`period="week"`).
    """
    today = today or datetime.utcnow().date()
    if period == "week":
        current_week = today - timedelta(days=today.weekday())
        starts = [current_week - timedelta(weeks=offset) for offset in range(7, -1, -1)]
        ends = starts[1:] + [current_week + timedelta(weeks=1)]
        labels = [start.strftime("%d/%m") for start in starts]
        keys = [f"{start.isocalendar()[0]}-W{start.isocalendar()[1]:02d}" for start in starts]
    else:
        starts = [_month_start(today, offset) for offset in range(5, -1, -1)]
        ends = starts[1:] + [_month_start(today, -1)]
        labels = [f"{MONTH_ABBR[start.month - 1]}/{start.year}" for start in starts]
        keys = [start.strftime("%Y-%m") for start in starts]

    buckets = [{"period": key, "label": label, "in_progress": 0, "overdue": 0, "completed": 0}
               for key, label in zip(keys, labels)]

    window_start = datetime.combine(starts[0], datetime.min.time())
    window_end = datetime.combine(ends[-1], datetime.min.time())
    for process in query.filter(ProcessDB.created_at >= window_start, ProcessDB.created_at < window_end).all():
        created = process.created_at.date()
        bucket = _bucket(process)
        if bucket is None:
            continue
        for index, (start, end) in enumerate(zip(starts, ends)):
            if start <= created < end:
                buckets[index][bucket] += 1
                break
    return buckets


def department_ranking(db: Session, query: Query) -> List[Dict[str, Any]]:
    departments = db.query(DepartmentDB).all()
    ranking = {
        d.id: {"department_id": d.id, "name": d.name, "total": 0, "in_progress": 0, "overdue": 0, "completed": 0}
        for d in departments
    }
    for process in query.filter(ProcessDB.current_department_id.isnot(None)).all():
        entry = ranking.get(process.current_department_id)
        if entry is None:
            continue
        entry["total"] += 1
        bucket = _bucket(process)
        if bucket:
            entry[bucket] += 1
    return sorted(ranking.values(), key=lambda item: (-item["total"], item["name"]))


def overdue_ranking(db: Session, query: Query) -> List[Dict[str, Any]]:
    """Departments holding overdue processes, worst first."""
    ranking = []
    for entry in department_ranking(db, query):
        if entry["overdue"] <= 0:
            continue
        ranking.append({
            "department_id": entry["department_id"],
            "name": entry["name"],
            "overdue": entry["overdue"],
            "total": entry["total"],
            "percentage": round(entry["overdue"] / entry["total"] * 100, 1),
        })
    return sorted(ranking, key=lambda item: (-item["overdue"], item["name"]))


def deadline_alerts(query: Query, days: int = 3, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Open processes that are overdue or due within `days` business days."""
    today = today or datetime.utcnow().date()
    alerts = []
    open_processes = query.filter(
        ProcessDB.deadline.isnot(None),
        ProcessDB.status.notin_(CLOSED_STATUSES),
    ).order_by(ProcessDB.deadline).all()
    for process in open_processes:
        remaining = business_days_between(today, process.deadline)
        overdue = process.deadline.date() < today
        if overdue or remaining <= days:
            alerts.append({
                "process_id": process.id,
                "pbdoc_number": process.pbdoc_number,
                "description": process.description,
                "deadline": process.deadline.isoformat(),
                "business_days_left": remaining,
                "is_overdue": overdue,
                "responsible_id": process.responsible_id,
                "current_department_id": process.current_department_id,
            })
    return alerts


def get_monthly_goal(db: Session) -> float:
    return get_setting(db, MONTHLY_GOAL_KEY, config.DEFAULT_MONTHLY_GOAL)


def monthly_goal_progress(db: Session, query: Query, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or datetime.utcnow().date()
    month_start = datetime(today.year, today.month, 1)
    next_month = _month_start(today, -1)
    created = query.filter(
        ProcessDB.created_at >= month_start,
        ProcessDB.created_at < datetime.combine(next_month, datetime.min.time()),
    ).count()
    goal = get_monthly_goal(db)
    return {
        "goal": goal,
        "created": created,
        "percentage": round(created / goal * 100, 1) if goal else 0.0,
        "month": today.strftime("%Y-%m"),
    }
