"""Dashboard analytics and report rendering package."""

from .analytics import (
    deadline_alerts,
    department_ranking,
    get_monthly_goal,
    monthly_goal_progress,
    overdue_ranking,
    process_statistics,
    processes_by_month,
    processes_by_responsible,
    processes_by_source,
    temporal_distribution,
)
from .excel import build_process_workbook
from .pdf import build_process_list_pdf, build_process_report_pdf, build_timeline_pdf
from .report_data import enrich_process, enrich_processes, process_report_context, process_rows, timeline_events

__all__ = [
    "deadline_alerts",
    "department_ranking",
    "get_monthly_goal",
    "monthly_goal_progress",
    "overdue_ranking",
    "process_statistics",
    "processes_by_month",
    "processes_by_responsible",
    "processes_by_source",
    "temporal_distribution",
    "build_process_workbook",
    "build_process_list_pdf",
    "build_process_report_pdf",
    "build_timeline_pdf",
    "enrich_process",
    "enrich_processes",
    "process_report_context",
    "process_rows",
    "timeline_events",
]
