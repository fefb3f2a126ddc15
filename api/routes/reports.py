"""
Report routes: printable HTML / PDF process reports, timelines and list exports.
"""

import logging
from io import BytesIO
from pathlib import Path
from fastapi import APIRouter, Request, Depends
from fastapi.responses import HTMLResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from database import ProcessDB, UserDB
from core.dependencies import get_db, get_process_filters, require_user
from services.reporting import (
    build_process_list_pdf,
    build_process_report_pdf,
    build_process_workbook,
    build_timeline_pdf,
    process_report_context,
    process_rows,
    process_statistics,
    timeline_events,
)
from services.workflow import ProcessFilters, filter_processes, get_accessible_process, visible_processes

logger = logging.getLogger(__name__)

router = APIRouter()
templates = Jinja2Templates(directory=Path(__file__).resolve().parents[2] / "templates")

PDF_MEDIA_TYPE = "application/pdf"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _safe_name(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in value)


def _download(content, filename: str, media_type: str) -> StreamingResponse:
    buffer = content if isinstance(content, BytesIO) else BytesIO(content)
    return StreamingResponse(
        buffer,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/api/processes/{process_id}/report", response_class=HTMLResponse)
async def process_report_html(request: Request, process_id: int, db: Session = Depends(get_db),
                              current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    context = process_report_context(db, process)
    return templates.TemplateResponse(request, "process_report.html", context)


@router.get("/api/processes/{process_id}/report.pdf")
async def process_report_pdf(process_id: int, db: Session = Depends(get_db),
                             current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    pdf = build_process_report_pdf(process_report_context(db, process))
    logger.info(f"PDF report generated for {process.pbdoc_number} by {current_user.username}")
    return _download(pdf, f"processo_{_safe_name(process.pbdoc_number)}.pdf", PDF_MEDIA_TYPE)


@router.get("/api/processes/{process_id}/timeline.pdf")
async def process_timeline_pdf(process_id: int, db: Session = Depends(get_db),
                               current_user: UserDB = Depends(require_user)):
    process = get_accessible_process(db, current_user, process_id)
    pdf = build_timeline_pdf(process.pbdoc_number, timeline_events(db, process))
    return _download(pdf, f"timeline_{_safe_name(process.pbdoc_number)}.pdf", PDF_MEDIA_TYPE)


def _listing(db: Session, user: UserDB, filters: ProcessFilters):
    query = filter_processes(visible_processes(db, user), filters)
    processes = query.order_by(ProcessDB.created_at.desc(), ProcessDB.id.desc()).all()
    return process_rows(db, processes), process_statistics(query)


@router.get("/api/reports/processes.pdf")
async def processes_pdf(filters: ProcessFilters = Depends(get_process_filters), db: Session = Depends(get_db),
                        current_user: UserDB = Depends(require_user)):
    rows, statistics = _listing(db, current_user, filters)
    pdf = build_process_list_pdf(rows, statistics, vars(filters))
    return _download(pdf, "relatorio_processos.pdf", PDF_MEDIA_TYPE)


@router.get("/api/reports/processes.xlsx")
async def processes_xlsx(filters: ProcessFilters = Depends(get_process_filters), db: Session = Depends(get_db),
                         current_user: UserDB = Depends(require_user)):
    rows, statistics = _listing(db, current_user, filters)
    return _download(build_process_workbook(rows, statistics), "relatorio_processos.xlsx", XLSX_MEDIA_TYPE)
