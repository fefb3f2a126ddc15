from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import json
import logging
import os

from core import config
from core.exceptions import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    WorkflowError,
)
from core.security import get_session
from database import SessionLocal, ProcessDB, UserDB, create_tables, seed_reference_data
from services.workflow import can_access_process
from websocket_manager import manager, process_room

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(title="ProcessHub", description="Bidding Process Tracking System")


# Startup event to initialize database tables
@app.on_event("startup")
async def startup_event():
    """Create tables, patch older schemas and seed reference data."""
    logger.info("Application startup: Ensuring database tables exist...")
    create_tables()
    db = SessionLocal()
    try:
        seed_reference_data(db)
    finally:
        db.close()
    logger.info("✓ Database tables verified/created successfully")


# ==================== Error handlers ====================


def _error(status_code: int, exc: Exception, details: dict = None) -> JSONResponse:
    body = {"detail": str(exc)}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(404, exc)


@app.exception_handler(BadRequestError)
async def bad_request_handler(request: Request, exc: BadRequestError):
    return _error(400, exc)


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return _error(403, exc)


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return _error(409, exc)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    logger.info(f"Workflow rule rejected {request.method} {request.url.path}: {exc}")
    return _error(422, exc, exc.details)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


# Import and mount API routers
from api.routes import auth as auth_router
from api.routes import users as users_router
from api.routes import catalog as catalog_router
from api.routes import processes as processes_router
from api.routes import steps as steps_router
from api.routes import analytics as analytics_router
from api.routes import reports as reports_router
from api.routes import convenios as convenios_router

app.include_router(auth_router.router)
app.include_router(users_router.router)
app.include_router(catalog_router.router)
app.include_router(processes_router.router)
app.include_router(steps_router.router)
app.include_router(analytics_router.router)
app.include_router(reports_router.router)
app.include_router(convenios_router.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


def _may_follow(user_id: int, process_id: int) -> bool:
    db = SessionLocal()
    try:
        user = db.get(UserDB, user_id)
        process = db.get(ProcessDB, process_id)
        if user is None or process is None or process.deleted_at is not None:
            return False
        return can_access_process(db, user, process)
    finally:
        db.close()


@app.websocket("/ws")
async def notifications_websocket(websocket: WebSocket):
    """Real-time process notifications for logged-in users."""
    session_data = get_session(websocket.cookies.get(config.SESSION_COOKIE_NAME))
    if not session_data:
        await websocket.close(code=1008, reason="Authentication required")
        return

    db = SessionLocal()
    try:
        user = db.query(UserDB).filter(UserDB.id == session_data['user_id']).first()
        if user is None or not user.is_active:
            await websocket.close(code=1008, reason="Invalid or expired session")
            return
        user_id, user_name = user.id, user.full_name
    finally:
        db.close()

    await manager.connect(websocket, user_id, user_name)
    await manager.send_personal_message(
        {"type": "connection", "message": f"Conectado como {user_name}"}, websocket
    )

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                data = None
            if not isinstance(data, dict):
                await manager.send_personal_message(
                    {"type": "error", "message": "Invalid message format"}, websocket
                )
                continue
            message_type = data.get('type')

            if message_type == 'ping':
                await manager.send_personal_message({"type": "pong"}, websocket)
            elif message_type in ("subscribe", "unsubscribe") and data.get("process_id"):
                try:
                    process_id = int(data["process_id"])
                except (TypeError, ValueError):
                    await manager.send_personal_message(
                        {"type": "error", "message": "Invalid process_id"}, websocket
                    )
                    continue
                if message_type == "unsubscribe":
                    manager.leave(websocket, process_room(process_id))
                elif _may_follow(user_id, process_id):
                    manager.join(websocket, process_room(process_id))
                else:
                    await manager.send_personal_message(
                        {"type": "error", "message": "Process not found or access denied"}, websocket
                    )
    except WebSocketDisconnect:
        logger.debug(f"WebSocket closed by {user_name}")
    finally:
        manager.disconnect(websocket)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
