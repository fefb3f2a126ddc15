from datetime import datetime
from typing import Dict, Any, List, Optional
from sqlalchemy import create_engine, Column, String, Integer, Float, DateTime, Date, Boolean, Text, ForeignKey, Index, JSON, inspect, text
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import make_url
import logging

from core import config

logger = logging.getLogger(__name__)


def _normalize_database_url(url: str) -> str:
    """Normalize DATABASE_URL for SQLAlchemy compatibility."""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://") and "+psycopg" not in url:
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


# Database configuration
DATABASE_URL = _normalize_database_url(config.DATABASE_URL)
database_url = make_url(DATABASE_URL)

engine_kwargs: Dict[str, Any] = {
    "pool_pre_ping": True,
}

if database_url.get_backend_name() == "sqlite":
    engine_kwargs.update(connect_args={"check_same_thread": False})
else:
    engine_kwargs.update(
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_recycle=config.DB_POOL_RECYCLE,
        echo_pool=False,
    )

engine = create_engine(DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _iso(value):
    return value.isoformat() if value else None


class UserDB(Base):
    """Application user. `department` holds the department name the user works in."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    email = Column(String)
    department = Column(String, nullable=False)
    role = Column(String, nullable=False, default="common")  # common, admin
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_login = Column(DateTime)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
            "department": self.department,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "last_login": _iso(self.last_login),
        }


class DepartmentDB(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text)
    # Position in the routing flow; NULL for departments outside the flow
    flow_order = Column(Integer, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "flow_order": self.flow_order,
        }


class BiddingModalityDB(Base):
    __tablename__ = "bidding_modalities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text)
    deadline_days = Column(Integer)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "deadline_days": self.deadline_days,
        }


class ResourceSourceDB(Base):
    __tablename__ = "resource_sources"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "code": self.code, "description": self.description}


class ProcessDB(Base):
    """A bidding process (procurement case) routed through departments."""

    __tablename__ = "processes"

    id = Column(Integer, primary_key=True, index=True)
    pbdoc_number = Column(String, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    modality_id = Column(Integer, ForeignKey("bidding_modalities.id"), nullable=False, index=True)
    source_id = Column(Integer, ForeignKey("resource_sources.id"), nullable=False, index=True)
    responsible_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    current_department_id = Column(Integer, ForeignKey("departments.id"), index=True)
    central_de_compras = Column(String)
    estimated_value = Column(Float)
    priority = Column(String, nullable=False, default="medium")  # low, medium, high
    status = Column(String, nullable=False, default="draft", index=True)  # draft, in_progress, completed, canceled
    return_comments = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    responsible_since = Column(DateTime, default=datetime.utcnow)
    deadline = Column(DateTime)
    deleted_at = Column(DateTime, index=True)
    deleted_by = Column(Integer, ForeignKey("users.id"))

    __table_args__ = (
        Index("idx_process_status_department", "status", "current_department_id"),
    )

    @property
    def is_overdue(self) -> bool:
        if not self.deadline or self.status in ("completed", "canceled"):
            return False
        return self.deadline.date() < datetime.utcnow().date()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pbdoc_number": self.pbdoc_number,
            "description": self.description,
            "modality_id": self.modality_id,
            "source_id": self.source_id,
            "responsible_id": self.responsible_id,
            "current_department_id": self.current_department_id,
            "central_de_compras": self.central_de_compras,
            "estimated_value": self.estimated_value,
            "priority": self.priority,
            "status": self.status,
            "return_comments": self.return_comments,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "responsible_since": _iso(self.responsible_since),
            "deadline": _iso(self.deadline),
            "deleted_at": _iso(self.deleted_at),
            "deleted_by": self.deleted_by,
            "is_overdue": self.is_overdue,
        }


class ProcessStepDB(Base):
    """A checklist item of a process, owned by one department."""

    __tablename__ = "process_steps"

    id = Column(Integer, primary_key=True, index=True)
    process_id = Column(Integer, ForeignKey("processes.id"), nullable=False, index=True)
    step_name = Column(String, nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False)
    phase = Column(String)
    display_order = Column(Integer, nullable=False, default=0)
    time_limit_days = Column(Integer)
    is_completed = Column(Boolean, nullable=False, default=False)
    observations = Column(Text)
    completed_at = Column(DateTime)
    completed_by = Column(Integer, ForeignKey("users.id"))
    due_date = Column(DateTime)
    rejected_at = Column(DateTime)
    rejected_by = Column(Integer, ForeignKey("users.id"))
    rejection_reason = Column(Text)

    __table_args__ = (
        Index("idx_step_process_department", "process_id", "department_id"),
    )

    @property
    def is_rejected(self) -> bool:
        return self.rejected_at is not None and not self.is_completed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "process_id": self.process_id,
            "step_name": self.step_name,
            "department_id": self.department_id,
            "phase": self.phase,
            "display_order": self.display_order,
            "time_limit_days": self.time_limit_days,
            "is_completed": self.is_completed,
            "observations": self.observations,
            "completed_at": _iso(self.completed_at),
            "completed_by": self.completed_by,
            "due_date": _iso(self.due_date),
            "is_rejected": self.is_rejected,
            "rejected_at": _iso(self.rejected_at),
            "rejected_by": self.rejected_by,
            "rejection_reason": self.rejection_reason,
        }


class ProcessParticipantDB(Base):
    __tablename__ = "process_participants"

    id = Column(Integer, primary_key=True, index=True)
    process_id = Column(Integer, ForeignKey("processes.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"))
    role = Column(String, nullable=False, default="viewer")  # viewer, editor, owner
    added_at = Column(DateTime, default=datetime.utcnow)
    is_active = Column(Boolean, nullable=False, default=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "process_id": self.process_id,
            "user_id": self.user_id,
            "department_id": self.department_id,
            "role": self.role,
            "added_at": _iso(self.added_at),
            "is_active": self.is_active,
        }


class ProcessMovementDB(Base):
    """History of transfers and returns between departments."""

    __tablename__ = "process_movements"

    id = Column(Integer, primary_key=True, index=True)
    process_id = Column(Integer, ForeignKey("processes.id"), nullable=False, index=True)
    kind = Column(String, nullable=False)  # transfer, return, restore
    from_department_id = Column(Integer, ForeignKey("departments.id"))
    to_department_id = Column(Integer, ForeignKey("departments.id"))
    user_id = Column(Integer, ForeignKey("users.id"))
    comment = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "process_id": self.process_id,
            "kind": self.kind,
            "from_department_id": self.from_department_id,
            "to_department_id": self.to_department_id,
            "user_id": self.user_id,
            "comment": self.comment,
            "created_at": _iso(self.created_at),
        }


class SettingDB(Base):
    __tablename__ = "app_settings"

    key = Column(String, primary_key=True)
    value = Column(JSONType)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = Column(Integer, ForeignKey("users.id"))


class ConvenioDB(Base):
    """Funding agreement (convênio) with another government body."""

    __tablename__ = "convenios"

    id = Column(Integer, primary_key=True, index=True)
    numero = Column(String, unique=True, nullable=False)
    objeto = Column(Text, nullable=False)
    orgao_convenente = Column(String)
    valor = Column(Float)
    data_inicio = Column(Date)
    data_fim = Column(Date)
    status = Column(String, nullable=False, default="ativo")  # ativo, vencido, cancelado
    observacoes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "numero": self.numero,
            "objeto": self.objeto,
            "orgao_convenente": self.orgao_convenente,
            "valor": self.valor,
            "data_inicio": _iso(self.data_inicio),
            "data_fim": _iso(self.data_fim),
            "status": self.status,
            "observacoes": self.observacoes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


def ensure_process_schema() -> None:
    """Add columns introduced after the first release to existing tables."""
    inspector = inspect(engine)
    if not inspector.has_table("processes"):
        return

    dialect = engine.dialect.name
    timestamp_type = "TIMESTAMP" if dialect == "postgresql" else "DATETIME"
    wanted = {
        "processes": {
            "estimated_value": "FLOAT",
            "return_comments": "TEXT",
            "responsible_since": timestamp_type,
            "deleted_at": timestamp_type,
            "deleted_by": "INTEGER",
        },
        "process_steps": {
            "phase": "VARCHAR",
            "display_order": "INTEGER DEFAULT 0",
            "time_limit_days": "INTEGER",
            "rejected_at": timestamp_type,
            "rejected_by": "INTEGER",
            "rejection_reason": "TEXT",
        },
        "departments": {
            "flow_order": "INTEGER",
        },
    }

    with engine.begin() as conn:
        for table_name, columns in wanted.items():
            if not inspector.has_table(table_name):
                continue
            existing = {col["name"] for col in inspector.get_columns(table_name)}
            for column_name, ddl in columns.items():
                if column_name in existing:
                    continue
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {ddl}"))
                logger.info(f"✓ Added column {table_name}.{column_name}")


def create_tables():
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)
    ensure_process_schema()


FLOW_DEPARTMENTS = [
    ("Setor de Solicitação", "Setor demandante que formaliza a solicitação"),
    ("Divisão de Licitação", "Instrução e condução do certame"),
    ("Coordenação de Licitação", "Revisão técnica e notas técnicas"),
    ("Direção de Administração", "Ordenação de despesa e orçamento"),
    ("Gabinete do Secretário", "Autorizações finais e assinatura"),
    ("Arquivo/Finalização", "Arquivamento do processo concluído"),
]

DEFAULT_MODALITIES = [
    ("Pregão Eletrônico", "Modalidade de licitação para aquisição de bens e serviços comuns", 3),
    ("Concorrência", "Modalidade para contratações de grande vulto", 5),
    ("Dispensa", "Contratação direta por dispensa de licitação", 7),
    ("Inexigibilidade", "Contratação direta por inviabilidade de competição", 7),
]

DEFAULT_SOURCES = [
    ("500", "Recursos do Tesouro Estadual"),
    ("700", "FUNPEN"),
    ("760", "Convênios"),
]


def seed_reference_data(db: Session) -> None:
    """Insert the workflow departments, catalog entries and the default administrator when missing."""
    from core.security import hash_password

    if db.query(DepartmentDB).count() == 0:
        for position, (name, description) in enumerate(FLOW_DEPARTMENTS, start=1):
            db.add(DepartmentDB(name=name, description=description, flow_order=position))
        logger.info(f"✓ Seeded {len(FLOW_DEPARTMENTS)} departments")

    if db.query(BiddingModalityDB).count() == 0:
        for name, description, deadline_days in DEFAULT_MODALITIES:
            db.add(BiddingModalityDB(name=name, description=description, deadline_days=deadline_days))
        logger.info(f"✓ Seeded {len(DEFAULT_MODALITIES)} bidding modalities")

    if db.query(ResourceSourceDB).count() == 0:
        for code, description in DEFAULT_SOURCES:
            db.add(ResourceSourceDB(code=code, description=description))
        logger.info(f"✓ Seeded {len(DEFAULT_SOURCES)} resource sources")

    if db.query(UserDB).count() == 0:
        db.add(UserDB(
            username=config.DEFAULT_ADMIN_USERNAME,
            password_hash=hash_password(config.DEFAULT_ADMIN_PASSWORD),
            full_name="Administrador",
            email="admin@seap.pb.gov.br",
            department=FLOW_DEPARTMENTS[1][0],
            role="admin",
            is_active=True,
        ))
        logger.info(f"✓ Created default administrator '{config.DEFAULT_ADMIN_USERNAME}'")

    db.commit()


def get_setting(db: Session, key: str, default: Optional[Any] = None) -> Any:
    setting = db.query(SettingDB).filter(SettingDB.key == key).first()
    if setting is None:
        return default
    return setting.value


def set_setting(db: Session, key: str, value: Any, user_id: Optional[int] = None) -> SettingDB:
    setting = db.query(SettingDB).filter(SettingDB.key == key).first()
    if setting is None:
        setting = SettingDB(key=key)
        db.add(setting)
    setting.value = value
    setting.updated_by = user_id
    setting.updated_at = datetime.utcnow()
    db.commit()
    return setting


def department_names(db: Session) -> Dict[int, str]:
    return {d.id: d.name for d in db.query(DepartmentDB).all()}


def user_names(db: Session, user_ids: List[int]) -> Dict[int, str]:
    ids = [uid for uid in set(user_ids) if uid]
    if not ids:
        return {}
    return {u.id: u.full_name for u in db.query(UserDB).filter(UserDB.id.in_(ids)).all()}
