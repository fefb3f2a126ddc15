#!/usr/bin/env python3
"""
Populate a development database with demo users and processes.

Reference data (departments, modalities, sources, admin) is seeded first. Users and
processes that already exist are left untouched, so the script can be re-run.

Usage:
    python scripts/seed_demo_data.py --dry-run
    python scripts/seed_demo_data.py --confirm
"""

import argparse
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import (
    SessionLocal,
    BiddingModalityDB,
    ProcessDB,
    ResourceSourceDB,
    UserDB,
    FLOW_DEPARTMENTS,
    create_tables,
    seed_reference_data,
)
from core.security import hash_password
from services.workflow.engine import create_process

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo123"

DEMO_USERS = [
    ("maria.souza", "Maria Souza", FLOW_DEPARTMENTS[0][0]),
    ("joao.lima", "João Lima", FLOW_DEPARTMENTS[1][0]),
    ("ana.costa", "Ana Costa", FLOW_DEPARTMENTS[2][0]),
    ("pedro.alves", "Pedro Alves", FLOW_DEPARTMENTS[3][0]),
]

# (pbdoc, description, modality, source code, responsible, priority, value, deadline offset in days)
DEMO_PROCESSES = [
    ("PBDOC-2025-00101", "Aquisição de gêneros alimentícios para unidades prisionais",
     "Pregão Eletrônico", "500", "joao.lima", "high", 1250000.00, 20),
    ("PBDOC-2025-00102", "Contratação de serviço de manutenção predial",
     "Concorrência", "700", "ana.costa", "medium", 830000.00, 45),
    ("PBDOC-2025-00103", "Compra emergencial de colchões",
     "Dispensa", "500", "maria.souza", "high", 95000.00, -2),
    ("PBDOC-2025-00104", "Aquisição de viaturas para escolta",
     "Pregão Eletrônico", "760", "pedro.alves", "low", 2100000.00, 60),
    ("PBDOC-2025-00105", "Licença de software de gestão penitenciária",
     "Inexigibilidade", "700", "joao.lima", "medium", 310000.00, 10),
]


def seed_users(db, dry_run: bool) -> dict:
    users = {}
    for username, full_name, department in DEMO_USERS:
        user = db.query(UserDB).filter(UserDB.username == username).first()
        if user is None:
            logger.info(f"  {'Would create' if dry_run else 'Creating'} user {username} ({department})")
            if dry_run:
                continue
            user = UserDB(
                username=username,
                password_hash=hash_password(DEMO_PASSWORD),
                full_name=full_name,
                email=f"{username}@seap.pb.gov.br",
                department=department,
                role="common",
                is_active=True,
            )
            db.add(user)
            db.flush()
        users[username] = user
    if not dry_run:
        db.commit()
    return users


def seed_processes(db, users: dict, dry_run: bool) -> int:
    admin = db.query(UserDB).filter(UserDB.role == "admin").order_by(UserDB.id).first()
    modalities = {m.name: m.id for m in db.query(BiddingModalityDB).all()}
    sources = {s.code: s.id for s in db.query(ResourceSourceDB).all()}

    created = 0
    for pbdoc, description, modality, source, responsible, priority, value, offset in DEMO_PROCESSES:
        if db.query(ProcessDB).filter(ProcessDB.pbdoc_number == pbdoc).first():
            logger.info(f"  Skipping {pbdoc} (already exists)")
            continue
        if dry_run:
            logger.info(f"  Would create process {pbdoc} ({modality})")
            created += 1
            continue
        create_process(db, admin, {
            "pbdoc_number": pbdoc,
            "description": description,
            "modality_id": modalities.get(modality),
            "source_id": sources.get(source),
            "responsible_id": users[responsible].id,
            "priority": priority,
            "estimated_value": value,
            "central_de_compras": "CPL/SEAP",
            "deadline": datetime.utcnow() + timedelta(days=offset),
        })
        created += 1
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed demo users and processes")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be created without making changes")
    parser.add_argument("--confirm", action="store_true", help="Actually write the demo data")
    args = parser.parse_args()

    if not args.dry_run and not args.confirm:
        logger.error("Must specify --dry-run to preview OR --confirm to execute.")
        sys.exit(1)

    create_tables()
    db = SessionLocal()
    try:
        seed_reference_data(db)
        users = seed_users(db, args.dry_run)
        created = seed_processes(db, users, args.dry_run)
        logger.info("=" * 60)
        verb = "Would create" if args.dry_run else "Created"
        logger.info(f"{verb} {created} demo process(es). Demo password: {DEMO_PASSWORD}")
        logger.info("=" * 60)
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        db.rollback()
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
