from datetime import datetime, timedelta

from database import ProcessDB, ProcessStepDB
from scripts.purge_trash import purge_trashed_processes


def _trash(db, process_id, days_ago):
    process = db.get(ProcessDB, process_id)
    process.deleted_at = datetime.utcnow() - timedelta(days=days_ago)
    db.commit()


def test_purge_only_old_trash(db, create_process):
    old = create_process()
    recent = create_process()
    alive = create_process()
    _trash(db, old["id"], 45)
    _trash(db, recent["id"], 5)

    preview = purge_trashed_processes(db, 30, dry_run=True)
    assert preview["pbdoc_numbers"] == [old["pbdoc_number"]]
    assert preview["deleted"] == 0
    assert db.get(ProcessDB, old["id"]) is not None

    result = purge_trashed_processes(db, 30, dry_run=False)
    assert result["deleted"] == 1
    db.expire_all()
    assert db.get(ProcessDB, old["id"]) is None
    assert db.query(ProcessStepDB).filter(ProcessStepDB.process_id == old["id"]).count() == 0
    assert db.get(ProcessDB, recent["id"]) is not None
    assert db.get(ProcessDB, alive["id"]) is not None
