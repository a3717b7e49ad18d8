# hubrecords/operations/health_monitor.py
# Liveness/readiness health checks (database, disk)

import os
import shutil
import time
from typing import Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from hubrecords import db

MIN_FREE_DISK_GB = float(os.getenv("MIN_FREE_DISK_GB", "1"))
STARTED_AT = time.time()


def _check_db() -> Dict:
    try:
        db.session.execute(text("SELECT 1"))
        return {"ok": True, "detail": "database reachable"}
    except SQLAlchemyError as e:
        db.session.rollback()
        return {"ok": False, "error": type(e).__name__}


def _check_disk() -> Dict:
    total, used, free = shutil.disk_usage(".")
    free_gb = free / (1024**3)
    return {"ok": free_gb >= MIN_FREE_DISK_GB, "free_gb": round(free_gb, 2), "min_required_gb": MIN_FREE_DISK_GB}


def check_health() -> Dict:
    """Aggregate overall system health."""
    database = _check_db()
    disk = _check_disk()
    overall = database["ok"] and disk["ok"]
    return {
        "status": "ok" if overall else "degraded",
        "uptime_s": round(time.time() - STARTED_AT, 1),
        "db": database,
        "disk": disk,
        "overall_ok": overall,
    }


def check_readiness() -> Dict:
    # readiness: database only
    database = _check_db()
    return {"db": database, "overall_ok": database["ok"]}
