# backend/health_checks.py

import os
import time

from sqlalchemy import text

from backend.config import APP_VERSION
from backend.db import SessionLocal, engine


def check_database():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except Exception as e:
        return f"error: {str(e)}"


def check_env(required=None):
    # A missing OPENAI_API_KEY only means fallback narratives; the narrator
    # block of the health response reports that.
    if required is None:
        required = ["DATABASE_URL", "SECRET_KEY"]
    missing = [var for var in required if not os.getenv(var)]
    return "ok" if not missing else {"missing": missing}


def check_stalled_starts():
    """Number of campaigns stuck in `starting` past the recovery timeout."""
    from backend.campaign_logic import find_stalled_starts

    db = SessionLocal()
    try:
        return len(find_stalled_starts(db))
    except Exception as e:
        return f"error: {str(e)}"
    finally:
        db.close()


def get_app_metadata(start_time):
    return {
        "service": "chronicle",
        "version": APP_VERSION,
        "uptime": f"{int(time.time() - start_time)}s",
    }
