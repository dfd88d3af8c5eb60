# diary_schedule/init_db.py
import logging

from diary_schedule.db import Base, SessionLocal, engine
from diary_schedule import models  # noqa: F401
from diary_schedule.services.sql_backend import ensure_default_slots

logger = logging.getLogger(__name__)


def init_db():
    logger.info("Creating tables in database...")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        slots = ensure_default_slots(db)
    finally:
        db.close()
    logger.info("Done. %d default time slots available.", len(slots))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
