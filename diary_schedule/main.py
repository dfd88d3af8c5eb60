import logging

from fastapi import FastAPI
from diary_schedule.api.routes_audit import router as audit_router
from diary_schedule.api.routes_auth import router as auth_router
from diary_schedule.api.routes_schedules import router as schedules_router
from diary_schedule.api.routes_time_slots import router as time_slots_router

from diary_schedule.core.config import settings
from diary_schedule.db import Base, engine
from diary_schedule import models  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Class Schedule Service")
Base.metadata.create_all(bind=engine)


app.include_router(auth_router)
app.include_router(time_slots_router)
app.include_router(schedules_router)
app.include_router(audit_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
