from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from stageplan.db.session import SessionLocal
from stageplan.services.scheduler import RecomputeScheduler


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_scheduler(request: Request) -> RecomputeScheduler:
    return request.app.state.recompute_scheduler


def get_locale(request: Request) -> str:
    return request.app.state.month_label_locale
