from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from stageplan.models.enums import StageKind
from stageplan.models.project import Project
from stageplan.models.stage import Stage
from stageplan.services.distribution import sync_project_planned_values
from stageplan.services.progress import record_progress_event
from stageplan.utils.decimal_math import money


logger = logging.getLogger("stageplan.seed")

DEMO_PROJECT_CODE = "DEMO-HOUSE"

# (code, name, parent code, kind, start, end, quantity, unit price)
DEMO_STAGES: list[tuple[str, str, str | None, StageKind, date | None, date | None, str, str]] = [
    ("1", "Site preparation", None, StageKind.service, None, None, "0", "0"),
    ("1.1", "Clearing and levelling", "1", StageKind.service, date(2024, 1, 15), date(2024, 2, 10), "1", "4800.00"),
    ("1.2", "Building permit", "1", StageKind.fee, date(2024, 1, 8), None, "1", "1250.00"),
    ("2", "Structure", None, StageKind.service, None, None, "0", "0"),
    ("2.1", "Foundations labor", "2", StageKind.labor, date(2024, 2, 12), date(2024, 4, 5), "120", "85.00"),
    ("2.2", "Concrete and rebar", "2", StageKind.material, date(2024, 2, 20), date(2024, 5, 31), "48", "690.00"),
    ("3", "Finishing", None, StageKind.service, None, None, "0", "0"),
    ("3.1", "Electrical installation", "3", StageKind.service, date(2024, 5, 2), date(2024, 7, 19), "1", "9600.00"),
    ("3.2", "Painting", "3", StageKind.labor, None, None, "310", "22.50"),
]

# (stage code, date, amount)
DEMO_PROGRESS: list[tuple[str, date, str]] = [
    ("1.1", date(2024, 1, 31), "2900.00"),
    ("1.1", date(2024, 2, 9), "1900.00"),
    ("1.2", date(2024, 1, 8), "1250.00"),
    ("2.1", date(2024, 2, 28), "2550.00"),
    ("2.1", date(2024, 3, 29), "4675.00"),
    ("2.2", date(2024, 3, 15), "8280.00"),
]


def seed_demo_data(db: Session) -> Project | None:
    if db.scalar(select(Project).where(Project.code == DEMO_PROJECT_CODE)) is not None:
        return None

    project = Project(code=DEMO_PROJECT_CODE, name="Demo house renovation", currency="BRL", is_active=True)
    db.add(project)
    db.flush()

    by_code: dict[str, Stage] = {}
    for position, (code, name, parent_code, kind, start, end, quantity, unit_price) in enumerate(DEMO_STAGES):
        parent = by_code.get(parent_code) if parent_code else None
        stage = Stage(
            project_id=project.id,
            parent_id=parent.id if parent is not None else None,
            code=code,
            name=name,
            level=code.count("."),
            position=position,
            kind=kind,
            start_date=start,
            end_date=end,
            quantity=Decimal(quantity),
            unit_price=money(unit_price),
            total_value=money(Decimal(quantity) * Decimal(unit_price)),
        )
        db.add(stage)
        db.flush()
        by_code[code] = stage

    sync_project_planned_values(db, project.id)
    for code, event_date, amount in DEMO_PROGRESS:
        record_progress_event(db, by_code[code], event_date=event_date, amount=money(amount))

    db.commit()
    logger.info("Seeded demo project %s with %s stages.", project.code, len(by_code))
    return project
