from datetime import date
from decimal import Decimal
import io

from fastapi.testclient import TestClient
from openpyxl import load_workbook
import pytest

from stageplan.db.base import Base
from stageplan.db.session import SessionLocal, engine
from stageplan.main import _request_buckets, app
from stageplan.models import Project, Stage, StageKind
from stageplan.utils.decimal_math import money


API = "/api/v1"


@pytest.fixture()
def client():
    Base.metadata.drop_all(bind=engine)
    with TestClient(app) as test_client:
        yield test_client


def _seed_project(with_stages: bool = True) -> dict[str, int]:
    with SessionLocal() as db:
        project = Project(code="P-001", name="Warehouse", currency="BRL", is_active=True)
        db.add(project)
        db.flush()
        ids = {"project": project.id}
        if with_stages:
            parent = Stage(project_id=project.id, code="1", name="Structure", level=0, position=0)
            db.add(parent)
            db.flush()
            walls = Stage(
                project_id=project.id,
                parent_id=parent.id,
                code="1.1",
                name="Walls",
                level=1,
                position=1,
                kind=StageKind.service,
                quantity=Decimal("1"),
                unit_price=money("9100.00"),
                total_value=money("9100.00"),
            )
            roof = Stage(
                project_id=project.id,
                parent_id=parent.id,
                code="1.2",
                name="Roof",
                level=1,
                position=2,
                kind=StageKind.material,
                quantity=Decimal("10"),
                unit_price=money("45.50"),
                total_value=money("455.00"),
            )
            db.add_all([walls, roof])
            db.flush()
            ids.update(parent=parent.id, walls=walls.id, roof=roof.id)
        db.commit()
    return ids


def _flush_recomputes(client: TestClient) -> None:
    client.portal.call(app.state.recompute_scheduler.flush)


def test_health(client: TestClient) -> None:
    assert client.get("/healthz").json()["ok"] is True
    assert client.get(f"{API}/health").json()["ok"] is True


def test_s_curve_reports_no_leaves_for_empty_project(client: TestClient) -> None:
    ids = _seed_project(with_stages=False)
    response = client.get(f"{API}/projects/{ids['project']}/s-curve")
    assert response.status_code == 200
    assert response.json() == {"status": "no-leaves", "points": []}


def test_s_curve_reports_no_values_before_any_schedule(client: TestClient) -> None:
    ids = _seed_project()
    response = client.get(f"{API}/projects/{ids['project']}/s-curve")
    assert response.json()["status"] == "no-values"


def test_schedule_edit_triggers_debounced_planned_recompute(client: TestClient) -> None:
    ids = _seed_project()
    url = f"{API}/projects/{ids['project']}/stages/{ids['walls']}/schedule"

    first = client.patch(url, json={"start_date": "2024-01-01", "end_date": "2024-01-31"})
    assert first.status_code == 200
    assert first.json()["recompute_scheduled"] is True
    second = client.patch(url, json={"end_date": "2024-03-31"})
    assert second.json()["stage"]["start_date"] == "2024-01-01"
    _flush_recomputes(client)

    rows = client.get(f"{API}/projects/{ids['project']}/stages/{ids['walls']}/monthly-values").json()
    assert [(row["month_key"], Decimal(row["value"])) for row in rows] == [
        ("2024-01", Decimal("3100.00")),
        ("2024-02", Decimal("2900.00")),
        ("2024-03", Decimal("3100.00")),
    ]

    curve = client.get(f"{API}/projects/{ids['project']}/s-curve").json()
    assert curve["status"] == "ok"
    assert [point["label"] for point in curve["points"]] == ["Jan/2024", "Feb/2024", "Mar/2024"]
    assert Decimal(curve["points"][-1]["planned_cumulative"]) == Decimal("9100.00")


def test_unchanged_schedule_edit_does_not_schedule(client: TestClient) -> None:
    ids = _seed_project()
    url = f"{API}/projects/{ids['project']}/stages/{ids['walls']}/schedule"
    response = client.patch(url, json={"total_value": "9100.00"})
    assert response.json()["recompute_scheduled"] is False


def test_parent_stage_schedule_cannot_be_edited(client: TestClient) -> None:
    ids = _seed_project()
    response = client.patch(
        f"{API}/projects/{ids['project']}/stages/{ids['parent']}/schedule",
        json={"start_date": "2024-01-01"},
    )
    assert response.status_code == 409


def test_inverted_schedule_range_is_rejected(client: TestClient) -> None:
    ids = _seed_project()
    response = client.patch(
        f"{API}/projects/{ids['project']}/stages/{ids['walls']}/schedule",
        json={"start_date": "2024-05-01", "end_date": "2024-04-01"},
    )
    assert response.status_code == 422


def test_stage_listing_rolls_up_parent_totals(client: TestClient) -> None:
    ids = _seed_project()
    stages = client.get(f"{API}/projects/{ids['project']}/stages").json()
    parent = next(stage for stage in stages if stage["id"] == ids["parent"])
    assert parent["is_leaf"] is False
    assert Decimal(parent["effective_total"]) == Decimal("9555.00")


def test_sync_and_explicit_recompute(client: TestClient) -> None:
    ids = _seed_project()
    with SessionLocal() as db:
        roof = db.get(Stage, ids["roof"])
        roof.start_date = date(2024, 2, 1)
        roof.end_date = date(2024, 2, 29)
        db.commit()

    synced = client.post(f"{API}/projects/{ids['project']}/planned/sync").json()
    assert synced["stages_scheduled"] == 1
    assert synced["rows_written"] == 1

    recomputed = client.post(
        f"{API}/projects/{ids['project']}/stages/{ids['roof']}/planned/recompute"
    ).json()
    assert Decimal(recomputed["total"]) == Decimal("455.00")
    assert recomputed["inserted"] == 0
    assert [row["month_key"] for row in recomputed["rows"]] == ["2024-02"]


def test_progress_lifecycle(client: TestClient) -> None:
    ids = _seed_project()
    base = f"{API}/projects/{ids['project']}"

    created = client.post(
        f"{base}/stages/{ids['roof']}/progress",
        json={"event_date": "2024-04-10", "quantity": "4"},
    )
    assert created.status_code == 201
    body = created.json()
    assert body["event"]["event_type"] == "inclusion"
    assert Decimal(body["actual"][0]["value"]) == Decimal("182.00")
    event_id = body["event"]["id"]

    rectified = client.patch(f"{base}/progress/{event_id}", json={"event_date": "2024-05-02"})
    assert rectified.status_code == 200
    assert [row["action"] for row in rectified.json()["actual"]] == ["deleted", "inserted"]

    reversed_ = client.post(f"{base}/progress/{event_id}/reverse", json={"description": "Wrong batch"})
    assert reversed_.status_code == 201
    assert reversed_.json()["event"]["reverses_event_id"] == event_id
    assert reversed_.json()["actual"][0]["action"] == "deleted"

    again = client.post(f"{base}/progress/{event_id}/reverse")
    assert again.status_code == 409

    events = client.get(f"{base}/stages/{ids['roof']}/progress").json()
    assert [event["event_type"] for event in events] == ["rectification", "reversal"]


def test_progress_on_parent_is_rejected(client: TestClient) -> None:
    ids = _seed_project()
    response = client.post(
        f"{API}/projects/{ids['project']}/stages/{ids['parent']}/progress",
        json={"event_date": "2024-04-10", "amount": "10.00"},
    )
    assert response.status_code == 409


def test_unknown_project_returns_404(client: TestClient) -> None:
    assert client.get(f"{API}/projects/999/s-curve").status_code == 404


def test_quarterly_schedule_grid(client: TestClient) -> None:
    ids = _seed_project()
    client.patch(
        f"{API}/projects/{ids['project']}/stages/{ids['walls']}/schedule",
        json={"start_date": "2024-01-01", "end_date": "2024-03-31"},
    )
    _flush_recomputes(client)

    grid = client.get(f"{API}/projects/{ids['project']}/schedule", params={"granularity": "quarterly"}).json()
    assert [column["key"] for column in grid["columns"]] == ["2024-01_2024-03"]
    parent = next(row for row in grid["rows"] if row["stage_id"] == ids["parent"])
    assert Decimal(parent["planned"]["2024-01_2024-03"]) == Decimal("9100.00")


def test_s_curve_exports(client: TestClient) -> None:
    ids = _seed_project()
    client.patch(
        f"{API}/projects/{ids['project']}/stages/{ids['walls']}/schedule",
        json={"start_date": "2024-01-01", "end_date": "2024-02-29"},
    )
    _flush_recomputes(client)

    csv_response = client.get(f"{API}/projects/{ids['project']}/exports/s-curve.csv")
    assert csv_response.status_code == 200
    assert csv_response.headers["x-scurve-status"] == "ok"
    lines = csv_response.text.strip().splitlines()
    assert lines[0].startswith("month_key,label,planned_monthly")
    assert lines[1].startswith("2024-01,Jan/2024")
    assert len(lines) == 3

    xlsx_response = client.get(f"{API}/projects/{ids['project']}/exports/s-curve.xlsx")
    sheet = load_workbook(io.BytesIO(xlsx_response.content)).active
    assert sheet.title == "SCurve"
    assert sheet.max_row == 3


def test_rate_limit_buckets_are_per_client_not_per_path(client: TestClient) -> None:
    ids = _seed_project()
    _request_buckets.clear()
    for stage_key in ("parent", "walls", "roof"):
        client.get(f"{API}/projects/{ids['project']}/stages/{ids[stage_key]}/monthly-values")
    assert list(_request_buckets) == ["testclient"]
    assert len(_request_buckets["testclient"]) == 3
