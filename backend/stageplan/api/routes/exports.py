import csv
import io
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from sqlalchemy.orm import Session

from stageplan.api.deps import get_db, get_locale
from stageplan.services.scurve import SCurveResult, project_s_curve
from stageplan.services.stages import get_project_or_404


router = APIRouter(prefix="/projects/{project_id}/exports", tags=["exports"])

HEADERS = [
    "month_key",
    "label",
    "planned_monthly",
    "actual_monthly",
    "planned_cumulative",
    "actual_cumulative",
    "deviation_cumulative",
]


def _build_rows(result: SCurveResult) -> list[dict]:
    return [
        {
            "month_key": point.month_key,
            "label": point.label,
            "planned_monthly": point.planned_monthly,
            "actual_monthly": point.actual_monthly,
            "planned_cumulative": point.planned_cumulative,
            "actual_cumulative": point.actual_cumulative,
            "deviation_cumulative": point.deviation_cumulative,
        }
        for point in result.points
    ]


def _filename(project_id: int, extension: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"s-curve-{project_id}-{stamp}.{extension}"


@router.get("/s-curve.csv")
def export_s_curve_csv(
    project_id: int,
    db: Session = Depends(get_db),
    locale: str = Depends(get_locale),
):
    get_project_or_404(db, project_id)
    result = project_s_curve(db, project_id, locale=locale)
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=HEADERS)
    writer.writeheader()
    writer.writerows(_build_rows(result))
    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{_filename(project_id, "csv")}"',
            "X-SCurve-Status": result.status.value,
        },
    )


@router.get("/s-curve.xlsx")
def export_s_curve_excel(
    project_id: int,
    db: Session = Depends(get_db),
    locale: str = Depends(get_locale),
):
    get_project_or_404(db, project_id)
    result = project_s_curve(db, project_id, locale=locale)
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "SCurve"
    sheet.append(HEADERS)
    for row in _build_rows(result):
        sheet.append([row[key] for key in HEADERS])

    stream = io.BytesIO()
    workbook.save(stream)
    stream.seek(0)
    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f'attachment; filename="{_filename(project_id, "xlsx")}"',
            "X-SCurve-Status": result.status.value,
        },
    )
