"""Event export downloads."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response

from eventra.api.middleware.rate_limit import enforce_rate_limit
from eventra.dependencies import get_export_service
from eventra.models.enums import TimeInterval
from eventra.services.export_service import ExportResult, ExportService

router = APIRouter(prefix="/export", tags=["Export"], dependencies=[Depends(enforce_rate_limit)])


def _attachment(export: ExportResult, response: Response) -> Response:
    # Rate-limit headers were set on the injected response; carry them over.
    return Response(
        content=export.data,
        media_type=export.content_type,
        headers={
            **{k: v for k, v in response.headers.items() if k != "content-length"},
            "Content-Disposition": f'attachment; filename="{export.filename}"',
        },
    )


@router.get("/events")
async def export_events(
    start_time: datetime,
    end_time: datetime,
    response: Response,
    export_format: str = Query("json", alias="format"),
    service: ExportService = Depends(get_export_service),
) -> Response:
    export = await service.export_raw_events(start_time, end_time, export_format)
    return _attachment(export, response)


@router.get("/aggregated")
async def export_aggregated(
    start_time: datetime,
    end_time: datetime,
    response: Response,
    interval: TimeInterval | None = None,
    export_format: str = Query("json", alias="format"),
    service: ExportService = Depends(get_export_service),
) -> Response:
    export = await service.export_aggregated_events(start_time, end_time, export_format, interval)
    return _attachment(export, response)
