"""
Realtime Snapshot Endpoint
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from trafficflow.config.logging import bind_property_context
from trafficflow.ingestion import GoogleBackendFactory
from trafficflow.serving.api.dependencies import get_backend_factory, key_from_query
from trafficflow.serving.credentials import ServiceAccountKey
from trafficflow.transformation import parse_session_count

router = APIRouter()

REALTIME_DIMENSIONS = ("unifiedScreenName", "country", "deviceCategory")
REALTIME_METRICS = ("activeUsers",)


class RealtimeRow(BaseModel):
    """Active users on one screen, from one country and device"""
    model_config = ConfigDict(populate_by_name=True)

    screen: str
    country: str
    device: str
    active_users: int = Field(alias="activeUsers")


class RealtimeResponse(BaseModel):
    """Active users over the last 30 minutes"""
    model_config = ConfigDict(populate_by_name=True)

    rows: List[RealtimeRow]
    row_count: int = Field(alias="rowCount")
    total_active_users: int = Field(alias="totalActiveUsers")


def _realtime_row(row: Dict[str, Any]) -> RealtimeRow:
    dimensions = [value.get("value") or "" for value in row.get("dimensionValues", [])]
    dimensions += [""] * (len(REALTIME_DIMENSIONS) - len(dimensions))
    metrics = row.get("metricValues") or [{}]
    return RealtimeRow(
        screen=dimensions[0],
        country=dimensions[1],
        device=dimensions[2],
        active_users=parse_session_count(metrics[0].get("value")),
    )


@router.get("", response_model=RealtimeResponse, response_model_by_alias=True)
async def get_realtime(
    property_id: str = Query(..., alias="propertyId", min_length=1),
    key: ServiceAccountKey = Depends(key_from_query),
    factory: GoogleBackendFactory = Depends(get_backend_factory),
) -> RealtimeResponse:
    """Realtime active users by screen, country and device"""
    bind_property_context(property_id)
    raw_rows = await factory.ga4(key).run_realtime_report(property_id, REALTIME_DIMENSIONS, REALTIME_METRICS)
    rows = [_realtime_row(row) for row in raw_rows]
    return RealtimeResponse(
        rows=rows,
        row_count=len(rows),
        total_active_users=sum(row.active_users for row in rows),
    )
