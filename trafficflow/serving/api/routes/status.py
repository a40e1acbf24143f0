"""
Backend Status Endpoints

Availability checks for the two data backends of a key, used by the
client before starting historical jobs.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
import structlog

from trafficflow.config.logging import bind_property_context
from trafficflow.ingestion import GoogleBackendFactory
from trafficflow.serving.api.dependencies import get_backend_factory, key_from_query
from trafficflow.serving.credentials import ServiceAccountKey

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/ga4/{property_id}")
async def ga4_status(
    property_id: str,
    key: ServiceAccountKey = Depends(key_from_query),
    factory: GoogleBackendFactory = Depends(get_backend_factory),
) -> Dict[str, Any]:
    """Data API and Realtime API availability and response times (ms)"""
    bind_property_context(property_id)
    status = await factory.ga4(key).check_status(property_id)
    logger.info(
        "GA4 status checked",
        data_api=status["dataApi"]["available"],
        realtime_api=status["realtimeApi"]["available"],
    )
    return status


@router.get("/bigquery")
async def bigquery_status(
    dataset_id: str = Query(..., alias="datasetId", min_length=1),
    key: ServiceAccountKey = Depends(key_from_query),
    factory: GoogleBackendFactory = Depends(get_backend_factory),
) -> Dict[str, Any]:
    """Dataset existence and the date span of its events_ tables"""
    return await factory.bigquery(key).dataset_status(dataset_id)
