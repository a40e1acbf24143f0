"""
Historical Traffic Flow Endpoints

POST /start-historical-job runs the whole pipeline for a date range:
fetch (BigQuery -> GA4 fallback, plus demographics and revenue) ->
normalize -> build flow graph -> assemble payload.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
import structlog

from trafficflow.config.logging import bind_property_context
from trafficflow.ingestion import GoogleBackendFactory, HistoricalDataFetcher, HistoricalRequest
from trafficflow.serving.api.dependencies import get_backend_factory, get_store, resolve_key
from trafficflow.serving.credentials import CredentialStore
from trafficflow.transformation import assemble_result, build_flow_graph

router = APIRouter()
logger = structlog.get_logger(__name__)


def _iso_date(value: str) -> str:
    try:
        date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError("must be a date in YYYY-MM-DD format")
    return value


class HistoricalJobRequest(BaseModel):
    """Historical job parameters"""
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    property_id: str = Field(alias="propertyId", min_length=1)
    dataset_id: Optional[str] = Field(default=None, alias="datasetId")
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")

    @field_validator("start_date", "end_date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _iso_date(v)

    @field_validator("dataset_id")
    @classmethod
    def blank_dataset_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def validate_range(self) -> "HistoricalJobRequest":
        if self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self


class HistoricalJobResponse(BaseModel):
    """Completed historical job"""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "completed"
    data_source: str = Field(alias="dataSource")
    data: Dict[str, Any]
    debug: Dict[str, Any]


class InspectDataRequest(BaseModel):
    """Property inspection parameters"""
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    property_id: str = Field(alias="propertyId", min_length=1)
    start_date: str = Field(default="30daysAgo", alias="startDate")
    end_date: str = Field(default="today", alias="endDate")


class InspectDataResponse(BaseModel):
    """Dimensions, metrics and sample events available on a property"""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "ok"
    available_dimensions: List[str] = Field(alias="availableDimensions")
    available_metrics: List[str] = Field(alias="availableMetrics")
    sample_event_data: List[Dict[str, Any]] = Field(alias="sampleEventData")


@router.post("/start-historical-job", response_model=HistoricalJobResponse, response_model_by_alias=True)
async def start_historical_job(
    payload: HistoricalJobRequest,
    store: CredentialStore = Depends(get_store),
    factory: GoogleBackendFactory = Depends(get_backend_factory),
) -> HistoricalJobResponse:
    """
    Build the traffic flow graph for a property and date range.

    Errors:
        401: token unknown or expired
        422: malformed dates or range
        502: every row backend failed (body carries the debug trail)
    """
    bind_property_context(payload.property_id, payload.dataset_id)
    key = await resolve_key(payload.token, store)

    fetcher = HistoricalDataFetcher(
        ga4=factory.ga4(key),
        bigquery=factory.bigquery(key) if payload.dataset_id else None,
    )
    result = await fetcher.fetch(
        HistoricalRequest(
            property_id=payload.property_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            dataset_id=payload.dataset_id,
        )
    )

    graph = build_flow_graph(result.rows)
    result.debug.calculations.append(
        f"Built flow graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges"
    )

    logger.info(
        "Historical job completed",
        data_source=result.data_source,
        nodes=len(graph.nodes),
        edges=len(graph.edges),
    )

    return HistoricalJobResponse(
        data_source=result.data_source,
        data=assemble_result(
            graph,
            result.demographics,
            result.total_revenue,
            payload.start_date,
            payload.end_date,
        ),
        debug=result.debug.to_dict(),
    )


@router.post("/inspect-data", response_model=InspectDataResponse, response_model_by_alias=True)
async def inspect_data(
    payload: InspectDataRequest,
    store: CredentialStore = Depends(get_store),
    factory: GoogleBackendFactory = Depends(get_backend_factory),
) -> InspectDataResponse:
    """List the first 20 dimensions and metrics of a property with a sample event report"""
    bind_property_context(payload.property_id)
    key = await resolve_key(payload.token, store)
    ga4 = factory.ga4(key)

    metadata = await ga4.get_metadata(payload.property_id)
    sample = await ga4.run_report(
        payload.property_id,
        payload.start_date,
        payload.end_date,
        ["eventName"],
        ["eventCount"],
        limit=10,
    )

    return InspectDataResponse(
        available_dimensions=metadata["dimensions"][:20],
        available_metrics=metadata["metrics"][:20],
        sample_event_data=sample,
    )
