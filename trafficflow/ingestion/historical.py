"""
Historical Data Fetcher

Resolves the session rows of a historical job and their enrichment:
- Rows: BigQuery export first (only when a dataset id is given), GA4 Data
  API as fallback. Each backend is tried exactly once, in that order.
- Demographics (age, gender, country, device) and gross purchase revenue,
  fetched concurrently with the row path. Each of these is best effort: a
  failure yields an empty series (or 0.0) instead of failing the job.

Every attempt is recorded in a DebugTrail returned to the client for the
diagnostic console. Only the failure of every attempted row backend is a
request-level error (AllBackendsFailedError, trail attached).
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from trafficflow.config import get_settings
from trafficflow.exceptions import AllBackendsFailedError, ConfigurationError
from trafficflow.transformation.models import CanonicalRow
from trafficflow.transformation.normalizers import (
    RowKind,
    normalize_breakdown,
    normalize_rows,
    parse_revenue,
)
from .bigquery_source import BACKEND_NAME as BIGQUERY, BigQuerySource
from .ga4_source import BACKEND_NAME as GA4_DATA_API, GA4Source

logger = structlog.get_logger(__name__)

FLOW_DIMENSIONS = ("sessionSource", "sessionMedium", "landingPage")
FLOW_METRICS = ("sessions",)

# (breakdown key, GA4 dimension, limited to the geo limit)
DEMOGRAPHIC_QUERIES = (
    ("age", "userAgeBracket", False),
    ("gender", "userGender", False),
    ("geo", "country", True),
    ("device", "deviceCategory", False),
)
DEMOGRAPHIC_METRIC = "activeUsers"
REVENUE_METRIC = "grossPurchaseRevenue"


class AttemptStatus(str, Enum):
    """Outcome of one backend call"""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class SourceAttempt(BaseModel):
    """One entry of the debug trail"""
    model_config = ConfigDict(populate_by_name=True)

    source: str
    status: AttemptStatus
    row_count: Optional[int] = Field(default=None, alias="rowCount")
    error: Optional[str] = None


class DebugTrail(BaseModel):
    """Structured audit of every backend attempt made for one job"""
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    date_range: Optional[Dict[str, str]] = Field(default=None, alias="dateRange")
    data_sources: List[SourceAttempt] = Field(default_factory=list, alias="dataSources")
    calculations: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    def record(
        self,
        source: str,
        status: AttemptStatus,
        row_count: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        self.data_sources.append(SourceAttempt(source=source, status=status, row_count=row_count, error=error))
        if status == AttemptStatus.FAILED:
            self.errors.append(f"{source} failed: {error}")

    def statuses(self, source: str) -> List[AttemptStatus]:
        """Statuses recorded for one source, in order"""
        return [attempt.status for attempt in self.data_sources if attempt.source == source]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class FetchOutcome:
    """Result of a best-effort sub-fetch: the value, or the default plus the reason"""
    name: str
    value: Any
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class HistoricalRequest:
    """Parameters of one historical job"""
    property_id: str
    start_date: str
    end_date: str
    dataset_id: Optional[str] = None


@dataclass
class HistoricalFetchResult:
    """Rows and enrichment resolved for one historical job"""
    rows: List[CanonicalRow]
    data_source: str
    demographics: Dict[str, List[Dict[str, Any]]]
    total_revenue: float
    debug: DebugTrail = field(default_factory=DebugTrail)


def error_reason(error: Exception) -> str:
    """Backend reason of a BackendQueryError, or the message of anything else"""
    return getattr(error, "reason", None) or str(error)


async def best_effort(name: str, operation: Awaitable[Any], default: Any, trail: DebugTrail) -> FetchOutcome:
    """
    Await an enrichment query, recording its outcome on the trail.

    A failure yields `default` (with the reason) instead of propagating.
    """
    try:
        value = await operation
    except Exception as e:
        logger.warning("Enrichment query failed", query=name, error=error_reason(e))
        trail.record(name, AttemptStatus.FAILED, error=error_reason(e))
        return FetchOutcome(name=name, value=default, error=error_reason(e))

    row_count = len(value) if isinstance(value, list) else None
    trail.record(name, AttemptStatus.SUCCESS, row_count=row_count)
    return FetchOutcome(name=name, value=value)


class HistoricalDataFetcher:
    """
    Orchestrates backend selection and enrichment for a historical job.

    Example:
        fetcher = HistoricalDataFetcher(ga4=GA4Source(creds), bigquery=BigQuerySource(creds, project))
        result = await fetcher.fetch(HistoricalRequest("123", "2024-01-01", "2024-01-31", "analytics_123"))
    """

    def __init__(
        self,
        ga4: GA4Source,
        bigquery: Optional[BigQuerySource] = None,
        row_limit: Optional[int] = None,
        geo_limit: Optional[int] = None,
    ):
        settings = get_settings()
        self.ga4 = ga4
        self.bigquery = bigquery
        self.row_limit = row_limit or settings.google.query_row_limit
        self.geo_limit = geo_limit or settings.google.geo_limit

    async def fetch(self, request: HistoricalRequest) -> HistoricalFetchResult:
        """
        Resolve rows, demographics and revenue for a job.

        The row path and the five enrichment queries run concurrently; the
        call returns once all of them have settled.

        Raises:
            ConfigurationError: property id missing
            AllBackendsFailedError: no row backend succeeded
        """
        if not request.property_id:
            raise ConfigurationError("Missing propertyId")

        trail = DebugTrail(date_range={"startDate": request.start_date, "endDate": request.end_date})
        log = logger.bind(property_id=request.property_id, dataset_id=request.dataset_id)
        log.info("Historical fetch started", start_date=request.start_date, end_date=request.end_date)

        (rows, data_source), demographics, revenue = await asyncio.gather(
            self._fetch_rows(request, trail),
            self._fetch_demographics(request, trail),
            self._fetch_revenue(request, trail),
        )

        if data_source is None:
            log.error("All row backends failed", errors=trail.errors)
            raise AllBackendsFailedError("Unable to fetch traffic data from any source", debug=trail)

        log.info("Historical fetch completed", data_source=data_source, rows=len(rows), revenue=revenue)
        return HistoricalFetchResult(
            rows=rows,
            data_source=data_source,
            demographics=demographics,
            total_revenue=revenue,
            debug=trail,
        )

    async def _fetch_rows(
        self,
        request: HistoricalRequest,
        trail: DebugTrail,
    ) -> Tuple[List[CanonicalRow], Optional[str]]:
        if request.dataset_id and self.bigquery is not None:
            try:
                raw_rows = await self.bigquery.query_sessions(
                    request.dataset_id, request.start_date, request.end_date, limit=self.row_limit
                )
            except Exception as e:
                logger.warning(
                    "BigQuery query failed, falling back to GA4 Data API",
                    error=error_reason(e),
                    error_type=type(e).__name__,
                )
                trail.record(BIGQUERY, AttemptStatus.FAILED, error=error_reason(e))
            else:
                rows = normalize_rows(raw_rows, RowKind.BIGQUERY)
                trail.record(BIGQUERY, AttemptStatus.SUCCESS, row_count=len(rows))
                trail.calculations.append(f"Normalized {len(rows)} rows from {BIGQUERY}")
                return rows, BIGQUERY
        else:
            trail.record(BIGQUERY, AttemptStatus.SKIPPED)
            trail.calculations.append("BigQuery skipped: no dataset id supplied")

        try:
            raw_rows = await self.ga4.run_report(
                request.property_id,
                request.start_date,
                request.end_date,
                FLOW_DIMENSIONS,
                FLOW_METRICS,
                limit=self.row_limit,
            )
        except Exception as e:
            logger.error("GA4 Data API report failed", error=error_reason(e), error_type=type(e).__name__)
            trail.record(GA4_DATA_API, AttemptStatus.FAILED, error=error_reason(e))
            return [], None

        rows = normalize_rows(raw_rows, RowKind.GA4)
        trail.record(GA4_DATA_API, AttemptStatus.SUCCESS, row_count=len(rows))
        trail.calculations.append(f"Normalized {len(rows)} rows from {GA4_DATA_API}")
        return rows, GA4_DATA_API

    async def _breakdown(self, request: HistoricalRequest, dimension: str, limited: bool) -> List[Dict[str, Any]]:
        rows = await self.ga4.run_report(
            request.property_id,
            request.start_date,
            request.end_date,
            [dimension],
            [DEMOGRAPHIC_METRIC],
            limit=self.geo_limit if limited else None,
        )
        return normalize_breakdown(rows)

    async def _fetch_demographics(
        self,
        request: HistoricalRequest,
        trail: DebugTrail,
    ) -> Dict[str, List[Dict[str, Any]]]:
        outcomes = await asyncio.gather(
            *(
                best_effort(
                    f"GA4 Demographics ({key})",
                    self._breakdown(request, dimension, limited),
                    [],
                    trail,
                )
                for key, dimension, limited in DEMOGRAPHIC_QUERIES
            )
        )
        return {key: outcome.value for (key, _, _), outcome in zip(DEMOGRAPHIC_QUERIES, outcomes)}

    async def _revenue(self, request: HistoricalRequest) -> float:
        rows = await self.ga4.run_report(
            request.property_id,
            request.start_date,
            request.end_date,
            [],
            [REVENUE_METRIC],
        )
        return parse_revenue(rows)

    async def _fetch_revenue(self, request: HistoricalRequest, trail: DebugTrail) -> float:
        outcome = await best_effort("GA4 Revenue", self._revenue(request), 0.0, trail)
        return outcome.value
