"""
GA4 Data API Source

Thin async wrapper over the GA4 Data API (v1beta) used for the traffic flow
fallback, demographic breakdowns, revenue, realtime snapshots and property
inspection. Responses are flattened to REST-shaped dictionaries
({"dimensionValues": [{"value"}], "metricValues": [{"value"}]}) so they can
be normalized, logged and returned as JSON without protobuf types leaking out.
"""

import time
from typing import Any, Dict, List, Optional, Sequence

import structlog
from google.analytics.data_v1beta import BetaAnalyticsDataAsyncClient
from google.analytics.data_v1beta.types import (
    DateRange,
    Dimension,
    Filter,
    FilterExpression,
    GetMetadataRequest,
    Metric,
    RunRealtimeReportRequest,
    RunReportRequest,
)

from trafficflow.exceptions import BackendQueryError

logger = structlog.get_logger(__name__)

BACKEND_NAME = "GA4 Data API"


def row_to_rest(row: Any) -> Dict[str, List[Dict[str, str]]]:
    """Flatten a protobuf report row"""
    return {
        "dimensionValues": [{"value": value.value} for value in row.dimension_values],
        "metricValues": [{"value": value.value} for value in row.metric_values],
    }


def property_name(property_id: str) -> str:
    return f"properties/{property_id}"


def event_name_filter(event_names: Sequence[str]) -> FilterExpression:
    """Dimension filter keeping only the given eventName values"""
    return FilterExpression(
        filter=Filter(
            field_name="eventName",
            in_list_filter=Filter.InListFilter(values=list(event_names)),
        )
    )


class GA4Source:
    """
    GA4 Data API client bound to one service account.

    Example:
        source = GA4Source(credentials)
        rows = await source.run_report("123", "2024-01-01", "2024-01-31",
                                       ["sessionSource"], ["sessions"])
    """

    name = BACKEND_NAME

    def __init__(self, credentials: Any, client: Optional[BetaAnalyticsDataAsyncClient] = None):
        self.credentials = credentials
        self._client = client

    def _get_client(self) -> BetaAnalyticsDataAsyncClient:
        # Created lazily: the async transport binds to the running event loop
        if self._client is None:
            self._client = BetaAnalyticsDataAsyncClient(credentials=self.credentials)
        return self._client

    async def run_report(
        self,
        property_id: str,
        start_date: str,
        end_date: str,
        dimensions: Sequence[str],
        metrics: Sequence[str],
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a core report.

        Raises:
            BackendQueryError: the API call failed
        """
        request_args = dict(
            property=property_name(property_id),
            date_ranges=[DateRange(start_date=start_date, end_date=end_date)],
            dimensions=[Dimension(name=name) for name in dimensions],
            metrics=[Metric(name=name) for name in metrics],
        )
        if limit:
            request_args["limit"] = limit

        logger.debug(
            "Requesting GA4 report",
            property_id=property_id,
            start_date=start_date,
            end_date=end_date,
            dimensions=list(dimensions),
            metrics=list(metrics),
        )
        try:
            response = await self._get_client().run_report(request=RunReportRequest(**request_args))
        except Exception as e:
            raise BackendQueryError(self.name, str(e)) from e

        rows = [row_to_rest(row) for row in response.rows]
        logger.debug("GA4 report rows", property_id=property_id, rows=len(rows))
        return rows

    async def run_realtime_report(
        self,
        property_id: str,
        dimensions: Sequence[str],
        metrics: Sequence[str],
        limit: Optional[int] = None,
        event_names: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Run a realtime report (last 30 minutes), optionally restricted to some events"""
        request_args = dict(
            property=property_name(property_id),
            dimensions=[Dimension(name=name) for name in dimensions],
            metrics=[Metric(name=name) for name in metrics],
        )
        if limit:
            request_args["limit"] = limit
        if event_names:
            request_args["dimension_filter"] = event_name_filter(event_names)

        try:
            response = await self._get_client().run_realtime_report(
                request=RunRealtimeReportRequest(**request_args)
            )
        except Exception as e:
            raise BackendQueryError("GA4 Realtime API", str(e)) from e

        return [row_to_rest(row) for row in response.rows]

    async def get_metadata(self, property_id: str) -> Dict[str, List[str]]:
        """API names of the dimensions and metrics available on a property"""
        try:
            metadata = await self._get_client().get_metadata(
                request=GetMetadataRequest(name=f"{property_name(property_id)}/metadata")
            )
        except Exception as e:
            raise BackendQueryError(self.name, str(e)) from e

        return {
            "dimensions": [dimension.api_name for dimension in metadata.dimensions],
            "metrics": [metric.api_name for metric in metadata.metrics],
        }

    async def check_status(self, property_id: str) -> Dict[str, Any]:
        """
        Query the Data API and the Realtime API with one-row reports.

        Each API is reported independently; a failing API is marked
        unavailable with its error instead of failing the whole check.
        """
        status: Dict[str, Any] = {}

        started = time.perf_counter()
        try:
            rows = await self.run_report(property_id, "7daysAgo", "today", ["date"], ["activeUsers"], limit=1)
            status["dataApi"] = {
                "available": True,
                "responseTime": round((time.perf_counter() - started) * 1000),
                "hasData": len(rows) > 0,
            }
        except BackendQueryError as e:
            logger.warning("GA4 Data API check failed", property_id=property_id, error=e.reason)
            status["dataApi"] = {"available": False, "error": e.reason}

        started = time.perf_counter()
        try:
            rows = await self.run_realtime_report(property_id, ["unifiedScreenName"], ["activeUsers"], limit=1)
            status["realtimeApi"] = {
                "available": True,
                "responseTime": round((time.perf_counter() - started) * 1000),
                "hasData": len(rows) > 0,
            }
        except BackendQueryError as e:
            logger.warning("GA4 Realtime API check failed", property_id=property_id, error=e.reason)
            status["realtimeApi"] = {"available": False, "error": e.reason}

        return status
