"""
Monthly E-commerce Fetcher

Resolves the item rows behind the monthly sales dashboard:
- Rows: BigQuery export first (only when a dataset id is given), GA4 Data
  API item report as fallback, month to date (first of the month through
  yesterday).
- Realtime enrichment: active users right now, fetched concurrently and
  best effort.

Attempts are recorded in the same DebugTrail as historical jobs.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

import structlog

from trafficflow.config import get_settings
from trafficflow.exceptions import AllBackendsFailedError, ConfigurationError
from trafficflow.transformation.models import ProductRow
from trafficflow.transformation.normalizers import (
    RowKind,
    ga4_metric,
    normalize_product_rows,
    parse_session_count,
)
from .bigquery_source import BACKEND_NAME as BIGQUERY, BigQuerySource
from .ga4_source import BACKEND_NAME as GA4_DATA_API, GA4Source
from .historical import AttemptStatus, DebugTrail, best_effort, error_reason

logger = structlog.get_logger(__name__)

PRODUCT_DIMENSIONS = ("itemName", "date")
PRODUCT_METRICS = ("itemRevenue", "itemsPurchased", "itemsViewed", "itemsAddedToCart")
ACTIVE_USER_DIMENSIONS = ("unifiedScreenName",)
ACTIVE_USER_METRICS = ("activeUsers",)
REALTIME_SOURCE = "GA4 Realtime"

NO_ECOMMERCE_DATA = "Unable to fetch e-commerce data from any source"
NO_ECOMMERCE_DETAILS = (
    "Both BigQuery and the GA4 Data API failed. This likely means e-commerce "
    "tracking is not properly configured in the GA4 property."
)


def month_to_date(today: date) -> Tuple[date, date]:
    """
    (first day, last day) of the reporting month for `today`.

    The month runs through yesterday; on the first of a month that is the
    whole previous month.
    """
    yesterday = today - timedelta(days=1)
    return yesterday.replace(day=1), yesterday


@dataclass
class MonthlyFetchResult:
    """Item rows and realtime enrichment of one dashboard request"""
    rows: List[ProductRow]
    data_source: str
    start_date: str
    end_date: str
    today: str
    active_users: int = 0
    has_realtime: bool = False
    debug: DebugTrail = field(default_factory=DebugTrail)


class MonthlyDashboardFetcher:
    """
    Backend selection for the monthly sales dashboard.

    Example:
        fetcher = MonthlyDashboardFetcher(ga4=GA4Source(creds))
        result = await fetcher.fetch("123")
    """

    def __init__(
        self,
        ga4: GA4Source,
        bigquery: Optional[BigQuerySource] = None,
        row_limit: Optional[int] = None,
    ):
        self.ga4 = ga4
        self.bigquery = bigquery
        self.row_limit = row_limit or get_settings().google.product_row_limit

    async def fetch(
        self,
        property_id: str,
        dataset_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> MonthlyFetchResult:
        """
        Resolve month-to-date item rows and active users.

        Raises:
            ConfigurationError: property id missing
            AllBackendsFailedError: no row backend succeeded
        """
        if not property_id:
            raise ConfigurationError("Missing propertyId")

        today = today or datetime.now(timezone.utc).date()
        start, end = month_to_date(today)
        start_date, end_date = start.isoformat(), end.isoformat()

        trail = DebugTrail(date_range={"monthStart": start_date, "yesterday": end_date, "today": today.isoformat()})
        log = logger.bind(property_id=property_id, dataset_id=dataset_id)

        (rows, data_source), active_users = await asyncio.gather(
            self._fetch_rows(property_id, dataset_id, start_date, end_date, trail),
            best_effort(REALTIME_SOURCE, self._active_users(property_id), None, trail),
        )

        if data_source is None:
            log.error("All e-commerce backends failed", errors=trail.errors)
            raise AllBackendsFailedError(NO_ECOMMERCE_DATA, debug=trail, details=NO_ECOMMERCE_DETAILS)

        log.info("Monthly e-commerce fetch completed", data_source=data_source, rows=len(rows))
        return MonthlyFetchResult(
            rows=rows,
            data_source=data_source,
            start_date=start_date,
            end_date=end_date,
            today=today.isoformat(),
            active_users=active_users.value or 0,
            has_realtime=active_users.ok,
            debug=trail,
        )

    async def _fetch_rows(
        self,
        property_id: str,
        dataset_id: Optional[str],
        start_date: str,
        end_date: str,
        trail: DebugTrail,
    ) -> Tuple[List[ProductRow], Optional[str]]:
        if dataset_id and self.bigquery is not None:
            try:
                raw_rows = await self.bigquery.query_products(dataset_id, start_date, end_date, limit=self.row_limit)
            except Exception as e:
                logger.warning("BigQuery product query failed, falling back to GA4 Data API", error=error_reason(e))
                trail.record(BIGQUERY, AttemptStatus.FAILED, error=error_reason(e))
            else:
                rows = normalize_product_rows(raw_rows, RowKind.BIGQUERY)
                trail.record(BIGQUERY, AttemptStatus.SUCCESS, row_count=len(rows))
                return rows, BIGQUERY
        else:
            trail.record(BIGQUERY, AttemptStatus.SKIPPED)
            trail.calculations.append("BigQuery skipped: no dataset id supplied")

        try:
            raw_rows = await self.ga4.run_report(
                property_id,
                start_date,
                end_date,
                PRODUCT_DIMENSIONS,
                PRODUCT_METRICS,
                limit=self.row_limit,
            )
        except Exception as e:
            logger.error("GA4 item report failed", error=error_reason(e))
            trail.record(GA4_DATA_API, AttemptStatus.FAILED, error=error_reason(e))
            return [], None

        rows = normalize_product_rows(raw_rows, RowKind.GA4)
        trail.record(GA4_DATA_API, AttemptStatus.SUCCESS, row_count=len(rows))
        return rows, GA4_DATA_API

    async def _active_users(self, property_id: str) -> int:
        rows = await self.ga4.run_realtime_report(property_id, ACTIVE_USER_DIMENSIONS, ACTIVE_USER_METRICS)
        return sum(parse_session_count(ga4_metric(row, 0)) for row in rows)

