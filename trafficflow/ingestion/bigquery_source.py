"""
BigQuery Session Source

Reads the GA4 BigQuery export (date-sharded events_YYYYMMDD tables) and
aggregates it into (source, medium, landing page, session count) rows.

The client library is synchronous; every call runs in a worker thread so
the event loop stays free for the concurrent GA4 requests.
"""

import asyncio
import re
from datetime import date
from typing import Any, Dict, List, Optional

import structlog
from google.cloud import bigquery

from trafficflow.exceptions import BackendQueryError, ConfigurationError

logger = structlog.get_logger(__name__)

BACKEND_NAME = "BigQuery"

# BigQuery identifiers are interpolated into the FROM clause, so restrict them
_PROJECT_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9\-.:]*$")
_DATASET_ID_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,1024}$")

# Date-sharded daily export tables; intraday tables are not counted
_DAILY_TABLE_PATTERN = re.compile(r"^events_(\d{8})$")

SESSION_FLOW_QUERY = """
WITH session_data AS (
    SELECT
        user_pseudo_id,
        (SELECT value.int_value FROM UNNEST(event_params) WHERE key = 'ga_session_id') AS session_id,
        MAX((SELECT value.string_value FROM UNNEST(event_params) WHERE key = 'source')) AS source,
        MAX((SELECT value.string_value FROM UNNEST(event_params) WHERE key = 'medium')) AS medium,
        ARRAY_AGG(
            (SELECT value.string_value FROM UNNEST(event_params) WHERE key = 'page_location')
            ORDER BY event_timestamp ASC LIMIT 1
        )[OFFSET(0)] AS landing_page
    FROM `{project_id}.{dataset_id}.events_*`
    WHERE _TABLE_SUFFIX BETWEEN @start_suffix AND @end_suffix
    GROUP BY user_pseudo_id, session_id
)
SELECT
    source,
    medium,
    landing_page,
    COUNT(*) AS session_count
FROM session_data
WHERE landing_page IS NOT NULL
GROUP BY 1, 2, 3
ORDER BY 4 DESC
LIMIT {limit}
"""

# Item-level funnel totals; revenue and units only count on purchase events
PRODUCT_PERFORMANCE_QUERY = """
SELECT
    item.item_name AS item_name,
    SUM(IF(event_name = 'purchase', item.item_revenue, 0)) AS item_revenue,
    SUM(IF(event_name = 'purchase', item.quantity, 0)) AS items_purchased,
    COUNTIF(event_name = 'view_item') AS items_viewed,
    COUNTIF(event_name = 'add_to_cart') AS items_added_to_cart
FROM `{project_id}.{dataset_id}.events_*`, UNNEST(items) AS item
WHERE _TABLE_SUFFIX BETWEEN @start_suffix AND @end_suffix
    AND event_name IN ('view_item', 'add_to_cart', 'purchase')
GROUP BY 1
ORDER BY 2 DESC
LIMIT {limit}
"""


def table_suffix(day: str) -> str:
    """Convert YYYY-MM-DD to the events_ table suffix YYYYMMDD"""
    return date.fromisoformat(day).strftime("%Y%m%d")


def _validate_identifiers(project_id: str, dataset_id: str) -> None:
    if not _PROJECT_ID_PATTERN.match(project_id or ""):
        raise ConfigurationError(f"Invalid BigQuery project id: {project_id!r}")
    if not _DATASET_ID_PATTERN.match(dataset_id or ""):
        raise ConfigurationError(f"Invalid BigQuery dataset id: {dataset_id!r}")


def build_session_query(project_id: str, dataset_id: str, limit: int = 100) -> str:
    """Render the session flow SQL for one export dataset"""
    _validate_identifiers(project_id, dataset_id)
    return SESSION_FLOW_QUERY.format(project_id=project_id, dataset_id=dataset_id, limit=int(limit))


def build_product_query(project_id: str, dataset_id: str, limit: int = 10000) -> str:
    """Render the per-item e-commerce SQL for one export dataset"""
    _validate_identifiers(project_id, dataset_id)
    return PRODUCT_PERFORMANCE_QUERY.format(project_id=project_id, dataset_id=dataset_id, limit=int(limit))


def row_to_rest(row: Any) -> Dict[str, List[Dict[str, Any]]]:
    """Lay a client-library Row out in the REST tabledata shape {"f": [{"v": ...}]}"""
    return {"f": [{"v": value} for value in row.values()]}


class BigQuerySource:
    """
    GA4 export reader bound to one service account.

    Example:
        source = BigQuerySource(credentials, project_id="my-project")
        rows = await source.query_sessions("analytics_123", "2024-01-01", "2024-01-31")
    """

    name = BACKEND_NAME

    def __init__(
        self,
        credentials: Any,
        project_id: str,
        location: Optional[str] = None,
        client: Optional[bigquery.Client] = None,
    ):
        self.credentials = credentials
        self.project_id = project_id
        self.location = location
        self._client = client

    def _get_client(self) -> bigquery.Client:
        if self._client is None:
            self._client = bigquery.Client(
                project=self.project_id,
                credentials=self.credentials,
                location=self.location,
            )
        return self._client

    def _run_query(self, sql: str, parameters: List[bigquery.ScalarQueryParameter]) -> List[Dict[str, Any]]:
        job_config = bigquery.QueryJobConfig(query_parameters=parameters, use_legacy_sql=False)
        job = self._get_client().query(sql, job_config=job_config)
        return [row_to_rest(row) for row in job.result()]

    async def query_sessions(
        self,
        dataset_id: str,
        start_date: str,
        end_date: str,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """
        Aggregate sessions per (source, medium, landing page) for a date range.

        Args:
            dataset_id: GA4 export dataset (e.g. analytics_123456789)
            start_date: First day, YYYY-MM-DD
            end_date: Last day, YYYY-MM-DD
            limit: Max rows returned (highest session counts first)

        Returns:
            REST-shaped rows: {"f": [{"v": source}, {"v": medium}, {"v": landing_page}, {"v": count}]}

        Raises:
            ConfigurationError: project or dataset id is not a valid identifier
            BackendQueryError: the query failed
        """
        sql = build_session_query(self.project_id, dataset_id, limit)
        parameters = [
            bigquery.ScalarQueryParameter("start_suffix", "STRING", table_suffix(start_date)),
            bigquery.ScalarQueryParameter("end_suffix", "STRING", table_suffix(end_date)),
        ]

        logger.info("Executing BigQuery session query", project_id=self.project_id, dataset_id=dataset_id)
        try:
            rows = await asyncio.to_thread(self._run_query, sql, parameters)
        except Exception as e:
            logger.warning("BigQuery session query failed", dataset_id=dataset_id, error=str(e))
            raise BackendQueryError(self.name, str(e)) from e

        logger.info("BigQuery rows returned", rows=len(rows))
        return rows

    async def query_products(
        self,
        dataset_id: str,
        start_date: str,
        end_date: str,
        limit: int = 10000,
    ) -> List[Dict[str, Any]]:
        """
        Per-item revenue, units, views and add-to-carts for a date range.

        Returns:
            REST-shaped rows: name, revenue, units, views, carts (highest revenue first)

        Raises:
            ConfigurationError: project or dataset id is not a valid identifier
            BackendQueryError: the query failed (e.g. no items in the export)
        """
        sql = build_product_query(self.project_id, dataset_id, limit)
        parameters = [
            bigquery.ScalarQueryParameter("start_suffix", "STRING", table_suffix(start_date)),
            bigquery.ScalarQueryParameter("end_suffix", "STRING", table_suffix(end_date)),
        ]

        logger.info("Executing BigQuery product query", project_id=self.project_id, dataset_id=dataset_id)
        try:
            rows = await asyncio.to_thread(self._run_query, sql, parameters)
        except Exception as e:
            logger.warning("BigQuery product query failed", dataset_id=dataset_id, error=str(e))
            raise BackendQueryError(self.name, str(e)) from e

        return rows

    def _list_datasets(self) -> List[Dict[str, str]]:
        client = self._get_client()
        datasets = []
        for item in client.list_datasets(project=self.project_id):
            dataset = client.get_dataset(item.reference)
            datasets.append({"id": item.dataset_id, "location": dataset.location or "US"})
        return datasets

    async def list_datasets(self) -> List[Dict[str, str]]:
        """List datasets of the project as {"id", "location"}"""
        try:
            return await asyncio.to_thread(self._list_datasets)
        except Exception as e:
            raise BackendQueryError(self.name, str(e)) from e

    def _dataset_status(self, dataset_id: str) -> Dict[str, Any]:
        client = self._get_client()
        dataset_ids = {item.dataset_id for item in client.list_datasets(project=self.project_id)}
        if dataset_id not in dataset_ids:
            return {
                "available": False,
                "error": f"Dataset {dataset_id} not found in project {self.project_id}",
            }

        matches = (
            _DAILY_TABLE_PATTERN.match(table.table_id)
            for table in client.list_tables(f"{self.project_id}.{dataset_id}")
        )
        dates = sorted(match.group(1) for match in matches if match)
        return {
            "available": True,
            "dataset": dataset_id,
            "projectId": self.project_id,
            "tables": {
                "count": len(dates),
                "oldestDate": dates[0] if dates else None,
                "newestDate": dates[-1] if dates else None,
            },
        }

    async def dataset_status(self, dataset_id: str) -> Dict[str, Any]:
        """Check that an export dataset exists and summarise its events_ tables"""
        if not _DATASET_ID_PATTERN.match(dataset_id or ""):
            raise ConfigurationError(f"Invalid BigQuery dataset id: {dataset_id!r}")
        try:
            return await asyncio.to_thread(self._dataset_status, dataset_id)
        except Exception as e:
            raise BackendQueryError(self.name, str(e)) from e
