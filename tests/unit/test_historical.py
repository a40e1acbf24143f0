"""
Unit Tests - Historical Data Fetcher
"""
import pytest

from trafficflow.exceptions import AllBackendsFailedError, ConfigurationError
from trafficflow.ingestion import AttemptStatus, DebugTrail, HistoricalDataFetcher, HistoricalRequest
from trafficflow.ingestion.historical import FLOW_DIMENSIONS
from trafficflow.transformation import build_flow_graph


@pytest.fixture
def request_with_dataset():
    return HistoricalRequest(
        property_id="123456",
        start_date="2024-01-01",
        end_date="2024-01-31",
        dataset_id="analytics_123456",
    )


@pytest.fixture
def request_without_dataset():
    return HistoricalRequest(property_id="123456", start_date="2024-01-01", end_date="2024-01-31")


class TestDebugTrail:
    """Tests for DebugTrail"""

    def test_failure_recorded_in_errors(self):
        trail = DebugTrail()
        trail.record("BigQuery", AttemptStatus.FAILED, error="permission denied")

        assert trail.errors == ["BigQuery failed: permission denied"]
        assert trail.statuses("BigQuery") == [AttemptStatus.FAILED]

    def test_to_dict_uses_camel_case(self):
        trail = DebugTrail(date_range={"startDate": "2024-01-01", "endDate": "2024-01-02"})
        trail.record("GA4 Data API", AttemptStatus.SUCCESS, row_count=3)

        data = trail.to_dict()

        assert data["dateRange"] == {"startDate": "2024-01-01", "endDate": "2024-01-02"}
        assert data["dataSources"] == [{"source": "GA4 Data API", "status": "success", "rowCount": 3}]
        assert isinstance(data["timestamp"], str)


class TestHistoricalDataFetcher:
    """Tests for backend selection and enrichment"""

    async def test_bigquery_preferred(self, fake_ga4, fake_bigquery, request_with_dataset):
        fetcher = HistoricalDataFetcher(ga4=fake_ga4, bigquery=fake_bigquery)

        result = await fetcher.fetch(request_with_dataset)

        assert result.data_source == "BigQuery"
        assert len(result.rows) == 3
        assert result.rows[2].source == "(direct)"
        assert fake_bigquery.queries[0]["dataset_id"] == "analytics_123456"
        assert fake_bigquery.queries[0]["limit"] == 100
        # GA4 flow report never requested
        assert all(call["dimensions"] != FLOW_DIMENSIONS for call in fake_ga4.calls)

    async def test_bigquery_failure_falls_back_to_ga4(self, fake_ga4, fake_bigquery, request_with_dataset):
        fake_bigquery.error = "Access Denied: Table events_*"
        fetcher = HistoricalDataFetcher(ga4=fake_ga4, bigquery=fake_bigquery)

        result = await fetcher.fetch(request_with_dataset)

        assert result.data_source == "GA4 Data API"
        assert len(result.rows) == 3
        sources = [(attempt.source, attempt.status) for attempt in result.debug.data_sources]
        assert sources.index(("BigQuery", AttemptStatus.FAILED)) < sources.index(
            ("GA4 Data API", AttemptStatus.SUCCESS)
        )
        assert "BigQuery failed: Access Denied: Table events_*" in result.debug.errors

        graph = build_flow_graph(result.rows)
        assert sum(edge.value for edge in graph.edges) == 80

    async def test_bigquery_skipped_without_dataset(self, fake_ga4, fake_bigquery, request_without_dataset):
        fetcher = HistoricalDataFetcher(ga4=fake_ga4, bigquery=fake_bigquery)

        result = await fetcher.fetch(request_without_dataset)

        assert result.data_source == "GA4 Data API"
        assert fake_bigquery.queries == []
        assert result.debug.statuses("BigQuery") == [AttemptStatus.SKIPPED]
        assert result.debug.errors == []

    async def test_flow_report_uses_row_limit(self, fake_ga4, request_without_dataset):
        fetcher = HistoricalDataFetcher(ga4=fake_ga4, row_limit=50)

        await fetcher.fetch(request_without_dataset)

        flow_calls = [call for call in fake_ga4.calls if call["dimensions"] == FLOW_DIMENSIONS]
        assert flow_calls == [
            {"property_id": "123456", "dimensions": FLOW_DIMENSIONS, "metrics": ("sessions",), "limit": 50}
        ]

    async def test_demographics_and_revenue(self, fake_ga4, request_without_dataset):
        fetcher = HistoricalDataFetcher(ga4=fake_ga4)

        result = await fetcher.fetch(request_without_dataset)

        assert result.demographics["age"] == [{"name": "25-34", "value": 60}, {"name": "35-44", "value": 20}]
        assert result.demographics["device"][0] == {"name": "mobile", "value": 65}
        assert result.total_revenue == 1234.5

    async def test_geo_breakdown_limited(self, fake_ga4, request_without_dataset):
        fetcher = HistoricalDataFetcher(ga4=fake_ga4, geo_limit=5)

        await fetcher.fetch(request_without_dataset)

        limits = {call["dimensions"]: call["limit"] for call in fake_ga4.calls}
        assert limits[("country",)] == 5
        assert limits[("userAgeBracket",)] is None

    async def test_demographic_failure_is_best_effort(self, fake_ga4, request_without_dataset):
        fake_ga4.fail.add("userGender")
        fetcher = HistoricalDataFetcher(ga4=fake_ga4)

        result = await fetcher.fetch(request_without_dataset)

        assert result.data_source == "GA4 Data API"
        assert result.demographics["gender"] == []
        assert result.demographics["age"]
        assert result.debug.statuses("GA4 Demographics (gender)") == [AttemptStatus.FAILED]
        assert any(error.startswith("GA4 Demographics (gender) failed") for error in result.debug.errors)

    async def test_revenue_failure_is_zero(self, fake_ga4, request_without_dataset):
        fake_ga4.fail.add("grossPurchaseRevenue")
        fetcher = HistoricalDataFetcher(ga4=fake_ga4)

        result = await fetcher.fetch(request_without_dataset)

        assert result.total_revenue == 0.0
        assert result.debug.statuses("GA4 Revenue") == [AttemptStatus.FAILED]

    async def test_all_backends_failed(self, fake_ga4, fake_bigquery, request_with_dataset):
        fake_bigquery.error = "dataset not found"
        fake_ga4.fail.add("sessionSource")
        fetcher = HistoricalDataFetcher(ga4=fake_ga4, bigquery=fake_bigquery)

        with pytest.raises(AllBackendsFailedError) as exc_info:
            await fetcher.fetch(request_with_dataset)

        trail = exc_info.value.debug
        assert trail.statuses("BigQuery") == [AttemptStatus.FAILED]
        assert trail.statuses("GA4 Data API") == [AttemptStatus.FAILED]
        assert len([error for error in trail.errors if "failed" in error]) >= 2

    async def test_missing_property_id(self, fake_ga4):
        fetcher = HistoricalDataFetcher(ga4=fake_ga4)

        with pytest.raises(ConfigurationError):
            await fetcher.fetch(HistoricalRequest(property_id="", start_date="2024-01-01", end_date="2024-01-02"))

        assert fake_ga4.calls == []
