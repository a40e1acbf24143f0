"""
Data Ingestion Module
"""
from .bigquery_source import BigQuerySource
from .clients import GoogleBackendFactory
from .commerce import MonthlyDashboardFetcher, MonthlyFetchResult
from .ga4_source import GA4Source
from .historical import (
    AttemptStatus,
    DebugTrail,
    FetchOutcome,
    HistoricalDataFetcher,
    HistoricalFetchResult,
    HistoricalRequest,
)

__all__ = [
    "BigQuerySource",
    "GoogleBackendFactory",
    "MonthlyDashboardFetcher",
    "MonthlyFetchResult",
    "GA4Source",
    "AttemptStatus",
    "DebugTrail",
    "FetchOutcome",
    "HistoricalDataFetcher",
    "HistoricalFetchResult",
    "HistoricalRequest",
]
