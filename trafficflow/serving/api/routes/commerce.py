"""
E-commerce Panel Endpoints

GET /ecommerce-funnel: realtime view_item -> add_to_cart -> purchase funnel.
GET /monthly-dashboard: month-to-date product ranking with realtime
active users.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
import structlog

from trafficflow.config import get_settings
from trafficflow.config.logging import bind_property_context
from trafficflow.ingestion import GoogleBackendFactory, MonthlyDashboardFetcher
from trafficflow.serving.api.dependencies import get_backend_factory, key_from_query
from trafficflow.serving.credentials import ServiceAccountKey
from trafficflow.transformation import (
    FUNNEL_EVENTS,
    summarize_funnel,
    summarize_products,
)

router = APIRouter()
logger = structlog.get_logger(__name__)

FUNNEL_DIMENSIONS = ("eventName", "itemName")
FUNNEL_METRICS = ("eventCount",)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FunnelItem(_CamelModel):
    """Event count of one item at one funnel stage"""
    name: str
    count: int


class FunnelMetrics(_CamelModel):
    total_views: int = Field(alias="totalViews")
    total_carts: int = Field(alias="totalCarts")
    total_purchases: int = Field(alias="totalPurchases")
    view_to_cart_rate: float = Field(alias="viewToCartRate")
    cart_to_purchase_rate: float = Field(alias="cartToPurchaseRate")
    overall_conversion_rate: float = Field(alias="overallConversionRate")


class FunnelResponse(_CamelModel):
    """Realtime e-commerce funnel over the last 30 minutes"""
    viewed_products: List[FunnelItem] = Field(alias="viewedProducts")
    cart_products: List[FunnelItem] = Field(alias="cartProducts")
    purchased_products: List[FunnelItem] = Field(alias="purchasedProducts")
    metrics: FunnelMetrics
    data_available: bool = Field(alias="dataAvailable")
    row_count: int = Field(alias="rowCount")


class ProductPerformance(_CamelModel):
    """Month-to-date totals and conversion rates of one product"""
    name: str
    revenue: float
    units: int
    views: int
    carts: int
    purchases: int
    view_to_cart_rate: float = Field(alias="viewToCartRate")
    cart_to_purchase_rate: float = Field(alias="cartToPurchaseRate")
    overall_conversion_rate: float = Field(alias="overallConversionRate")


class DashboardPeriod(_CamelModel):
    start: str
    end: str
    today: str
    data_source: str = Field(alias="dataSource")
    has_realtime_enrichment: bool = Field(alias="hasRealtimeEnrichment")


class DashboardMetrics(_CamelModel):
    total_revenue: float = Field(alias="totalRevenue")
    total_orders: int = Field(alias="totalOrders")
    avg_order_value: float = Field(alias="avgOrderValue")
    overall_conversion_rate: float = Field(alias="overallConversionRate")
    active_users_now: int = Field(alias="activeUsersNow")


class MonthlyDashboardResponse(_CamelModel):
    """Best and worst sellers of the month with store-wide totals"""
    period: DashboardPeriod
    top_products: List[ProductPerformance] = Field(alias="topProducts")
    worst_products: List[ProductPerformance] = Field(alias="worstProducts")
    metrics: DashboardMetrics
    debug: Dict[str, Any]


@router.get("/ecommerce-funnel", response_model=FunnelResponse, response_model_by_alias=True)
async def ecommerce_funnel(
    property_id: str = Query(..., alias="propertyId", min_length=1),
    key: ServiceAccountKey = Depends(key_from_query),
    factory: GoogleBackendFactory = Depends(get_backend_factory),
) -> FunnelResponse:
    """
    Items viewed, added to cart and purchased in the last 30 minutes.

    Errors:
        401: token unknown or expired
        502: the Realtime API rejected the report (e.g. no e-commerce tracking)
    """
    bind_property_context(property_id)
    rows = await factory.ga4(key).run_realtime_report(
        property_id,
        FUNNEL_DIMENSIONS,
        FUNNEL_METRICS,
        event_names=FUNNEL_EVENTS,
    )

    summary = summarize_funnel(rows, top_n=get_settings().google.top_products)
    logger.info(
        "E-commerce funnel computed",
        rows=len(rows),
        views=summary["metrics"]["totalViews"],
        purchases=summary["metrics"]["totalPurchases"],
    )
    return FunnelResponse(**summary, row_count=len(rows))


@router.get("/monthly-dashboard", response_model=MonthlyDashboardResponse, response_model_by_alias=True)
async def monthly_dashboard(
    property_id: str = Query(..., alias="propertyId", min_length=1),
    dataset_id: Optional[str] = Query(default=None, alias="datasetId"),
    key: ServiceAccountKey = Depends(key_from_query),
    factory: GoogleBackendFactory = Depends(get_backend_factory),
) -> MonthlyDashboardResponse:
    """
    Month-to-date product ranking by revenue.

    Errors:
        401: token unknown or expired
        502: both item backends failed (body carries the debug trail)
    """
    dataset_id = dataset_id or None
    bind_property_context(property_id, dataset_id)

    fetcher = MonthlyDashboardFetcher(
        ga4=factory.ga4(key),
        bigquery=factory.bigquery(key) if dataset_id else None,
    )
    result = await fetcher.fetch(property_id, dataset_id)

    summary = summarize_products(result.rows, top_n=get_settings().google.top_products)
    result.debug.calculations.append(f"Processed {summary['productCount']} unique products")
    result.debug.calculations.append(
        "Total revenue: {totalRevenue}, total orders: {totalOrders}, "
        "avg order value: {avgOrderValue}".format(**summary["metrics"])
    )

    return MonthlyDashboardResponse(
        period=DashboardPeriod(
            start=result.start_date,
            end=result.end_date,
            today=result.today,
            data_source=result.data_source,
            has_realtime_enrichment=result.has_realtime,
        ),
        top_products=summary["topProducts"],
        worst_products=summary["worstProducts"],
        metrics=DashboardMetrics(**summary["metrics"], active_users_now=result.active_users),
        debug=result.debug.to_dict(),
    )
