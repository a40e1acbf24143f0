"""
E-commerce Summaries

Reductions behind the two sales panels of the dashboard:

- Realtime funnel: view_item -> add_to_cart -> purchase event counts per
  item over the last 30 minutes, top items per stage and stage-to-stage
  conversion rates.
- Monthly product performance: per-item revenue, units, views and
  add-to-carts summed over the month, ranked by revenue.

Like the flow graph, both are group-by reductions over a Polars frame with
encounter order kept, so ties come out in input order.
"""

from typing import Any, Dict, Iterable, List, Optional

import polars as pl
import structlog

from .models import DEFAULT_PRODUCT_NAME, ProductRow
from .normalizers import ga4_dimension, ga4_metric, parse_session_count

logger = structlog.get_logger(__name__)

VIEW_ITEM = "view_item"
ADD_TO_CART = "add_to_cart"
PURCHASE = "purchase"
FUNNEL_EVENTS = (VIEW_ITEM, ADD_TO_CART, PURCHASE)

FUNNEL_SCHEMA = {"event": pl.Utf8, "item": pl.Utf8, "count": pl.Int64}
PRODUCT_SCHEMA = {
    "name": pl.Utf8,
    "revenue": pl.Float64,
    "units": pl.Int64,
    "views": pl.Int64,
    "carts": pl.Int64,
}


def conversion_rate(numerator: float, denominator: float) -> float:
    """numerator / denominator as a percentage with two decimals, 0.0 on an empty denominator"""
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100, 2)


def _rate_expr(numerator: str, denominator: str) -> pl.Expr:
    return (
        pl.when(pl.col(denominator) > 0)
        .then((pl.col(numerator) / pl.col(denominator) * 100).round(2))
        .otherwise(0.0)
    )


def funnel_frame(rows: Optional[Iterable[Any]]) -> pl.DataFrame:
    """GA4 realtime rows (eventName, itemName; eventCount) -> frame of funnel events"""
    columns: Dict[str, List[Any]] = {name: [] for name in FUNNEL_SCHEMA}
    for row in rows or []:
        event = ga4_dimension(row, 0)
        if event not in FUNNEL_EVENTS:
            continue
        columns["event"].append(event)
        columns["item"].append(ga4_dimension(row, 1) or DEFAULT_PRODUCT_NAME)
        columns["count"].append(parse_session_count(ga4_metric(row, 0)))
    return pl.DataFrame(columns, schema=FUNNEL_SCHEMA)


def summarize_funnel(rows: Optional[Iterable[Any]], top_n: int = 10) -> Dict[str, Any]:
    """
    Aggregate realtime funnel events.

    Args:
        rows: GA4 realtime rows with dimensions (eventName, itemName) and metric eventCount
        top_n: Items listed per stage

    Returns:
        {"viewedProducts", "cartProducts", "purchasedProducts": [{"name", "count"}],
         "metrics": {totals and conversion rates}, "dataAvailable"}
    """
    frame = funnel_frame(rows)
    per_item = frame.group_by(["event", "item"], maintain_order=True).agg(pl.col("count").sum())

    stages: Dict[str, List[Dict[str, Any]]] = {}
    totals: Dict[str, int] = {}
    for event in FUNNEL_EVENTS:
        stage = per_item.filter(pl.col("event") == event)
        totals[event] = int(stage["count"].sum()) if stage.height else 0
        ranked = stage.sort("count", descending=True, maintain_order=True).head(top_n)
        stages[event] = [
            {"name": item, "count": count}
            for item, count in zip(ranked["item"].to_list(), ranked["count"].to_list())
        ]

    views, carts, purchases = totals[VIEW_ITEM], totals[ADD_TO_CART], totals[PURCHASE]
    return {
        "viewedProducts": stages[VIEW_ITEM],
        "cartProducts": stages[ADD_TO_CART],
        "purchasedProducts": stages[PURCHASE],
        "metrics": {
            "totalViews": views,
            "totalCarts": carts,
            "totalPurchases": purchases,
            "viewToCartRate": conversion_rate(carts, views),
            "cartToPurchaseRate": conversion_rate(purchases, carts),
            "overallConversionRate": conversion_rate(purchases, views),
        },
        "dataAvailable": frame.height > 0,
    }


def product_frame(rows: Iterable[ProductRow]) -> pl.DataFrame:
    columns: Dict[str, List[Any]] = {name: [] for name in PRODUCT_SCHEMA}
    for row in rows:
        columns["name"].append(row.name)
        columns["revenue"].append(row.revenue)
        columns["units"].append(row.units)
        columns["views"].append(row.views)
        columns["carts"].append(row.carts)
    return pl.DataFrame(columns, schema=PRODUCT_SCHEMA)


def product_stats(rows: Iterable[ProductRow]) -> pl.DataFrame:
    """
    One row per product, highest revenue first.

    Report rows of the same item (e.g. one per day) are summed. Purchases are
    the units sold; rates are percentages with two decimals.
    """
    return (
        product_frame(rows)
        .group_by("name", maintain_order=True)
        .agg(pl.col("revenue", "units", "views", "carts").sum())
        .with_columns(pl.col("units").alias("purchases"))
        .with_columns(
            _rate_expr("carts", "views").alias("viewToCartRate"),
            _rate_expr("purchases", "carts").alias("cartToPurchaseRate"),
            _rate_expr("purchases", "views").alias("overallConversionRate"),
        )
        .sort("revenue", descending=True, maintain_order=True)
    )


def summarize_products(rows: Iterable[ProductRow], top_n: int = 10) -> Dict[str, Any]:
    """
    Rank products for the monthly dashboard.

    Returns:
        {"topProducts": best top_n by revenue, "worstProducts": worst top_n
         (lowest revenue first), "metrics": totals, "productCount"}
    """
    stats = product_stats(rows)

    total_revenue = float(stats["revenue"].sum()) if stats.height else 0.0
    total_orders = int(stats["purchases"].sum()) if stats.height else 0
    total_views = int(stats["views"].sum()) if stats.height else 0

    logger.debug("Product stats computed", products=stats.height, revenue=total_revenue)
    return {
        "topProducts": stats.head(top_n).to_dicts(),
        "worstProducts": stats.tail(top_n).reverse().to_dicts(),
        "metrics": {
            "totalRevenue": round(total_revenue, 2),
            "totalOrders": total_orders,
            "avgOrderValue": round(total_revenue / total_orders, 2) if total_orders else 0.0,
            "overallConversionRate": conversion_rate(total_orders, total_views),
        },
        "productCount": stats.height,
    }
