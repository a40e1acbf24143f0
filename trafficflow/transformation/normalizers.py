"""
Row Normalization

Adapts the row shapes returned by the two data backends into CanonicalRow
(and ProductRow for e-commerce reports) so that nothing downstream branches
on backend identity.

BigQuery rows arrive either in REST form ({"f": [{"v": ...}, ...]}) or as
client-library Row objects; GA4 rows arrive either as REST dictionaries
({"dimensionValues": [...], "metricValues": [...]}) or as protobuf rows with
dimension_values / metric_values. Session fields are mapped positionally:
source, medium, landing page, session count.
"""

import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from .models import (
    CanonicalRow,
    DEFAULT_LANDING_PAGE,
    DEFAULT_MEDIUM,
    DEFAULT_PRODUCT_NAME,
    DEFAULT_SOURCE,
    ProductRow,
)

logger = structlog.get_logger(__name__)

# Counts are aggregated in Int64 columns
MAX_COUNT = 2**63 - 1

SESSION_FIELDS = ("source", "medium", "landing_page", "session_count")
PRODUCT_FIELDS = ("item_name", "item_revenue", "items_purchased", "items_viewed", "items_added_to_cart")


class RowKind(str, Enum):
    """Backend a raw row came from"""
    BIGQUERY = "bigquery"
    GA4 = "ga4"


def parse_session_count(value: Any) -> int:
    """
    Parse a session count, never failing.

    Integers and integral strings are taken as is, decimal strings and floats
    are truncated. Anything unparseable, non-finite, negative or beyond the
    Int64 range counts as 0.
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, int):
        count = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return 0
        count = int(value)
    else:
        text = str(value).strip()
        try:
            count = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return 0
            if not math.isfinite(number):
                return 0
            count = int(number)

    if count < 0 or count > MAX_COUNT:
        return 0
    return count


def parse_amount(value: Any) -> float:
    """Parse a monetary amount; unparseable or non-finite values are 0.0"""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def _text_or_default(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value)
    return text if text else default


def _positional(values: Any, index: int) -> Any:
    try:
        return values[index]
    except (IndexError, KeyError, TypeError):
        return None


def _cell_value(cell: Any, key: str) -> Any:
    """Read the payload of a REST cell ({"v": ...} / {"value": ...}) or proto value"""
    if cell is None:
        return None
    if isinstance(cell, Mapping):
        return cell.get(key)
    return getattr(cell, "value", None)


def _bigquery_fields(row: Any, names: Sequence[str]) -> List[Any]:
    if isinstance(row, Mapping):
        if "f" in row:
            cells = row.get("f") or []
            return [_cell_value(_positional(cells, i), "v") for i in range(len(names))]
        return [row.get(name) for name in names]
    return [_positional(row, i) for i in range(len(names))]


def _ga4_cells(row: Any) -> Tuple[Any, Any]:
    if isinstance(row, Mapping):
        dimensions = row.get("dimensionValues") or row.get("dimension_values") or []
        metrics = row.get("metricValues") or row.get("metric_values") or []
    else:
        dimensions = getattr(row, "dimension_values", None) or []
        metrics = getattr(row, "metric_values", None) or []
    return dimensions, metrics


def ga4_dimension(row: Any, index: int) -> Any:
    """Value of the index-th dimension of a GA4 row (None when absent)"""
    dimensions, _ = _ga4_cells(row)
    return _cell_value(_positional(dimensions, index), "value")


def ga4_metric(row: Any, index: int) -> Any:
    """Value of the index-th metric of a GA4 row (None when absent)"""
    _, metrics = _ga4_cells(row)
    return _cell_value(_positional(metrics, index), "value")


def _ga4_values(row: Any) -> List[Any]:
    return [ga4_dimension(row, 0), ga4_dimension(row, 1), ga4_dimension(row, 2), ga4_metric(row, 0)]


def normalize_row(row: Any, kind: RowKind) -> CanonicalRow:
    """Convert one backend row to a CanonicalRow, applying field defaults"""
    if row is None:
        return CanonicalRow()

    if kind == RowKind.BIGQUERY:
        source, medium, landing_page, count = _bigquery_fields(row, SESSION_FIELDS)
    else:
        source, medium, landing_page, count = _ga4_values(row)

    return CanonicalRow(
        source=_text_or_default(source, DEFAULT_SOURCE),
        medium=_text_or_default(medium, DEFAULT_MEDIUM),
        landing_page=_text_or_default(landing_page, DEFAULT_LANDING_PAGE),
        session_count=parse_session_count(count),
    )


def normalize_product_row(row: Any, kind: RowKind) -> ProductRow:
    """
    Convert one e-commerce report row to a ProductRow.

    BigQuery rows carry (item name, revenue, units, views, carts); GA4 rows
    carry dimensions (itemName, date) and metrics (itemRevenue,
    itemsPurchased, itemsViewed, itemsAddedToCart).
    """
    if row is None:
        return ProductRow()

    if kind == RowKind.BIGQUERY:
        name, revenue, units, views, carts = _bigquery_fields(row, PRODUCT_FIELDS)
    else:
        name = ga4_dimension(row, 0)
        revenue, units, views, carts = (ga4_metric(row, i) for i in range(4))

    return ProductRow(
        name=_text_or_default(name, DEFAULT_PRODUCT_NAME),
        revenue=parse_amount(revenue),
        units=parse_session_count(units),
        views=parse_session_count(views),
        carts=parse_session_count(carts),
    )


def normalize_breakdown(rows: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
    """Single-dimension GA4 report rows -> [{"name", "value"}] in report order"""
    breakdown = []
    for row in rows or []:
        breakdown.append({
            "name": _text_or_default(ga4_dimension(row, 0), ""),
            "value": parse_session_count(ga4_metric(row, 0)),
        })
    return breakdown


def parse_revenue(rows: Optional[Sequence[Any]]) -> float:
    """First metric of the first row as a float; 0.0 when absent or unparseable"""
    if not rows:
        return 0.0
    return parse_amount(ga4_metric(rows[0], 0))


def normalize_rows(rows: Optional[Iterable[Any]], kind: RowKind) -> List[CanonicalRow]:
    """
    Normalize a batch of backend rows.

    Args:
        rows: Raw rows from BigQuery or the GA4 Data API (None allowed)
        kind: Which backend produced the rows

    Returns:
        Canonical rows in input order
    """
    if not rows:
        return []

    normalized = [normalize_row(row, kind) for row in rows]
    logger.debug("Rows normalized", kind=kind.value, rows=len(normalized))
    return normalized


def normalize_product_rows(rows: Optional[Iterable[Any]], kind: RowKind) -> List[ProductRow]:
    """Normalize a batch of e-commerce report rows, keeping input order"""
    return [normalize_product_row(row, kind) for row in rows or []]
