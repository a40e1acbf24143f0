"""
Flow Graph Builder

Aggregates canonical session rows into the bipartite traffic flow graph:
source category nodes (layer 0) -> landing page group nodes (layer 1).

The aggregation is a set of group-by reductions over one immutable Polars
frame. Every group_by and sort keeps encounter order, so nodes, edges and
tied details come out in the order they first appear in the input and the
output is identical across runs.
"""

import re
from typing import Iterable, List, Optional

import polars as pl
import structlog

from trafficflow.config import get_settings
from .classifiers import categorize_source, extract_path, group_page
from .models import CanonicalRow, FlowGraph, GraphEdge, GraphNode, NodeType
from .translators import translate_term

logger = structlog.get_logger(__name__)

ROW_SCHEMA = {
    "source": pl.Utf8,
    "medium": pl.Utf8,
    "detail_key": pl.Utf8,
    "path": pl.Utf8,
    "category": pl.Utf8,
    "page_group": pl.Utf8,
    "sessions": pl.Int64,
}

_WHITESPACE = re.compile(r"\s+")


def source_node_id(category: str) -> str:
    """Node id for a source category, e.g. "Ad Campaigns" -> "source_Ad_Campaigns" """
    return "source_" + _WHITESPACE.sub("_", category)


def page_node_id(page_group: str) -> str:
    """Node id for a page group; whitespace and slashes become underscores"""
    return "page_" + _WHITESPACE.sub("_", page_group).replace("/", "_")


def rows_to_frame(rows: Iterable[CanonicalRow]) -> pl.DataFrame:
    """Classify canonical rows and lay them out as a frame (one row per input row)"""
    columns = {name: [] for name in ROW_SCHEMA}

    for row in rows:
        path = extract_path(row.landing_page)
        columns["source"].append(row.source)
        columns["medium"].append(row.medium)
        columns["detail_key"].append(f"{row.source}/{row.medium}")
        columns["path"].append(path)
        columns["category"].append(categorize_source(row.source, row.medium).value)
        columns["page_group"].append(group_page(path).value)
        columns["sessions"].append(row.session_count)

    return pl.DataFrame(columns, schema=ROW_SCHEMA)


def _ranked(frame: pl.DataFrame, keys: List[str], first: Optional[List[str]] = None) -> pl.DataFrame:
    """Sum sessions per key, then order by sessions descending (stable)"""
    aggregations = [pl.col("sessions").sum()]
    aggregations.extend(pl.col(name).first() for name in first or [])
    return (
        frame.group_by(keys, maintain_order=True)
        .agg(aggregations)
        .sort("sessions", descending=True, maintain_order=True)
    )


def _source_nodes(frame: pl.DataFrame) -> List[GraphNode]:
    totals = frame.group_by("category", maintain_order=True).agg(pl.col("sessions").sum())
    details = _ranked(frame, ["category", "detail_key"], first=["source", "medium"])

    nodes = []
    for category, sessions in totals.iter_rows():
        node_details = [
            {
                "key": detail["detail_key"],
                "source": translate_term(detail["source"]),
                "medium": translate_term(detail["medium"]),
                "sessions": detail["sessions"],
            }
            for detail in details.filter(pl.col("category") == category).iter_rows(named=True)
        ]
        nodes.append(
            GraphNode(
                id=source_node_id(category),
                type=NodeType.SOURCE_GROUP,
                label=category,
                sessions=sessions,
                layer=0,
                details=node_details,
            )
        )
    return nodes


def _page_nodes(frame: pl.DataFrame, details_limit: int) -> List[GraphNode]:
    totals = frame.group_by("page_group", maintain_order=True).agg(pl.col("sessions").sum())
    details = _ranked(frame, ["page_group", "path"])

    nodes = []
    for page_group, sessions in totals.iter_rows():
        top_paths = details.filter(pl.col("page_group") == page_group).head(details_limit)
        nodes.append(
            GraphNode(
                id=page_node_id(page_group),
                type=NodeType.ENTRY_POINT,
                label=page_group,
                sessions=sessions,
                layer=1,
                details=[
                    {"path": detail["path"], "sessions": detail["sessions"]}
                    for detail in top_paths.iter_rows(named=True)
                ],
            )
        )
    return nodes


def _edges(frame: pl.DataFrame) -> List[GraphEdge]:
    flows = frame.group_by(["category", "page_group"], maintain_order=True).agg(pl.col("sessions").sum())
    return [
        GraphEdge(source=source_node_id(category), target=page_node_id(page_group), value=sessions)
        for category, page_group, sessions in flows.iter_rows()
    ]


def build_flow_graph(
    rows: Iterable[CanonicalRow],
    details_limit: Optional[int] = None,
) -> FlowGraph:
    """
    Build the traffic flow graph from canonical rows.

    Args:
        rows: Canonical session rows (any backend)
        details_limit: Max paths listed per page group node (settings default: 20)

    Returns:
        FlowGraph with source nodes first, then page nodes, and one edge per
        observed (category, page group) pair
    """
    if details_limit is None:
        details_limit = get_settings().google.details_limit

    frame = rows_to_frame(rows)
    if frame.is_empty():
        logger.info("No rows to aggregate, returning empty graph")
        return FlowGraph()

    # Edges are derived only after both node layers exist
    nodes = _source_nodes(frame) + _page_nodes(frame, details_limit)
    edges = _edges(frame)

    logger.info(
        "Flow graph built",
        rows=frame.height,
        sessions=int(frame["sessions"].sum()),
        nodes=len(nodes),
        edges=len(edges),
    )
    return FlowGraph(nodes=nodes, edges=edges)
