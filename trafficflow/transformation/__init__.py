"""
Traffic Flow Transformation Module
"""
from .assembler import assemble_result, translate_demographics
from .classifiers import categorize_source, extract_path, group_page
from .commerce import FUNNEL_EVENTS, product_stats, summarize_funnel, summarize_products
from .graph_builder import build_flow_graph
from .models import (
    CanonicalRow,
    FlowGraph,
    GraphEdge,
    GraphNode,
    NodeType,
    PageGroup,
    ProductRow,
    SourceCategory,
)
from .normalizers import (
    RowKind,
    normalize_breakdown,
    normalize_product_rows,
    normalize_rows,
    parse_revenue,
    parse_session_count,
)
from .translators import translate_term

__all__ = [
    "assemble_result",
    "translate_demographics",
    "categorize_source",
    "extract_path",
    "group_page",
    "FUNNEL_EVENTS",
    "product_stats",
    "summarize_funnel",
    "summarize_products",
    "build_flow_graph",
    "CanonicalRow",
    "FlowGraph",
    "GraphEdge",
    "GraphNode",
    "NodeType",
    "PageGroup",
    "ProductRow",
    "SourceCategory",
    "RowKind",
    "normalize_breakdown",
    "normalize_product_rows",
    "normalize_rows",
    "parse_revenue",
    "parse_session_count",
    "translate_term",
]
