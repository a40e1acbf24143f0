"""
Traffic Flow Data Model

Canonical rows consumed by the aggregation pipeline and the graph
structures it produces for the rendering layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

DEFAULT_SOURCE = "(direct)"
DEFAULT_MEDIUM = "(none)"
DEFAULT_LANDING_PAGE = "Unknown"
DEFAULT_PRODUCT_NAME = "(not set)"


class SourceCategory(str, Enum):
    """Traffic origin buckets"""
    AD_CAMPAIGNS = "Ad Campaigns"
    SOCIAL_MEDIA = "Social Media"
    ORGANIC = "Organic"


class PageGroup(str, Enum):
    """Site section buckets for landing pages"""
    HOME = "HOME"
    CART = "CART"
    CHECKOUT = "CHECKOUT"
    CONTACT = "CONTACT"
    PROMOTION = "PROMOTION"
    CATALOG = "CATALOG"
    BLOG = "BLOG"
    ABOUT = "ABOUT"
    ACCOUNT = "ACCOUNT"
    SEARCH = "SEARCH"
    OTHER = "OTHER"


class NodeType(str, Enum):
    """Graph node kinds"""
    SOURCE_GROUP = "source_group"
    ENTRY_POINT = "entry_point"


@dataclass(frozen=True)
class CanonicalRow:
    """One (source, medium, landing page) session count, backend independent"""
    source: str = DEFAULT_SOURCE
    medium: str = DEFAULT_MEDIUM
    landing_page: str = DEFAULT_LANDING_PAGE
    session_count: int = 0


@dataclass(frozen=True)
class ProductRow:
    """Per-item e-commerce totals (one report row, possibly one day of an item)"""
    name: str = DEFAULT_PRODUCT_NAME
    revenue: float = 0.0
    units: int = 0
    views: int = 0
    carts: int = 0


@dataclass
class GraphNode:
    """Aggregated bucket in the flow graph"""
    id: str
    type: NodeType
    label: str
    sessions: int
    layer: int
    details: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "sessions": self.sessions,
            "layer": self.layer,
            "details": [dict(detail) for detail in self.details],
        }


@dataclass(frozen=True)
class GraphEdge:
    """Weighted source category -> page group connection"""
    source: str
    target: str
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "target": self.target, "value": self.value}


@dataclass
class FlowGraph:
    """Nodes and edges of one historical job"""
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
