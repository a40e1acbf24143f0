"""
Unit Tests - Flow Graph Builder
"""
import json

import polars as pl
import pytest

from trafficflow.transformation import CanonicalRow, RowKind, build_flow_graph, normalize_rows
from trafficflow.transformation.graph_builder import page_node_id, rows_to_frame, source_node_id


def _row(source, medium, landing_page, sessions):
    return CanonicalRow(source=source, medium=medium, landing_page=landing_page, session_count=sessions)


@pytest.fixture
def mixed_rows():
    return [
        _row("google", "cpc", "https://site/shop/sneakers-123", 50),
        _row("(direct)", "(none)", "/", 10),
        _row("instagram.com", "social", "/ofertas", 8),
        _row("google", "organic", "/blog/post", 12),
        _row("google", "cpc", "/cart", 5),
        _row("google", "organic", "/", 3),
    ]


class TestNodeIds:
    """Tests for node id derivation"""

    def test_source_node_id(self):
        assert source_node_id("Ad Campaigns") == "source_Ad_Campaigns"
        assert source_node_id("Social  Media") == "source_Social_Media"

    def test_page_node_id(self):
        assert page_node_id("HOME") == "page_HOME"
        assert page_node_id("A/B test") == "page_A_B_test"


class TestBuildFlowGraph:
    """Tests for build_flow_graph"""

    def test_two_row_scenario(self):
        """Test the minimal paid + direct scenario"""
        graph = build_flow_graph([
            _row("google", "cpc", "https://site/shop/sneakers-123", 50),
            _row("(direct)", "(none)", "/", 10),
        ])

        assert [(node.id, node.sessions, node.layer) for node in graph.nodes] == [
            ("source_Ad_Campaigns", 50, 0),
            ("source_Organic", 10, 0),
            ("page_CATALOG", 50, 1),
            ("page_HOME", 10, 1),
        ]
        assert [edge.to_dict() for edge in graph.edges] == [
            {"source": "source_Ad_Campaigns", "target": "page_CATALOG", "value": 50},
            {"source": "source_Organic", "target": "page_HOME", "value": 10},
        ]

    def test_empty_rows(self):
        assert build_flow_graph([]).to_dict() == {"nodes": [], "edges": []}

    def test_conservation(self, mixed_rows):
        """Test no sessions are lost or double counted"""
        graph = build_flow_graph(mixed_rows)
        total = sum(row.session_count for row in mixed_rows)

        assert sum(edge.value for edge in graph.edges) == total
        assert sum(node.sessions for node in graph.nodes if node.layer == 0) == total
        assert sum(node.sessions for node in graph.nodes if node.layer == 1) == total

    def test_node_sessions_match_details(self, mixed_rows):
        graph = build_flow_graph(mixed_rows)

        for node in graph.nodes:
            assert node.sessions == sum(detail["sessions"] for detail in node.details)

    def test_source_details(self, mixed_rows):
        """Test source details are ranked and translated"""
        graph = build_flow_graph(mixed_rows)
        organic = next(node for node in graph.nodes if node.id == "source_Organic")

        assert organic.details == [
            {"key": "google/organic", "source": "google", "medium": "Orgánico", "sessions": 15},
            {"key": "(direct)/(none)", "source": "Directo", "medium": "Directo", "sessions": 10},
        ]

    def test_page_details_use_paths(self, mixed_rows):
        graph = build_flow_graph(mixed_rows)
        home = next(node for node in graph.nodes if node.id == "page_HOME")

        assert home.details == [{"path": "/", "sessions": 13}]

    def test_each_pair_has_one_edge(self, mixed_rows):
        graph = build_flow_graph(mixed_rows)
        pairs = [(edge.source, edge.target) for edge in graph.edges]

        assert len(pairs) == len(set(pairs))
        assert ("source_Ad_Campaigns", "page_CART") in pairs

    def test_edges_reference_nodes(self, mixed_rows):
        graph = build_flow_graph(mixed_rows)
        node_ids = {node.id for node in graph.nodes}

        for edge in graph.edges:
            assert edge.source in node_ids
            assert edge.target in node_ids

    def test_page_details_truncated(self):
        """Test at most details_limit paths are listed per page node"""
        rows = [_row("google", "organic", f"/legal/page-{i}", i + 1) for i in range(25)]

        graph = build_flow_graph(rows, details_limit=20)
        other = next(node for node in graph.nodes if node.id == "page_OTHER")

        assert len(other.details) == 20
        assert other.details[0] == {"path": "/legal/page-24", "sessions": 25}
        assert other.sessions == sum(range(1, 26))
        assert other.sessions >= sum(detail["sessions"] for detail in other.details)

    def test_ties_keep_input_order(self):
        rows = [
            _row("bing", "organic", "/legal/b", 5),
            _row("duckduckgo", "organic", "/legal/a", 5),
        ]

        graph = build_flow_graph(rows)
        other = next(node for node in graph.nodes if node.id == "page_OTHER")

        assert [detail["path"] for detail in other.details] == ["/legal/b", "/legal/a"]

    def test_deterministic(self, mixed_rows):
        """Test identical input gives byte-identical output"""
        first = json.dumps(build_flow_graph(mixed_rows).to_dict())
        second = json.dumps(build_flow_graph(list(mixed_rows)).to_dict())

        assert first == second

    def test_unparseable_counts_contribute_zero(self):
        rows = normalize_rows(
            [
                {"f": [{"v": "google"}, {"v": "cpc"}, {"v": "/cart"}, {"v": "NaN"}]},
                {"f": [{"v": "google"}, {"v": "cpc"}, {"v": "/cart"}, {"v": "4"}]},
            ],
            RowKind.BIGQUERY,
        )

        graph = build_flow_graph(rows)

        assert [edge.value for edge in graph.edges] == [4]

    def test_oversized_count_contributes_zero(self):
        """Test a count beyond Int64 does not break frame construction"""
        rows = normalize_rows(
            [
                {"f": [{"v": "google"}, {"v": "cpc"}, {"v": "/cart"}, {"v": "99999999999999999999"}]},
                {"f": [{"v": "google"}, {"v": "cpc"}, {"v": "/cart"}, {"v": "4"}]},
            ],
            RowKind.BIGQUERY,
        )

        graph = build_flow_graph(rows)

        assert [edge.value for edge in graph.edges] == [4]
        assert graph.nodes[0].sessions == 4


class TestRowsToFrame:
    """Tests for the classification frame"""

    def test_columns(self, mixed_rows):
        frame = rows_to_frame(mixed_rows)

        assert frame.height == len(mixed_rows)
        assert frame.schema["sessions"] == pl.Int64
        assert frame["path"][0] == "/shop/sneakers-123"
        assert frame["category"].to_list()[:3] == ["Ad Campaigns", "Organic", "Social Media"]

    def test_empty(self):
        assert rows_to_frame([]).is_empty()
