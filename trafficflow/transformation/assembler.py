"""
Result Assembly

Merges the flow graph with the demographic breakdowns and revenue into the
payload consumed by the dashboard.
"""

from typing import Any, Dict, List, Mapping

from .models import FlowGraph
from .translators import translate_term

DEMOGRAPHIC_DIMENSIONS = ("age", "gender", "geo", "device")

# Breakdowns whose names are backend vocabulary shown to the user
TRANSLATED_DIMENSIONS = ("device", "gender")


def translate_demographics(demographics: Mapping[str, List[Dict[str, Any]]]) -> Dict[str, List[Dict[str, Any]]]:
    """Return a copy of the breakdowns with device and gender names translated"""
    translated = {}
    for dimension in DEMOGRAPHIC_DIMENSIONS:
        entries = demographics.get(dimension) or []
        if dimension in TRANSLATED_DIMENSIONS:
            translated[dimension] = [
                {**entry, "name": translate_term(entry.get("name"))} for entry in entries
            ]
        else:
            translated[dimension] = [dict(entry) for entry in entries]
    return translated


def assemble_result(
    graph: FlowGraph,
    demographics: Mapping[str, List[Dict[str, Any]]],
    total_revenue: float,
    start_date: str,
    end_date: str,
) -> Dict[str, Any]:
    """
    Build the historical job payload.

    Returns:
        {nodes, edges, dateRange: {startDate, endDate}, demographics, estimatedSales}
    """
    graph_data = graph.to_dict()
    return {
        "nodes": graph_data["nodes"],
        "edges": graph_data["edges"],
        "dateRange": {"startDate": start_date, "endDate": end_date},
        "demographics": translate_demographics(demographics),
        "estimatedSales": float(total_revenue),
    }
