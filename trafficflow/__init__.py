"""
Traffic Flow Dashboard API

Aggregates GA4 / BigQuery session data into a source -> landing page flow graph.
"""

__version__ = "1.0.0"
