"""
Monitoring module for autosnap.

Run outcomes are exported as Prometheus metrics through the node_exporter
textfile collector.
"""

from .run_metrics import RunMetrics

__all__ = [
    'RunMetrics'
]
