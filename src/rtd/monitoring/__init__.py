from rtd.monitoring.latency import LatencyMetrics, LatencySnapshot
from rtd.monitoring.logging import JsonFormatter, configure_logging, frame_context
from rtd.monitoring.metrics import PipelineCounters, RuntimeMetrics
from rtd.monitoring.stats import PeriodicStatsLogger

__all__ = [
    "configure_logging",
    "frame_context",
    "JsonFormatter",
    "LatencyMetrics",
    "LatencySnapshot",
    "PeriodicStatsLogger",
    "PipelineCounters",
    "RuntimeMetrics",
]
