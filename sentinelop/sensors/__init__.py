"""Operator sensor framework.

Non-invasive instrumentation of operator lifecycle events through hooks.

Key components:
- OperatorSensor: Base class defining lifecycle hooks for operator events
- SensorDelegate: Fan-out of events to multiple sensor backends
- PrometheusMonitor: Prometheus metrics exporter

Usage:
    from sentinelop.sensors import SensorDelegate, PrometheusMonitor

    delegate = SensorDelegate()
    delegate.add(PrometheusMonitor())
"""

from sentinelop.sensors.base import OperatorSensor
from sentinelop.sensors.delegate import SensorDelegate
from sentinelop.sensors.prometheus import PrometheusMonitor
from sentinelop.sensors.server import init_metrics_server

__all__ = [
    'OperatorSensor',
    'SensorDelegate',
    'PrometheusMonitor',
    'init_metrics_server',
]
