"""Prometheus monitoring backend for the operator.

PrometheusMonitor collects operator lifecycle events and exposes them as
Prometheus metrics:

1. Reconciliation health - pass duration, throughput, errors
2. Resource sync - write counts, latency, drift, claim resizes
3. Topology - probe failures and master resolution outcomes
"""

from typing import Dict, List, Optional, Any
import time
import logging

from prometheus_client import Counter, Histogram

from sentinelop.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor.

    Metric families:
    - sentinelop_reconcile_* - Reconciliation pass metrics
    - sentinelop_resource_* / sentinelop_claim_* - Kubernetes write metrics
    - sentinelop_probe_* / sentinelop_master_* - Topology discovery metrics
    """

    def __init__(self, registry=None):
        super().__init__()
        kwargs = {"registry": registry} if registry is not None else {}

        # =============================================================================
        # Reconciliation Metrics
        # =============================================================================

        self.reconcile_duration = Histogram(
            'sentinelop_reconcile_duration_seconds',
            'Time spent in a reconciliation pass',
            labelnames=['name', 'kind', 'namespace', 'trigger_source', 'result'],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0],
            **kwargs,
        )

        self.reconcile_total = Counter(
            'sentinelop_reconcile_total',
            'Total number of reconciliation passes',
            labelnames=['name', 'kind', 'namespace', 'trigger_source', 'result'],
            **kwargs,
        )

        self.reconcile_errors = Counter(
            'sentinelop_reconcile_errors_total',
            'Total number of failed reconciliation passes',
            labelnames=['name', 'kind', 'namespace', 'error_type'],
            **kwargs,
        )

        # =============================================================================
        # Kubernetes Resource Sync Metrics
        # =============================================================================

        self.resource_sync_duration = Histogram(
            'sentinelop_resource_sync_duration_seconds',
            'Time spent writing Kubernetes resources',
            labelnames=['name', 'kind', 'resource_name', 'namespace', 'resource_type', 'operation', 'result'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
            **kwargs,
        )

        self.resource_sync_total = Counter(
            'sentinelop_resource_sync_total',
            'Total number of resource write operations',
            labelnames=['name', 'kind', 'resource_name', 'namespace', 'resource_type', 'operation', 'result'],
            **kwargs,
        )

        self.resource_sync_errors = Counter(
            'sentinelop_resource_sync_errors_total',
            'Total number of resource write errors',
            labelnames=['name', 'kind', 'resource_name', 'namespace', 'resource_type', 'error_type'],
            **kwargs,
        )

        self.resource_drift_detected = Counter(
            'sentinelop_resource_drift_detected_total',
            'Total number of resource drift detections',
            labelnames=['name', 'kind', 'resource_name', 'namespace', 'resource_type', 'drift_field'],
            **kwargs,
        )

        self.claim_resizes = Counter(
            'sentinelop_claim_resize_total',
            'Total number of claim resize attempts',
            labelnames=['name', 'namespace', 'result'],
            **kwargs,
        )

        # =============================================================================
        # Topology Metrics
        # =============================================================================

        self.probe_failures = Counter(
            'sentinelop_probe_failures_total',
            'Total number of replica probes classified unknown',
            labelnames=['name', 'namespace', 'error_type'],
            **kwargs,
        )

        self.master_resolutions = Counter(
            'sentinelop_master_resolution_total',
            'Total number of master resolution attempts',
            labelnames=['name', 'namespace', 'result'],
            **kwargs,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        name: str,
        kind: str,
        namespace: str,
        generation: int,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Record reconciliation start time."""
        return {
            'start_time': time.time(),
            'trigger_source': trigger_source,
        }

    def on_reconcile_complete(
        self,
        name: str,
        kind: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record reconciliation duration and result."""
        if state:
            duration = time.time() - state['start_time']
            trigger_source = state['trigger_source']
            result = 'success' if success else 'failure'

            self.reconcile_duration.labels(
                name=name,
                kind=kind,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).observe(duration)

            self.reconcile_total.labels(
                name=name,
                kind=kind,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).inc()

        if error:
            self.reconcile_errors.labels(
                name=name,
                kind=kind,
                namespace=namespace,
                error_type=error.__class__.__name__,
            ).inc()

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        name: str,
        kind: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Record resource sync start time."""
        return {'start_time': time.time()}

    def on_resource_sync_complete(
        self,
        name: str,
        kind: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record resource sync duration and result."""
        result = 'success' if success else 'failure'
        if state:
            self.resource_sync_duration.labels(
                name=name,
                kind=kind,
                resource_name=resource_name,
                namespace=namespace,
                resource_type=resource_type,
                operation=operation,
                result=result,
            ).observe(time.time() - state['start_time'])

        self.resource_sync_total.labels(
            name=name,
            kind=kind,
            resource_name=resource_name,
            namespace=namespace,
            resource_type=resource_type,
            operation=operation,
            result=result,
        ).inc()

        if error:
            self.resource_sync_errors.labels(
                name=name,
                kind=kind,
                resource_name=resource_name,
                namespace=namespace,
                resource_type=resource_type,
                error_type=error.__class__.__name__,
            ).inc()

    def on_resource_drift_detected(
        self,
        name: str,
        kind: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        """Record one drift detection per drifted field."""
        for field in drift_fields:
            self.resource_drift_detected.labels(
                name=name,
                kind=kind,
                resource_name=resource_name,
                namespace=namespace,
                resource_type=resource_type,
                drift_field=field,
            ).inc()

    def on_capacity_resize(
        self,
        name: str,
        namespace: str,
        claim_name: str,
        from_bytes: int,
        to_bytes: int,
        success: bool,
    ) -> None:
        self.claim_resizes.labels(
            name=name,
            namespace=namespace,
            result='success' if success else 'failure',
        ).inc()

    # =============================================================================
    # Topology Hooks
    # =============================================================================

    def on_probe_failure(
        self, name: str, namespace: str, pod_name: str, error_type: str
    ) -> None:
        self.probe_failures.labels(
            name=name, namespace=namespace, error_type=error_type
        ).inc()

    def on_master_resolved(
        self, name: str, namespace: str, master_count: int, resolved: bool
    ) -> None:
        self.master_resolutions.labels(
            name=name,
            namespace=namespace,
            result='resolved' if resolved else 'unresolved',
        ).inc()
