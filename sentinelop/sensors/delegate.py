"""Sensor delegation for fan-out pattern.

SensorDelegate routes sensor events to multiple monitoring backends. Each
backend receives the same events and keeps its own state; a failing backend
is logged and never interrupts reconciliation.
"""

from typing import Set, Dict, List, Optional, Any
import logging

from sentinelop.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class SensorDelegate(OperatorSensor):
    """Delegate sensor that fans out events to multiple backends.

    Example:
        delegate = SensorDelegate()
        delegate.add(PrometheusMonitor())

        state = delegate.on_reconcile_start("cache", "RedisReplication", "default", 5, "timer")
        delegate.on_reconcile_complete("cache", "RedisReplication", "default", state, True)
    """

    def __init__(self) -> None:
        self._sensors: Set[OperatorSensor] = set()

    def add(self, sensor: OperatorSensor) -> None:
        logger.info(f"Adding sensor: {sensor.__class__.__name__}")
        self._sensors.add(sensor)

    def remove(self, sensor: OperatorSensor) -> None:
        logger.info(f"Removing sensor: {sensor.__class__.__name__}")
        self._sensors.discard(sensor)

    def clear(self) -> None:
        logger.info(f"Clearing {len(self._sensors)} sensors")
        self._sensors.clear()

    def _fan_out(self, hook: str, *args) -> Optional[Dict[OperatorSensor, Any]]:
        states = {}
        for sensor in self._sensors:
            try:
                state = getattr(sensor, hook)(*args)
                if state is not None:
                    states[sensor] = state
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )
        return states if states else None

    def _fan_out_complete(
        self, hook: str, state: Optional[Dict[OperatorSensor, Any]], *args, **kwargs
    ) -> None:
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                getattr(sensor, hook)(*args, state=sensor_state, **kwargs)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )

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
    ) -> Optional[Dict[OperatorSensor, Any]]:
        """Delegate reconcile_start to all sensors.

        Returns:
            Dict mapping each sensor to its returned state, or None if no sensors
        """
        return self._fan_out(
            "on_reconcile_start", name, kind, namespace, generation, trigger_source
        )

    def on_reconcile_complete(
        self,
        name: str,
        kind: str,
        namespace: str,
        state: Optional[Dict[OperatorSensor, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        self._fan_out_complete(
            "on_reconcile_complete",
            state,
            name,
            kind,
            namespace,
            success=success,
            error=error,
        )

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
    ) -> Optional[Dict[OperatorSensor, Any]]:
        return self._fan_out(
            "on_resource_sync_start", name, kind, resource_name, namespace, resource_type
        )

    def on_resource_sync_complete(
        self,
        name: str,
        kind: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[OperatorSensor, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        self._fan_out_complete(
            "on_resource_sync_complete",
            state,
            name,
            kind,
            resource_name,
            namespace,
            resource_type,
            operation=operation,
            success=success,
            error=error,
        )

    def on_resource_drift_detected(
        self,
        name: str,
        kind: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        self._fan_out(
            "on_resource_drift_detected",
            name,
            kind,
            resource_name,
            namespace,
            resource_type,
            drift_fields,
        )

    def on_capacity_resize(
        self,
        name: str,
        namespace: str,
        claim_name: str,
        from_bytes: int,
        to_bytes: int,
        success: bool,
    ) -> None:
        self._fan_out(
            "on_capacity_resize", name, namespace, claim_name, from_bytes, to_bytes, success
        )

    # =============================================================================
    # Topology Hooks
    # =============================================================================

    def on_probe_failure(
        self, name: str, namespace: str, pod_name: str, error_type: str
    ) -> None:
        self._fan_out("on_probe_failure", name, namespace, pod_name, error_type)

    def on_master_resolved(
        self, name: str, namespace: str, master_count: int, resolved: bool
    ) -> None:
        self._fan_out("on_master_resolved", name, namespace, master_count, resolved)
