"""Base sensor classes for operator monitoring.

This module defines the base OperatorSensor class that provides lifecycle hooks
for monitoring operator events. All hooks are no-ops by default, allowing
subclasses to override only the events they care about.

- Hooks come in pairs: on_X_start() and on_X_complete()
- Start hooks return an optional state dict for tracking multi-phase operations
- Complete hooks receive the state dict from their corresponding start hook
"""

from typing import Dict, List, Optional, Any
import logging

logger = logging.getLogger(__name__)


class OperatorSensor:
    """Base sensor class for operator monitoring.

    Hooks fall into three categories:
    1. Reconciliation lifecycle (one pass over a RedisReplication / RedisSentinel)
    2. Resource operations (StatefulSet, Service and claim writes)
    3. Topology discovery (replica probes and master resolution)

    Example:
        class LoggingSensor(OperatorSensor):
            def on_reconcile_start(self, name, kind, namespace, generation, trigger_source):
                return {'start_time': time.time()}

            def on_reconcile_complete(self, name, kind, namespace, state, success, error=None):
                duration = time.time() - state['start_time']
                logger.info(f"Reconciled {name} in {duration}s")
    """

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
        """Called when a reconciliation pass begins.

        Args:
            name: Custom resource name
            kind: RedisReplication or RedisSentinel
            namespace: Kubernetes namespace
            generation: Resource generation number
            trigger_source: What triggered the pass (create, update, resume, timer)

        Returns:
            Optional state dict passed to on_reconcile_complete
        """
        pass

    def on_reconcile_complete(
        self,
        name: str,
        kind: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a reconciliation pass completes.

        Args:
            name: Custom resource name
            kind: RedisReplication or RedisSentinel
            namespace: Kubernetes namespace
            state: State dict returned from on_reconcile_start
            success: Whether the pass succeeded
            error: Exception if the pass failed
        """
        pass

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
        """Called when a write to a child resource begins.

        Args:
            name: Custom resource name
            kind: RedisReplication or RedisSentinel
            resource_name: Name of the child object being written
            namespace: Kubernetes namespace
            resource_type: statefulset, service, headless_service, ...

        Returns:
            Optional state dict passed to on_resource_sync_complete
        """
        pass

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
        """Called when a write to a child resource completes.

        Args:
            operation: create, patch, update or recreate
            success: Whether the write succeeded
            error: Exception if the write failed
        """
        pass

    def on_resource_drift_detected(
        self,
        name: str,
        kind: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        """Called when the stored object differs from the desired one."""
        pass

    def on_capacity_resize(
        self,
        name: str,
        namespace: str,
        claim_name: str,
        from_bytes: int,
        to_bytes: int,
        success: bool,
    ) -> None:
        """Called for every attempt to resize a replica's claim."""
        pass

    # =============================================================================
    # Topology Hooks
    # =============================================================================

    def on_probe_failure(
        self,
        name: str,
        namespace: str,
        pod_name: str,
        error_type: str,
    ) -> None:
        """Called when a replica could not be probed and was classified unknown."""
        pass

    def on_master_resolved(
        self,
        name: str,
        namespace: str,
        master_count: int,
        resolved: bool,
    ) -> None:
        """Called after a master resolution attempt.

        Args:
            name: Name of the probed RedisReplication
            master_count: Replicas reporting `role:master`
            resolved: Whether a master address was produced
        """
        pass
