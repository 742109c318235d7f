import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Socket timeout in seconds for a single `INFO replication` probe
REDIS_PROBE_TIMEOUT_SECONDS = float(_getenv("REDIS_PROBE_TIMEOUT_SECONDS", 5.0))

#: Deadline in seconds for probing every replica while resolving the master
MASTER_RESOLUTION_TIMEOUT_SECONDS = float(
    _getenv("MASTER_RESOLUTION_TIMEOUT_SECONDS", 30.0)
)

#: Operator-wide opt-in to delete and recreate a StatefulSet rejected as invalid
RECREATE_STATEFULSET = bool(_getenv("RECREATE_STATEFULSET", False))

#: Seconds to wait after a foreground StatefulSet deletion before recreating it
STATEFULSET_DELETION_TIMEOUT_SECONDS = int(
    _getenv("STATEFULSET_DELETION_TIMEOUT_SECONDS", 5)
)

#: Interval in seconds of the periodic drift reconciliation
RECONCILE_INTERVAL_SECONDS = float(_getenv("RECONCILE_INTERVAL_SECONDS", 30.0))

#: Expose Prometheus metrics
METRICS_ENABLED = bool(_getenv("METRICS_ENABLED", True))

#: Port of the Prometheus metrics endpoint
METRICS_PORT = int(_getenv("METRICS_PORT", 8000))

#: Maximum number of resources reconciled concurrently
WORKER_LIMIT = int(_getenv("WORKER_LIMIT", 4))


class Settings:
    """Operator settings"""

    redis_probe_timeout_seconds: float = REDIS_PROBE_TIMEOUT_SECONDS
    master_resolution_timeout_seconds: float = MASTER_RESOLUTION_TIMEOUT_SECONDS
    recreate_statefulset: bool = RECREATE_STATEFULSET
    statefulset_deletion_timeout_seconds: int = STATEFULSET_DELETION_TIMEOUT_SECONDS
    reconcile_interval_seconds: float = RECONCILE_INTERVAL_SECONDS
    metrics_enabled: bool = METRICS_ENABLED
    metrics_port: int = METRICS_PORT
    worker_limit: int = WORKER_LIMIT

    def __init__(
        self,
        *args,
        redis_probe_timeout_seconds: float = None,
        master_resolution_timeout_seconds: float = None,
        recreate_statefulset: bool = None,
        statefulset_deletion_timeout_seconds: int = None,
        reconcile_interval_seconds: float = None,
        metrics_enabled: bool = None,
        metrics_port: int = None,
        worker_limit: int = None,
        **kwargs,
    ):
        if redis_probe_timeout_seconds is not None:
            self.redis_probe_timeout_seconds = redis_probe_timeout_seconds

        if master_resolution_timeout_seconds is not None:
            self.master_resolution_timeout_seconds = master_resolution_timeout_seconds

        if recreate_statefulset is not None:
            self.recreate_statefulset = recreate_statefulset

        if statefulset_deletion_timeout_seconds is not None:
            self.statefulset_deletion_timeout_seconds = (
                statefulset_deletion_timeout_seconds
            )

        if reconcile_interval_seconds is not None:
            self.reconcile_interval_seconds = reconcile_interval_seconds

        if metrics_enabled is not None:
            self.metrics_enabled = metrics_enabled

        if metrics_port is not None:
            self.metrics_port = metrics_port

        if worker_limit is not None:
            self.worker_limit = worker_limit
