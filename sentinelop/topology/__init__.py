"""Live topology discovery of Redis replicas."""

from sentinelop.topology.role import (
    Role,
    RoleInfo,
    ProbeAuth,
    ReplicationTopology,
    TopologySnapshot,
)
from sentinelop.topology.prober import TopologyProber, parse_replication_info
from sentinelop.topology.resolver import MasterResolver, format_pod_ip, select_master

__all__ = [
    "Role",
    "RoleInfo",
    "ProbeAuth",
    "ReplicationTopology",
    "TopologySnapshot",
    "TopologyProber",
    "parse_replication_info",
    "MasterResolver",
    "format_pod_ip",
    "select_master",
]
