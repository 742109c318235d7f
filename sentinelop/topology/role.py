from enum import Enum
from typing import Dict, Optional
from sentinelop.types.base import BaseModel


class Role(Enum):
    MASTER = "master"
    REPLICA = "replica"
    SENTINEL = "sentinel"
    UNKNOWN = "unknown"

    @classmethod
    def from_info(cls, value: Optional[str]) -> "Role":
        """Map the `role:` value of `INFO replication` to a Role."""
        value = (value or "").strip().lower()
        if value in ("slave", "replica"):
            return cls.REPLICA
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class RoleInfo(BaseModel):
    """What one replica reported about itself."""

    role: Role
    connected_slaves: int
    error: Optional[str]

    @classmethod
    def unknown(cls, error: str = None) -> "RoleInfo":
        return cls(role=Role.UNKNOWN, connected_slaves=0, error=error)


class ProbeAuth(BaseModel):
    """Credentials used to connect to the replicas of a replication."""

    password: Optional[str]
    tls: bool
    ca_data: Optional[str]

    @classmethod
    def anonymous(cls) -> "ProbeAuth":
        return cls(password=None, tls=False, ca_data=None)


class ReplicationTopology(BaseModel):
    """The replicas of one RedisReplication, addressed by ordinal."""

    name: str
    namespace: str
    stateful_set_name: str
    size: int
    auth: ProbeAuth


TopologySnapshot = Dict[int, RoleInfo]
