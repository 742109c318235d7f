"""Find the current master of a RedisReplication from its live replicas."""
import asyncio
import base64
import ipaddress
import logging
from logging import Logger
from typing import Optional

from kubernetes_asyncio.client import ApiException, CoreV1Api, CustomObjectsApi
from marshmallow import ValidationError

from sentinelop.sensors import SensorDelegate
from sentinelop.topology.prober import TopologyProber
from sentinelop.topology.role import (
    ProbeAuth,
    ReplicationTopology,
    Role,
    RoleInfo,
    TopologySnapshot,
)
from sentinelop.types.models.redis_resources import RedisResources
from sentinelop.types.models.redisreplication_spec import RedisReplicationSpec
from sentinelop.types.schemas.redisreplication_spec import RedisReplicationSpecSchema
from sentinelop.utils.errors import ConfigurationError


def format_pod_ip(ip: Optional[str]) -> str:
    """Return `ip` as usable in `host:port`, wrapping anything but IPv4 in brackets."""
    if not ip:
        return ""
    try:
        if ipaddress.ip_address(ip).version == 4:
            return ip
    except ValueError:
        pass
    return f"[{ip}]"


def select_master(snapshot: TopologySnapshot) -> Optional[int]:
    """Pick the canonical master ordinal of a snapshot.

    No master gives None and a single master wins. With several masters the
    first one (by ordinal) that has replicas attached wins; if none has,
    there is no master.
    """
    masters = [
        ordinal
        for ordinal in sorted(snapshot)
        if snapshot[ordinal].role is Role.MASTER
    ]
    if not masters:
        return None
    if len(masters) == 1:
        return masters[0]
    for ordinal in masters:
        if snapshot[ordinal].connected_slaves > 0:
            return ordinal
    return None


class MasterResolver:
    """Probes the replicas of a replication and resolves the master's pod IP."""

    GROUP_NAME = "redis.redis.opstreelabs.in"
    GROUP_VERSION = "v1beta1"
    PLURAL_NAME = "redisreplications"

    def __init__(
        self,
        store,
        core_v1_api: CoreV1Api,
        custom_objects_api: CustomObjectsApi,
        prober: TopologyProber,
        logger: Logger = None,
        sensor: SensorDelegate = None,
        timeout: float = 30.0,
    ):
        self.store = store
        self.core_v1_api = core_v1_api
        self.custom_objects_api = custom_objects_api
        self.prober = prober
        self.logger = logger or logging.getLogger(__name__)
        self.sensor = sensor or SensorDelegate()
        self.timeout = timeout

    async def pod_ip(self, pod_name: str, namespace: str) -> str:
        """Raw pod IP from the pod status, "" when the pod or its IP is missing."""
        try:
            pod = await self.store.fetch_pod(self.core_v1_api, pod_name, namespace)
        except ApiException as ex:
            self.logger.error(
                f"Failed to get pod {pod_name} in {namespace}: {ex.status} {ex.reason}"
            )
            return ""
        if pod is None or pod.status is None or not pod.status.pod_ip:
            return ""
        return pod.status.pod_ip

    async def snapshot(self, topology: ReplicationTopology) -> TopologySnapshot:
        """Probe every replica, in ordinal order, one connection at a time."""
        snapshot: TopologySnapshot = {}
        for ordinal in range(topology.size):
            pod_name = RedisResources.pod_name(topology.stateful_set_name, ordinal)
            ip = await self.pod_ip(pod_name, topology.namespace)
            if not ip:
                self.logger.warning(f"Pod {pod_name} has no IP yet")
                info = RoleInfo.unknown("NoPodIP")
            else:
                info = await self.prober.probe(ip, topology.auth)
            if info.role is Role.UNKNOWN:
                self.sensor.on_probe_failure(
                    topology.name, topology.namespace, pod_name, info.error or "Unknown"
                )
            snapshot[ordinal] = info
        return snapshot

    async def _resolve(self, topology: ReplicationTopology) -> str:
        snapshot = await self.snapshot(topology)
        master_count = sum(1 for info in snapshot.values() if info.role is Role.MASTER)
        ordinal = select_master(snapshot)
        if ordinal is None:
            if master_count == 0:
                self.logger.error(f"No master pods found for {topology.name}")
            else:
                self.logger.error(
                    f"{master_count} masters found for {topology.name}, "
                    "none of them has replicas attached"
                )
            self.sensor.on_master_resolved(
                topology.name, topology.namespace, master_count, False
            )
            return ""

        pod_name = RedisResources.pod_name(topology.stateful_set_name, ordinal)
        ip = format_pod_ip(await self.pod_ip(pod_name, topology.namespace))
        if ip:
            self.logger.info(f"Resolved master of {topology.name}: {pod_name} ({ip})")
        else:
            self.logger.error(f"Master pod {pod_name} has no IP")
        self.sensor.on_master_resolved(
            topology.name, topology.namespace, master_count, bool(ip)
        )
        return ip

    async def resolve_master(self, topology: ReplicationTopology) -> str:
        """Return the master's pod IP, "" when there is none or the deadline passes."""
        try:
            return await asyncio.wait_for(self._resolve(topology), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.logger.error(
                f"Timed out after {self.timeout}s resolving the master of {topology.name}"
            )
            self.sensor.on_master_resolved(topology.name, topology.namespace, 0, False)
            return ""

    async def fetch_replication(
        self, name: str, namespace: str
    ) -> Optional[RedisReplicationSpec]:
        """Typed read of a RedisReplication spec, None when missing or invalid."""
        try:
            obj = await self.store.get_custom_object(
                self.custom_objects_api,
                namespace,
                self.GROUP_NAME,
                self.GROUP_VERSION,
                self.PLURAL_NAME,
                name,
            )
        except ApiException as ex:
            self.logger.error(
                f"Failed to get RedisReplication {name} in {namespace}: {ex.status} {ex.reason}"
            )
            return None
        if obj is None:
            self.logger.error(f"RedisReplication {name} not found in {namespace}")
            return None
        try:
            return RedisReplicationSpecSchema().load(obj.get("spec") or {})
        except ValidationError as ex:
            self.logger.error(f"Invalid RedisReplication {name} in {namespace}: {ex.messages}")
            return None

    async def read_secret_key(self, name: str, key: str, namespace: str) -> str:
        secret = await self.store.fetch_secret(self.core_v1_api, name, namespace)
        if secret is None:
            raise ConfigurationError(f"Secret {namespace}/{name} not found")
        data = secret.data or {}
        if key not in data:
            raise ConfigurationError(f"Key {key} not found in secret {namespace}/{name}")
        return base64.b64decode(data[key]).decode("utf-8").strip()

    async def probe_auth(self, spec: RedisReplicationSpec, namespace: str) -> ProbeAuth:
        """Credentials for connecting to the replicas of `spec`."""
        password = None
        redis_secret = spec.kubernetes_config.redis_secret
        if redis_secret is not None:
            password = await self.read_secret_key(
                redis_secret.name, redis_secret.key, namespace
            )
        ca_data = None
        if spec.tls is not None:
            secret_name = spec.tls.secret.get("secretName")
            if secret_name:
                secret = await self.store.fetch_secret(
                    self.core_v1_api, secret_name, namespace
                )
                encoded = ((secret.data or {}) if secret else {}).get(spec.tls.ca or "ca.crt")
                if encoded:
                    ca_data = base64.b64decode(encoded).decode("utf-8")
        return ProbeAuth(password=password, tls=spec.tls is not None, ca_data=ca_data)

    async def resolve_from_reference(self, replication_name: str, namespace: str) -> str:
        """Resolve the master IP of the RedisReplication a Sentinel points at."""
        spec = await self.fetch_replication(replication_name, namespace)
        if spec is None:
            return ""
        self.logger.info(f"Loaded RedisReplication {replication_name} in {namespace}")
        topology = ReplicationTopology(
            name=replication_name,
            namespace=namespace,
            stateful_set_name=RedisResources.replication_stateful_set_name(
                replication_name
            ),
            size=spec.cluster_size,
            auth=await self.probe_auth(spec, namespace),
        )
        return await self.resolve_master(topology)
