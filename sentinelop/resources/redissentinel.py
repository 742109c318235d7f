from typing import List, Optional
from kubernetes_asyncio.client import V1EnvVar, V1Service, V1ServiceSpec
from sentinelop.resources.redis import RedisResource
from sentinelop.topology import MasterResolver, TopologyProber
from sentinelop.types.models import RedisResources, RedisSentinelSpec


class RedisSentinel(RedisResource):
    """RedisSentinel resource.

    Sentinel processes monitoring the master of the RedisReplication named in
    `redisSentinelConfig.redisSentinelName`. The master is discovered from
    the live replicas before the StatefulSet is compiled and handed to the
    pods through the `IP` variable.
    """

    KIND = "RedisSentinel"
    PLURAL_NAME = "redissentinels"
    SETUP_TYPE = "sentinel"
    ROLE = "sentinel"

    spec: RedisSentinelSpec
    master_ip: str = ""

    _additional_service: V1Service = None

    @classmethod
    def stateful_set_name_for(cls, name: str) -> str:
        return RedisResources.sentinel_stateful_set_name(name)

    async def synchronize(self) -> str:
        await self.resolve_master()
        return await super().synchronize()

    async def sync_services(self):
        await super().sync_services()
        await self.sync_service(self.additional_service, "additional_service")

    async def resolve_master(self) -> str:
        """Look up the current master of the monitored replication."""
        resolver = MasterResolver(
            self,
            self.core_v1_api,
            self.custom_objects_api,
            TopologyProber(
                timeout=self.conf.redis_probe_timeout_seconds, logger=self.logger
            ),
            logger=self.logger,
            sensor=self.sensor,
            timeout=self.conf.master_resolution_timeout_seconds,
        )
        self.master_ip = await resolver.resolve_from_reference(
            self.spec.redis_sentinel_config.redis_sentinel_name, self.namespace
        )
        return self.master_ip

    @property
    def persistence_enabled(self) -> bool:
        return False

    @property
    def redis_port(self) -> int:
        return self.SENTINEL_PORT

    def prepare_external_config(self) -> Optional[str]:
        return self.spec.redis_sentinel_config.additional_sentinel_config

    def prepare_additional_env_vars(self) -> List[V1EnvVar]:
        config = self.spec.redis_sentinel_config
        return [
            V1EnvVar(name="MASTER_GROUP_NAME", value=config.master_group_name),
            V1EnvVar(name="IP", value=self.master_ip),
            V1EnvVar(name="PORT", value=config.redis_port),
            V1EnvVar(name="QUORUM", value=config.quorum),
            V1EnvVar(name="DOWN_AFTER_MILLISECONDS", value=config.down_after_milliseconds),
            V1EnvVar(name="PARALLEL_SYNCS", value=config.parallel_syncs),
            V1EnvVar(name="FAILOVER_TIMEOUT", value=config.failover_timeout),
        ]

    def prepare_additional_service(self) -> V1Service:
        """Externally facing service, type and annotations follow `kubernetesConfig.service`."""
        config = self.spec.kubernetes_config.service
        return V1Service(
            api_version="v1",
            kind="Service",
            metadata=self.prepare_service_metadata(
                RedisResources.additional_service_name(self.stateful_set_name),
                config.annotations if config else None,
            ),
            spec=V1ServiceSpec(
                type=config.service_type if config else "ClusterIP",
                selector=self.labels.pod_selectors().as_dict(),
                ports=self.prepare_service_ports(),
            ),
        )

    @property
    def additional_service(self) -> V1Service:
        if self._additional_service is None:
            self._additional_service = self.prepare_additional_service()
        return self._additional_service
