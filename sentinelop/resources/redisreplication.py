from typing import Optional
from kubernetes_asyncio.client import V1Service, V1ServiceSpec
from sentinelop.resources.redis import RedisResource
from sentinelop.types.models import RedisReplicationSpec, RedisResources


class RedisReplication(RedisResource):
    """RedisReplication resource: a primary with replicas in one StatefulSet."""

    KIND = "RedisReplication"
    PLURAL_NAME = "redisreplications"
    SETUP_TYPE = "replication"
    ROLE = "replication"

    spec: RedisReplicationSpec

    @classmethod
    def stateful_set_name_for(cls, name: str) -> str:
        return RedisResources.replication_stateful_set_name(name)

    def prepare_service(self) -> V1Service:
        """Client service, type and annotations follow `kubernetesConfig.service`."""
        config = self.spec.kubernetes_config.service
        service_type = config.service_type if config else "ClusterIP"
        annotations: Optional[dict] = config.annotations if config else None
        return V1Service(
            api_version="v1",
            kind="Service",
            metadata=self.prepare_service_metadata(self.service_name, annotations),
            spec=V1ServiceSpec(
                type=service_type,
                selector=self.labels.pod_selectors().as_dict(),
                ports=self.prepare_service_ports(),
            ),
        )
