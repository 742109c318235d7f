from .probe import ProbeSchema
from .kubernetes_config import (
    KubernetesConfigSchema,
    ExistingPasswordSecretSchema,
    ServiceConfigSchema,
)
from .redis_config import RedisConfigSchema, RedisSentinelConfigSchema
from .storage import StorageSchema, AdditionalVolumeMountSchema
from .security import TLSConfigSchema, ACLConfigSchema
from .container import InitContainerSchema, SidecarSchema
from .redisreplication_spec import RedisReplicationSpecSchema
from .redissentinel_spec import RedisSentinelSpecSchema

__all__ = [
    "ProbeSchema",
    "KubernetesConfigSchema",
    "ExistingPasswordSecretSchema",
    "ServiceConfigSchema",
    "RedisConfigSchema",
    "RedisSentinelConfigSchema",
    "StorageSchema",
    "AdditionalVolumeMountSchema",
    "TLSConfigSchema",
    "ACLConfigSchema",
    "InitContainerSchema",
    "SidecarSchema",
    "RedisReplicationSpecSchema",
    "RedisSentinelSpecSchema",
]
