from .probe import Probe
from .kubernetes_config import KubernetesConfig, ExistingPasswordSecret, ServiceConfig
from .redis_config import RedisConfig, RedisSentinelConfig
from .storage import Storage, AdditionalVolumeMount
from .security import TLSConfig, ACLConfig
from .container import InitContainer, Sidecar
from .redisreplication_spec import RedisReplicationSpec
from .redissentinel_spec import RedisSentinelSpec
from .redis_resources import RedisResources

__all__ = [
    "Probe",
    "KubernetesConfig",
    "ExistingPasswordSecret",
    "ServiceConfig",
    "RedisConfig",
    "RedisSentinelConfig",
    "Storage",
    "AdditionalVolumeMount",
    "TLSConfig",
    "ACLConfig",
    "InitContainer",
    "Sidecar",
    "RedisReplicationSpec",
    "RedisSentinelSpec",
    "RedisResources",
]
