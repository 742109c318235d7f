from typing import Optional
from sentinelop.types.base import BaseModel


class RedisConfig(BaseModel):
    additional_redis_config: Optional[str]


class RedisSentinelConfig(BaseModel):
    """Sentinel monitoring parameters.

    All numeric settings are kept as strings since they are handed to the
    container verbatim as environment variables.
    """

    redis_sentinel_name: str
    additional_sentinel_config: Optional[str]
    master_group_name: str
    redis_port: str
    quorum: str
    parallel_syncs: str
    failover_timeout: str
    down_after_milliseconds: str
