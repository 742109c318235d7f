from marshmallow import fields, pre_load
from sentinelop.types.base import BaseSchema
from sentinelop.types.models.redis_config import RedisConfig, RedisSentinelConfig


class RedisConfigSchema(BaseSchema):
    __model__ = RedisConfig

    additional_redis_config = fields.Str(
        data_key="additionalRedisConfig", allow_none=True, load_default=None
    )


class RedisSentinelConfigSchema(BaseSchema):
    __model__ = RedisSentinelConfig

    STRING_FIELDS = (
        "redisPort",
        "quorum",
        "parallelSyncs",
        "failoverTimeout",
        "downAfterMilliseconds",
    )

    redis_sentinel_name = fields.Str(data_key="redisSentinelName", required=True)
    additional_sentinel_config = fields.Str(
        data_key="additionalSentinelConfig", allow_none=True, load_default=None
    )
    master_group_name = fields.Str(
        data_key="masterGroupName", load_default="redisSentinelCluster"
    )
    redis_port = fields.Str(data_key="redisPort", load_default="26379")
    quorum = fields.Str(data_key="quorum", load_default="2")
    parallel_syncs = fields.Str(data_key="parallelSyncs", load_default="1")
    failover_timeout = fields.Str(data_key="failoverTimeout", load_default="180000")
    down_after_milliseconds = fields.Str(
        data_key="downAfterMilliseconds", load_default="30000"
    )

    @pre_load
    def stringify(self, data, **kwargs):
        """Numeric settings end up in env vars, accept them as numbers too."""
        data = dict(data)
        for key in self.STRING_FIELDS:
            if isinstance(data.get(key), int):
                data[key] = str(data[key])
        return data
