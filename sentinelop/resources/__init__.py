from .redisreplication import RedisReplication
from .redissentinel import RedisSentinel

__all__ = ["RedisReplication", "RedisSentinel"]
