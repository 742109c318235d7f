import kopf
from logging import Logger
from sentinelop.resources import RedisReplication
from sentinelop.types.schemas import RedisReplicationSpecSchema
from sentinelop.types.settings import RECONCILE_INTERVAL_SECONDS
from sentinelop.handlers.base import reconcile_resource

KIND = "RedisReplication"
GROUP = "redis.redis.opstreelabs.in"


@kopf.on.resume(GROUP, KIND)
@kopf.on.create(GROUP, KIND)
@kopf.on.update(GROUP, KIND, field="spec")
async def reconciliation(
    name, namespace, spec, meta, status, patch, labels, annotations, logger: Logger, **kwargs
):
    """Reconcile RedisReplication resources."""
    await reconcile_resource(
        RedisReplication,
        RedisReplicationSpecSchema(),
        KIND,
        name,
        namespace,
        spec,
        meta,
        status,
        patch,
        labels,
        annotations,
        logger,
        trigger_source="event",
    )


@kopf.timer(GROUP, KIND, initial_delay=5.0, interval=RECONCILE_INTERVAL_SECONDS, backoff=10.0)
async def periodic_reconciliation(
    name, namespace, spec, meta, status, patch, labels, annotations, logger: Logger, **kwargs
):
    """Revert drift of the StatefulSet and services."""
    await reconcile_resource(
        RedisReplication,
        RedisReplicationSpecSchema(),
        KIND,
        name,
        namespace,
        spec,
        meta,
        status,
        patch,
        labels,
        annotations,
        logger,
        trigger_source="timer",
    )
