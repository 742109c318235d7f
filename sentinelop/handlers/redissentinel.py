import kopf
from logging import Logger
from sentinelop.resources import RedisSentinel
from sentinelop.types.schemas import RedisSentinelSpecSchema
from sentinelop.types.settings import RECONCILE_INTERVAL_SECONDS
from sentinelop.handlers.base import reconcile_resource

KIND = "RedisSentinel"
GROUP = "redis.redis.opstreelabs.in"
NO_MASTER = "NoMasterFound"


async def reconcile(
    name, namespace, spec, meta, status, patch, labels, annotations, logger: Logger, trigger_source: str, body=None
):
    sentinel: RedisSentinel = await reconcile_resource(
        RedisSentinel,
        RedisSentinelSpecSchema(),
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
        trigger_source=trigger_source,
    )
    patch.status["masterIP"] = sentinel.master_ip
    if not sentinel.master_ip and body is not None:
        kopf.warn(
            body,
            reason=NO_MASTER,
            message=f"No master found for RedisReplication "
            f"`{sentinel.spec.redis_sentinel_config.redis_sentinel_name}` "
            f"in `{namespace}` namespace.",
        )


@kopf.on.resume(GROUP, KIND)
@kopf.on.create(GROUP, KIND)
@kopf.on.update(GROUP, KIND, field="spec")
async def reconciliation(
    body, name, namespace, spec, meta, status, patch, labels, annotations, logger: Logger, **kwargs
):
    """Reconcile RedisSentinel resources."""
    await reconcile(
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
        body=body,
    )


@kopf.timer(GROUP, KIND, initial_delay=5.0, interval=RECONCILE_INTERVAL_SECONDS, backoff=10.0)
async def periodic_reconciliation(
    body, name, namespace, spec, meta, status, patch, labels, annotations, logger: Logger, **kwargs
):
    """Re-resolve the master and revert drift."""
    await reconcile(
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
        body=body,
    )
