import kopf
from logging import Logger
from typing import Type
from kubernetes_asyncio.client import ApiException
from marshmallow import Schema, ValidationError
from sentinelop.resources.redis import RedisResource
from sentinelop.utils.errors import ConfigurationError, convert_api_exception
from sentinelop.utils.helpers import upsert_condition


def get_sensor():
    """Get sensor from the resource classes, None before operator startup."""
    return getattr(RedisResource, "sensor", None)


def on_error(error, meta, status, patch, **_):
    """Handle errors during reconciliation."""
    gen = meta.get("generation", 0)
    conds = (status or {}).get("conditions", [])
    conds = upsert_condition(
        conds,
        {
            "type": "Progressing",
            "status": "False",
            "reason": "Error",
            "message": str(error) if error else "Reconcile failed; see events/logs",
            "observedGeneration": gen,
        },
    )
    conds = upsert_condition(
        conds,
        {
            "type": "Ready",
            "status": "False",
            "reason": "Error",
            "message": "Redis workload not ready",
            "observedGeneration": gen,
        },
    )
    patch.status["conditions"] = conds


def on_ready(operation, meta, status, patch, **_):
    gen = meta.get("generation", 0)
    conds = (status or {}).get("conditions", [])
    conds = upsert_condition(
        conds,
        {
            "type": "Progressing",
            "status": "False",
            "reason": "Reconciled",
            "message": f"StatefulSet {operation}",
            "observedGeneration": gen,
        },
    )
    conds = upsert_condition(
        conds,
        {
            "type": "Ready",
            "status": "True",
            "reason": "Reconciled",
            "message": "Redis workload reconciled",
            "observedGeneration": gen,
        },
    )
    patch.status["conditions"] = conds
    patch.status["observedGeneration"] = gen


async def reconcile_resource(
    resource_cls: Type[RedisResource],
    schema: Schema,
    kind: str,
    name,
    namespace,
    spec,
    meta,
    status,
    patch,
    labels,
    annotations,
    logger: Logger,
    trigger_source: str = "manual",
) -> RedisResource:
    """Run one convergence pass for a Redis custom resource.

    Failures are written to the status conditions and re-raised as kopf
    errors: an invalid spec is permanent, a missing secret or a transient
    API failure is retried with backoff.
    """
    sensor = get_sensor()
    generation = meta.get("generation", 0)
    sensor_state = None
    if sensor:
        sensor_state = sensor.on_reconcile_start(
            name, kind, namespace, generation, trigger_source
        )

    success = True
    error = None
    try:
        try:
            spec_model = schema.load(spec)
        except ValidationError as e:
            raise kopf.PermanentError(f"Invalid {kind} spec: {e.messages}")

        resource = resource_cls.from_spec(
            name,
            kind,
            namespace,
            spec_model,
            labels=dict(labels or {}),
            annotations=dict(annotations or {}),
            uid=meta.get("uid"),
            logger=logger,
        )
        logger.debug(f"Reconciling {kind}/{name} in {namespace} namespace.")
        try:
            operation = await resource.synchronize()
        except ConfigurationError as e:
            raise kopf.TemporaryError(str(e), delay=30)
        except ApiException as e:
            logger.error(f"Kubernetes API error during reconciliation: {e.status} {e.reason}")
            convert_api_exception(e)
        logger.debug(f"Reconciled {kind}/{name} in {namespace} namespace.")
        on_ready(operation, meta, status, patch)
        return resource
    except Exception as e:
        success = False
        error = e
        logger.error(f"Failed to reconcile {kind}/{name}: {e}")
        on_error(e, meta, status, patch)
        raise
    finally:
        if sensor:
            sensor.on_reconcile_complete(name, kind, namespace, sensor_state, success, error)
