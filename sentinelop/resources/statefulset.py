import asyncio
import logging
from logging import Logger
from typing import Any, Dict, Optional

import kopf
from kubernetes_asyncio.client import (
    ApiException,
    AppsV1Api,
    CoreV1Api,
    V1DeleteOptions,
    V1StatefulSet,
)

from sentinelop.common.models.labels import Labels
from sentinelop.sensors import SensorDelegate
from sentinelop.types.settings import Settings
from sentinelop.utils.errors import already_exists_error, invalid_causes, invalid_error
from sentinelop.utils.helpers import parse_quantity, prune, serialize
from sentinelop.utils.patch import PatchPlanner

STORAGE_CAPACITY_ANNOTATION = "storageCapacity"
RECREATE_ANNOTATION = "redis.opstreelabs.in/recreate-statefulset"

RESOURCE_TYPE = "stateful_set"


def storage_request(template: Any) -> Optional[str]:
    """Requested storage of a claim or claim template, as declared."""
    data = serialize(template) or {}
    return (
        ((data.get("spec") or {}).get("resources") or {}).get("requests") or {}
    ).get("storage")


def storage_watermark(stateful_set: V1StatefulSet) -> int:
    """Capacity recorded on a stored StatefulSet, 0 when absent or unreadable."""
    annotations = stateful_set.metadata.annotations or {}
    try:
        return int(annotations.get(STORAGE_CAPACITY_ANNOTATION) or 0)
    except ValueError:
        return 0


def recreate_requested(annotations: Optional[Dict[str, str]], settings: Settings) -> bool:
    """Is the delete and recreate fallback allowed for this object."""
    value = (annotations or {}).get(RECREATE_ANNOTATION)
    if value is not None:
        return str(value).lower() == "true"
    return bool(settings.recreate_statefulset)


class CapacityCoordinator:
    """Grows the per-replica claims of a StatefulSet one by one.

    Claim templates of a stored StatefulSet are immutable, so a capacity
    change is applied to every existing claim directly. The
    `storageCapacity` annotation of the StatefulSet records the last capacity
    applied to all claims and never decreases.
    """

    def __init__(
        self,
        store,
        core_v1_api: CoreV1Api,
        logger: Logger = None,
        sensor: SensorDelegate = None,
        name: str = None,
    ):
        self.store = store
        self.core_v1_api = core_v1_api
        self.logger = logger or logging.getLogger(__name__)
        self.sensor = sensor or SensorDelegate()
        self.name = name

    def claim_selector(self, stateful_set_name: str) -> Dict[str, str]:
        return (
            Labels()
            .include_app(stateful_set_name)
            .include_kubernetes_component(Labels.COMPONENT)
            .include_kubernetes_name(stateful_set_name)
            .claim_selectors()
            .as_dict()
        )

    async def reconcile_capacity(
        self,
        observed: V1StatefulSet,
        desired_capacity: int,
        storage: Optional[str] = None,
    ) -> bool:
        """Resize the claims of `observed` to `desired_capacity` bytes.

        Returns True when the watermark on `observed` was advanced. The
        watermark only moves when at least one claim matched and every
        attempted claim update succeeded.
        """
        name = observed.metadata.name
        namespace = observed.metadata.namespace
        watermark = storage_watermark(observed)
        if desired_capacity < watermark:
            self.logger.warning(
                f"Shrinking the storage of {name} from {watermark} to {desired_capacity} "
                "bytes is not supported, skipping"
            )
            return False

        claims = await self.store.list_persistent_volume_claims(
            self.core_v1_api, namespace, self.claim_selector(name)
        )
        items = claims.items or []
        failed, resized = False, False
        for claim in items:
            current = parse_quantity(storage_request(claim) or 0)
            if current == desired_capacity:
                continue
            resized = True
            requests = dict(claim.spec.resources.requests or {})
            requests["storage"] = storage or str(desired_capacity)
            claim.spec.resources.requests = requests
            success = True
            try:
                await self.store.replace_persistent_volume_claim(
                    self.core_v1_api, claim.metadata.name, namespace, claim
                )
            except ApiException as ex:
                success, failed = False, True
                self.logger.error(
                    f"Failed to resize claim {claim.metadata.name} of {name}: "
                    f"{ex.status} {ex.reason}"
                )
            self.sensor.on_capacity_resize(
                self.name or name,
                namespace,
                claim.metadata.name,
                current,
                desired_capacity,
                success,
            )

        if failed or not items:
            return False

        if observed.metadata.annotations is None:
            observed.metadata.annotations = {}
        observed.metadata.annotations[STORAGE_CAPACITY_ANNOTATION] = str(desired_capacity)
        if resized:
            self.logger.info(
                f"Resized claims of {name} from {watermark} to {desired_capacity} bytes"
            )
        else:
            self.logger.info(f"Claims of {name} already sized, recorded capacity only")
        return True


class StatefulSetConverger:
    """Converges a stored StatefulSet towards a desired one.

    A pass fetches the stored object, creates it when missing, otherwise
    computes a three-way merge plan and replaces the object when the plan is
    not empty. Claim templates are never changed in place; capacity changes
    go through `CapacityCoordinator` and structural changes rejected by the
    API server can be applied by deleting and recreating the StatefulSet.
    """

    def __init__(
        self,
        store,
        apps_v1_api: AppsV1Api,
        core_v1_api: CoreV1Api,
        logger: Logger = None,
        sensor: SensorDelegate = None,
        settings: Settings = None,
        name: str = None,
        kind: str = None,
    ):
        self.store = store
        self.apps_v1_api = apps_v1_api
        self.core_v1_api = core_v1_api
        self.logger = logger or logging.getLogger(__name__)
        self.sensor = sensor or SensorDelegate()
        self.conf = settings or Settings()
        self.name = name
        self.kind = kind
        self.planner = PatchPlanner()
        self.capacity = CapacityCoordinator(
            store, core_v1_api, logger=self.logger, sensor=self.sensor, name=name
        )

    async def converge(
        self, namespace: str, desired: V1StatefulSet, recreate: bool = False
    ) -> str:
        """Apply `desired`, returning the operation performed.

        One of "create", "update", "recreate" or "noop".
        """
        sts_name = desired.metadata.name
        observed = await self.store.fetch_stateful_set(
            self.apps_v1_api, sts_name, namespace
        )
        if observed is None:
            self.planner.set_last_applied(desired)
            await self._instrumented(
                "create",
                sts_name,
                namespace,
                self.store.create_stateful_set(self.apps_v1_api, namespace, desired),
            )
            self.logger.info(f"Created StatefulSet {sts_name}")
            return "create"

        # Planned against the object as fetched, the watermark may move below
        stored = serialize(observed)
        await self.carry_claim_templates(observed, desired)
        self.carry_annotations(observed, desired)

        plan = self.planner.plan(stored, desired)
        if plan.is_empty:
            self.logger.debug(f"StatefulSet {sts_name} is up to date")
            return "noop"

        self.logger.info(f"Changes in StatefulSet {sts_name} detected: {plan.as_json()}")
        self.sensor.on_resource_drift_detected(
            self.name, self.kind, sts_name, namespace, RESOURCE_TYPE, plan.changed_fields
        )
        self.planner.set_last_applied(desired)
        desired.metadata.resource_version = observed.metadata.resource_version
        try:
            await self._instrumented(
                "update",
                sts_name,
                namespace,
                self.store.replace_stateful_set(
                    self.apps_v1_api, sts_name, namespace, desired
                ),
            )
        except ApiException as ex:
            if not (recreate and invalid_error(ex)):
                raise
            self.logger.warning(
                f"Recreating StatefulSet {sts_name}, update rejected: {invalid_causes(ex)}"
            )
            await self.recreate(namespace, desired)
            return "recreate"
        self.logger.info(f"Updated StatefulSet {sts_name}")
        return "update"

    async def carry_claim_templates(
        self, observed: V1StatefulSet, desired: V1StatefulSet
    ) -> None:
        """Keep the stored claim templates, resizing claims when capacity changed."""
        desired_templates = desired.spec.volume_claim_templates or []
        observed_templates = observed.spec.volume_claim_templates or []
        if not desired_templates or len(desired_templates) != len(observed_templates):
            return

        desired_spec = prune(serialize(desired_templates[0]).get("spec") or {})
        observed_spec = prune(serialize(observed_templates[0]).get("spec") or {})
        if desired_spec != observed_spec:
            storage = storage_request(desired_templates[0])
            if storage:
                desired_capacity = parse_quantity(storage)
                if desired_capacity != storage_watermark(observed):
                    await self.capacity.reconcile_capacity(
                        observed, desired_capacity, storage
                    )

        desired.spec.volume_claim_templates = observed_templates
        watermark = (observed.metadata.annotations or {}).get(STORAGE_CAPACITY_ANNOTATION)
        if watermark is not None:
            if desired.metadata.annotations is None:
                desired.metadata.annotations = {}
            desired.metadata.annotations[STORAGE_CAPACITY_ANNOTATION] = watermark

    def carry_annotations(self, observed: V1StatefulSet, desired: V1StatefulSet) -> None:
        """Stored annotations the desired object does not declare are kept."""
        if desired.metadata.annotations is None:
            desired.metadata.annotations = {}
        for key, value in (observed.metadata.annotations or {}).items():
            desired.metadata.annotations.setdefault(key, value)

    async def recreate(self, namespace: str, desired: V1StatefulSet) -> None:
        """Delete the StatefulSet in the foreground and create it again."""
        sts_name = desired.metadata.name
        await self.store.delete_stateful_set(
            self.apps_v1_api,
            sts_name,
            namespace,
            delete_options=V1DeleteOptions(propagation_policy="Foreground"),
        )
        # Give the API server time to finish the foreground deletion
        await asyncio.sleep(self.conf.statefulset_deletion_timeout_seconds)
        desired.metadata.resource_version = None
        try:
            await self._instrumented(
                "recreate",
                sts_name,
                namespace,
                self.store.create_stateful_set(self.apps_v1_api, namespace, desired),
            )
        except ApiException as ex:
            if already_exists_error(ex):
                raise kopf.TemporaryError(
                    f"StatefulSet {sts_name} is still being deleted", delay=10
                )
            raise
        self.logger.info(f"Recreated StatefulSet {sts_name}")

    async def _instrumented(self, operation: str, sts_name: str, namespace: str, call):
        sensor_state = self.sensor.on_resource_sync_start(
            self.name, self.kind, sts_name, namespace, RESOURCE_TYPE
        )
        success = True
        try:
            await call
        except Exception:
            success = False
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                self.name,
                self.kind,
                sts_name,
                namespace,
                RESOURCE_TYPE,
                sensor_state,
                operation,
                success,
            )
