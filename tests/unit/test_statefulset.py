"""Unit tests for StatefulSet convergence and claim capacity."""

import copy
import json
import kopf
import pytest
from unittest.mock import AsyncMock, Mock, patch
from kubernetes_asyncio.client import (
    ApiException,
    V1Container,
    V1LabelSelector,
    V1ObjectMeta,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimList,
    V1PersistentVolumeClaimSpec,
    V1PodSpec,
    V1PodTemplateSpec,
    V1ResourceRequirements,
    V1StatefulSet,
    V1StatefulSetSpec,
)
from sentinelop.resources.statefulset import (
    RECREATE_ANNOTATION,
    STORAGE_CAPACITY_ANNOTATION,
    CapacityCoordinator,
    StatefulSetConverger,
    recreate_requested,
    storage_request,
    storage_watermark,
)
from sentinelop.types.settings import Settings
from sentinelop.utils.patch import LAST_APPLIED_ANNOTATION, PatchPlanner

GI = 1024**3


def make_stateful_set(replicas=3, storage="1Gi", annotations=None, resource_version=None):
    templates = None
    if storage:
        templates = [
            V1PersistentVolumeClaim(
                metadata=V1ObjectMeta(name="cache"),
                spec=V1PersistentVolumeClaimSpec(
                    access_modes=["ReadWriteOnce"],
                    resources=V1ResourceRequirements(requests={"storage": storage}),
                ),
            )
        ]
    return V1StatefulSet(
        api_version="apps/v1",
        kind="StatefulSet",
        metadata=V1ObjectMeta(
            name="cache",
            namespace="default",
            labels={"app": "cache"},
            annotations=annotations,
            resource_version=resource_version,
        ),
        spec=V1StatefulSetSpec(
            replicas=replicas,
            service_name="cache-headless",
            selector=V1LabelSelector(match_labels={"app": "cache"}),
            template=V1PodTemplateSpec(
                metadata=V1ObjectMeta(labels={"app": "cache"}),
                spec=V1PodSpec(containers=[V1Container(name="cache", image="redis:7")]),
            ),
            volume_claim_templates=templates,
        ),
    )


def make_applied(replicas=3, storage="1Gi", annotations=None):
    """A StatefulSet as stored after the operator created it."""
    sts = make_stateful_set(replicas, storage, annotations, resource_version="7")
    PatchPlanner().set_last_applied(sts)
    return sts


def make_claim(name, storage):
    return V1PersistentVolumeClaim(
        metadata=V1ObjectMeta(name=name, namespace="default"),
        spec=V1PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            resources=V1ResourceRequirements(requests={"storage": storage}),
        ),
    )


def api_exception(status, reason, body):
    ex = ApiException(status=status, reason=reason)
    ex.body = json.dumps(body)
    return ex


class InMemoryStore:
    """StatefulSet storage that versions objects like the API server."""

    def __init__(self, reject_updates=False):
        self.objects = {}
        self.versions = 0
        self.reject_updates = reject_updates
        self.deleted = []

    def _bump(self, sts):
        self.versions += 1
        sts.metadata.resource_version = str(self.versions)
        return sts

    async def fetch_stateful_set(self, apps_v1_api, name, namespace):
        return copy.deepcopy(self.objects.get((namespace, name)))

    async def create_stateful_set(self, apps_v1_api, namespace, body):
        key = (namespace, body.metadata.name)
        if key in self.objects:
            raise api_exception(409, "Conflict", {"reason": "AlreadyExists"})
        self.objects[key] = self._bump(copy.deepcopy(body))

    async def replace_stateful_set(self, apps_v1_api, name, namespace, body):
        if self.reject_updates:
            raise api_exception(
                422,
                "Unprocessable Entity",
                {"reason": "Invalid", "details": {"causes": [{"message": "spec: Forbidden"}]}},
            )
        self.objects[(namespace, name)] = self._bump(copy.deepcopy(body))

    async def delete_stateful_set(self, apps_v1_api, name, namespace, delete_options=None):
        self.objects.pop((namespace, name))
        self.deleted.append((name, delete_options.propagation_policy))


@pytest.fixture
def store():
    store = Mock()
    store.fetch_stateful_set = AsyncMock(return_value=None)
    store.create_stateful_set = AsyncMock()
    store.replace_stateful_set = AsyncMock()
    store.delete_stateful_set = AsyncMock()
    store.list_persistent_volume_claims = AsyncMock(
        return_value=V1PersistentVolumeClaimList(items=[])
    )
    store.replace_persistent_volume_claim = AsyncMock()
    return store


@pytest.fixture
def sensor():
    return Mock()


@pytest.fixture
def converger(store, sensor):
    return StatefulSetConverger(
        store,
        Mock(),
        Mock(),
        sensor=sensor,
        settings=Settings(statefulset_deletion_timeout_seconds=0),
        name="cache",
        kind="RedisReplication",
    )


class TestHelpers:
    """Tests for watermark and recreate helpers."""

    def test_storage_request(self):
        assert storage_request(make_claim("data-0", "2Gi")) == "2Gi"

    def test_storage_request_missing(self):
        assert storage_request(V1PersistentVolumeClaim()) is None

    def test_watermark(self):
        sts = make_stateful_set(annotations={STORAGE_CAPACITY_ANNOTATION: str(GI)})
        assert storage_watermark(sts) == GI

    def test_watermark_missing(self):
        assert storage_watermark(make_stateful_set()) == 0

    def test_watermark_unreadable(self):
        sts = make_stateful_set(annotations={STORAGE_CAPACITY_ANNOTATION: "1Gi"})
        assert storage_watermark(sts) == 0

    def test_recreate_annotation_wins(self):
        conf = Settings(recreate_statefulset=True)
        assert not recreate_requested({RECREATE_ANNOTATION: "false"}, conf)
        assert recreate_requested({RECREATE_ANNOTATION: "True"}, Settings(recreate_statefulset=False))

    def test_recreate_falls_back_to_settings(self):
        assert recreate_requested(None, Settings(recreate_statefulset=True))
        assert not recreate_requested({}, Settings(recreate_statefulset=False))


class TestConverge:
    """Tests for StatefulSetConverger.converge."""

    @pytest.mark.asyncio
    async def test_creates_missing(self, converger, store):
        desired = make_stateful_set()
        operation = await converger.converge("default", desired)
        assert operation == "create"
        store.create_stateful_set.assert_awaited_once()
        assert LAST_APPLIED_ANNOTATION in desired.metadata.annotations

    @pytest.mark.asyncio
    async def test_unchanged_is_noop(self, converger, store):
        store.fetch_stateful_set.return_value = make_applied()
        operation = await converger.converge("default", make_stateful_set())
        assert operation == "noop"
        store.replace_stateful_set.assert_not_awaited()
        store.create_stateful_set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_repeated_passes_stay_noop(self, converger, store):
        store.fetch_stateful_set.return_value = make_applied()
        for _ in range(3):
            assert await converger.converge("default", make_stateful_set()) == "noop"

    @pytest.mark.asyncio
    async def test_replica_change_updates(self, converger, store, sensor):
        store.fetch_stateful_set.return_value = make_applied(replicas=3)
        desired = make_stateful_set(replicas=5)
        operation = await converger.converge("default", desired)
        assert operation == "update"
        store.replace_stateful_set.assert_awaited_once()
        replaced = store.replace_stateful_set.call_args.args[3]
        assert replaced.spec.replicas == 5
        assert replaced.metadata.resource_version == "7"
        drift_fields = sensor.on_resource_drift_detected.call_args.args[5]
        assert "spec.replicas" in drift_fields

    @pytest.mark.asyncio
    async def test_stored_image_edit_is_reverted(self, converger, store, sensor):
        stored = make_applied()
        stored.spec.template.spec.containers[0].image = "redis:6"
        store.fetch_stateful_set.return_value = stored
        operation = await converger.converge("default", make_stateful_set())
        assert operation == "update"
        replaced = store.replace_stateful_set.call_args.args[3]
        assert replaced.spec.template.spec.containers[0].image == "redis:7"
        drift_fields = sensor.on_resource_drift_detected.call_args.args[5]
        assert drift_fields == ["spec.template.spec.containers"]

    @pytest.mark.asyncio
    async def test_foreign_annotations_are_kept(self, converger, store):
        store.fetch_stateful_set.return_value = make_applied(
            replicas=3, annotations={"deployment.kubernetes.io/revision": "4"}
        )
        desired = make_stateful_set(replicas=4)
        await converger.converge("default", desired)
        assert desired.metadata.annotations["deployment.kubernetes.io/revision"] == "4"

    @pytest.mark.asyncio
    async def test_claim_templates_never_change_in_place(self, converger, store):
        store.fetch_stateful_set.return_value = make_applied(storage="1Gi")
        store.list_persistent_volume_claims.return_value = V1PersistentVolumeClaimList(
            items=[make_claim("cache-cache-0", "1Gi")]
        )
        desired = make_stateful_set(storage="2Gi")
        await converger.converge("default", desired)
        template = desired.spec.volume_claim_templates[0]
        assert template.spec.resources.requests["storage"] == "1Gi"

    @pytest.mark.asyncio
    async def test_invalid_update_without_opt_in_raises(self, converger, store):
        store.fetch_stateful_set.return_value = make_applied(replicas=3)
        store.replace_stateful_set.side_effect = api_exception(
            422, "Unprocessable Entity", {"reason": "Invalid"}
        )
        with pytest.raises(ApiException):
            await converger.converge("default", make_stateful_set(replicas=4))
        store.delete_stateful_set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_update_with_opt_in_recreates(self, converger, store):
        store.fetch_stateful_set.return_value = make_applied(replicas=3)
        store.replace_stateful_set.side_effect = api_exception(
            422,
            "Unprocessable Entity",
            {"reason": "Invalid", "details": {"causes": [{"message": "spec: Forbidden"}]}},
        )
        desired = make_stateful_set(replicas=4)
        with patch("sentinelop.resources.statefulset.asyncio.sleep", new=AsyncMock()) as sleep:
            operation = await converger.converge("default", desired, recreate=True)
        assert operation == "recreate"
        store.delete_stateful_set.assert_awaited_once()
        delete_options = store.delete_stateful_set.call_args.kwargs["delete_options"]
        assert delete_options.propagation_policy == "Foreground"
        sleep.assert_awaited_once_with(0)
        store.create_stateful_set.assert_awaited_once()
        assert desired.metadata.resource_version is None

    @pytest.mark.asyncio
    async def test_recreated_object_starts_a_new_history(self, sensor):
        store = InMemoryStore()
        converger = StatefulSetConverger(
            store,
            Mock(),
            Mock(),
            sensor=sensor,
            settings=Settings(statefulset_deletion_timeout_seconds=0),
            name="cache",
            kind="RedisReplication",
        )
        assert await converger.converge("default", make_stateful_set(replicas=3)) == "create"
        assert await converger.converge("default", make_stateful_set(replicas=4)) == "update"
        before = await store.fetch_stateful_set(None, "cache", "default")
        assert before.metadata.resource_version == "2"

        store.reject_updates = True
        with patch("sentinelop.resources.statefulset.asyncio.sleep", new=AsyncMock()):
            operation = await converger.converge(
                "default", make_stateful_set(replicas=5), recreate=True
            )
        assert operation == "recreate"
        assert store.deleted == [("cache", "Foreground")]
        after = await store.fetch_stateful_set(None, "cache", "default")
        assert after.metadata.resource_version == "3"
        assert after.spec.replicas == 5
        assert json.loads(after.metadata.annotations[LAST_APPLIED_ANNOTATION])["spec"][
            "replicas"
        ] == 5

        store.reject_updates = False
        assert await converger.converge("default", make_stateful_set(replicas=5)) == "noop"

    @pytest.mark.asyncio
    async def test_other_errors_are_not_recreated(self, converger, store):
        store.fetch_stateful_set.return_value = make_applied(replicas=3)
        store.replace_stateful_set.side_effect = api_exception(
            409, "Conflict", {"reason": "Conflict"}
        )
        with pytest.raises(ApiException):
            await converger.converge("default", make_stateful_set(replicas=4), recreate=True)
        store.delete_stateful_set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recreate_still_terminating(self, converger, store):
        store.create_stateful_set.side_effect = api_exception(
            409, "Conflict", {"reason": "AlreadyExists"}
        )
        with patch("sentinelop.resources.statefulset.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(kopf.TemporaryError):
                await converger.recreate("default", make_stateful_set())

    @pytest.mark.asyncio
    async def test_sync_hooks_report_failure(self, converger, store, sensor):
        store.fetch_stateful_set.return_value = make_applied(replicas=3)
        store.replace_stateful_set.side_effect = api_exception(
            500, "Internal Server Error", {"reason": "InternalError"}
        )
        with pytest.raises(ApiException):
            await converger.converge("default", make_stateful_set(replicas=4))
        args = sensor.on_resource_sync_complete.call_args.args
        assert args[6] == "update"
        assert args[7] is False


class TestCapacity:
    """Tests for CapacityCoordinator."""

    @pytest.fixture
    def coordinator(self, store, sensor):
        return CapacityCoordinator(store, Mock(), sensor=sensor, name="cache")

    def test_claim_selector(self, coordinator):
        assert coordinator.claim_selector("cache") == {
            "app": "cache",
            "app.kubernetes.io/component": "redis",
            "app.kubernetes.io/name": "cache",
        }

    @pytest.mark.asyncio
    async def test_grow_resizes_every_claim(self, coordinator, store):
        store.list_persistent_volume_claims.return_value = V1PersistentVolumeClaimList(
            items=[make_claim("cache-cache-0", "1Gi"), make_claim("cache-cache-1", "1Gi")]
        )
        observed = make_applied()
        assert await coordinator.reconcile_capacity(observed, 2 * GI, "2Gi")
        assert store.replace_persistent_volume_claim.await_count == 2
        resized = store.replace_persistent_volume_claim.call_args.args[3]
        assert resized.spec.resources.requests["storage"] == "2Gi"
        assert observed.metadata.annotations[STORAGE_CAPACITY_ANNOTATION] == str(2 * GI)

    @pytest.mark.asyncio
    async def test_sized_claims_are_skipped(self, coordinator, store):
        store.list_persistent_volume_claims.return_value = V1PersistentVolumeClaimList(
            items=[make_claim("cache-cache-0", "2Gi")]
        )
        observed = make_applied()
        assert await coordinator.reconcile_capacity(observed, 2 * GI, "2Gi")
        store.replace_persistent_volume_claim.assert_not_awaited()
        assert observed.metadata.annotations[STORAGE_CAPACITY_ANNOTATION] == str(2 * GI)

    @pytest.mark.asyncio
    async def test_shrink_is_skipped(self, coordinator, store):
        observed = make_applied(annotations={STORAGE_CAPACITY_ANNOTATION: str(2 * GI)})
        assert not await coordinator.reconcile_capacity(observed, GI, "1Gi")
        store.list_persistent_volume_claims.assert_not_awaited()
        assert observed.metadata.annotations[STORAGE_CAPACITY_ANNOTATION] == str(2 * GI)

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_watermark(self, coordinator, store, sensor):
        store.list_persistent_volume_claims.return_value = V1PersistentVolumeClaimList(
            items=[make_claim("cache-cache-0", "1Gi"), make_claim("cache-cache-1", "1Gi")]
        )
        store.replace_persistent_volume_claim.side_effect = [
            None,
            api_exception(403, "Forbidden", {"reason": "Forbidden"}),
        ]
        observed = make_applied(annotations={STORAGE_CAPACITY_ANNOTATION: str(GI)})
        assert not await coordinator.reconcile_capacity(observed, 2 * GI, "2Gi")
        assert observed.metadata.annotations[STORAGE_CAPACITY_ANNOTATION] == str(GI)
        results = [c.args[5] for c in sensor.on_capacity_resize.call_args_list]
        assert results == [True, False]

    @pytest.mark.asyncio
    async def test_no_claims_keeps_watermark(self, coordinator, store):
        observed = make_applied()
        assert not await coordinator.reconcile_capacity(observed, 2 * GI, "2Gi")
        assert STORAGE_CAPACITY_ANNOTATION not in observed.metadata.annotations

    @pytest.mark.asyncio
    async def test_growth_through_converge_records_watermark(self, converger, store):
        store.fetch_stateful_set.return_value = make_applied(storage="1Gi")
        store.list_persistent_volume_claims.return_value = V1PersistentVolumeClaimList(
            items=[make_claim("cache-cache-0", "1Gi")]
        )
        desired = make_stateful_set(storage="2Gi")
        operation = await converger.converge("default", desired)
        assert operation == "update"
        assert desired.metadata.annotations[STORAGE_CAPACITY_ANNOTATION] == str(2 * GI)

    @pytest.mark.asyncio
    async def test_growth_is_applied_once(self, converger, store):
        applied = make_applied(
            storage="1Gi", annotations={STORAGE_CAPACITY_ANNOTATION: str(2 * GI)}
        )
        store.fetch_stateful_set.return_value = applied
        operation = await converger.converge("default", make_stateful_set(storage="2Gi"))
        assert operation == "noop"
        store.list_persistent_volume_claims.assert_not_awaited()
