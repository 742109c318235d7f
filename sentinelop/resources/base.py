import mmh3
import hashlib
from typing import Any, Dict, Optional
from sentinelop.utils.helpers import canonicalize_dict
from sentinelop.common.models.labels import Labels
from sentinelop.utils.errors import already_exists_error, not_found_error
from kubernetes_asyncio.client import (
    ApiException,
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1DeleteOptions,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimList,
    V1Pod,
    V1Secret,
    V1Service,
    V1StatefulSet,
)


class BaseResource:
    """Base resource model.

    Holds the identity of the managed object and the store operations
    (get / create / replace / patch / delete / list) keyed by namespace and
    name. Fetches return None when the object does not exist.
    """

    OPERATOR_NAME = "redis-sentinel-operator"

    _cluster: str
    _namespace: str
    _component_name: str
    _labels: Labels

    def __init__(
        self, cluster: str, namespace: str, component_name: str, labels: Labels
    ):
        self._cluster = cluster
        self._namespace = namespace
        self._component_name = component_name
        self._labels = labels

    @property
    def cluster(self) -> str:
        return self._cluster

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def component_name(self) -> str:
        return self._component_name

    @property
    def labels(self) -> Labels:
        return self._labels

    def compute_hash(self, data: Any) -> str:
        """Compute a murmur3 hash."""
        if isinstance(data, dict):
            _data = canonicalize_dict(data)
        elif isinstance(data, str):
            _data = data.encode()
        else:
            raise ValueError(f"Hash of {type(data)} is not supported.")
        mumur_str = str(mmh3.hash128(_data))

        hash_obj = hashlib.sha256(mumur_str.encode("utf-8"))
        full_hash = hash_obj.hexdigest()

        # First 16 characters are enough for an annotation
        return full_hash[:16]

    async def fetch_service(
        self, core_v1_api: CoreV1Api, name: str, namespace: str
    ) -> Optional[V1Service]:
        """Retrieve the latest state of a service"""
        try:
            return await core_v1_api.read_namespaced_service(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def create_service(
        self, core_v1_api: CoreV1Api, namespace: str, service: V1Service
    ) -> None:
        try:
            await core_v1_api.create_namespaced_service(namespace=namespace, body=service)
        except ApiException as ex:
            if already_exists_error(ex):
                await self.replace_service(
                    core_v1_api,
                    name=service.metadata.name,
                    namespace=namespace,
                    service=service,
                )
            else:
                raise

    async def replace_service(
        self, core_v1_api: CoreV1Api, name: str, namespace: str, service: V1Service
    ):
        await core_v1_api.replace_namespaced_service(
            name=name,
            namespace=namespace,
            body=service,
        )

    async def patch_service(
        self, core_v1_api: CoreV1Api, name: str, namespace: str, service: Any
    ):
        await core_v1_api.patch_namespaced_service(
            name=name,
            namespace=namespace,
            body=service,
        )

    async def fetch_stateful_set(
        self, apps_v1_api: AppsV1Api, name: str, namespace: str
    ) -> Optional[V1StatefulSet]:
        try:
            return await apps_v1_api.read_namespaced_stateful_set(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def create_stateful_set(
        self,
        apps_v1_api: AppsV1Api,
        namespace: str,
        stateful_set: V1StatefulSet,
    ):
        await apps_v1_api.create_namespaced_stateful_set(
            namespace=namespace, body=stateful_set
        )

    async def replace_stateful_set(
        self,
        apps_v1_api: AppsV1Api,
        name: str,
        namespace: str,
        stateful_set: V1StatefulSet,
    ):
        await apps_v1_api.replace_namespaced_stateful_set(
            name=name, namespace=namespace, body=stateful_set
        )

    async def delete_stateful_set(
        self,
        apps_v1_api: AppsV1Api,
        name: str,
        namespace: str,
        delete_options: V1DeleteOptions,
    ):
        try:
            await apps_v1_api.delete_namespaced_stateful_set(
                name, namespace, body=delete_options
            )
        except ApiException as ex:
            if not_found_error(ex):
                return
            raise

    async def fetch_secret(
        self, core_v1_api: CoreV1Api, name: str, namespace: str
    ) -> Optional[V1Secret]:
        try:
            return await core_v1_api.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def fetch_pod(
        self, core_v1_api: CoreV1Api, name: str, namespace: str
    ) -> Optional[V1Pod]:
        try:
            return await core_v1_api.read_namespaced_pod(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def list_persistent_volume_claims(
        self, core_v1_api: CoreV1Api, namespace: str, label_selector: Dict[str, str] = None
    ) -> V1PersistentVolumeClaimList:
        """List claims in namespace, optionally filtered by label selector."""
        label_selector_str = None
        if label_selector:
            label_selector_str = ",".join([f"{k}={v}" for k, v in label_selector.items()])
        return await core_v1_api.list_namespaced_persistent_volume_claim(
            namespace=namespace, label_selector=label_selector_str
        )

    async def replace_persistent_volume_claim(
        self,
        core_v1_api: CoreV1Api,
        name: str,
        namespace: str,
        pvc: V1PersistentVolumeClaim,
    ):
        await core_v1_api.replace_namespaced_persistent_volume_claim(
            name=name,
            namespace=namespace,
            body=pvc,
        )

    async def get_custom_object(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: str,
        group: str,
        version: str,
        plural: str,
        name: str,
    ) -> Optional[Dict]:
        try:
            return await custom_objects_api.get_namespaced_custom_object(
                group=group,
                version=version,
                namespace=namespace,
                plural=plural,
                name=name,
            )
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise
