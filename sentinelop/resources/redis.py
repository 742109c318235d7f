import logging
import posixpath
from logging import Logger
from typing import Dict, List, Optional
from kubernetes_asyncio.client import (
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1Container,
    V1EnvVar,
    V1EnvVarSource,
    V1ExecAction,
    V1LabelSelector,
    V1ObjectMeta,
    V1OwnerReference,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1PodSpec,
    V1PodTemplateSpec,
    V1Probe,
    V1SecretKeySelector,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
    V1StatefulSet,
    V1StatefulSetSpec,
    V1Volume,
    V1VolumeMount,
    V1ConfigMapVolumeSource,
)
from kubernetes_asyncio.client.api_client import ApiClient

from sentinelop.common.models.labels import Labels
from sentinelop.resources.base import BaseResource
from sentinelop.resources.statefulset import StatefulSetConverger, recreate_requested
from sentinelop.sensors import SensorDelegate
from sentinelop.types.models.probe import Probe
from sentinelop.types.models.redis_resources import RedisResources
from sentinelop.types.models.redisreplication_spec import RedisReplicationSpec
from sentinelop.types.settings import Settings
from sentinelop.utils.helpers import prune, serialize, sort_env_vars


class RedisResource(BaseResource):
    """Objects shared by every Redis workload kind.

    A resource is built from the declared spec of one custom resource with
    `from_spec` and compiles the desired StatefulSet and services from it.
    Compilation performs no I/O; `synchronize` applies the result.
    """

    logger: Logger
    conf: Settings
    sensor: SensorDelegate
    shared_api_client: ApiClient = None  # Shared across all Redis resources

    KIND: str = None
    PLURAL_NAME: str = None
    GROUP_NAME = "redis.redis.opstreelabs.in"
    GROUP_VERSION = "v1beta1"
    SETUP_TYPE: str = None
    ROLE: str = None

    REDIS_PORT = 6379
    SENTINEL_PORT = 26379
    PORT_NAME = "redis-client"
    DATA_PATH = "/data"
    TLS_ROOT = "/tls"
    TLS_VOLUME_NAME = "tls-certs"
    ACL_VOLUME_NAME = "acl-secret"
    ACL_MOUNT_PATH = "/etc/redis/user.acl"
    ACL_SUB_PATH = "user.acl"
    EXTERNAL_CONFIG_VOLUME_NAME = "external-config"
    EXTERNAL_CONFIG_MOUNT_PATH = "/etc/redis/external.conf.d"
    HEALTHCHECK_COMMAND = ["bash", "/usr/bin/healthcheck.sh"]
    DEFAULT_CA_FILE = "ca.crt"
    DEFAULT_CERT_FILE = "tls.crt"
    DEFAULT_KEY_FILE = "tls.key"
    DEFAULT_ACCESS_MODES = ["ReadWriteOnce"]
    DEFAULT_VOLUME_MODE = "Filesystem"
    # Annotations of the custom resource that must not leak into children
    IGNORED_ANNOTATION_PREFIXES = ("kopf.zalando.org/", "kubectl.kubernetes.io/")

    replicas: int
    stateful_set_name: str
    service_name: str
    headless_service_name: str
    annotations: Dict[str, str] = None
    uid: str = None

    # CRD spec
    spec: RedisReplicationSpec

    # k8s resources
    _api_client: ApiClient = None
    _apps_v1_api: AppsV1Api = None
    _core_v1_api: CoreV1Api = None
    _custom_objects_api: CustomObjectsApi = None
    _env_vars: List[V1EnvVar] = None
    _volume_mounts: List[V1VolumeMount] = None
    _volumes: List[V1Volume] = None
    _redis_container: V1Container = None
    _init_container: V1Container = None
    _pod_spec: V1PodSpec = None
    _pod_template: V1PodTemplateSpec = None
    _volume_claim_template: V1PersistentVolumeClaim = None
    _stateful_set: V1StatefulSet = None
    _service: V1Service = None
    _headless_service: V1Service = None

    def __init__(
        self,
        name: str,
        kind: str,
        namespace: str,
        stateful_set_name: str,
        labels: Optional[Dict[str, str]] = None,
    ):
        # User labels first, operator labels win
        _labels = Labels(dict(labels or {}))
        _labels.update(
            Labels.generate_default_labels(
                stateful_set_name, self.SETUP_TYPE, self.ROLE, self.OPERATOR_NAME
            ).as_dict()
        )
        super().__init__(
            cluster=name,
            namespace=namespace,
            component_name=stateful_set_name,
            labels=_labels,
        )

    @classmethod
    def stateful_set_name_for(cls, name: str) -> str:
        raise NotImplementedError()

    @classmethod
    def from_spec(
        cls,
        name: str,
        kind: str,
        namespace: str,
        spec: RedisReplicationSpec,
        labels: Optional[Dict[str, str]] = None,
        annotations: Optional[Dict[str, str]] = None,
        uid: Optional[str] = None,
        logger: Logger = None,
    ) -> "RedisResource":
        stateful_set_name = cls.stateful_set_name_for(name)
        resource = cls(name, kind, namespace, stateful_set_name, labels)
        resource.logger = logger or logging.getLogger(__name__)
        resource.annotations = annotations
        resource.uid = uid
        resource.spec = spec
        resource.replicas = spec.cluster_size
        resource.stateful_set_name = stateful_set_name
        resource.service_name = RedisResources.service_name(stateful_set_name)
        resource.headless_service_name = RedisResources.headless_service_name(
            stateful_set_name
        )
        return resource

    async def synchronize(self) -> str:
        """Converge services and the StatefulSet, returning the StatefulSet operation."""
        await self.sync_services()
        return await self.sync_stateful_set()

    async def sync_services(self):
        await self.sync_service(self.headless_service, "headless_service")
        await self.sync_service(self.service, "service")

    async def sync_service(self, desired: V1Service, resource_type: str):
        """Check current state of a service and create/patch if needed."""
        name = desired.metadata.name
        service: V1Service = await self.fetch_service(
            self.core_v1_api, name, self.namespace
        )
        if not service:
            sensor_state = self.sensor.on_resource_sync_start(
                self.cluster, self.KIND, name, self.namespace, resource_type
            )
            success = True
            try:
                await self.create_service(self.core_v1_api, self.namespace, desired)
            except Exception:
                success = False
                raise
            finally:
                self.sensor.on_resource_sync_complete(
                    self.cluster, self.KIND, name, self.namespace, resource_type, sensor_state, "create", success
                )
            self.logger.info(f"Created service {name}")
            return

        actual_hash = self.compute_hash(self.prepare_service_watch_fields(service, desired))
        desired_hash = self.compute_hash(self.prepare_service_watch_fields(desired, desired))
        if actual_hash == desired_hash:
            return

        self.sensor.on_resource_drift_detected(
            self.cluster, self.KIND, name, self.namespace, resource_type, ["spec"]
        )
        sensor_state = self.sensor.on_resource_sync_start(
            self.cluster, self.KIND, name, self.namespace, resource_type
        )
        success = True
        try:
            await self.patch_service(
                self.core_v1_api,
                name,
                self.namespace,
                service=self.prepare_service_patch(desired, service),
            )
        except Exception:
            success = False
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                self.cluster, self.KIND, name, self.namespace, resource_type, sensor_state, "patch", success
            )
        self.logger.info(f"Patched service {name}")

    async def sync_stateful_set(self) -> str:
        converger = StatefulSetConverger(
            self,
            self.apps_v1_api,
            self.core_v1_api,
            logger=self.logger,
            sensor=self.sensor,
            settings=self.conf,
            name=self.cluster,
            kind=self.KIND,
        )
        return await converger.converge(
            self.namespace,
            self.stateful_set,
            recreate=recreate_requested(self.annotations, self.conf),
        )

    @property
    def persistence_enabled(self) -> bool:
        storage = self.spec.storage
        return storage is not None and storage.volume_claim_template is not None

    @property
    def redis_port(self) -> int:
        return self.REDIS_PORT

    def prepare_external_config(self) -> Optional[str]:
        """Name of the ConfigMap with extra server configuration, if any."""
        if self.spec.redis_config is None:
            return None
        return self.spec.redis_config.additional_redis_config

    def prepare_child_annotations(self) -> Dict[str, str]:
        """Annotations propagated from the custom resource to its children."""
        annotations = {
            "redis.opstreelabs.in": "true",
            "redis.opstreelabs.instance": self.cluster,
        }
        for key, value in (self.annotations or {}).items():
            if key.startswith(self.IGNORED_ANNOTATION_PREFIXES):
                continue
            annotations[key] = value
        return annotations

    def prepare_owner_references(self) -> Optional[List[V1OwnerReference]]:
        if not self.uid:
            return None
        return [
            V1OwnerReference(
                api_version=f"{self.GROUP_NAME}/{self.GROUP_VERSION}",
                kind=self.KIND,
                name=self.cluster,
                uid=self.uid,
                controller=True,
                block_owner_deletion=True,
            )
        ]

    def prepare_tls_env_vars(self) -> List[V1EnvVar]:
        tls = self.spec.tls
        return [
            V1EnvVar(name="TLS_MODE", value="true"),
            V1EnvVar(
                name="REDIS_TLS_CA_KEY",
                value=posixpath.join(self.TLS_ROOT, tls.ca or self.DEFAULT_CA_FILE),
            ),
            V1EnvVar(
                name="REDIS_TLS_CERT",
                value=posixpath.join(self.TLS_ROOT, tls.cert or self.DEFAULT_CERT_FILE),
            ),
            V1EnvVar(
                name="REDIS_TLS_CERT_KEY",
                value=posixpath.join(self.TLS_ROOT, tls.key or self.DEFAULT_KEY_FILE),
            ),
        ]

    def prepare_additional_env_vars(self) -> List[V1EnvVar]:
        return []

    def prepare_env_vars(self) -> List[V1EnvVar]:
        """Environment of the main container, sorted by name."""
        env_vars = [
            V1EnvVar(name="SERVER_MODE", value=self.ROLE),
            V1EnvVar(name="SETUP_MODE", value=self.ROLE),
            V1EnvVar(name="REDIS_ADDR", value=f"redis://localhost:{self.redis_port}"),
        ]
        if self.spec.tls is not None:
            env_vars.extend(self.prepare_tls_env_vars())
        if self.spec.acl is not None:
            env_vars.append(V1EnvVar(name="ACL_MODE", value="true"))
        redis_secret = self.spec.kubernetes_config.redis_secret
        if redis_secret is not None:
            env_vars.append(
                V1EnvVar(
                    name="REDIS_PASSWORD",
                    value_from=V1EnvVarSource(
                        secret_key_ref=V1SecretKeySelector(
                            name=redis_secret.name, key=redis_secret.key
                        )
                    ),
                )
            )
        if self.persistence_enabled:
            env_vars.append(V1EnvVar(name="PERSISTENCE_ENABLED", value="true"))
        env_vars.extend(self.prepare_additional_env_vars())
        return sort_env_vars(env_vars)

    def prepare_user_volume_mounts(self) -> List[Dict]:
        storage = self.spec.storage
        if storage is None or storage.volume_mount is None:
            return []
        return list(storage.volume_mount.mount_path or [])

    def prepare_data_volume_mounts(self) -> List[V1VolumeMount]:
        if not self.persistence_enabled:
            return []
        return [V1VolumeMount(name=self.stateful_set_name, mount_path=self.DATA_PATH)]

    def prepare_volume_mounts(self) -> List[V1VolumeMount]:
        mounts = self.prepare_data_volume_mounts()
        if self.spec.tls is not None:
            mounts.append(
                V1VolumeMount(
                    name=self.TLS_VOLUME_NAME, mount_path=self.TLS_ROOT, read_only=True
                )
            )
        if self.spec.acl is not None:
            mounts.append(
                V1VolumeMount(
                    name=self.ACL_VOLUME_NAME,
                    mount_path=self.ACL_MOUNT_PATH,
                    sub_path=self.ACL_SUB_PATH,
                )
            )
        if self.prepare_external_config():
            mounts.append(
                V1VolumeMount(
                    name=self.EXTERNAL_CONFIG_VOLUME_NAME,
                    mount_path=self.EXTERNAL_CONFIG_MOUNT_PATH,
                )
            )
        mounts.extend(self.prepare_user_volume_mounts())
        return mounts

    def prepare_volumes(self) -> List[V1Volume]:
        volumes = []
        external_config = self.prepare_external_config()
        if external_config:
            volumes.append(
                V1Volume(
                    name=self.EXTERNAL_CONFIG_VOLUME_NAME,
                    config_map=V1ConfigMapVolumeSource(name=external_config),
                )
            )
        storage = self.spec.storage
        if storage is not None and storage.volume_mount is not None:
            volumes.extend(storage.volume_mount.volume or [])
        if self.spec.tls is not None:
            volumes.append(V1Volume(name=self.TLS_VOLUME_NAME, secret=self.spec.tls.secret))
        if self.spec.acl is not None and self.spec.acl.secret:
            volumes.append(V1Volume(name=self.ACL_VOLUME_NAME, secret=self.spec.acl.secret))
        return volumes

    def prepare_probe(self, probe: Probe) -> V1Probe:
        return V1Probe(
            _exec=V1ExecAction(command=list(self.HEALTHCHECK_COMMAND)),
            initial_delay_seconds=probe.initial_delay_seconds,
            timeout_seconds=probe.timeout_seconds,
            period_seconds=probe.period_seconds,
            success_threshold=probe.success_threshold,
            failure_threshold=probe.failure_threshold,
        )

    def prepare_redis_container(self) -> V1Container:
        config = self.spec.kubernetes_config
        return V1Container(
            name=self.stateful_set_name,
            image=config.image,
            image_pull_policy=config.image_pull_policy,
            security_context=self.spec.security_context,
            resources=config.resources,
            env=self.env_vars,
            readiness_probe=self.prepare_probe(self.spec.readiness_probe),
            liveness_probe=self.prepare_probe(self.spec.liveness_probe),
            volume_mounts=self.volume_mounts or None,
        )

    def prepare_init_container(self) -> Optional[V1Container]:
        init = self.spec.init_container
        if init is None or not init.enabled:
            return None
        mounts = self.prepare_data_volume_mounts() + self.prepare_user_volume_mounts()
        return V1Container(
            name=f"init{self.stateful_set_name}",
            image=init.image,
            image_pull_policy=init.image_pull_policy,
            command=init.command,
            args=init.args,
            resources=init.resources,
            env=init.env,
            volume_mounts=mounts or None,
        )

    def prepare_sidecar_containers(self) -> List[V1Container]:
        return [
            V1Container(
                name=sidecar.name,
                image=sidecar.image,
                image_pull_policy=sidecar.image_pull_policy,
                command=sidecar.command,
                ports=sidecar.ports,
                volume_mounts=sidecar.volume_mounts,
                resources=sidecar.resources,
                env=sidecar.env,
            )
            for sidecar in self.spec.sidecars or []
        ]

    def prepare_pod_spec(self) -> V1PodSpec:
        config = self.spec.kubernetes_config
        init_container = self.init_container
        return V1PodSpec(
            containers=[self.redis_container] + self.prepare_sidecar_containers(),
            init_containers=[init_container] if init_container else None,
            node_selector=self.spec.node_selector,
            security_context=self.spec.pod_security_context,
            priority_class_name=self.spec.priority_class_name,
            affinity=self.spec.affinity,
            tolerations=self.spec.tolerations,
            termination_grace_period_seconds=self.spec.termination_grace_period_seconds,
            image_pull_secrets=config.image_pull_secrets,
            service_account_name=self.spec.service_account_name,
            volumes=self.volumes or None,
        )

    def prepare_pod_template(self) -> V1PodTemplateSpec:
        return V1PodTemplateSpec(
            metadata=V1ObjectMeta(
                labels=self.labels.as_dict(),
                annotations=self.prepare_child_annotations(),
            ),
            spec=self.pod_spec,
        )

    def prepare_volume_claim_template(self) -> Optional[V1PersistentVolumeClaim]:
        """Claim template for the data volume, named after the StatefulSet."""
        if not self.persistence_enabled:
            return None
        declared = self.spec.storage.volume_claim_template or {}
        spec = declared.get("spec") or {}
        return V1PersistentVolumeClaim(
            api_version="v1",
            kind="PersistentVolumeClaim",
            metadata=V1ObjectMeta(
                name=self.stateful_set_name,
                labels=self.labels.as_dict(),
                annotations=self.prepare_child_annotations(),
            ),
            spec=V1PersistentVolumeClaimSpec(
                access_modes=spec.get("accessModes") or list(self.DEFAULT_ACCESS_MODES),
                volume_mode=spec.get("volumeMode") or self.DEFAULT_VOLUME_MODE,
                resources=spec.get("resources"),
                selector=spec.get("selector"),
                storage_class_name=spec.get("storageClassName"),
            ),
        )

    def prepare_stateful_set(self) -> V1StatefulSet:
        """Build stateful set resource."""
        claim_template = self.volume_claim_template
        return V1StatefulSet(
            api_version="apps/v1",
            kind="StatefulSet",
            metadata=V1ObjectMeta(
                name=self.stateful_set_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
                annotations=self.prepare_child_annotations(),
                owner_references=self.prepare_owner_references(),
            ),
            spec=V1StatefulSetSpec(
                replicas=self.replicas,
                service_name=self.headless_service_name,
                selector=V1LabelSelector(
                    match_labels=self.labels.pod_selectors().as_dict()
                ),
                update_strategy=self.spec.kubernetes_config.update_strategy,
                template=self.pod_template,
                volume_claim_templates=[claim_template] if claim_template else None,
            ),
        )

    def prepare_service_ports(self) -> List[V1ServicePort]:
        return [
            V1ServicePort(
                name=self.PORT_NAME,
                protocol="TCP",
                port=self.redis_port,
                target_port=self.redis_port,
            )
        ]

    def prepare_service_metadata(
        self, name: str, annotations: Optional[Dict[str, str]] = None
    ) -> V1ObjectMeta:
        _annotations = self.prepare_child_annotations()
        _annotations.update(annotations or {})
        return V1ObjectMeta(
            name=name,
            namespace=self.namespace,
            labels=self.labels.as_dict(),
            annotations=_annotations,
            owner_references=self.prepare_owner_references(),
        )

    def prepare_headless_service(self) -> V1Service:
        """Governing service of the StatefulSet, gives every replica a stable DNS name."""
        return V1Service(
            api_version="v1",
            kind="Service",
            metadata=self.prepare_service_metadata(self.headless_service_name),
            spec=V1ServiceSpec(
                type="ClusterIP",
                cluster_ip="None",
                selector=self.labels.pod_selectors().as_dict(),
                ports=self.prepare_service_ports(),
            ),
        )

    def prepare_service(self) -> V1Service:
        return V1Service(
            api_version="v1",
            kind="Service",
            metadata=self.prepare_service_metadata(self.service_name),
            spec=V1ServiceSpec(
                type="ClusterIP",
                selector=self.labels.pod_selectors().as_dict(),
                ports=self.prepare_service_ports(),
            ),
        )

    def prepare_service_watch_fields(self, service: V1Service, desired: V1Service) -> Dict:
        """
        Fields of interest when comparing actual vs desired state of a service.
        Only the annotations `desired` declares are tracked; changes made outside
        the operator to these fields are reverted.
        """
        annotations = service.metadata.annotations or {}
        ports = [
            {key: value for key, value in port.items() if key != "nodePort"}
            for port in serialize(service.spec.ports) or []
        ]
        return prune(
            {
                "metadata": {
                    "annotations": {
                        key: annotations.get(key)
                        for key in desired.metadata.annotations or {}
                    }
                },
                "spec": {"type": service.spec.type, "ports": ports},
            }
        )

    def prepare_service_patch(
        self, service: V1Service, current: Optional[V1Service] = None
    ) -> List[Dict]:
        """Prepare JSON patch for service resource.
        A service can only have certain fields updated via patch.
        """
        patch = []
        if service.spec.type:
            patch.append({"op": "replace", "path": "/spec/type", "value": service.spec.type})
        if service.spec.ports:
            patch.append(
                {"op": "replace", "path": "/spec/ports", "value": serialize(service.spec.ports)}
            )
        annotations = service.metadata.annotations or {}
        if annotations and (current is None or not current.metadata.annotations):
            patch.append(
                {"op": "add", "path": "/metadata/annotations", "value": dict(annotations)}
            )
        else:
            for key, value in annotations.items():
                pointer = key.replace("~", "~0").replace("/", "~1")
                patch.append(
                    {"op": "add", "path": f"/metadata/annotations/{pointer}", "value": value}
                )
        return patch

    @property
    def api_client(self) -> ApiClient:
        if self._api_client is None:
            # Use the shared API client if available, otherwise create a new one
            if self.shared_api_client is not None:
                self._api_client = self.shared_api_client
            else:
                self._api_client = ApiClient()
        return self._api_client

    @property
    def apps_v1_api(self) -> AppsV1Api:
        if self._apps_v1_api is None:
            self._apps_v1_api = AppsV1Api(self.api_client)
        return self._apps_v1_api

    @property
    def core_v1_api(self) -> CoreV1Api:
        if self._core_v1_api is None:
            self._core_v1_api = CoreV1Api(self.api_client)
        return self._core_v1_api

    @property
    def custom_objects_api(self) -> CustomObjectsApi:
        if self._custom_objects_api is None:
            self._custom_objects_api = CustomObjectsApi(self.api_client)
        return self._custom_objects_api

    @property
    def env_vars(self) -> List[V1EnvVar]:
        if self._env_vars is None:
            self._env_vars = self.prepare_env_vars()
        return self._env_vars

    @property
    def volume_mounts(self) -> List[V1VolumeMount]:
        if self._volume_mounts is None:
            self._volume_mounts = self.prepare_volume_mounts()
        return self._volume_mounts

    @property
    def volumes(self) -> List[V1Volume]:
        if self._volumes is None:
            self._volumes = self.prepare_volumes()
        return self._volumes

    @property
    def redis_container(self) -> V1Container:
        if self._redis_container is None:
            self._redis_container = self.prepare_redis_container()
        return self._redis_container

    @property
    def init_container(self) -> Optional[V1Container]:
        if self._init_container is None:
            self._init_container = self.prepare_init_container()
        return self._init_container

    @property
    def pod_spec(self) -> V1PodSpec:
        if self._pod_spec is None:
            self._pod_spec = self.prepare_pod_spec()
        return self._pod_spec

    @property
    def pod_template(self) -> V1PodTemplateSpec:
        if self._pod_template is None:
            self._pod_template = self.prepare_pod_template()
        return self._pod_template

    @property
    def volume_claim_template(self) -> Optional[V1PersistentVolumeClaim]:
        if self._volume_claim_template is None:
            self._volume_claim_template = self.prepare_volume_claim_template()
        return self._volume_claim_template

    @property
    def stateful_set(self) -> V1StatefulSet:
        if self._stateful_set is None:
            self._stateful_set = self.prepare_stateful_set()
        return self._stateful_set

    @property
    def service(self) -> V1Service:
        if self._service is None:
            self._service = self.prepare_service()
        return self._service

    @property
    def headless_service(self) -> V1Service:
        if self._headless_service is None:
            self._headless_service = self.prepare_headless_service()
        return self._headless_service
