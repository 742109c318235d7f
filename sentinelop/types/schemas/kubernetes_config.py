from marshmallow import fields
from sentinelop.types.base import BaseSchema
from sentinelop.types.models.kubernetes_config import (
    KubernetesConfig,
    ExistingPasswordSecret,
    ServiceConfig,
)


class ExistingPasswordSecretSchema(BaseSchema):
    __model__ = ExistingPasswordSecret

    name = fields.Str(data_key="name", required=True)
    key = fields.Str(data_key="key", required=True)


class ServiceConfigSchema(BaseSchema):
    __model__ = ServiceConfig

    service_type = fields.Str(data_key="serviceType", load_default="ClusterIP")
    annotations = fields.Dict(
        keys=fields.String(),
        values=fields.String(),
        data_key="annotations",
        allow_none=True,
        load_default=None,
    )


class KubernetesConfigSchema(BaseSchema):
    """Image, resources and workload settings shared by both kinds."""

    __model__ = KubernetesConfig

    image = fields.Str(data_key="image", required=True)
    image_pull_policy = fields.Str(
        data_key="imagePullPolicy", allow_none=True, load_default=None
    )
    resources = fields.Dict(
        keys=fields.String(),
        values=fields.Raw(),
        data_key="resources",
        allow_none=True,
        load_default=None,
    )
    redis_secret = fields.Nested(
        ExistingPasswordSecretSchema(),
        data_key="redisSecret",
        allow_none=True,
        load_default=None,
    )
    image_pull_secrets = fields.List(
        fields.Dict(keys=fields.String(), values=fields.Raw(), allow_none=False),
        data_key="imagePullSecrets",
        allow_none=True,
        load_default=None,
    )
    update_strategy = fields.Dict(
        keys=fields.String(),
        values=fields.Raw(),
        data_key="updateStrategy",
        allow_none=True,
        load_default=None,
    )
    service = fields.Nested(
        ServiceConfigSchema(),
        data_key="service",
        allow_none=True,
        load_default=None,
    )
