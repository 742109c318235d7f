from marshmallow import fields
from sentinelop.types.base import BaseSchema
from sentinelop.types.models.container import InitContainer, Sidecar


def _dict_list(data_key: str):
    return fields.List(
        fields.Dict(keys=fields.String(), values=fields.Raw(), allow_none=False),
        data_key=data_key,
        allow_none=True,
        load_default=None,
    )


class InitContainerSchema(BaseSchema):
    __model__ = InitContainer

    enabled = fields.Bool(data_key="enabled", load_default=False)
    image = fields.Str(data_key="image", allow_none=True, load_default=None)
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
    env = _dict_list("env")
    command = fields.List(
        fields.Str(), data_key="command", allow_none=True, load_default=None
    )
    args = fields.List(fields.Str(), data_key="args", allow_none=True, load_default=None)


class SidecarSchema(BaseSchema):
    __model__ = Sidecar

    name = fields.Str(data_key="name", required=True)
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
    env = _dict_list("env")
    command = fields.List(
        fields.Str(), data_key="command", allow_none=True, load_default=None
    )
    ports = _dict_list("ports")
    volume_mounts = _dict_list("mountPath")
