from marshmallow import fields
from sentinelop.types.base import BaseSchema
from sentinelop.types.models.storage import Storage, AdditionalVolumeMount


class AdditionalVolumeMountSchema(BaseSchema):
    __model__ = AdditionalVolumeMount

    volume = fields.List(
        fields.Dict(keys=fields.String(), values=fields.Raw()),
        data_key="volume",
        load_default=list,
    )
    mount_path = fields.List(
        fields.Dict(keys=fields.String(), values=fields.Raw()),
        data_key="mountPath",
        load_default=list,
    )


class StorageSchema(BaseSchema):
    """Persistence settings, the claim template follows the PVC shape."""

    __model__ = Storage

    volume_claim_template = fields.Dict(
        keys=fields.String(),
        values=fields.Raw(),
        data_key="volumeClaimTemplate",
        allow_none=True,
        load_default=None,
    )
    volume_mount = fields.Nested(
        AdditionalVolumeMountSchema(),
        data_key="volumeMount",
        allow_none=True,
        load_default=None,
    )
