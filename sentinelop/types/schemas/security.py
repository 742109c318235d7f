from marshmallow import fields
from sentinelop.types.base import BaseSchema
from sentinelop.types.models.security import TLSConfig, ACLConfig


class TLSConfigSchema(BaseSchema):
    __model__ = TLSConfig

    ca = fields.Str(data_key="ca", allow_none=True, load_default=None)
    cert = fields.Str(data_key="cert", allow_none=True, load_default=None)
    key = fields.Str(data_key="key", allow_none=True, load_default=None)
    secret = fields.Dict(
        keys=fields.String(), values=fields.Raw(), data_key="secret", required=True
    )


class ACLConfigSchema(BaseSchema):
    __model__ = ACLConfig

    secret = fields.Dict(
        keys=fields.String(),
        values=fields.Raw(),
        data_key="secret",
        allow_none=True,
        load_default=None,
    )
