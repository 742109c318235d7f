from marshmallow import fields
from sentinelop.types.base import BaseSchema
from sentinelop.types.models.probe import Probe


class ProbeSchema(BaseSchema):
    __model__ = Probe

    initial_delay_seconds = fields.Int(data_key="initialDelaySeconds", load_default=1)
    timeout_seconds = fields.Int(data_key="timeoutSeconds", load_default=1)
    period_seconds = fields.Int(data_key="periodSeconds", load_default=10)
    success_threshold = fields.Int(data_key="successThreshold", load_default=1)
    failure_threshold = fields.Int(data_key="failureThreshold", load_default=3)
