from sentinelop.types.base import BaseModel


class Probe(BaseModel):
    """Readiness / liveness probe timings for the Redis container."""

    initial_delay_seconds: int
    timeout_seconds: int
    period_seconds: int
    success_threshold: int
    failure_threshold: int
