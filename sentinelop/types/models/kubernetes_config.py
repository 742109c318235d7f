from typing import Dict, List, Optional
from sentinelop.types.base import BaseModel


class ExistingPasswordSecret(BaseModel):
    """Reference to the secret key holding the Redis password."""

    name: str
    key: str


class ServiceConfig(BaseModel):
    service_type: str
    annotations: Optional[Dict[str, str]]


class KubernetesConfig(BaseModel):
    """Container image and workload level settings."""

    image: str
    image_pull_policy: Optional[str]
    resources: Optional[Dict]
    redis_secret: Optional[ExistingPasswordSecret]
    image_pull_secrets: Optional[List[Dict]]
    update_strategy: Optional[Dict]
    service: Optional[ServiceConfig]
