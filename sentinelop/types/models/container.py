from typing import Dict, List, Optional
from sentinelop.types.base import BaseModel


class InitContainer(BaseModel):
    enabled: bool
    image: Optional[str]
    image_pull_policy: Optional[str]
    resources: Optional[Dict]
    env: Optional[List[Dict]]
    command: Optional[List[str]]
    args: Optional[List[str]]


class Sidecar(BaseModel):
    """Extra container appended to every Redis pod."""

    name: str
    image: str
    image_pull_policy: Optional[str]
    resources: Optional[Dict]
    env: Optional[List[Dict]]
    command: Optional[List[str]]
    ports: Optional[List[Dict]]
    volume_mounts: Optional[List[Dict]]
