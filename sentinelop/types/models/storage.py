from typing import Dict, List, Optional
from sentinelop.types.base import BaseModel


class AdditionalVolumeMount(BaseModel):
    """User supplied volumes and the mounts that go with them."""

    volume: List[Dict]
    mount_path: List[Dict]


class Storage(BaseModel):
    volume_claim_template: Optional[Dict]
    volume_mount: Optional[AdditionalVolumeMount]
