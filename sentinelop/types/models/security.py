from typing import Dict, Optional
from sentinelop.types.base import BaseModel


class TLSConfig(BaseModel):
    """TLS material mounted at /tls."""

    ca: Optional[str]
    cert: Optional[str]
    key: Optional[str]
    secret: Dict


class ACLConfig(BaseModel):
    secret: Optional[Dict]
