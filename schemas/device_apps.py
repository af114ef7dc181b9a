"""
Pydantic schema for a parsed installed-apps record
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Tuple


UINT32_MAX = 2 ** 32 - 1


class DeviceRecord(BaseModel):
    """
    One device and the applications installed on it.

    Ensures:
    - Device type and id are present
    - Coordinates are floats
    - App ids fit an unsigned 32-bit integer
    """

    model_config = ConfigDict(frozen=True)

    dev_type: str = Field(..., min_length=1)
    dev_id: str = Field(..., min_length=1)
    lat: float
    lon: float
    apps: Tuple[int, ...] = ()

    @field_validator("apps")
    @classmethod
    def check_uint32(cls, v):
        """Reject app ids outside the uint32 range"""
        for app in v:
            if not 0 <= app <= UINT32_MAX:
                raise ValueError(f"App id {app} does not fit uint32")
        return v

    @property
    def store_key(self) -> str:
        """Memcached key for this record"""
        return f"{self.dev_type}:{self.dev_id}"
