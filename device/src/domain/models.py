from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RecipeKind(str, Enum):
    CONSTANT_PRESSURE = "ConstantPressure"
    CONSTANT_CURRENT = "ConstantCurrent"
    RAMP = "Ramp"


@dataclass(frozen=True)
class LogRecord:
    second: int
    pressure: int
    current: int


class RecipeDescriptor(BaseModel):
    reference_name: str = Field(..., min_length=1)
    kind: RecipeKind
    part_size: int


class ControlSettings(BaseModel):
    pressure: int
    current: int
    seconds: int = Field(0, ge=0)


class DeviceStatus(BaseModel):
    device_id: str
    state: str  # "IDLE", "RUNNING", "ERROR"
    current_run: Optional[str]
    online: bool
    pressure: int
    current: int
    last_error: Optional[str]
    last_log: Optional[str]
    logs: List[str] = []
