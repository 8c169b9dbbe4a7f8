from pydantic import BaseModel, Field
from typing import Any, Dict, List

from .quote import BOMItemIn


class PartNumberIn(BaseModel):
    chassis_id: str
    slot_assignments: Dict[int, str] = Field(default_factory=dict)
    has_remote_display: bool = False
    card_configurations: Dict[str, Any] = Field(default_factory=dict)
    slot_level4_selections: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class MarginIn(BaseModel):
    items: List[BOMItemIn]
    requested_discount: float = Field(0.0, ge=0, le=100)
