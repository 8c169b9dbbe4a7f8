from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class ProductIn(BaseModel):
    id: str
    name: str
    display_name: Optional[str] = None
    description: str = ""
    product_level: int = Field(..., ge=1, le=4)
    parent_product_id: Optional[str] = None
    type: Optional[str] = None
    chassis_type: Optional[str] = None
    price: float = Field(0.0, ge=0)
    cost: float = Field(0.0, ge=0)
    enabled: bool = True
    part_number: Optional[str] = None
    specifications: Dict[str, Any] = Field(default_factory=dict)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    chassis_type: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    enabled: Optional[bool] = None
    part_number: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None


class PartNumberConfigIn(BaseModel):
    """Part number layout of a level 2 chassis; omitted fields keep their value."""
    prefix: Optional[str] = Field(None, min_length=1)
    slot_count: Optional[int] = Field(None, ge=1)
    slot_placeholder: Optional[str] = Field(None, min_length=1, max_length=1)
    suffix_separator: Optional[str] = None
    remote_display_code: Optional[str] = None


class PartNumberCodeIn(BaseModel):
    template: Optional[str] = Field(None, min_length=1)   # may hold {inputs} / {numberOfBushings}
    slot_span: Optional[int] = Field(None, ge=1)
    is_standard: Optional[bool] = None
    standard_position: Optional[int] = Field(None, ge=1)
    designated_only: Optional[bool] = None
    designated_positions: Optional[List[int]] = None
    outside_chassis: Optional[bool] = None
    notes: Optional[str] = None
