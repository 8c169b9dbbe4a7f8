from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from .common import timestamp_field


class Product(SQLModel, table=True):
    """
    One row per node in the product hierarchy:

      level 1  asset family / product line (QTMS, TM8, QPDM ...)
      level 2  chassis or variant (LTX, MTX, STX ...)
      level 3  card or option, parent = level 2
      level 4  configurable field set, parent = level 3
    """
    id: str = Field(primary_key=True)
    name: str
    display_name: Optional[str] = None
    description: str = ""
    product_level: int = Field(index=True)
    parent_product_id: Optional[str] = Field(default=None, foreign_key="product.id", index=True)
    type: Optional[str] = None
    chassis_type: Optional[str] = None   # only for level 2 chassis
    price: float = 0.0
    cost: float = 0.0
    enabled: bool = True
    part_number: Optional[str] = None
    specifications: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class PartNumberConfig(SQLModel, table=True):
    """Part number layout of one level 2 chassis."""
    level2_product_id: str = Field(primary_key=True, foreign_key="product.id")
    prefix: str
    slot_count: int
    slot_placeholder: str = "0"
    suffix_separator: str = "-"
    remote_display_code: Optional[str] = None


class PartNumberCode(SQLModel, table=True):
    """Slot code template for one level 3 card inside one level 2 chassis."""
    id: Optional[int] = Field(default=None, primary_key=True)
    level2_product_id: str = Field(foreign_key="product.id", index=True)
    level3_product_id: str = Field(foreign_key="product.id", index=True)
    template: str = "X"
    slot_span: int = 1
    is_standard: bool = False
    standard_position: Optional[int] = None
    designated_only: bool = False
    designated_positions: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    outside_chassis: bool = False
    notes: Optional[str] = None
