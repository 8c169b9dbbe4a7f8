from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class BOMItemIn(BaseModel):
    """
    One BOM line as sent by the BOM builder.

    For chassis lines (level 2 product with slots):
      slot_assignments    {slot number: level 3 card id}
      card_configurations {"slot-<n>": config}, e.g. bushing lists
      has_remote_display  adds the remote display suffix to the part number
      slot_level4_selections {"slot-<n>": {field id: value}} for configurable cards
    """
    product_id: str
    quantity: int = Field(1, gt=0)
    unit_price: Optional[float] = Field(None, ge=0)   # price override, else catalog price
    enabled: bool = True
    configuration: Dict[str, Any] = Field(default_factory=dict)
    slot_assignments: Dict[int, str] = Field(default_factory=dict)
    card_configurations: Dict[str, Any] = Field(default_factory=dict)
    has_remote_display: bool = False
    level4_selections: Dict[str, Any] = Field(default_factory=dict)
    slot_level4_selections: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class QuoteCreate(BaseModel):
    customer_name: str = "Unknown Customer"
    oracle_customer_id: str = ""
    sfdc_opportunity: str = ""
    priority: str = "Medium"
    payment_terms: str = "30 days"
    shipping_terms: str = "Ex-Works"
    currency: Optional[str] = None
    is_rep_involved: bool = False
    quote_fields: Dict[str, Any] = Field(default_factory=dict)
    requested_discount: float = Field(0.0, ge=0, le=100)
    discount_justification: Optional[str] = None
    items: List[BOMItemIn] = Field(default_factory=list)


class QuoteUpdate(BaseModel):
    customer_name: Optional[str] = None
    oracle_customer_id: Optional[str] = None
    sfdc_opportunity: Optional[str] = None
    priority: Optional[str] = None
    payment_terms: Optional[str] = None
    shipping_terms: Optional[str] = None
    currency: Optional[str] = None
    is_rep_involved: Optional[bool] = None
    quote_fields: Optional[Dict[str, Any]] = None
    requested_discount: Optional[float] = Field(None, ge=0, le=100)
    discount_justification: Optional[str] = None
    items: Optional[List[BOMItemIn]] = None
