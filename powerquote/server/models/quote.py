from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from .common import timestamp_field


class Quote(SQLModel, table=True):
    id: str = Field(primary_key=True)
    draft_name: Optional[str] = None
    owner_id: Optional[str] = Field(default=None, foreign_key="profile.id")
    user_id: str = Field(foreign_key="profile.id", index=True)

    customer_name: str = "Unknown Customer"
    oracle_customer_id: str = ""
    sfdc_opportunity: str = ""
    priority: str = "Medium"
    payment_terms: str = "30 days"
    shipping_terms: str = "Ex-Works"
    currency: str = "USD"
    is_rep_involved: bool = False
    quote_fields: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    # legacy status + derived workflow state, see core.workflow
    status: str = Field(default="draft", index=True)
    workflow_state: str = Field(default="draft", index=True)
    requires_finance_approval: bool = False

    original_quote_value: float = 0.0
    requested_discount: float = 0.0
    discounted_value: float = 0.0
    total_cost: float = 0.0
    original_margin: float = 0.0
    discounted_margin: float = 0.0
    gross_profit: float = 0.0
    discount_justification: Optional[str] = None

    submitted_at: Optional[datetime] = timestamp_field(optional=True)
    submitted_by_email: Optional[str] = None
    submitted_by_name: Optional[str] = None

    admin_reviewer_id: Optional[str] = None
    finance_reviewer_id: Optional[str] = None
    admin_decision_status: Optional[str] = None
    admin_decision_notes: Optional[str] = None
    admin_decision_by: Optional[str] = None
    admin_decision_at: Optional[datetime] = timestamp_field(optional=True)
    finance_decision_status: Optional[str] = None
    finance_decision_notes: Optional[str] = None
    finance_decision_by: Optional[str] = None
    finance_decision_at: Optional[datetime] = timestamp_field(optional=True)
    finance_threshold_snapshot: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    finance_margin_breached: bool = False

    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = timestamp_field(optional=True)

    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class BOMItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    quote_id: str = Field(foreign_key="quote.id", index=True)
    product_id: str
    name: str
    description: str = ""
    part_number: str
    quantity: int
    unit_price: float
    unit_cost: float
    total_price: float
    total_cost: float
    margin: float = 0.0
    enabled: bool = True
    # chassis lines: slot_assignments, card_configurations, has_remote_display
    configuration: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    level4_selections: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))


class QuoteEvent(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    quote_id: str = Field(index=True)
    event_type: str
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    previous_state: Optional[str] = None
    new_state: Optional[str] = None
    payload: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = timestamp_field()
