from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class ClaimIn(BaseModel):
    lane: Literal["admin", "finance"]


class AdminDecisionIn(BaseModel):
    decision: Literal["approved", "rejected", "requires_finance", "needs_revision"]
    notes: Optional[str] = None
    margin_percent: Optional[float] = None
    finance_limit_percent: Optional[float] = None


class FinanceDecisionIn(BaseModel):
    decision: Literal["approved", "rejected"]
    notes: Optional[str] = None
    margin_percent: Optional[float] = None
    finance_limit_percent: Optional[float] = None


class ReassignIn(BaseModel):
    lane: Literal["owner", "admin", "finance"]
    target_user_id: Optional[str] = None


class MarginLimitIn(BaseModel):
    percent: float
    currency: Optional[str] = None


class QuoteFieldIn(BaseModel):
    id: str = Field(..., min_length=1)
    label: str
    type: Literal["text", "number", "select", "textarea", "date"] = "text"
    required: bool = False
    enabled: bool = True
    options: Optional[List[str]] = None
