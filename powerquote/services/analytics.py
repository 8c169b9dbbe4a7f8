"""
Quote analytics for the dashboard.

Stats are computed over workflow states:
  executed        closed
  approved        approved
  rejected        rejected
  under_analysis  draft, submitted, admin_review, finance_review

Quoted value is the discounted value, margin the discounted margin.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from powerquote.server.models import utcnow

UNDER_ANALYSIS_STATES = ("draft", "submitted", "admin_review", "finance_review")

_COLUMNS = ["id", "workflow_state", "total", "margin", "gross_profit", "created_at"]


def _field(quote: Any, key: str) -> Any:
    if isinstance(quote, dict):
        return quote.get(key)
    return getattr(quote, key, None)


def _frame(quotes: Iterable[Any]) -> pd.DataFrame:
    rows = []
    for q in quotes:
        rows.append({
            "id": _field(q, "id"),
            "workflow_state": _field(q, "workflow_state"),
            "total": float(_field(q, "discounted_value") or 0),
            "margin": float(_field(q, "discounted_margin") or 0),
            "gross_profit": float(_field(q, "gross_profit") or 0),
            "created_at": _field(q, "created_at"),
        })
    df = pd.DataFrame(rows, columns=_COLUMNS)
    # SQLite hands back naive UTC, fresh rows are aware; compare as naive UTC
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True).dt.tz_localize(None)
    return df


def _stats(df: pd.DataFrame) -> Dict[str, Any]:
    state = df["workflow_state"]
    return {
        "executed": int((state == "closed").sum()),
        "approved": int((state == "approved").sum()),
        "rejected": int((state == "rejected").sum()),
        "under_analysis": int(state.isin(UNDER_ANALYSIS_STATES).sum()),
        "total_quoted_value": round(float(df["total"].sum()), 2),
        "avg_margin": round(float(df["margin"].mean()), 2) if len(df) else 0.0,
        "total_gross_profit": round(float(df["gross_profit"].sum()), 2),
    }


def calculate_quote_analytics(quotes: Iterable[Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Month-to-date and year-to-date stats plus a 12 month breakdown
    (oldest month first, months without quotes included as zeros).
    """
    now = now or utcnow()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    df = _frame(quotes)

    created = df["created_at"]
    monthly = df[(created.dt.year == now.year) & (created.dt.month == now.month)]
    yearly = df[created.dt.year == now.year]

    months = pd.period_range(end=pd.Period(now, freq="M"), periods=12, freq="M")
    grouped = (
        df.assign(month=created.dt.to_period("M"), cost=df["total"] - df["gross_profit"])
        .groupby("month")
        .agg(quotes=("id", "count"), value=("total", "sum"), cost=("cost", "sum"))
        .reindex(months, fill_value=0)
    )

    breakdown: List[Dict[str, Any]] = [
        {
            "month": str(period),
            "quotes": int(row["quotes"]),
            "value": round(float(row["value"]), 2),
            "cost": round(float(row["cost"]), 2),
        }
        for period, row in grouped.iterrows()
    ]

    return {
        "monthly": _stats(monthly),
        "yearly": _stats(yearly),
        "monthly_breakdown": breakdown,
    }
