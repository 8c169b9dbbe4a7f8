"""
Margin calculations for the quote engine.

Margin = (price - cost) / price, expressed in percent.

The item helpers work on plain dicts shaped like a BOM line:

    {
        "quantity": 2,
        "enabled": True,
        "product": {"price": 1200.0, "cost": 700.0},
        "level2_options": [{"price": 50.0, "cost": 20.0}],
        "level3_customizations": [{"price": 10.0, "cost": 4.0}],
    }

Option and customization add-ons are counted once per line, not per unit.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from powerquote.core.roles import can_approve_below_limit


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _addons(item: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(item.get("level2_options") or []) + list(item.get("level3_customizations") or [])


def calculate_item_cost(item: Dict[str, Any]) -> float:
    product = item.get("product") or {}
    total = _num(product.get("cost")) * _num(item.get("quantity"))
    total += sum(_num(a.get("cost")) for a in _addons(item))
    return total


def calculate_item_revenue(item: Dict[str, Any]) -> float:
    product = item.get("product") or {}
    total = _num(product.get("price")) * _num(item.get("quantity"))
    total += sum(_num(a.get("price")) for a in _addons(item))
    return total


def calculate_item_margin(item: Dict[str, Any]) -> float:
    revenue = calculate_item_revenue(item)
    if revenue == 0:
        return 0.0
    return (revenue - calculate_item_cost(item)) / revenue * 100


def calculate_total_margin(items: Iterable[Dict[str, Any]]) -> Dict[str, float]:
    """
    Sums revenue and cost over all enabled lines.

    Returns total_revenue, total_cost, margin_percentage and gross_profit.
    """
    enabled = [i for i in items if i.get("enabled", True)]
    total_revenue = sum(calculate_item_revenue(i) for i in enabled)
    total_cost = sum(calculate_item_cost(i) for i in enabled)
    margin = 0.0 if total_revenue == 0 else (total_revenue - total_cost) / total_revenue * 100
    return {
        "total_revenue": total_revenue,
        "total_cost": total_cost,
        "margin_percentage": margin,
        "gross_profit": total_revenue - total_cost,
    }


def discounted_margin(total_revenue: float, total_cost: float, discount_percentage: float) -> Dict[str, float]:
    discounted_revenue = total_revenue * (1 - _num(discount_percentage) / 100)
    margin = 0.0
    if discounted_revenue != 0:
        margin = (discounted_revenue - total_cost) / discounted_revenue * 100
    return {
        "discounted_revenue": discounted_revenue,
        "discounted_margin": margin,
        "discount_amount": total_revenue - discounted_revenue,
    }


def calculate_discounted_margin(items: Iterable[Dict[str, Any]], discount_percentage: float) -> Dict[str, float]:
    totals = calculate_total_margin(items)
    return discounted_margin(totals["total_revenue"], totals["total_cost"], discount_percentage)


def calculate_margin_percentage(price: float, cost: float) -> Optional[float]:
    """Margin for a single price/cost pair, rounded to 2 decimals. None when either is <= 0."""
    if price <= 0 or cost <= 0:
        return None
    return round((price - cost) / price * 100, 2)


def format_margin(margin: Optional[float]) -> str:
    if margin is None:
        return "N/A"
    return f"{margin}%"


def price_for_margin(cost: float, desired_margin: float) -> float:
    if desired_margin >= 100:
        raise ValueError("desired_margin must be below 100")
    return cost / (1 - desired_margin / 100)


@dataclass
class FinanceApprovalRequirement:
    required: bool
    below_limit: bool
    reason: str
    current_margin: float
    minimum_margin: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "required": self.required,
            "below_limit": self.below_limit,
            "reason": self.reason,
            "current_margin": self.current_margin,
            "minimum_margin": self.minimum_margin,
        }


def _fmt_limit(limit: float) -> str:
    return f"{limit:g}"


def check_finance_approval_required(
    current_margin: float,
    user_role: str,
    margin_limit: float,
) -> FinanceApprovalRequirement:
    """
    Decides whether a quote needs finance sign-off.

    - below_limit: the margin is strictly below the configured limit
    - required: below_limit and the user's role may not approve on its own
      (ADMIN, FINANCE and MASTER may)
    """
    below = current_margin < margin_limit
    required = below and not can_approve_below_limit(user_role)
    reason = ""
    if below:
        reason = f"Margin {current_margin:.1f}% is below threshold of {_fmt_limit(margin_limit)}%"
    return FinanceApprovalRequirement(
        required=required,
        below_limit=below,
        reason=reason,
        current_margin=current_margin,
        minimum_margin=margin_limit,
    )
