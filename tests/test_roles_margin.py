import pytest

from powerquote.core.errors import WorkflowError
from powerquote.core.margin import (
    calculate_discounted_margin,
    calculate_margin_percentage,
    calculate_total_margin,
    check_finance_approval_required,
    format_margin,
    price_for_margin,
)
from powerquote.core.roles import (
    ADMIN,
    FINANCE,
    MASTER,
    SALES,
    RequestContext,
    assert_role,
    can_approve_below_limit,
    normalize_role,
)


@pytest.mark.parametrize("raw,expected", [
    ("LEVEL1", SALES),
    ("level_2", SALES),
    ("LEVEL_3", ADMIN),
    ("admin", ADMIN),
    ("FINANCE", FINANCE),
    ("MASTER", MASTER),
    ("intern", SALES),
    (None, SALES),
])
def test_normalize_role(raw, expected):
    assert normalize_role(raw) == expected


def test_approver_roles():
    assert can_approve_below_limit("LEVEL_3")
    assert can_approve_below_limit(FINANCE)
    assert not can_approve_below_limit("LEVEL_2")


def test_assert_role_raises_403():
    ctx = RequestContext("u1", SALES, "u1@example.com", "U One")
    with pytest.raises(WorkflowError) as exc:
        assert_role(ctx, [ADMIN, MASTER])
    assert exc.value.status_code == 403


def test_total_margin_skips_disabled_lines_and_counts_addons_once():
    items = [
        {
            "quantity": 2,
            "product": {"price": 1000, "cost": 600},
            "level2_options": [{"price": 100, "cost": 40}],
        },
        {"quantity": 5, "enabled": False, "product": {"price": 999, "cost": 1}},
    ]
    totals = calculate_total_margin(items)
    assert totals["total_revenue"] == 2100
    assert totals["total_cost"] == 1240
    assert totals["gross_profit"] == 860
    assert totals["margin_percentage"] == pytest.approx(860 / 2100 * 100)


def test_discounted_margin():
    items = [{"quantity": 1, "product": {"price": 1000, "cost": 600}}]
    result = calculate_discounted_margin(items, 10)
    assert result["discounted_revenue"] == pytest.approx(900)
    assert result["discount_amount"] == pytest.approx(100)
    assert result["discounted_margin"] == pytest.approx(300 / 900 * 100)


def test_margin_percentage_needs_positive_price_and_cost():
    assert calculate_margin_percentage(100, 60) == 40.0
    assert calculate_margin_percentage(0, 60) is None
    assert calculate_margin_percentage(100, 0) is None
    assert format_margin(None) == "N/A"
    assert format_margin(40.0) == "40.0%"


def test_price_for_margin():
    assert price_for_margin(75, 25) == pytest.approx(100)
    with pytest.raises(ValueError):
        price_for_margin(75, 100)


def test_sales_below_limit_needs_finance():
    req = check_finance_approval_required(18.04, SALES, 25)
    assert req.required and req.below_limit
    assert req.reason == "Margin 18.0% is below threshold of 25%"
    assert req.minimum_margin == 25


def test_approver_below_limit_is_flagged_but_not_required():
    req = check_finance_approval_required(18.0, ADMIN, 25)
    assert req.below_limit
    assert not req.required


def test_margin_at_limit_passes():
    req = check_finance_approval_required(25.0, SALES, 25)
    assert not req.below_limit and not req.required
    assert req.reason == ""
    assert req.as_dict()["current_margin"] == 25.0
