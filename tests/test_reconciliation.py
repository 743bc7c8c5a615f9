from datetime import timedelta

import pytest
from conftest import D1, make_txn

from opscore.config import DEFAULT_PLATE_SIZES
from opscore.models import Ingredient, MenuItem, Order, OrderItem, Variant
from opscore.services.limits import compute_checkout_limits, estimate_plates
from opscore.services.reconciliation import (
    compute_physical_usage,
    compute_reconciliation,
    daily_report,
    daily_trend,
    missing_plates,
    wastage_summary,
)
from opscore.services.sales import compute_attribution
from opscore.utils import FRIDGE

D2 = D1 + timedelta(days=1)


# -------------------------
# Variance sign and totals
# -------------------------

def test_diff_is_sold_minus_used():
    report = compute_reconciliation({"a": 100, "b": 100}, {"a": 80, "b": 120})
    assert report.line_for("a").diff == -20
    assert report.line_for("a").variance_percent == pytest.approx(-20.0)
    assert report.line_for("b").diff == 20
    assert report.total_diff == 0
    assert report.accuracy == 100


def test_zero_usage_means_zero_variance():
    report = compute_reconciliation({}, {"a": 5})
    assert report.line_for("a").variance_percent == 0
    assert report.variance_percent == 0
    assert report.accuracy == 100


def test_accuracy_is_not_clamped():
    report = compute_reconciliation({"a": 10}, {"a": 35})
    assert report.variance_percent == pytest.approx(250.0)
    assert report.accuracy == pytest.approx(-150.0)


def test_lines_follow_sku_display_order(skus):
    report = compute_reconciliation({"sku-3": 1, "ghost": 9}, {"sku-1": 2}, skus)
    assert [l.sku_id for l in report.lines] == [s.id for s in skus]
    assert report.line_for("ghost") is None
    assert report.total_used == 1


# -------------------------
# End-to-end day
# -------------------------

def test_full_day_reconciles_exactly(skus, menu):
    txns = [
        make_txn("RESTOCK", "sku-1", 1000, branch_id=FRIDGE),
        make_txn("CHECK_OUT", "sku-1", 400),
        make_txn("CHECK_IN", "sku-1", 80),
    ]
    orders = [Order(id=f"o{i}", branch_id="B1", date=D1, items=(OrderItem("m-steam", 1),)) for i in range(40)]

    limit = compute_checkout_limits(D1, "B1", txns, skus)["sku-1"]
    est = estimate_plates(skus[0], limit, menu, DEFAULT_PLATE_SIZES)
    assert est.plates == 40
    assert est.leftover_pieces == 0

    used = compute_physical_usage(txns, branch_id="B1", start=D1, end=D1)
    sold = compute_attribution(orders, menu, branch_id="B1", start=D1, end=D1).billed
    report = compute_reconciliation(used, sold, skus)

    line = report.line_for("sku-1")
    assert (line.used, line.sold, line.diff) == (320, 320, 0)
    assert report.accuracy == 100

    again = compute_reconciliation(
        compute_physical_usage(txns, branch_id="B1", start=D1, end=D1),
        compute_attribution(orders, menu, branch_id="B1", start=D1, end=D1).billed,
        skus,
    )
    assert again == report


def test_physical_usage_subtracts_returns_and_waste():
    txns = [
        make_txn("CHECK_OUT", "sku-1", 100),
        make_txn("CHECK_IN", "sku-1", 10),
        make_txn("WASTE", "sku-1", 4),
        make_txn("ADJUSTMENT", "sku-1", 50),
        make_txn("CHECK_OUT", "sku-1", 100, on=D2),
    ]
    assert compute_physical_usage(txns, branch_id="B1", start=D1, end=D1) == {"sku-1": 86}
    assert compute_physical_usage(txns, branch_id="B1") == {"sku-1": 186}


# -------------------------
# Missing plates
# -------------------------

def test_missing_plates_from_primary_ingredient():
    item = MenuItem("m", "Steam", (Ingredient("a", 8), Ingredient("c", 1)))
    loss = compute_reconciliation({"a": 100}, {"a": 60})
    assert missing_plates(item, Variant.FULL, loss) == 5
    assert missing_plates(item, Variant.HALF, loss) == 10

    surplus = compute_reconciliation({"a": 60}, {"a": 100})
    assert missing_plates(item, Variant.FULL, surplus) == 0


# -------------------------
# Operations reports
# -------------------------

def test_daily_report_sold_never_negative(skus):
    txns = [
        make_txn("CHECK_OUT", "sku-1", 50),
        make_txn("CHECK_IN", "sku-1", 10),
        make_txn("WASTE", "sku-1", 5),
        make_txn("CHECK_IN", "sku-2", 8),
    ]
    items = {i.sku_id: i for i in daily_report(txns, skus, branch_id="B1", start=D1, end=D1)}
    assert items["sku-1"].sold == 35
    assert items["sku-2"].sold == 0
    assert items["sku-3"].taken == 0


def test_daily_trend_by_date(menu):
    txns = [make_txn("CHECK_OUT", "sku-1", 40), make_txn("CHECK_OUT", "sku-1", 16, on=D2)]
    orders = [Order(id="o1", branch_id="B1", date=D2, items=(OrderItem("m-steam", 2),))]
    points = daily_trend(txns, orders, menu, branch_id="B1")
    assert [(p.date, p.physical_usage, p.recorded_sales) for p in points] == [(D1, 40, 0), (D2, 16, 16)]


def test_wastage_summary_keeps_fridge_separate():
    txns = [
        make_txn("WASTE", "sku-1", 3),
        make_txn("WASTE", "sku-1", 2),
        make_txn("WASTE", "sku-1", 7, branch_id=FRIDGE),
        make_txn("CHECK_OUT", "sku-1", 50),
    ]
    assert wastage_summary(txns) == {("B1", "sku-1"): 5, (FRIDGE, "sku-1"): 7}
