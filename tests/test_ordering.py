from datetime import date, timedelta

import pytest
from conftest import make_txn

from opscore.config import ForecastPolicy
from opscore.models import StorageUnit
from opscore.services.ordering import (
    TREND_DOWN,
    TREND_STABLE,
    TREND_UP,
    allocate_slack,
    classify_trend,
    compute_order_suggestion,
    consumption_since,
    max_capacity_packets,
    suggest_packets,
)

TODAY = date(2026, 1, 31)
POLICY = ForecastPolicy()


def _history():
    return [
        make_txn("CHECK_OUT", "sku-1", 700, on=TODAY - timedelta(days=1)),
        make_txn("CHECK_OUT", "sku-1", 1800, on=TODAY - timedelta(days=30)),
        make_txn("CHECK_OUT", "sku-3", 70, on=TODAY - timedelta(days=2)),
        make_txn("CHECK_OUT", "sku-5", 5000, on=TODAY - timedelta(days=1)),
    ]


# -------------------------
# Building blocks
# -------------------------

def test_consumption_window_is_inclusive_at_both_ends():
    txns = [
        make_txn("CHECK_OUT", "a", 1, on=TODAY - timedelta(days=7)),
        make_txn("WASTE", "a", 2, on=TODAY),
        make_txn("CHECK_OUT", "a", 4, on=TODAY - timedelta(days=8)),
        make_txn("CHECK_OUT", "a", 8, on=TODAY + timedelta(days=1)),
        make_txn("CHECK_IN", "a", 16, on=TODAY),
    ]
    assert consumption_since(txns, TODAY - timedelta(days=7), TODAY) == {"a": 3}


@pytest.mark.parametrize(
    "avg7,avg90,expected",
    [
        (116, 100, TREND_UP),
        (114, 100, TREND_STABLE),
        (86, 100, TREND_STABLE),
        (84, 100, TREND_DOWN),
        (0, 0, TREND_STABLE),
    ],
)
def test_classify_trend(avg7, avg90, expected):
    assert classify_trend(avg7, avg90, POLICY) == expected


def test_selling_item_never_suggested_zero():
    assert suggest_packets(0, 0, is_top_seller=False, share_percent=2, policy=POLICY) == 1
    # a share that rounds to 1% is not above the floor threshold
    assert suggest_packets(0, 0, is_top_seller=False, share_percent=1, policy=POLICY) == 0


def test_suggest_uses_buffer_for_top_sellers():
    assert suggest_packets(2, 4, is_top_seller=True, share_percent=50, policy=POLICY) == 13
    assert suggest_packets(1, 1, is_top_seller=False, share_percent=9, policy=POLICY) == 5


def test_capacity_counts_active_units_only():
    units = [StorageUnit("f1", "Chest", 50), StorageUnit("f2", "Spare", 100, is_active=False)]
    assert max_capacity_packets(units, 2.3) == 21
    assert max_capacity_packets([], 2.3) is None
    assert max_capacity_packets(units, 0) == 21


# -------------------------
# Full suggestion
# -------------------------

def test_order_suggestion(skus):
    units = [StorageUnit("f1", "Chest", 50), StorageUnit("f2", "Spare", 100, is_active=False)]
    sug = compute_order_suggestion(_history(), skus, TODAY + timedelta(days=2), units, 2.3, today=TODAY)

    assert sug.days_to_arrival == 2
    assert "sku-5" not in {l.sku.id for l in sug.lines}
    assert [l.sku.id for l in sug.lines][:2] == ["sku-1", "sku-3"]

    top, roll = sug.lines[0], sug.lines[1]
    assert (top.share_percent, top.is_top_seller, top.trend) == (91, True, TREND_UP)
    assert (top.daily_avg_packets, top.projected_burn_packets, top.suggest_pkts) == (2, 4, 13)
    assert (roll.share_percent, roll.is_top_seller) == (9, False)
    assert (roll.daily_avg_packets, roll.projected_burn_packets, roll.suggest_pkts) == (1, 1, 5)

    assert sug.total_packets == 18
    assert sug.max_capacity_packets == 21
    assert sug.capacity_warning is None
    assert sug.capacity_slack == 3

    filled = allocate_slack(sug)
    assert filled.lines[0].suggest_pkts == 16
    assert filled.total_packets == 21
    assert allocate_slack(filled) == filled


def test_capacity_warning_when_order_overflows(skus):
    sug = compute_order_suggestion(_history(), skus, TODAY + timedelta(days=2), [StorageUnit("f1", "Small", 20)], today=TODAY)
    assert sug.max_capacity_packets == 8
    assert sug.capacity_warning is not None
    assert sug.capacity_warning.overflow_packets == 10
    assert sug.capacity_slack == 0


def test_no_storage_means_unbounded(skus):
    sug = compute_order_suggestion(_history(), skus, TODAY + timedelta(days=2), [], today=TODAY)
    assert sug.max_capacity_packets is None
    assert sug.capacity_warning is None
    assert allocate_slack(sug) == sug


def test_past_arrival_date_clamps_to_zero_days(skus):
    sug = compute_order_suggestion(_history(), skus, TODAY - timedelta(days=3), [], today=TODAY)
    assert sug.days_to_arrival == 0
    assert all(l.projected_burn_packets == 0 for l in sug.lines)


def test_no_history_gives_empty_suggestion(skus):
    sug = compute_order_suggestion([], skus, TODAY, [], today=TODAY)
    assert sug.total_packets == 0
    assert all(l.share_percent == 0 and l.trend == TREND_STABLE for l in sug.lines)


def test_small_share_rounds_half_up_and_is_not_floored(skus):
    txns = [
        make_txn("CHECK_OUT", "sku-1", 987, on=TODAY - timedelta(days=1)),
        make_txn("CHECK_OUT", "sku-3", 13, on=TODAY - timedelta(days=1)),
    ]
    sug = compute_order_suggestion(txns, skus, TODAY, [], today=TODAY)
    by_id = {l.sku.id: l for l in sug.lines}

    assert by_id["sku-1"].share_percent == 99
    # 1.3% rounds to 1, which is not above the floor threshold; the buffered
    # daily packet still drives the suggestion
    assert (by_id["sku-3"].share_percent, by_id["sku-3"].is_top_seller) == (1, False)
    assert by_id["sku-3"].suggest_pkts == 4
    # nothing sold: share 0 stays at zero packets
    assert (by_id["sku-2"].share_percent, by_id["sku-2"].suggest_pkts) == (0, 0)
