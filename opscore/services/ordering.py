from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from opscore.config import DEFAULT_LITRES_PER_PACKET, ForecastPolicy
from opscore.errors import CapacityWarning
from opscore.models import Sku, SkuCategory, StorageUnit, Transaction, TransactionType
from opscore.utils import DateLike, parse_local_date, round_half_up

logger = logging.getLogger(__name__)

TREND_UP = "up"
TREND_DOWN = "down"
TREND_STABLE = "stable"


@dataclass(frozen=True)
class SuggestionLine:
    sku: Sku
    consumed_7d: float
    consumed_90d: float
    trend: str
    daily_avg_packets: int
    projected_burn_packets: int
    suggest_pkts: int
    is_top_seller: bool
    share_percent: int


@dataclass(frozen=True)
class OrderSuggestion:
    lines: tuple[SuggestionLine, ...]
    days_to_arrival: int
    max_capacity_packets: Optional[int]  # None: no active storage unit, unbounded
    capacity_warning: Optional[CapacityWarning] = None

    @property
    def total_packets(self) -> int:
        return sum(l.suggest_pkts for l in self.lines)

    @property
    def capacity_slack(self) -> Optional[int]:
        if self.max_capacity_packets is None:
            return None
        return max(0, self.max_capacity_packets - self.total_packets)


def consumption_since(txns: Iterable[Transaction], cutoff: date, today: date) -> dict[str, float]:
    # CHECK_OUT + WASTE with cutoff <= date <= today.
    out: dict[str, float] = {}
    for t in txns:
        if t.type not in (TransactionType.CHECK_OUT, TransactionType.WASTE):
            continue
        if t.date < cutoff or t.date > today:
            continue
        out[t.sku_id] = out.get(t.sku_id, 0.0) + float(t.quantity_pieces)
    return out


def classify_trend(daily_avg_7d: float, daily_avg_90d: float, policy: ForecastPolicy) -> str:
    if daily_avg_7d > daily_avg_90d * policy.trend_up_factor:
        return TREND_UP
    if daily_avg_7d < daily_avg_90d * policy.trend_down_factor:
        return TREND_DOWN
    return TREND_STABLE


def suggest_packets(
    daily_avg_packets: int,
    projected_burn_packets: int,
    *,
    is_top_seller: bool,
    share_percent: float,
    policy: ForecastPolicy,
) -> int:
    buffer = policy.top_seller_buffer if is_top_seller else policy.default_buffer
    pkts = int(math.ceil(daily_avg_packets * policy.coverage_days * buffer + projected_burn_packets))
    # An actively selling item never gets a zero suggestion.
    if pkts == 0 and share_percent > 1:
        pkts = 1
    return pkts


def max_capacity_packets(storage_units: Sequence[StorageUnit], litres_per_packet: float) -> Optional[int]:
    active_litres = sum(float(u.capacity_litres) for u in storage_units if u.is_active)
    if active_litres <= 0:
        return None
    lpp = float(litres_per_packet) if litres_per_packet and litres_per_packet > 0 else DEFAULT_LITRES_PER_PACKET
    return int(math.floor(active_litres / lpp))


def compute_order_suggestion(
    txns: Sequence[Transaction],
    skus: Sequence[Sku],
    arrival_date: DateLike,
    storage_units: Sequence[StorageUnit],
    litres_per_packet: float = DEFAULT_LITRES_PER_PACKET,
    *,
    today: DateLike,
    policy: Optional[ForecastPolicy] = None,
) -> OrderSuggestion:
    """
    Suggested reorder packets per SKU for a delivery arriving on `arrival_date`.

    Uses 7-day velocity for sizing and 7- vs 90-day averages for the trend label.
    Each SKU covers `coverage_days` of average packets times a safety buffer, plus
    what will burn before arrival. Consumables are never suggested. `today` is
    passed in so results are reproducible.
    """
    policy = policy or ForecastPolicy()
    today_d = parse_local_date(today)
    arrival = parse_local_date(arrival_date)
    days_to_arrival = max(0, (arrival - today_d).days)

    c7 = consumption_since(txns, today_d - timedelta(days=policy.short_window_days), today_d)
    c90 = consumption_since(txns, today_d - timedelta(days=policy.long_window_days), today_d)

    candidates = [s for s in skus if s.category != SkuCategory.CONSUMABLES]
    total_7d = sum(c7.get(s.id, 0.0) for s in candidates)

    lines: list[SuggestionLine] = []
    for sku in candidates:
        consumed_7d = c7.get(sku.id, 0.0)
        consumed_90d = c90.get(sku.id, 0.0)
        avg_7d = consumed_7d / policy.short_window_days
        avg_90d = consumed_90d / policy.long_window_days

        share = round_half_up(consumed_7d / total_7d * 100.0) if total_7d > 0 else 0
        is_top = share > policy.top_seller_share

        daily_pkts = int(math.ceil(avg_7d / sku.packet_size))
        burn_pkts = int(math.ceil(avg_7d * days_to_arrival / sku.packet_size))

        lines.append(
            SuggestionLine(
                sku=sku,
                consumed_7d=consumed_7d,
                consumed_90d=consumed_90d,
                trend=classify_trend(avg_7d, avg_90d, policy),
                daily_avg_packets=daily_pkts,
                projected_burn_packets=burn_pkts,
                suggest_pkts=suggest_packets(daily_pkts, burn_pkts, is_top_seller=is_top, share_percent=share, policy=policy),
                is_top_seller=is_top,
                share_percent=share,
            )
        )

    lines.sort(key=lambda l: (-l.share_percent, l.sku.order, l.sku.name, l.sku.id))

    cap = max_capacity_packets(storage_units, litres_per_packet)
    total = sum(l.suggest_pkts for l in lines)
    warning = None
    if cap is not None and total > cap:
        warning = CapacityWarning(suggested_packets=total, max_capacity_packets=cap, overflow_packets=total - cap)
        logger.warning(warning.message)

    logger.info(
        "Order suggestion for %s: %d SKU(s), %d pkts, capacity %s", arrival, len(lines), total, cap if cap is not None else "unbounded"
    )
    return OrderSuggestion(
        lines=tuple(lines), days_to_arrival=days_to_arrival, max_capacity_packets=cap, capacity_warning=warning
    )


def allocate_slack(suggestion: OrderSuggestion) -> OrderSuggestion:
    """Give all unused freezer capacity to the highest-share line. No-op without slack."""
    slack = suggestion.capacity_slack
    if not slack or not suggestion.lines:
        return suggestion
    top, *rest = suggestion.lines
    top = replace(top, suggest_pkts=top.suggest_pkts + slack)
    return replace(suggestion, lines=(top, *rest))
