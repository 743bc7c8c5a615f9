from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from opscore.models import MenuItem, Order, Sku, Transaction, TransactionType, Variant
from opscore.services.sales import line_consumption, select_orders
from opscore.utils import DateLike, in_range, parse_local_date, safe_div

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VarianceLine:
    sku_id: str
    used: float
    sold: float

    @property
    def diff(self) -> float:
        # > 0: billed more than physically removed; < 0: physical loss exceeds billing
        return self.sold - self.used

    @property
    def variance_percent(self) -> float:
        return safe_div(self.diff, self.used) * 100.0 if self.used > 0 else 0.0


@dataclass(frozen=True)
class ReconciliationReport:
    lines: tuple[VarianceLine, ...]
    total_used: float
    total_sold: float

    @property
    def total_diff(self) -> float:
        return self.total_sold - self.total_used

    @property
    def variance_percent(self) -> float:
        return safe_div(self.total_diff, self.total_used) * 100.0 if self.total_used > 0 else 0.0

    @property
    def accuracy(self) -> float:
        return 100.0 - abs(self.variance_percent)

    def line_for(self, sku_id: str) -> Optional[VarianceLine]:
        for l in self.lines:
            if l.sku_id == sku_id:
                return l
        return None


@dataclass(frozen=True)
class DailyReportItem:
    sku_id: str
    taken: float = 0.0
    returned: float = 0.0
    waste: float = 0.0

    @property
    def sold(self) -> float:
        return max(0.0, self.taken - self.returned - self.waste)


@dataclass(frozen=True)
class TrendPoint:
    date: date
    physical_usage: float
    recorded_sales: float


def _bounds(start: Optional[DateLike], end: Optional[DateLike]) -> tuple[Optional[date], Optional[date]]:
    return (
        parse_local_date(start) if start is not None else None,
        parse_local_date(end) if end is not None else None,
    )


def _usage_sign(t: Transaction) -> float:
    if t.type == TransactionType.CHECK_OUT:
        return 1.0
    if t.type in (TransactionType.CHECK_IN, TransactionType.WASTE):
        return -1.0
    return 0.0


def compute_physical_usage(
    txns: Iterable[Transaction],
    *,
    branch_id: str,
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
) -> dict[str, float]:
    """CHECK_OUT - CHECK_IN - WASTE per SKU for a branch over an inclusive date range."""
    s, e = _bounds(start, end)
    used: dict[str, float] = {}
    for t in txns:
        if t.branch_id != branch_id or not in_range(t.date, s, e):
            continue
        sign = _usage_sign(t)
        if sign:
            used[t.sku_id] = used.get(t.sku_id, 0.0) + sign * float(t.quantity_pieces)
    return used


def compute_reconciliation(
    used: Mapping[str, float],
    sold: Mapping[str, float],
    skus: Optional[Sequence[Sku]] = None,
) -> ReconciliationReport:
    """
    Per-SKU used vs sold with diff = sold - used, plus totals.

    With `skus`, lines follow SKU display order and cover every SKU (figures for
    unknown SKUs are dropped); without, lines cover the union of keys, sorted.
    """
    if skus is not None:
        ordered = sorted(skus, key=lambda s: (s.order, s.name, s.id))
        keys = [s.id for s in ordered]
    else:
        keys = sorted(set(used) | set(sold))

    lines = tuple(VarianceLine(sku_id=k, used=float(used.get(k, 0.0)), sold=float(sold.get(k, 0.0))) for k in keys)
    report = ReconciliationReport(
        lines=lines,
        total_used=sum(l.used for l in lines),
        total_sold=sum(l.sold for l in lines),
    )
    logger.debug(
        "Reconciled %d SKU(s): used=%s sold=%s diff=%s", len(lines), report.total_used, report.total_sold, report.total_diff
    )
    return report


def missing_plates(menu_item: MenuItem, variant: Variant, report: ReconciliationReport) -> int:
    """
    Plates unaccounted for, judged on the item's primary (first) ingredient.
    Only a physical loss (diff < 0) translates into missing plates.
    """
    recipe = menu_item.recipe_for(variant)
    if not recipe:
        return 0
    primary = recipe[0]
    line = report.line_for(primary.sku_id)
    if line is None or line.diff >= 0 or primary.quantity <= 0:
        return 0
    return int(math.floor(abs(line.diff) / primary.quantity))


# -------------------------
# Operations reports
# -------------------------

def daily_report(
    txns: Iterable[Transaction],
    skus: Sequence[Sku],
    *,
    branch_id: Optional[str] = None,
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
) -> list[DailyReportItem]:
    """Taken / returned / waste per SKU; `branch_id=None` means all branches."""
    s, e = _bounds(start, end)
    acc = {sku.id: [0.0, 0.0, 0.0] for sku in skus}
    slot = {TransactionType.CHECK_OUT: 0, TransactionType.CHECK_IN: 1, TransactionType.WASTE: 2}
    for t in txns:
        if t.sku_id not in acc or t.type not in slot:
            continue
        if branch_id is not None and t.branch_id != branch_id:
            continue
        if not in_range(t.date, s, e):
            continue
        acc[t.sku_id][slot[t.type]] += float(t.quantity_pieces)
    return [DailyReportItem(sku_id=k, taken=v[0], returned=v[1], waste=v[2]) for k, v in acc.items()]


def daily_trend(
    txns: Iterable[Transaction],
    orders: Iterable[Order],
    menu_items: Sequence[MenuItem],
    *,
    branch_id: Optional[str] = None,
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
) -> list[TrendPoint]:
    """Per-day physical usage against attributed sales, oldest first."""
    s, e = _bounds(start, end)
    usage: dict[date, float] = {}
    sales: dict[date, float] = {}

    for t in txns:
        if branch_id is not None and t.branch_id != branch_id:
            continue
        if not in_range(t.date, s, e):
            continue
        usage[t.date] = usage.get(t.date, 0.0) + _usage_sign(t) * float(t.quantity_pieces)

    menu_by_id = {m.id: m for m in menu_items}
    for o in select_orders(orders, branch_id=branch_id, start=s, end=e):
        total = 0.0
        for item in o.items:
            for _, qty in line_consumption(item, menu_by_id.get(item.menu_item_id)) or []:
                total += qty
        total += sum(c.quantity for c in o.custom_sku_items)
        sales[o.date] = sales.get(o.date, 0.0) + total

    return [
        TrendPoint(date=d, physical_usage=usage.get(d, 0.0), recorded_sales=sales.get(d, 0.0))
        for d in sorted(set(usage) | set(sales))
    ]


def wastage_summary(
    txns: Iterable[Transaction],
    *,
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
) -> dict[tuple[str, str], float]:
    """WASTE pieces per (branch_id, sku_id), FRIDGE included as its own location."""
    s, e = _bounds(start, end)
    out: dict[tuple[str, str], float] = {}
    for t in txns:
        if t.type != TransactionType.WASTE or not in_range(t.date, s, e):
            continue
        key = (t.branch_id, t.sku_id)
        out[key] = out.get(key, 0.0) + float(t.quantity_pieces)
    return out
