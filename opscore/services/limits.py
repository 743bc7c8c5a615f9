from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from opscore.errors import ValidationError, ValidationIssue
from opscore.models import MenuItem, Sku, SkuCategory, Transaction, TransactionType
from opscore.utils import DateLike, parse_local_date, previous_day

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutLimit:
    total_taken: float = 0.0
    total_returned: float = 0.0

    @property
    def net_consumed(self) -> float:
        return max(0.0, self.total_taken - self.total_returned)


@dataclass(frozen=True)
class PlateEstimate:
    net_consumed: float
    plate_size: int
    plates: int
    leftover_pieces: float


@dataclass(frozen=True)
class CarryForward:
    sku_id: str
    quantity: float
    date: date
    transaction_id: str


@dataclass(frozen=True)
class StocktakeLine:
    sku_id: str
    system_qty: float
    physical_qty: float

    @property
    def diff(self) -> float:
        return self.physical_qty - self.system_qty


def compute_checkout_limits(
    txn_date: DateLike,
    branch_id: str,
    txns: Iterable[Transaction],
    skus: Optional[Sequence[Sku]] = None,
) -> dict[str, CheckoutLimit]:
    """
    Same-day CHECK_OUT and CHECK_IN totals per SKU for one (date, branch).
    With `skus` given, every SKU gets an entry; otherwise only SKUs that moved.
    """
    d = parse_local_date(txn_date)
    taken: dict[str, float] = {s.id: 0.0 for s in skus} if skus is not None else {}
    returned: dict[str, float] = dict.fromkeys(taken, 0.0)

    for t in txns:
        if t.date != d or t.branch_id != branch_id:
            continue
        if skus is not None and t.sku_id not in taken:
            continue
        if t.type == TransactionType.CHECK_OUT:
            taken[t.sku_id] = taken.get(t.sku_id, 0.0) + float(t.quantity_pieces)
            returned.setdefault(t.sku_id, 0.0)
        elif t.type == TransactionType.CHECK_IN:
            returned[t.sku_id] = returned.get(t.sku_id, 0.0) + float(t.quantity_pieces)
            taken.setdefault(t.sku_id, 0.0)

    return {k: CheckoutLimit(total_taken=taken[k], total_returned=returned[k]) for k in taken}


def validate_returns(
    returns: Mapping[str, float],
    limits: Mapping[str, CheckoutLimit],
    skus: Sequence[Sku],
) -> None:
    """
    A return may not exceed what that SKU had checked out on the same date at the
    same branch. All offending SKUs are reported together; nothing is clamped.
    """
    names = {s.id: s.name for s in skus}
    issues: list[ValidationIssue] = []
    for sku_id, qty in returns.items():
        qty = float(qty or 0)
        if math.isfinite(qty) and qty <= 0:
            continue
        limit = limits.get(sku_id, CheckoutLimit()).total_taken
        if not math.isfinite(qty) or qty > limit:
            name = names.get(sku_id, sku_id)
            issues.append(
                ValidationIssue(
                    message=f"{name}: Limit {limit:g} pcs (Checked Out), got {qty:g}.",
                    sku_id=sku_id,
                    sku_name=name,
                    quantity=qty,
                    limit=limit,
                )
            )
    if issues:
        logger.warning("Return entry rejected: %d SKU(s) over checkout limit", len(issues))
        raise ValidationError(issues)


def plate_size_for(sku: Sku, menu_items: Sequence[MenuItem], plate_sizes: Mapping[SkuCategory, int]) -> int:
    # Category table first, then the first full recipe using this SKU.
    size = plate_sizes.get(sku.category)
    if size:
        return int(size)
    for m in menu_items:
        for ing in m.ingredients:
            if ing.sku_id == sku.id:
                return int(ing.quantity or 0)
    return 0


def estimate_plates(
    sku: Sku,
    limit: CheckoutLimit,
    menu_items: Sequence[MenuItem],
    plate_sizes: Mapping[SkuCategory, int],
) -> PlateEstimate:
    net = limit.net_consumed
    size = plate_size_for(sku, menu_items, plate_sizes)
    if size <= 0:
        return PlateEstimate(net_consumed=net, plate_size=0, plates=0, leftover_pieces=net)
    plates = int(net // size)
    return PlateEstimate(net_consumed=net, plate_size=size, plates=plates, leftover_pieces=net - plates * size)


def carry_forward_suggestions(
    txn_date: DateLike,
    branch_id: str,
    txns: Iterable[Transaction],
) -> dict[str, CarryForward]:
    """
    Latest CHECK_IN per SKU from the calendar day right before `txn_date` at the
    branch. Older returns are never offered. Suggestions are never auto-applied.
    """
    target = previous_day(txn_date)
    out: dict[str, CarryForward] = {}
    latest: dict[str, tuple[int, str]] = {}
    for t in txns:
        if t.type != TransactionType.CHECK_IN or t.branch_id != branch_id or t.date != target:
            continue
        key = (int(t.timestamp), t.id)
        if t.sku_id in latest and latest[t.sku_id] >= key:
            continue
        latest[t.sku_id] = key
        out[t.sku_id] = CarryForward(sku_id=t.sku_id, quantity=float(t.quantity_pieces), date=t.date, transaction_id=t.id)
    return out


# -------------------------
# Stocktake (FRIDGE)
# -------------------------

def checkouts_on(txn_date: DateLike, txns: Iterable[Transaction]) -> dict[str, float]:
    d = parse_local_date(txn_date)
    out: dict[str, float] = {}
    for t in txns:
        if t.type == TransactionType.CHECK_OUT and t.date == d:
            out[t.sku_id] = out.get(t.sku_id, 0.0) + float(t.quantity_pieces)
    return out


def expected_system_quantity(balance: float, todays_checkout: float, ignore_todays_checkout: bool) -> float:
    # With the toggle on, count as if today's check-outs were still in the fridge.
    return float(balance) + (float(todays_checkout) if ignore_todays_checkout else 0.0)


def stocktake_discrepancies(
    counts: Mapping[str, float],
    balances: Mapping[str, float],
    todays_checkouts: Mapping[str, float],
    *,
    ignore_todays_checkout: bool = False,
) -> list[StocktakeLine]:
    """
    Compare physical counts (pieces) against the system figure. Only SKUs that
    were counted are compared and only non-zero differences are returned.
    The toggle moves the comparison baseline; it never touches the ledger.
    """
    lines: list[StocktakeLine] = []
    for sku_id in sorted(counts):
        system = expected_system_quantity(
            balances.get(sku_id, 0.0), todays_checkouts.get(sku_id, 0.0), ignore_todays_checkout
        )
        line = StocktakeLine(sku_id=sku_id, system_qty=system, physical_qty=float(counts[sku_id]))
        if line.diff != 0:
            lines.append(line)
    return lines

