from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from opscore.models import Sku, Transaction, TransactionType
from opscore.utils import FRIDGE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockLevel:
    in_qty: float = 0.0
    out_qty: float = 0.0

    @property
    def balance(self) -> float:
        return self.in_qty - self.out_qty


def _fridge_delta(t: Transaction) -> tuple[float, float]:
    """
    (in, out) contribution of one transaction to the central FRIDGE balance.

    Check-outs leave the fridge and check-ins come back to it whatever branch
    they name. WASTE only counts when reported against the FRIDGE itself; branch
    waste was already removed by its CHECK_OUT.
    """
    qty = float(t.quantity_pieces)
    if t.type in (TransactionType.RESTOCK, TransactionType.CHECK_IN):
        return qty, 0.0
    if t.type == TransactionType.ADJUSTMENT:
        return (qty, 0.0) if qty > 0 else (0.0, abs(qty))
    if t.type == TransactionType.CHECK_OUT:
        return 0.0, qty
    if t.type == TransactionType.WASTE and t.is_fridge:
        return 0.0, qty
    return 0.0, 0.0


def _branch_delta(t: Transaction) -> tuple[float, float]:
    qty = float(t.quantity_pieces)
    if t.type in (TransactionType.CHECK_OUT, TransactionType.RESTOCK):
        return qty, 0.0
    if t.type in (TransactionType.CHECK_IN, TransactionType.WASTE):
        return 0.0, qty
    if t.type == TransactionType.ADJUSTMENT:
        return (qty, 0.0) if qty > 0 else (0.0, abs(qty))
    return 0.0, 0.0


def compute_balances(scope: str, txns: Iterable[Transaction], skus: Sequence[Sku]) -> dict[str, StockLevel]:
    """
    Per-SKU on-hand for a scope: "FRIDGE" (central storage) or a branch id.

    Pure commutative fold, so transaction order never matters. Every SKU in
    `skus` gets an entry (0/0 when it has no movements); transactions for other
    SKUs are ignored. Negative balances are kept as-is.
    """
    ins = {s.id: 0.0 for s in skus}
    outs = {s.id: 0.0 for s in skus}
    fridge = scope == FRIDGE

    n = 0
    for t in txns:
        if t.sku_id not in ins:
            continue
        if not fridge and t.branch_id != scope:
            continue
        add, sub = _fridge_delta(t) if fridge else _branch_delta(t)
        ins[t.sku_id] += add
        outs[t.sku_id] += sub
        n += 1

    logger.debug("Folded %d transaction(s) into %d balance(s) for scope %s", n, len(ins), scope)
    return {sku_id: StockLevel(in_qty=ins[sku_id], out_qty=outs[sku_id]) for sku_id in ins}


def stock_in_packets(levels: dict[str, StockLevel], skus: Sequence[Sku]) -> dict[str, tuple[int, float]]:
    """(full packets, loose pieces) per SKU, for display. Negative balances stay negative pieces."""
    out: dict[str, tuple[int, float]] = {}
    for s in skus:
        bal = levels.get(s.id, StockLevel()).balance
        if bal <= 0:
            out[s.id] = (0, bal)
            continue
        pkts = int(bal // s.packet_size)
        out[s.id] = (pkts, bal - pkts * s.packet_size)
    return out
