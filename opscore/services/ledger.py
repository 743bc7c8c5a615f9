from __future__ import annotations

import logging
import math
import sqlite3
import uuid
from typing import Iterable, Mapping, Optional, Sequence

from opscore.db import q, x, xm
from opscore.errors import ExternalServiceFailure, ValidationError, ValidationIssue
from opscore.models import Sku, Transaction, TransactionType
from opscore.services.limits import StocktakeLine, compute_checkout_limits, validate_returns
from opscore.utils import FRIDGE, DateLike, iso_now, now_millis, parse_local_date

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


# -------------------------
# Builders (the caller persists what these return)
# -------------------------

def build_transactions(
    tx_type: TransactionType,
    *,
    txn_date: DateLike,
    branch_id: str,
    quantities: Mapping[str, float],
    skus: Sequence[Sku],
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> list[Transaction]:
    """
    One transaction per SKU with a non-zero quantity, all sharing a batch id.

    Only ADJUSTMENT may carry a negative quantity. Unknown SKU ids and an
    all-zero entry are validation errors; nothing is returned on failure.
    """
    tx_type = TransactionType(tx_type)
    d = parse_local_date(txn_date)
    if not branch_id:
        raise ValidationError.single("Branch is required.", field="branch_id")

    by_id = {s.id: s for s in skus}
    issues: list[ValidationIssue] = []
    entries: list[tuple[str, float]] = []

    for sku_id, qty in quantities.items():
        sku = by_id.get(sku_id)
        if sku is None:
            issues.append(ValidationIssue(message=f"Unknown SKU '{sku_id}'.", sku_id=sku_id))
            continue
        qty = float(qty or 0)
        if not math.isfinite(qty):
            issues.append(
                ValidationIssue(
                    message=f"{sku.name}: quantity must be a finite number.",
                    sku_id=sku.id,
                    sku_name=sku.name,
                    quantity=qty,
                )
            )
            continue
        if qty == 0:
            continue
        if qty < 0 and tx_type != TransactionType.ADJUSTMENT:
            issues.append(
                ValidationIssue(
                    message=f"{sku.name}: quantity must be > 0.",
                    sku_id=sku.id,
                    sku_name=sku.name,
                    quantity=qty,
                )
            )
            continue
        entries.append((sku.id, qty))

    if not issues and not entries:
        issues.append(ValidationIssue(message="Please enter quantity for at least one item.", field="quantities"))
    if issues:
        logger.warning("Rejected %s entry for %s on %s: %s", tx_type.value, branch_id, d, issues[0].message)
        raise ValidationError(issues)

    batch_id = new_id()
    ts = int(timestamp) if timestamp is not None else now_millis()
    return [
        Transaction(
            id=new_id(),
            date=d,
            branch_id=str(branch_id),
            sku_id=sku_id,
            type=tx_type,
            quantity_pieces=qty,
            timestamp=ts,
            batch_id=batch_id,
            user_id=user_id,
            user_name=user_name,
        )
        for sku_id, qty in entries
    ]


def check_out(*, txn_date: DateLike, branch_id: str, quantities: Mapping[str, float], skus: Sequence[Sku], **kwargs) -> list[Transaction]:
    return build_transactions(
        TransactionType.CHECK_OUT, txn_date=txn_date, branch_id=branch_id, quantities=quantities, skus=skus, **kwargs
    )


def check_in(
    *,
    txn_date: DateLike,
    branch_id: str,
    quantities: Mapping[str, float],
    skus: Sequence[Sku],
    ledger: Iterable[Transaction],
    **kwargs,
) -> list[Transaction]:
    """
    Returns for one (date, branch). Every SKU's return must fit within what was
    checked out that same day at that branch; the whole entry is rejected otherwise.
    """
    limits = compute_checkout_limits(txn_date, branch_id, ledger, skus)
    validate_returns(quantities, limits, skus)
    return build_transactions(
        TransactionType.CHECK_IN, txn_date=txn_date, branch_id=branch_id, quantities=quantities, skus=skus, **kwargs
    )


def record_waste(*, txn_date: DateLike, branch_id: str, quantities: Mapping[str, float], skus: Sequence[Sku], **kwargs) -> list[Transaction]:
    return build_transactions(
        TransactionType.WASTE, txn_date=txn_date, branch_id=branch_id, quantities=quantities, skus=skus, **kwargs
    )


def restock(*, txn_date: DateLike, quantities: Mapping[str, float], skus: Sequence[Sku], **kwargs) -> list[Transaction]:
    return build_transactions(
        TransactionType.RESTOCK, txn_date=txn_date, branch_id=FRIDGE, quantities=quantities, skus=skus, **kwargs
    )


def stocktake_adjustments(
    lines: Sequence[StocktakeLine],
    *,
    txn_date: DateLike,
    skus: Sequence[Sku],
    **kwargs,
) -> list[Transaction]:
    """Signed ADJUSTMENT transactions at the FRIDGE, one per discrepancy. Empty when stock matches."""
    if not lines:
        return []
    return build_transactions(
        TransactionType.ADJUSTMENT,
        txn_date=txn_date,
        branch_id=FRIDGE,
        quantities={l.sku_id: l.diff for l in lines},
        skus=skus,
        **kwargs,
    )


# -------------------------
# Reference SQLite store
# -------------------------

def _row_to_transaction(r: sqlite3.Row) -> Transaction:
    return Transaction(
        id=str(r["id"]),
        date=parse_local_date(r["date"]),
        branch_id=str(r["branch_id"]),
        sku_id=str(r["sku_id"]),
        type=TransactionType(r["type"]),
        quantity_pieces=float(r["quantity_pieces"]),
        timestamp=int(r["timestamp"]),
        batch_id=r["batch_id"],
        user_id=r["user_id"],
        user_name=r["user_name"],
    )


def list_transactions(
    conn: sqlite3.Connection,
    *,
    branch_id: Optional[str] = None,
    on_date: Optional[DateLike] = None,
    date_range: Optional[tuple[DateLike, DateLike]] = None,
    sku_id: Optional[str] = None,
) -> list[Transaction]:
    where = ["deleted_at IS NULL"]
    params: list = []
    if branch_id is not None:
        where.append("branch_id=?")
        params.append(str(branch_id))
    if on_date is not None:
        where.append("date=?")
        params.append(parse_local_date(on_date).isoformat())
    if date_range is not None:
        start, end = date_range
        where.append("date BETWEEN ? AND ?")
        params.extend([parse_local_date(start).isoformat(), parse_local_date(end).isoformat()])
    if sku_id is not None:
        where.append("sku_id=?")
        params.append(str(sku_id))

    try:
        rows = q(
            conn,
            f"SELECT * FROM transactions WHERE {' AND '.join(where)} ORDER BY date ASC, timestamp ASC, id ASC",
            params,
        )
    except sqlite3.Error as e:
        raise ExternalServiceFailure(f"Could not read transactions: {e}") from e
    return [_row_to_transaction(r) for r in rows]


def append_transactions(conn: sqlite3.Connection, txns: Sequence[Transaction]) -> bool:
    if not txns:
        return False
    rows = [
        (
            t.id,
            t.batch_id,
            t.date.isoformat(),
            int(t.timestamp),
            t.branch_id,
            t.sku_id,
            t.type.value,
            float(t.quantity_pieces),
            t.user_id,
            t.user_name,
        )
        for t in txns
    ]
    try:
        xm(
            conn,
            """
            INSERT INTO transactions (
                id, batch_id, date, timestamp, branch_id, sku_id, type,
                quantity_pieces, user_id, user_name
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    except sqlite3.Error as e:
        logger.error("Batch of %d transactions not written: %s", len(rows), e)
        raise ExternalServiceFailure(f"Could not write transactions: {e}") from e

    logger.info("Appended %d transaction(s)", len(rows))
    return True


def soft_delete_transaction(conn: sqlite3.Connection, txn_id: str, *, deleted_by: str) -> bool:
    try:
        n = x(
            conn,
            "UPDATE transactions SET deleted_at=?, deleted_by=? WHERE id=? AND deleted_at IS NULL",
            (iso_now(), deleted_by, str(txn_id)),
        )
    except sqlite3.Error as e:
        raise ExternalServiceFailure(f"Could not delete transaction: {e}") from e
    return n > 0


def upsert_skus(conn: sqlite3.Connection, skus: Sequence[Sku]) -> None:
    try:
        xm(
            conn,
            """
            INSERT INTO skus (id, name, category, dietary, pieces_per_packet, sort_order, cost_price)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              name=excluded.name,
              category=excluded.category,
              dietary=excluded.dietary,
              pieces_per_packet=excluded.pieces_per_packet,
              sort_order=excluded.sort_order,
              cost_price=excluded.cost_price
            """,
            [
                (s.id, s.name, s.category.value, s.dietary.value, int(s.pieces_per_packet), int(s.order), s.cost_price)
                for s in skus
            ],
        )
    except sqlite3.Error as e:
        raise ExternalServiceFailure(f"Could not write SKUs: {e}") from e


def list_skus(conn: sqlite3.Connection) -> list[Sku]:
    try:
        rows = q(conn, "SELECT * FROM skus ORDER BY sort_order, name")
    except sqlite3.Error as e:
        raise ExternalServiceFailure(f"Could not read SKUs: {e}") from e
    return [Sku.from_record(dict(r)) for r in rows]

