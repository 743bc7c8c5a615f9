from __future__ import annotations

import io
import logging
import math
import re
from pathlib import Path
from typing import Sequence, Union

import pandas as pd

from opscore.errors import ValidationError, ValidationIssue
from opscore.models import Platform, SalesRecord, Sku, Transaction, TransactionType
from opscore.services.ledger import new_id
from opscore.utils import parse_local_date

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes, io.IOBase]

TRANSACTION_COLUMNS = ("date", "branch_id", "sku_id", "type", "quantity_pieces")
SALES_COLUMNS = ("date", "branch_id", "platform", "sku_id", "quantity_sold")


def _snake(name: str) -> str:
    s = str(name).replace("\ufeff", "").strip()
    s = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", s)
    return re.sub(r"[\s\-]+", "_", s).lower()


def read_frame(source: Source) -> pd.DataFrame:
    """
    Read a CSV upload as strings (`dtype=str`, `keep_default_na=False`).

    Headers are normalised: BOM and surrounding spaces stripped, camelCase and
    spaced names mapped to snake_case (`quantityPieces` -> `quantity_pieces`).
    Cell values are stripped.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        raise ValidationError.single("File is empty.")
    except pd.errors.ParserError as e:
        raise ValidationError.single(f"Could not parse CSV: {e}")
    df.columns = [_snake(c) for c in df.columns]
    for c in df.columns:
        df[c] = df[c].astype(str).str.strip()
    return df


def _finite(raw: str, what: str) -> float:
    v = float(raw)
    if not math.isfinite(v):
        raise ValueError(f"{what} must be a finite number, got '{raw}'.")
    return v


def _require_columns(df: pd.DataFrame, required: Sequence[str]) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValidationError.single(f"Missing column(s): {', '.join(missing)}.", field=",".join(missing))


def import_transactions(source: Source, skus: Sequence[Sku], *, user_name: str = "import") -> list[Transaction]:
    """
    Parse a stock-movement CSV into transactions sharing one batch id.

    Every bad row is collected (1-based, the header is row 1) and reported in a
    single ``ValidationError``; nothing is returned partially.
    """
    df = read_frame(source)
    _require_columns(df, TRANSACTION_COLUMNS)

    known = {s.id for s in skus}
    batch_id = new_id()
    issues: list[ValidationIssue] = []
    out: list[Transaction] = []

    for i, row in enumerate(df.to_dict("records"), start=2):
        try:
            d = parse_local_date(row["date"])
            tx_type = TransactionType(row["type"].upper())
            qty = _finite(row["quantity_pieces"], "quantity")
            ts = int(_finite(row.get("timestamp") or "0", "timestamp"))
        except (ValueError, OverflowError) as e:
            issues.append(ValidationIssue(message=f"Row {i}: {e}", row=i))
            continue

        sku_id = row["sku_id"]
        branch_id = row["branch_id"]
        if sku_id not in known:
            issues.append(ValidationIssue(message=f"Row {i}: unknown SKU '{sku_id}'.", row=i, sku_id=sku_id))
            continue
        if not branch_id:
            issues.append(ValidationIssue(message=f"Row {i}: branch is required.", row=i, field="branch_id"))
            continue
        if qty == 0 or (qty < 0 and tx_type != TransactionType.ADJUSTMENT):
            issues.append(ValidationIssue(message=f"Row {i}: invalid quantity {qty:g}.", row=i, quantity=qty))
            continue

        out.append(
            Transaction(
                id=row.get("id") or new_id(),
                date=d,
                branch_id=branch_id,
                sku_id=sku_id,
                type=tx_type,
                quantity_pieces=qty,
                timestamp=ts,
                batch_id=batch_id,
                user_name=user_name,
            )
        )

    if issues:
        logger.warning("Transaction import rejected: %d bad row(s)", len(issues))
        raise ValidationError(issues)
    logger.info("Parsed %d transaction row(s) from import", len(out))
    return out


def import_sales_records(source: Source, skus: Sequence[Sku]) -> list[SalesRecord]:
    df = read_frame(source)
    _require_columns(df, SALES_COLUMNS)

    known = {s.id for s in skus}
    issues: list[ValidationIssue] = []
    out: list[SalesRecord] = []

    for i, row in enumerate(df.to_dict("records"), start=2):
        try:
            d = parse_local_date(row["date"])
            platform = Platform(row["platform"].upper())
            qty = _finite(row["quantity_sold"], "quantity")
        except (ValueError, OverflowError) as e:
            issues.append(ValidationIssue(message=f"Row {i}: {e}", row=i))
            continue
        if row["sku_id"] not in known:
            issues.append(ValidationIssue(message=f"Row {i}: unknown SKU '{row['sku_id']}'.", row=i, sku_id=row["sku_id"]))
            continue
        if qty < 0:
            issues.append(ValidationIssue(message=f"Row {i}: quantity must be >= 0.", row=i, quantity=qty))
            continue
        if qty == 0:
            continue
        out.append(
            SalesRecord(
                id=row.get("id") or new_id(),
                date=d,
                branch_id=row["branch_id"],
                platform=platform,
                sku_id=row["sku_id"],
                quantity_sold=qty,
            )
        )

    if issues:
        logger.warning("Sales import rejected: %d bad row(s)", len(issues))
        raise ValidationError(issues)
    return out
