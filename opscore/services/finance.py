from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from opscore.errors import ValidationError, ValidationIssue
from opscore.utils import parse_local_date

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_ACCOUNT = "Company Account"


class EntryType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    REIMBURSEMENT = "REIMBURSEMENT"


class EntryStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class LedgerEntry:
    id: str
    date: date
    entry_type: EntryType
    amount: float
    description: str
    category: str = ""
    branch_id: Optional[str] = None
    payment_method: str = "CASH"
    source_account: str = DEFAULT_SOURCE_ACCOUNT
    destination_account: Optional[str] = None
    status: EntryStatus = EntryStatus.PENDING
    created_by: str = ""
    approved_by: Optional[str] = None
    rejected_reason: Optional[str] = None


def validate_ledger_entry(raw: Mapping[str, Any]) -> LedgerEntry:
    """
    Build a PENDING entry from form/import data.

    amount (> 0) and description are required; a reimbursement also needs a
    destination account. Every problem is reported at once.
    """
    issues: list[ValidationIssue] = []

    amount: Optional[float] = None
    raw_amount = raw.get("amount")
    if raw_amount in (None, ""):
        issues.append(ValidationIssue(message="Amount is required.", field="amount"))
    else:
        try:
            amount = float(raw_amount)
        except (TypeError, ValueError):
            amount = None
        # nan / inf parse as floats but are not amounts
        if amount is None or not math.isfinite(amount):
            amount = None
            issues.append(ValidationIssue(message="Amount must be a number.", field="amount"))
        elif amount <= 0:
            issues.append(ValidationIssue(message="Amount must be > 0.", field="amount", quantity=amount))

    description = str(raw.get("description") or "").strip()
    if not description:
        issues.append(ValidationIssue(message="Description is required.", field="description"))

    entry_type = EntryType.EXPENSE
    try:
        entry_type = EntryType(raw.get("entry_type") or raw.get("entryType") or EntryType.EXPENSE.value)
    except ValueError:
        issues.append(ValidationIssue(message="Invalid entry type.", field="entry_type"))

    destination = raw.get("destination_account") or raw.get("destinationAccount")
    if entry_type == EntryType.REIMBURSEMENT and not destination:
        issues.append(ValidationIssue(message="Reimbursement needs a destination account.", field="destination_account"))

    entry_date: Optional[date] = None
    try:
        entry_date = parse_local_date(raw.get("date") or "")
    except ValueError as e:
        issues.append(ValidationIssue(message=str(e), field="date"))

    if issues:
        raise ValidationError(issues)

    return LedgerEntry(
        id=str(raw.get("id") or ""),
        date=entry_date,
        entry_type=entry_type,
        amount=float(amount),
        description=description,
        category=str(raw.get("category") or ""),
        branch_id=raw.get("branch_id") or raw.get("branchId") or None,
        payment_method=str(raw.get("payment_method") or raw.get("paymentMethod") or "CASH"),
        source_account=str(raw.get("source_account") or raw.get("sourceAccount") or DEFAULT_SOURCE_ACCOUNT),
        destination_account=destination if entry_type == EntryType.REIMBURSEMENT else None,
        created_by=str(raw.get("created_by") or raw.get("createdBy") or ""),
    )


def _require_pending(entry: LedgerEntry) -> None:
    if entry.status != EntryStatus.PENDING:
        raise ValidationError.single(f"Entry already {entry.status.value.lower()}.", field="status")


def approve(entry: LedgerEntry, *, approved_by: str) -> LedgerEntry:
    _require_pending(entry)
    logger.info("Ledger entry %s approved by %s", entry.id, approved_by)
    return replace(entry, status=EntryStatus.APPROVED, approved_by=approved_by or "Unknown")


def reject(entry: LedgerEntry, *, reason: str) -> LedgerEntry:
    _require_pending(entry)
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError.single("A rejection reason is required.", field="rejected_reason")
    logger.info("Ledger entry %s rejected", entry.id)
    return replace(entry, status=EntryStatus.REJECTED, rejected_reason=reason)


def approved_totals(entries: Iterable[LedgerEntry], *, branch_id: Optional[str] = None) -> dict[EntryType, float]:
    # Only APPROVED entries count towards the books.
    out = {t: 0.0 for t in EntryType}
    for e in entries:
        if e.status != EntryStatus.APPROVED:
            continue
        if branch_id is not None and e.branch_id != branch_id:
            continue
        out[e.entry_type] += float(e.amount)
    return out
