import pytest

from opscore.errors import ValidationError
from opscore.services.finance import (
    EntryStatus,
    EntryType,
    approve,
    approved_totals,
    reject,
    validate_ledger_entry,
)


def _entry(**over):
    raw = {"id": "e1", "date": "2026-03-10", "amount": "250", "description": "Gas cylinder", "branchId": "B1"}
    raw.update(over)
    return validate_ledger_entry(raw)


def test_valid_entry_is_pending():
    e = _entry()
    assert e.status == EntryStatus.PENDING
    assert e.entry_type == EntryType.EXPENSE
    assert e.amount == 250.0
    assert e.branch_id == "B1"


@pytest.mark.parametrize(
    "over,message",
    [
        ({"amount": ""}, "Amount is required."),
        ({"amount": "abc"}, "Amount must be a number."),
        ({"amount": "-5"}, "Amount must be > 0."),
        ({"amount": "0"}, "Amount must be > 0."),
        ({"amount": "nan"}, "Amount must be a number."),
        ({"amount": "inf"}, "Amount must be a number."),
        ({"amount": float("-inf")}, "Amount must be a number."),
        ({"description": "  "}, "Description is required."),
        ({"entryType": "REIMBURSEMENT"}, "Reimbursement needs a destination account."),
        ({"entryType": "GIFT"}, "Invalid entry type."),
    ],
)
def test_invalid_entries(over, message):
    with pytest.raises(ValidationError) as exc:
        _entry(**over)
    assert message in [i.message for i in exc.value.issues]


def test_all_problems_reported_together():
    with pytest.raises(ValidationError) as exc:
        validate_ledger_entry({"date": "nope"})
    fields = {i.field for i in exc.value.issues}
    assert fields == {"amount", "description", "date"}


def test_reimbursement_keeps_destination():
    e = _entry(entryType="REIMBURSEMENT", destinationAccount="Asha (staff)")
    assert e.destination_account == "Asha (staff)"


def test_approve_and_reject_only_from_pending():
    e = _entry()
    ok = approve(e, approved_by="owner")
    assert ok.status == EntryStatus.APPROVED
    assert ok.approved_by == "owner"
    with pytest.raises(ValidationError, match="already approved"):
        reject(ok, reason="late")

    with pytest.raises(ValidationError, match="reason is required"):
        reject(e, reason=" ")
    no = reject(e, reason="duplicate")
    assert no.rejected_reason == "duplicate"
    with pytest.raises(ValidationError):
        approve(no, approved_by="owner")


def test_approved_totals_ignore_pending_and_rejected():
    entries = [
        approve(_entry(amount="100"), approved_by="o"),
        approve(_entry(amount="40", entryType="INCOME"), approved_by="o"),
        approve(_entry(amount="7", branchId="B2"), approved_by="o"),
        _entry(amount="1000"),
        reject(_entry(amount="500"), reason="x"),
    ]
    totals = approved_totals(entries, branch_id="B1")
    assert totals[EntryType.EXPENSE] == 100
    assert totals[EntryType.INCOME] == 40
    assert totals[EntryType.REIMBURSEMENT] == 0
    assert approved_totals(entries)[EntryType.EXPENSE] == 107
