from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ValidationIssue:
    message: str
    field: Optional[str] = None
    sku_id: Optional[str] = None
    sku_name: Optional[str] = None
    quantity: Optional[float] = None
    limit: Optional[float] = None
    row: Optional[int] = None


class ValidationError(ValueError):
    """
    Raised before a write is attempted. Carries every issue found so the caller
    can show all offending rows/SKUs at once; nothing is partially applied.
    """

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = list(issues)
        if not self.issues:
            msg = "Validation failed."
        elif len(self.issues) == 1:
            msg = self.issues[0].message
        else:
            msg = f"{self.issues[0].message} (+{len(self.issues) - 1} other issue(s))"
        super().__init__(msg)

    @classmethod
    def single(cls, message: str, **kwargs) -> "ValidationError":
        return cls([ValidationIssue(message=message, **kwargs)])


class ExternalServiceFailure(RuntimeError):
    """Persistence (or other collaborator) unavailable. Pure services never raise this."""


@dataclass(frozen=True)
class AttributionGap:
    # Order line with no snapshot and no menu match: counted as zero consumption.
    order_id: str
    menu_item_id: str
    name: str
    quantity: float


@dataclass(frozen=True)
class CapacityWarning:
    suggested_packets: int
    max_capacity_packets: int
    overflow_packets: int = field(default=0)

    @property
    def message(self) -> str:
        return (
            f"Suggested order ({self.suggested_packets} pkts) exceeds freezer capacity "
            f"({self.max_capacity_packets} pkts) by {self.overflow_packets} pkts."
        )
