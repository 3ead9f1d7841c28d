"""
Error taxonomy for the ledger core.

InvalidAmount is raised while parsing money at the boundary. The split and
ledger failures are plain values handed back by the allocator and the ledger
engine so callers decide what to show or log.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from money import Money


class InvalidAmount(ValueError):
    """Amount string is malformed, too precise or has a forbidden sign"""

    def __init__(self, value, reason: str = "not a valid amount"):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class SplitError:
    """Base for split-policy validation failures"""
    code = 'split_error'

    def message(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> dict:
        return {'code': self.code, 'message': self.message()}


@dataclass(frozen=True)
class EmptyParticipantSet(SplitError):
    code = 'empty_participant_set'

    def message(self) -> str:
        return "Select at least one person to split with"


@dataclass(frozen=True)
class PercentageMismatch(SplitError):
    expected: Decimal
    actual: Decimal
    member_id: Optional[str] = None
    code = 'percentage_mismatch'

    def message(self) -> str:
        if self.member_id is not None:
            return f"Percentage for {self.member_id} cannot be negative ({self.actual}%)"
        return f"Percentages must add up to {self.expected}% (got {self.actual}%)"

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({'expected': str(self.expected), 'actual': str(self.actual)})
        return data


@dataclass(frozen=True)
class CustomAmountMismatch(SplitError):
    expected: 'Money'
    actual: 'Money'
    code = 'custom_amount_mismatch'

    @property
    def difference(self) -> 'Money':
        return self.actual - self.expected

    def message(self) -> str:
        return (f"Custom amounts must add up to {self.expected} "
                f"(got {self.actual}, off by {abs(self.difference)})")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({'expected': str(self.expected), 'actual': str(self.actual)})
        return data


@dataclass(frozen=True)
class LedgerInconsistency:
    """Persisted splits of an expense do not add up to its total"""
    expense_id: Optional[int]
    total_amount: 'Money'
    split_total: 'Money'

    def message(self) -> str:
        return (f"Expense {self.expense_id}: splits sum to {self.split_total} "
                f"but total is {self.total_amount}")

    def to_dict(self) -> dict:
        return {
            'expense_id': self.expense_id,
            'total_amount': str(self.total_amount),
            'split_total': str(self.split_total),
            'message': self.message()
        }
