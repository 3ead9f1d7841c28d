"""
Balance computation for a group.

Balances are folded from the full expense and settlement history on every
call. Positive means the group owes the member, negative means the member
owes the group.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from errors import LedgerInconsistency
from models import Expense, Settlement
from money import Money


@dataclass
class LedgerResult:
    """Balances per member plus any integrity problems found on the way"""
    balances: Dict[str, Money]
    inconsistencies: List[LedgerInconsistency] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.inconsistencies

    def total(self) -> Money:
        return sum(self.balances.values(), Money.zero())

    def to_dict(self) -> dict:
        return {member: str(amount) for member, amount in self.balances.items()}


def compute_balances(
    group_members: Iterable[str],
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement]
) -> LedgerResult:
    """
    Fold expenses and settlements into net balances.

    Every roster member appears in the result, in roster order. Members that
    only show up in the history (e.g. someone who left) follow, sorted by id.
    An expense whose splits do not add up to its total is reported in
    LedgerResult.inconsistencies; for that expense the payer is credited
    with the split sum instead of the total so the balances still add up
    to zero.
    """
    roster = list(dict.fromkeys(group_members))
    units: Dict[str, int] = {member: 0 for member in roster}
    inconsistencies = []

    for expense in expenses:
        split_units = sum(s.amount.minor_units for s in expense.splits)
        credited = expense.total_amount.minor_units
        if split_units != credited:
            inconsistencies.append(LedgerInconsistency(
                expense_id=expense.id,
                total_amount=expense.total_amount,
                split_total=Money.from_minor_units(split_units)
            ))
            credited = split_units

        units[expense.payer] = units.get(expense.payer, 0) + credited
        for split in expense.splits:
            units[split.member_id] = units.get(split.member_id, 0) - split.amount.minor_units

    for settlement in settlements:
        amount = settlement.amount.minor_units
        units[settlement.from_member] = units.get(settlement.from_member, 0) + amount
        units[settlement.to_member] = units.get(settlement.to_member, 0) - amount

    on_roster = set(roster)
    outsiders = sorted(m for m in units if m not in on_roster)
    balances = {m: Money.from_minor_units(units[m]) for m in roster + outsiders}

    # inconsistencies are listed by expense id so the output is order independent
    inconsistencies.sort(key=lambda i: (i.expense_id is None, i.expense_id or 0))

    return LedgerResult(balances=balances, inconsistencies=inconsistencies)
