"""
Debt simplification: turn net balances into a short list of payments.
"""
from __future__ import annotations
import heapq
from typing import Dict, List

from models import Transfer
from money import Money


def simplify(balances: Dict[str, Money]) -> List[Transfer]:
    """
    Greedy settlement: the largest debtor pays the largest creditor.
    Equal amounts are matched in member id order.
    Returns at most n - 1 transfers for n unsettled members; applying them
    as settlements brings every balance to zero.
    """
    # heaps keyed by (-magnitude, member) so the largest pops first
    creditors = []
    debtors = []
    for member, balance in balances.items():
        if balance.is_zero():
            continue
        units = balance.minor_units
        if units > 0:
            creditors.append((-units, member))
        else:
            debtors.append((units, member))
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    transfers = []
    while creditors and debtors:
        credit, creditor = heapq.heappop(creditors)
        debt, debtor = heapq.heappop(debtors)

        amount = min(-credit, -debt)
        transfers.append(Transfer(
            from_member=debtor,
            to_member=creditor,
            amount=Money.from_minor_units(amount)
        ))

        if -credit > amount:
            heapq.heappush(creditors, (credit + amount, creditor))
        if -debt > amount:
            heapq.heappush(debtors, (debt + amount, debtor))

    return transfers
