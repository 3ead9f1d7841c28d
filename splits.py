"""
Split allocation: turn an expense total and a split policy into per-member
owed amounts that add up to the total exactly.
"""
from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from itertools import cycle, islice
from typing import Dict, Iterable, List, Optional, Tuple

from errors import (
    SplitError,
    EmptyParticipantSet,
    PercentageMismatch,
    CustomAmountMismatch
)
from models import EqualSplit, PercentageSplit, CustomSplit, SplitPolicy
from money import Money

FULL_PERCENTAGE = Decimal('100')
PERCENTAGE_TOLERANCE = Decimal('0.5')
CUSTOM_TOLERANCE = Money.from_minor_units(1)

Allocation = Dict[str, Money]


def allocate(total: Money, policy: SplitPolicy) -> Tuple[Optional[Allocation], Optional[SplitError]]:
    """
    Resolve a split policy against an expense total.
    Returns (allocation, None) on success or (None, error) when the policy
    does not validate. The allocation keeps the policy's member order.
    """
    if isinstance(policy, EqualSplit):
        return _allocate_equal(total, policy)
    if isinstance(policy, PercentageSplit):
        return _allocate_percentage(total, policy)
    if isinstance(policy, CustomSplit):
        return _allocate_custom(total, policy)
    raise TypeError(f"Unsupported split policy: {type(policy).__name__}")


def _unique(members: Iterable[str]) -> List[str]:
    """Drop repeated members, keeping the first occurrence"""
    return list(dict.fromkeys(members))


def _allocate_equal(total: Money, policy: EqualSplit):
    participants = _unique(policy.participant_ids)
    if not participants:
        return None, EmptyParticipantSet()

    base, remainder = divmod(total.minor_units, len(participants))
    units = {member: base for member in participants}
    for member in participants[:remainder]:
        units[member] += 1

    return {m: Money.from_minor_units(u) for m, u in units.items()}, None


def _allocate_percentage(total: Money, policy: PercentageSplit):
    if not policy.shares:
        return None, EmptyParticipantSet()

    for member, share in policy.shares.items():
        if share < 0:
            return None, PercentageMismatch(FULL_PERCENTAGE, share, member_id=member)

    share_sum = sum(policy.shares.values(), Decimal('0'))
    if abs(share_sum - FULL_PERCENTAGE) > PERCENTAGE_TOLERANCE:
        return None, PercentageMismatch(FULL_PERCENTAGE, share_sum)

    shares = {m: s for m, s in policy.shares.items() if s > 0}
    total_units = Decimal(total.minor_units)

    # shares are scaled by their own sum so the residual stays within a
    # handful of minor units even when they are off 100 by the tolerance
    raw = {m: total_units * s / share_sum for m, s in shares.items()}
    units = {m: int(r.quantize(Decimal('1'), rounding=ROUND_HALF_UP)) for m, r in raw.items()}

    residual = total.minor_units - sum(units.values())
    if residual:
        position = {m: i for i, m in enumerate(shares)}
        if residual > 0:
            # members that lost the most to rounding get the extra units
            ranked = sorted(shares, key=lambda m: (units[m] - raw[m], position[m]))
        else:
            ranked = sorted(shares, key=lambda m: (raw[m] - units[m], position[m]))
        step = 1 if residual > 0 else -1
        for member in islice(cycle(ranked), abs(residual)):
            units[member] += step

    return {m: Money.from_minor_units(u) for m, u in units.items()}, None


def _allocate_custom(total: Money, policy: CustomSplit):
    if not policy.amounts:
        return None, EmptyParticipantSet()

    entered = sum(policy.amounts.values(), Money.zero())
    if abs(entered - total) > CUSTOM_TOLERANCE:
        return None, CustomAmountMismatch(expected=total, actual=entered)

    return dict(policy.amounts), None


def allocation_total(allocation: Allocation) -> Money:
    return sum(allocation.values(), Money.zero())
