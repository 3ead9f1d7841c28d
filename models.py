from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, List, Dict, Tuple, Union
from datetime import datetime

from money import Money

@dataclass
class GroupMember:
    """Represents a member on a group's roster"""
    member_id: str
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    joined_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.display_name or self.member_id

    def to_dict(self):
        return {
            'member_id': self.member_id,
            'display_name': self.name,
            'phone_number': self.phone_number,
            'joined_at': self.joined_at.isoformat() if self.joined_at else None
        }

@dataclass
class Group:
    """Represents a group sharing expenses"""
    id: Optional[int]
    name: str
    currency: str
    created_at: datetime
    members: List[GroupMember] = field(default_factory=list)

    @property
    def member_ids(self) -> List[str]:
        return [m.member_id for m in self.members]

    def get_member(self, member_id: str) -> Optional[GroupMember]:
        for member in self.members:
            if member.member_id == member_id:
                return member
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'currency': self.currency,
            'created_at': self.created_at.isoformat(),
            'members': [m.to_dict() for m in self.members]
        }

    def to_public_dict(self):
        """Summary safe to show on an invite link, without member contact details"""
        return {
            'id': self.id,
            'name': self.name,
            'currency': self.currency,
            'member_count': len(self.members),
            'members': [m.name for m in self.members]
        }

@dataclass(frozen=True)
class EqualSplit:
    """Split evenly between participants, in roster order"""
    participant_ids: Tuple[str, ...]
    type = 'equal'

    def to_dict(self):
        return {'type': self.type, 'participants': list(self.participant_ids)}

@dataclass(frozen=True)
class PercentageSplit:
    """Split by percentage shares that add up to 100"""
    shares: Dict[str, Decimal]
    type = 'percentage'

    def to_dict(self):
        return {'type': self.type, 'shares': {m: str(s) for m, s in self.shares.items()}}

@dataclass(frozen=True)
class CustomSplit:
    """Split by exact amounts entered by the caller"""
    amounts: Dict[str, Money]
    type = 'custom'

    def to_dict(self):
        return {'type': self.type, 'amounts': {m: str(a) for m, a in self.amounts.items()}}

SplitPolicy = Union[EqualSplit, PercentageSplit, CustomSplit]

@dataclass
class Split:
    """A member's owed share of one expense"""
    member_id: str
    amount: Money

    def to_dict(self):
        return {
            'member_id': self.member_id,
            'amount': str(self.amount)
        }

@dataclass
class Expense:
    """Represents an expense record with its splits"""
    id: Optional[int]
    group_id: int
    description: str
    payer: str
    total_amount: Money
    created_at: datetime
    splits: List[Split] = field(default_factory=list)
    category: str = 'general'
    receipt_url: Optional[str] = None

    def to_dict(self):
        return {
            'id': self.id,
            'group_id': self.group_id,
            'description': self.description,
            'payer': self.payer,
            'total_amount': str(self.total_amount),
            'category': self.category,
            'receipt_url': self.receipt_url,
            'created_at': self.created_at.isoformat(),
            'splits': [s.to_dict() for s in self.splits]
        }

@dataclass
class Settlement:
    """Represents a recorded repayment between two members"""
    id: Optional[int]
    group_id: int
    from_member: str
    to_member: str
    amount: Money
    created_at: datetime
    reverses_id: Optional[int] = None

    def to_dict(self):
        return {
            'id': self.id,
            'group_id': self.group_id,
            'from_member': self.from_member,
            'to_member': self.to_member,
            'amount': str(self.amount),
            'created_at': self.created_at.isoformat(),
            'reverses_id': self.reverses_id
        }

@dataclass(frozen=True)
class Transfer:
    """Represents a suggested payment that settles balances"""
    from_member: str
    to_member: str
    amount: Money

    def to_dict(self):
        return {
            'from_member': self.from_member,
            'to_member': self.to_member,
            'amount': str(self.amount)
        }
