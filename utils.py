import re
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple
from twilio.rest import Client
from errors import InvalidAmount
from models import (
    CustomSplit,
    EqualSplit,
    Group,
    GroupMember,
    PercentageSplit,
    SplitPolicy,
    Transfer
)
from money import Money
from config import Config

def validate_phone_number(phone: str) -> bool:
    """Validate phone number format"""
    if not phone:
        return False

    # Remove all non-digit characters
    digits = re.sub(r'\D', '', phone)

    # Phone number should have 10-15 digits
    return 10 <= len(digits) <= 15

def format_phone_number(phone: str) -> str:
    """Format phone number for WhatsApp (E.164 format)"""
    if not phone:
        return None

    # Remove all non-digit characters
    digits = re.sub(r'\D', '', phone)

    # If doesn't start with country code, assume +1 (US)
    if len(digits) == 10:
        digits = '1' + digits

    return f'whatsapp:+{digits}'

def format_money(amount: Money, currency: str) -> str:
    """Render an amount with its currency symbol, e.g. -€15.00"""
    symbol = Config.CURRENCY_SYMBOLS.get(currency, f'{currency} ')
    sign = '-' if amount.is_negative() else ''
    return f'{sign}{symbol}{abs(amount)}'

def format_transfer(transfer: Transfer, group: Group) -> str:
    """Render a suggested transfer as 'X owes Y €Z'"""
    debtor = group.get_member(transfer.from_member)
    creditor = group.get_member(transfer.to_member)
    debtor_name = debtor.name if debtor else transfer.from_member
    creditor_name = creditor.name if creditor else transfer.to_member
    return f"{debtor_name} owes {creditor_name} {format_money(transfer.amount, group.currency)}"

def parse_amount(value, field_name: str) -> Tuple[Optional[Money], str]:
    """
    Parse a positive amount within the configured limits
    Returns (amount, error_message)
    """
    try:
        amount = Money.from_decimal_string(value)
    except InvalidAmount as e:
        return None, f"Invalid {field_name}: {e.reason}"

    if amount.amount < Config.MIN_AMOUNT:
        return None, f"{field_name.capitalize()} must be at least {Config.MIN_AMOUNT}"
    if amount.amount > Config.MAX_AMOUNT:
        return None, f"{field_name.capitalize()} cannot exceed {Config.MAX_AMOUNT}"

    return amount, ""

def parse_split_policy(data: Optional[dict], group: Group) -> Tuple[Optional[SplitPolicy], str]:
    """
    Build a split policy from request data
    Missing data means an equal split across the whole roster
    Returns (policy, error_message)
    """
    roster = group.member_ids

    if not data:
        return EqualSplit(participant_ids=tuple(roster)), ""

    if not isinstance(data, dict):
        return None, "Split policy must be an object"

    split_type = data.get('type', 'equal')

    if split_type == 'equal':
        participants = data.get('participants', roster)
        if not isinstance(participants, list):
            return None, "Participants must be a list"
        unknown = [p for p in participants if p not in roster]
        if unknown:
            return None, f"Not a group member: {', '.join(map(str, unknown))}"
        # roster order keeps the remainder distribution deterministic
        ordered = tuple(m for m in roster if m in participants)
        return EqualSplit(participant_ids=ordered), ""

    if split_type == 'percentage':
        raw_shares = data.get('shares', {})
        if not isinstance(raw_shares, dict):
            return None, "Shares must be an object"
        shares: Dict[str, Decimal] = {}
        for member_id, share in raw_shares.items():
            if member_id not in roster:
                return None, f"Not a group member: {member_id}"
            try:
                if isinstance(share, bool):
                    raise TypeError(share)
                value = Decimal(repr(share)) if isinstance(share, float) else Decimal(str(share))
                if not value.is_finite():
                    raise ValueError(share)
            except (InvalidOperation, ValueError, TypeError):
                return None, f"Invalid percentage for {member_id}"
            shares[member_id] = value
        return PercentageSplit(shares=shares), ""

    if split_type == 'custom':
        raw_amounts = data.get('amounts', {})
        if not isinstance(raw_amounts, dict):
            return None, "Amounts must be an object"
        amounts: Dict[str, Money] = {}
        for member_id, value in raw_amounts.items():
            if member_id not in roster:
                return None, f"Not a group member: {member_id}"
            try:
                amounts[member_id] = Money.from_decimal_string(value)
            except InvalidAmount as e:
                return None, f"Invalid amount for {member_id}: {e.reason}"
        return CustomSplit(amounts=amounts), ""

    return None, f"Unknown split type: {split_type}"

def validate_group_data(data: dict) -> Tuple[bool, str]:
    """
    Validate group creation data
    Returns (is_valid, error_message)
    """
    if not data:
        return False, "Request body is required"

    if not str(data.get('name', '')).strip():
        return False, "Group name is required"

    currency = data.get('currency', Config.DEFAULT_CURRENCY)
    if not isinstance(currency, str) or not re.fullmatch(r'[A-Z]{3}', currency):
        return False, "Currency must be a 3-letter code"

    return validate_member_data(data)

def validate_member_data(data: dict) -> Tuple[bool, str]:
    """
    Validate the member fields used when creating or joining a group
    Returns (is_valid, error_message)
    """
    if not data:
        return False, "Request body is required"

    if not str(data.get('member_id', '')).strip():
        return False, "Member id is required"

    phone = str(data.get('phone_number') or '').strip()
    if phone and not validate_phone_number(phone):
        return False, f"Invalid phone number for {data['member_id']}"

    return True, ""

def validate_expense_data(data: dict, group: Group) -> Tuple[bool, str]:
    """
    Validate expense input data
    Returns (is_valid, error_message)
    """
    if not data:
        return False, "Request body is required"

    # Check required fields
    if not str(data.get('description', '')).strip():
        return False, "Description is required"

    if 'total_amount' not in data:
        return False, "Total amount is required"

    if not data.get('payer'):
        return False, "Payer is required"

    # Validate total amount
    _, error = parse_amount(data['total_amount'], 'total amount')
    if error:
        return False, error

    if data['payer'] not in group.member_ids:
        return False, f"Payer {data['payer']} is not a member of this group"

    if len(group.members) > Config.MAX_PARTICIPANTS:
        return False, f"Number of people cannot exceed {Config.MAX_PARTICIPANTS}"

    return True, ""

def validate_settlement_data(data: dict, group: Group) -> Tuple[bool, str]:
    """
    Validate settlement input data
    Returns (is_valid, error_message)
    """
    if not data:
        return False, "Request body is required"

    for field_name in ('from_member', 'to_member', 'amount'):
        if field_name not in data:
            return False, f"{field_name} is required"

    if data['from_member'] == data['to_member']:
        return False, "A member cannot settle with themselves"

    for member_id in (data['from_member'], data['to_member']):
        if member_id not in group.member_ids:
            return False, f"{member_id} is not a member of this group"

    _, error = parse_amount(data['amount'], 'amount')
    if error:
        return False, error

    return True, ""

def send_whatsapp_notification(member: GroupMember, transfers: List[Transfer], group: Group) -> bool:
    """
    Send the suggested transfers that concern a member over WhatsApp
    Returns True if successful, False otherwise
    """
    # Check if Twilio credentials are configured
    if not Config.TWILIO_ACCOUNT_SID or not Config.TWILIO_AUTH_TOKEN:
        print(f"Twilio credentials not configured. Skipping notification for {member.name}")
        return False

    # Check if member has phone number
    if not member.phone_number:
        print(f"No phone number for {member.name}")
        return False

    try:
        client = Client(Config.TWILIO_ACCOUNT_SID, Config.TWILIO_AUTH_TOKEN)

        incoming = [t for t in transfers if t.to_member == member.member_id]
        outgoing = [t for t in transfers if t.from_member == member.member_id]

        # Build message
        message = f"Hi {member.name}! Here is how to settle up in {group.name}.\n\n"

        if incoming:
            received = sum((t.amount for t in incoming), Money.zero())
            message += f"You get back {format_money(received, group.currency)}.\n\n"
            for transfer in incoming:
                message += f"• {format_transfer(transfer, group)}\n"

        if outgoing:
            owed = sum((t.amount for t in outgoing), Money.zero())
            message += f"You owe {format_money(owed, group.currency)}.\n\n"
            for transfer in outgoing:
                creditor = group.get_member(transfer.to_member)
                creditor_name = creditor.name if creditor else transfer.to_member
                message += f"• Pay {format_money(transfer.amount, group.currency)} to {creditor_name}\n"

        if not incoming and not outgoing:
            message += "You're all settled up! No payments needed.\n"

        # Send message
        formatted_phone = format_phone_number(member.phone_number)

        twilio_message = client.messages.create(
            from_=Config.TWILIO_WHATSAPP_NUMBER,
            body=message,
            to=formatted_phone
        )

        print(f"WhatsApp notification sent to {member.name}: {twilio_message.sid}")
        return True

    except Exception as e:
        print(f"Error sending WhatsApp notification to {member.name}: {str(e)}")
        return False
