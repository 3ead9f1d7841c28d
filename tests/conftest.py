import os
import tempfile
from datetime import datetime

import pytest

# keep the module-level Database in app.py away from the working directory
os.environ['DATABASE_PATH'] = os.path.join(tempfile.mkdtemp(), 'fairshare-test.db')

from database import Database
from models import Expense, Settlement, Split
from money import Money


def money(value):
    return Money.from_decimal_string(value, allow_negative=True)


def make_expense(payer, total, splits, expense_id=None, group_id=1):
    return Expense(
        id=expense_id,
        group_id=group_id,
        description='test expense',
        payer=payer,
        total_amount=money(total),
        created_at=datetime(2024, 5, 1, 12, 0),
        splits=[Split(member_id=m, amount=money(a)) for m, a in splits.items()]
    )


def make_settlement(from_member, to_member, amount, settlement_id=None, group_id=1):
    return Settlement(
        id=settlement_id,
        group_id=group_id,
        from_member=from_member,
        to_member=to_member,
        amount=money(amount),
        created_at=datetime(2024, 5, 2, 12, 0)
    )


@pytest.fixture
def db(tmp_path):
    return Database(str(tmp_path / 'ledger.db'))


@pytest.fixture
def client(db, monkeypatch):
    import app as app_module

    monkeypatch.setattr(app_module, 'db', db)
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        yield client
