import sqlite3
from datetime import datetime
from typing import List, Optional
from models import Expense, Group, GroupMember, Settlement, Split
from money import Money
from config import Config

class Database:
    """Database manager for groups, expenses and settlements"""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or Config.DATABASE_PATH
        self.init_db()

    def get_connection(self):
        """Get database connection"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        return conn

    def init_db(self):
        """Initialize database tables"""
        conn = self.get_connection()
        cursor = conn.cursor()

        cursor.executescript('''
            CREATE TABLE IF NOT EXISTS groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                currency TEXT NOT NULL DEFAULT 'EUR',
                created_at TIMESTAMP NOT NULL
            );

            CREATE TABLE IF NOT EXISTS group_members (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                member_id TEXT NOT NULL,
                display_name TEXT,
                phone_number TEXT,
                joined_at TIMESTAMP NOT NULL,
                UNIQUE (group_id, member_id)
            );

            CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                description TEXT NOT NULL,
                payer TEXT NOT NULL,
                total_amount TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT 'general',
                receipt_url TEXT,
                created_at TIMESTAMP NOT NULL
            );

            CREATE TABLE IF NOT EXISTS expense_splits (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                expense_id INTEGER NOT NULL REFERENCES expenses(id) ON DELETE CASCADE,
                member_id TEXT NOT NULL,
                amount TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS settlements (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                from_member TEXT NOT NULL,
                to_member TEXT NOT NULL,
                amount TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL,
                reverses_id INTEGER REFERENCES settlements(id)
            );
        ''')

        conn.commit()
        conn.close()

    # Groups

    def create_group(self, name: str, currency: str, creator: GroupMember) -> Group:
        """Create a group and add its creator as the first member"""
        conn = self.get_connection()
        now = datetime.now()

        try:
            cursor = conn.cursor()
            cursor.execute(
                'INSERT INTO groups (name, currency, created_at) VALUES (?, ?, ?)',
                (name, currency, now.isoformat())
            )
            group_id = cursor.lastrowid
            self._insert_member(cursor, group_id, creator, now)
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

        return self.get_group(group_id)

    def get_group(self, group_id: int) -> Optional[Group]:
        """Retrieve a group with its roster"""
        conn = self.get_connection()
        cursor = conn.cursor()

        cursor.execute('SELECT * FROM groups WHERE id = ?', (group_id,))
        row = cursor.fetchone()
        if not row:
            conn.close()
            return None

        cursor.execute('''
            SELECT * FROM group_members WHERE group_id = ? ORDER BY joined_at, id
        ''', (group_id,))
        members = [self._row_to_member(m) for m in cursor.fetchall()]
        conn.close()

        return Group(
            id=row['id'],
            name=row['name'],
            currency=row['currency'],
            created_at=datetime.fromisoformat(row['created_at']),
            members=members
        )

    def get_member_groups(self, member_id: str) -> List[Group]:
        """Retrieve every group a member belongs to"""
        conn = self.get_connection()
        cursor = conn.cursor()

        cursor.execute('''
            SELECT g.id FROM groups g
            JOIN group_members m ON m.group_id = g.id
            WHERE m.member_id = ?
            ORDER BY g.created_at DESC, g.id DESC
        ''', (member_id,))
        group_ids = [row['id'] for row in cursor.fetchall()]
        conn.close()

        return [self.get_group(group_id) for group_id in group_ids]

    def join_group(self, group_id: int, member: GroupMember) -> bool:
        """Add a member to a group. Returns False if already a member"""
        conn = self.get_connection()
        cursor = conn.cursor()

        added = self._insert_member(cursor, group_id, member, datetime.now())

        conn.commit()
        conn.close()

        return added

    def _insert_member(self, cursor, group_id: int, member: GroupMember, joined_at: datetime) -> bool:
        cursor.execute('''
            INSERT OR IGNORE INTO group_members (group_id, member_id, display_name, phone_number, joined_at)
            VALUES (?, ?, ?, ?, ?)
        ''', (
            group_id,
            member.member_id,
            member.display_name,
            member.phone_number,
            joined_at.isoformat()
        ))
        return cursor.rowcount > 0

    # Expenses

    def save_expense(self, expense: Expense) -> int:
        """Save an expense together with its splits in one transaction"""
        conn = self.get_connection()

        try:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO expenses (group_id, description, payer, total_amount, category, receipt_url, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (
                expense.group_id,
                expense.description,
                expense.payer,
                str(expense.total_amount),
                expense.category,
                expense.receipt_url,
                expense.created_at.isoformat()
            ))
            expense_id = cursor.lastrowid

            cursor.executemany('''
                INSERT INTO expense_splits (expense_id, member_id, amount) VALUES (?, ?, ?)
            ''', [(expense_id, s.member_id, str(s.amount)) for s in expense.splits])

            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

        return expense_id

    def get_group_expenses(self, group_id: int, year: int = None, month: int = None) -> List[Expense]:
        """Retrieve a group's expenses with splits, optionally for one month"""
        conn = self.get_connection()
        cursor = conn.cursor()

        if year and month:
            cursor.execute('''
                SELECT * FROM expenses
                WHERE group_id = ?
                AND strftime('%Y', created_at) = ?
                AND strftime('%m', created_at) = ?
                ORDER BY created_at DESC, id DESC
            ''', (group_id, str(year), str(month).zfill(2)))
        else:
            cursor.execute('''
                SELECT * FROM expenses WHERE group_id = ? ORDER BY created_at DESC, id DESC
            ''', (group_id,))

        rows = cursor.fetchall()
        expenses = [self._row_to_expense(cursor, row) for row in rows]
        conn.close()

        return expenses

    def get_expense_by_id(self, expense_id: int) -> Optional[Expense]:
        """Retrieve a specific expense by ID"""
        conn = self.get_connection()
        cursor = conn.cursor()

        cursor.execute('SELECT * FROM expenses WHERE id = ?', (expense_id,))
        row = cursor.fetchone()
        expense = self._row_to_expense(cursor, row) if row else None
        conn.close()

        return expense

    def delete_expense(self, expense_id: int) -> bool:
        """Delete an expense and its splits in one transaction"""
        conn = self.get_connection()

        try:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM expense_splits WHERE expense_id = ?', (expense_id,))
            cursor.execute('DELETE FROM expenses WHERE id = ?', (expense_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

        return deleted

    # Settlements

    def save_settlement(self, settlement: Settlement) -> int:
        """Save a settlement"""
        conn = self.get_connection()
        cursor = conn.cursor()

        cursor.execute('''
            INSERT INTO settlements (group_id, from_member, to_member, amount, created_at, reverses_id)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (
            settlement.group_id,
            settlement.from_member,
            settlement.to_member,
            str(settlement.amount),
            settlement.created_at.isoformat(),
            settlement.reverses_id
        ))

        settlement_id = cursor.lastrowid
        conn.commit()
        conn.close()

        return settlement_id

    def get_group_settlements(self, group_id: int) -> List[Settlement]:
        """Retrieve all settlements of a group"""
        conn = self.get_connection()
        cursor = conn.cursor()

        cursor.execute('''
            SELECT * FROM settlements WHERE group_id = ? ORDER BY created_at DESC, id DESC
        ''', (group_id,))

        rows = cursor.fetchall()
        conn.close()

        return [self._row_to_settlement(row) for row in rows]

    def get_settlement_by_id(self, settlement_id: int) -> Optional[Settlement]:
        """Retrieve a specific settlement by ID"""
        conn = self.get_connection()
        cursor = conn.cursor()

        cursor.execute('SELECT * FROM settlements WHERE id = ?', (settlement_id,))
        row = cursor.fetchone()
        conn.close()

        return self._row_to_settlement(row) if row else None

    def get_reversal_of(self, settlement_id: int) -> Optional[Settlement]:
        """Retrieve the settlement that reverses the given one, if any"""
        conn = self.get_connection()
        cursor = conn.cursor()

        cursor.execute('SELECT * FROM settlements WHERE reverses_id = ?', (settlement_id,))
        row = cursor.fetchone()
        conn.close()

        return self._row_to_settlement(row) if row else None

    # Row mapping

    def _row_to_member(self, row) -> GroupMember:
        return GroupMember(
            member_id=row['member_id'],
            display_name=row['display_name'],
            phone_number=row['phone_number'],
            joined_at=datetime.fromisoformat(row['joined_at'])
        )

    def _row_to_expense(self, cursor, row) -> Expense:
        cursor.execute('''
            SELECT * FROM expense_splits WHERE expense_id = ? ORDER BY id
        ''', (row['id'],))
        splits = [
            Split(
                member_id=s['member_id'],
                amount=Money.from_decimal_string(s['amount'])
            )
            for s in cursor.fetchall()
        ]

        return Expense(
            id=row['id'],
            group_id=row['group_id'],
            description=row['description'],
            payer=row['payer'],
            total_amount=Money.from_decimal_string(row['total_amount']),
            created_at=datetime.fromisoformat(row['created_at']),
            splits=splits,
            category=row['category'],
            receipt_url=row['receipt_url']
        )

    def _row_to_settlement(self, row) -> Settlement:
        return Settlement(
            id=row['id'],
            group_id=row['group_id'],
            from_member=row['from_member'],
            to_member=row['to_member'],
            amount=Money.from_decimal_string(row['amount']),
            created_at=datetime.fromisoformat(row['created_at']),
            reverses_id=row['reverses_id']
        )
