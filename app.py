from flask import Flask, request, jsonify
from flask_cors import CORS
from datetime import datetime
import traceback

from config import Config
from database import Database
from ledger import compute_balances
from models import Expense, GroupMember, Settlement, Split, CustomSplit
from simplifier import simplify
from splits import allocate, allocation_total
from utils import (
    format_transfer,
    parse_amount,
    parse_split_policy,
    send_whatsapp_notification,
    validate_expense_data,
    validate_group_data,
    validate_member_data,
    validate_settlement_data
)

app = Flask(__name__)
app.config.from_object(Config)
CORS(app)

# Initialize database
db = Database()

def member_from_request(data: dict) -> GroupMember:
    return GroupMember(
        member_id=str(data['member_id']).strip(),
        display_name=(data.get('display_name') or '').strip() or None,
        phone_number=(data.get('phone_number') or '').strip() or None
    )

def group_balances(group):
    """Recompute a group's balances from its full history"""
    expenses = db.get_group_expenses(group.id)
    settlements = db.get_group_settlements(group.id)
    result = compute_balances(group.member_ids, expenses, settlements)

    for inconsistency in result.inconsistencies:
        print(f"LEDGER INCONSISTENCY in group {group.id}: {inconsistency.message()}")

    return result

def inconsistency_response(result):
    return jsonify({
        'error': 'Group ledger is inconsistent',
        'inconsistencies': [i.to_dict() for i in result.inconsistencies]
    }), 500

# Groups

@app.route('/api/groups', methods=['POST'])
def create_group():
    """Create a new group with the caller as first member"""
    try:
        data = request.get_json(silent=True)

        is_valid, error_message = validate_group_data(data)
        if not is_valid:
            return jsonify({'error': error_message}), 400

        group = db.create_group(
            name=data['name'].strip(),
            currency=data.get('currency', Config.DEFAULT_CURRENCY),
            creator=member_from_request(data)
        )

        return jsonify({
            'success': True,
            'group': group.to_dict()
        }), 201

    except Exception as e:
        print(f"Error creating group: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/groups', methods=['GET'])
def get_groups():
    """Get the groups a member belongs to"""
    try:
        member_id = request.args.get('member_id', '').strip()
        if not member_id:
            return jsonify({'error': 'member_id is required'}), 400

        groups = db.get_member_groups(member_id)

        return jsonify({
            'success': True,
            'groups': [g.to_dict() for g in groups]
        }), 200

    except Exception as e:
        print(f"Error getting groups: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/groups/<int:group_id>', methods=['GET'])
def get_group(group_id):
    """Get a group with its members"""
    try:
        group = db.get_group(group_id)

        if not group:
            return jsonify({'error': 'Group not found'}), 404

        return jsonify({
            'success': True,
            'group': group.to_dict()
        }), 200

    except Exception as e:
        print(f"Error getting group: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/groups/<int:group_id>/public', methods=['GET'])
def get_public_group(group_id):
    """Get the public summary of a group shown on invite links"""
    try:
        group = db.get_group(group_id)

        if not group:
            return jsonify({'error': 'Group not found'}), 404

        return jsonify({
            'success': True,
            'group': group.to_public_dict()
        }), 200

    except Exception as e:
        print(f"Error getting public group: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/groups/<int:group_id>/join', methods=['POST'])
def join_group(group_id):
    """Join a group"""
    try:
        data = request.get_json(silent=True)

        is_valid, error_message = validate_member_data(data)
        if not is_valid:
            return jsonify({'error': error_message}), 400

        if not db.get_group(group_id):
            return jsonify({'error': 'Group not found'}), 404

        added = db.join_group(group_id, member_from_request(data))

        return jsonify({
            'success': True,
            'message': 'Joined group' if added else 'Already a member'
        }), 200

    except Exception as e:
        print(f"Error joining group: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

# Expenses

@app.route('/api/groups/<int:group_id>/expenses', methods=['POST'])
def create_expense(group_id):
    """Create a new expense and its splits"""
    try:
        group = db.get_group(group_id)
        if not group:
            return jsonify({'error': 'Group not found'}), 404

        data = request.get_json(silent=True)

        # Validate input data
        is_valid, error_message = validate_expense_data(data, group)
        if not is_valid:
            return jsonify({'error': error_message}), 400

        policy, error_message = parse_split_policy(data.get('split_policy'), group)
        if error_message:
            return jsonify({'error': error_message}), 400

        total_amount, _ = parse_amount(data['total_amount'], 'total amount')

        allocation, split_error = allocate(total_amount, policy)
        if split_error:
            return jsonify({
                'error': split_error.message(),
                'details': split_error.to_dict()
            }), 400

        if isinstance(policy, CustomSplit):
            # custom amounts are kept verbatim, so the total follows them
            total_amount = allocation_total(allocation)

        expense = Expense(
            id=None,
            group_id=group.id,
            description=data['description'].strip(),
            payer=data['payer'],
            total_amount=total_amount,
            created_at=datetime.now(),
            splits=[Split(member_id=m, amount=a) for m, a in allocation.items()],
            category=(data.get('category') or '').strip() or Config.DEFAULT_CATEGORY,
            receipt_url=data.get('receipt_url') or None
        )

        # Save to database
        expense.id = db.save_expense(expense)

        return jsonify({
            'success': True,
            'expense': expense.to_dict(),
            'split_policy': policy.to_dict()
        }), 201

    except Exception as e:
        print(f"Error creating expense: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/groups/<int:group_id>/expenses', methods=['GET'])
def get_expenses(group_id):
    """Get all expenses of a group or filter by month"""
    try:
        if not db.get_group(group_id):
            return jsonify({'error': 'Group not found'}), 404

        year = request.args.get('year', type=int)
        month = request.args.get('month', type=int)

        expenses = db.get_group_expenses(group_id, year, month)

        return jsonify({
            'success': True,
            'expenses': [e.to_dict() for e in expenses]
        }), 200

    except Exception as e:
        print(f"Error getting expenses: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/expenses/<int:expense_id>', methods=['DELETE'])
def delete_expense(expense_id):
    """Delete an expense"""
    try:
        success = db.delete_expense(expense_id)

        if not success:
            return jsonify({'error': 'Expense not found'}), 404

        return jsonify({
            'success': True,
            'message': 'Expense deleted successfully'
        }), 200

    except Exception as e:
        print(f"Error deleting expense: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

# Settlements

@app.route('/api/groups/<int:group_id>/settlements', methods=['GET'])
def get_settlements(group_id):
    """Get all settlements of a group"""
    try:
        if not db.get_group(group_id):
            return jsonify({'error': 'Group not found'}), 404

        settlements = db.get_group_settlements(group_id)

        return jsonify({
            'success': True,
            'settlements': [s.to_dict() for s in settlements]
        }), 200

    except Exception as e:
        print(f"Error getting settlements: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/groups/<int:group_id>/settlements', methods=['POST'])
def create_settlement(group_id):
    """Record a repayment between two members"""
    try:
        group = db.get_group(group_id)
        if not group:
            return jsonify({'error': 'Group not found'}), 404

        data = request.get_json(silent=True)

        is_valid, error_message = validate_settlement_data(data, group)
        if not is_valid:
            return jsonify({'error': error_message}), 400

        amount, _ = parse_amount(data['amount'], 'amount')

        settlement = Settlement(
            id=None,
            group_id=group.id,
            from_member=data['from_member'],
            to_member=data['to_member'],
            amount=amount,
            created_at=datetime.now()
        )
        settlement.id = db.save_settlement(settlement)

        return jsonify({
            'success': True,
            'settlement': settlement.to_dict()
        }), 201

    except Exception as e:
        print(f"Error creating settlement: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/settlements/<int:settlement_id>/reverse', methods=['POST'])
def reverse_settlement(settlement_id):
    """Cancel a settlement by recording the opposite payment"""
    try:
        original = db.get_settlement_by_id(settlement_id)

        if not original:
            return jsonify({'error': 'Settlement not found'}), 404

        if original.reverses_id is not None:
            return jsonify({'error': 'A reversal cannot be reversed'}), 400

        if db.get_reversal_of(settlement_id):
            return jsonify({'error': 'Settlement is already reversed'}), 400

        reversal = Settlement(
            id=None,
            group_id=original.group_id,
            from_member=original.to_member,
            to_member=original.from_member,
            amount=original.amount,
            created_at=datetime.now(),
            reverses_id=original.id
        )
        reversal.id = db.save_settlement(reversal)

        return jsonify({
            'success': True,
            'settlement': reversal.to_dict()
        }), 201

    except Exception as e:
        print(f"Error reversing settlement: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

# Balances

@app.route('/api/groups/<int:group_id>/balances', methods=['GET'])
def get_balances(group_id):
    """Get every member's net balance"""
    try:
        group = db.get_group(group_id)
        if not group:
            return jsonify({'error': 'Group not found'}), 404

        result = group_balances(group)
        if not result.is_consistent:
            return inconsistency_response(result)

        return jsonify({
            'success': True,
            'currency': group.currency,
            'balances': result.to_dict()
        }), 200

    except Exception as e:
        print(f"Error getting balances: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/groups/<int:group_id>/transfers', methods=['GET'])
def get_transfers(group_id):
    """Get suggested transfers that settle the group"""
    try:
        group = db.get_group(group_id)
        if not group:
            return jsonify({'error': 'Group not found'}), 404

        result = group_balances(group)
        if not result.is_consistent:
            return inconsistency_response(result)

        transfers = simplify(result.balances)

        return jsonify({
            'success': True,
            'currency': group.currency,
            'transfers': [
                dict(t.to_dict(), message=format_transfer(t, group))
                for t in transfers
            ]
        }), 200

    except Exception as e:
        print(f"Error getting transfers: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.route('/api/groups/<int:group_id>/transfers/notify', methods=['POST'])
def notify_transfers(group_id):
    """Send each member their suggested transfers over WhatsApp"""
    try:
        group = db.get_group(group_id)
        if not group:
            return jsonify({'error': 'Group not found'}), 404

        result = group_balances(group)
        if not result.is_consistent:
            return inconsistency_response(result)

        transfers = simplify(result.balances)

        notification_results = []
        for member in group.members:
            if member.phone_number:
                success = send_whatsapp_notification(member, transfers, group)
                notification_results.append({
                    'member_id': member.member_id,
                    'success': success
                })

        return jsonify({
            'success': True,
            'notifications': notification_results
        }), 200

    except Exception as e:
        print(f"Error sending notifications: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': f'Server error: {str(e)}'}), 500

@app.errorhandler(404)
def not_found(error):
    return jsonify({'error': 'Endpoint not found'}), 404

@app.errorhandler(500)
def internal_error(error):
    return jsonify({'error': 'Internal server error'}), 500

if __name__ == '__main__':
    print("Starting FairShare ledger API...")
    print(f"Database: {Config.DATABASE_PATH}")
    print(f"Twilio configured: {bool(Config.TWILIO_ACCOUNT_SID)}")
    app.run(debug=Config.DEBUG, port=5000)
