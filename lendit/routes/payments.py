"""Payment routes: gateway configuration and reconciliation view."""

from flask import Blueprint, jsonify, current_app
from lendit.services import transactions as service
from lendit.services.payment_gateway import get_payment_gateway
from lendit.utils import token_required

payments_bp = Blueprint('payments', __name__)


@payments_bp.route('/config', methods=['GET'])
def get_payment_config():
    """Public payment settings the client needs to show prices."""
    return jsonify({
        'gateway': get_payment_gateway().name,
        'currency': current_app.config['PAYMENT_CURRENCY'],
        'deposit_multiplier': current_app.config['DEPOSIT_MULTIPLIER'],
        'premium_discount_rate': current_app.config['PREMIUM_DISCOUNT_RATE']
    }), 200


@payments_bp.route('/reconciliation', methods=['GET'])
@token_required
def get_reconciliation(current_user_id):
    """The user's transactions waiting on a stuck or partial transfer."""
    transactions = [
        t for t in service.list_needing_reconciliation()
        if t.role_of(current_user_id)
    ]
    return jsonify({
        'transactions': [
            {
                'id': t.id,
                'status': t.status.value,
                'pending_operation': t.pending_operation,
                'needs_reconciliation': t.needs_reconciliation,
                'updated_at': t.updated_at.isoformat() if t.updated_at else None
            }
            for t in transactions
        ],
        'total': len(transactions)
    }), 200
