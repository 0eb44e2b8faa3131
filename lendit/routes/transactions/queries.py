"""Transaction read routes (lists, detail, quote, financials)."""

from flask import request, jsonify
from lendit.errors import ValidationError
from lendit.services import transactions as service
from lendit.utils import token_required
from lendit.routes.transactions import transactions_bp


def _serialize(transactions, viewer_id):
    return [t.to_dict(viewer_id=viewer_id) for t in transactions]


@transactions_bp.route('', methods=['GET'])
@token_required
def get_my_transactions(current_user_id):
    """All transactions the user takes part in, split by role."""
    status = request.args.get('status')
    borrowings = service.list_for_user(current_user_id, service.BORROWER, status)
    lendings = service.list_for_user(current_user_id, service.LENDER, status)
    return jsonify({
        'borrowings': _serialize(borrowings, current_user_id),
        'lendings': _serialize(lendings, current_user_id),
        'total': len(borrowings) + len(lendings)
    }), 200


@transactions_bp.route('/borrowings', methods=['GET'])
@token_required
def get_borrowings(current_user_id):
    """Transactions where the user is the borrower.

    Query params:
    - status: Filter by transaction status
    """
    transactions = service.list_for_user(current_user_id, service.BORROWER, request.args.get('status'))
    return jsonify({
        'transactions': _serialize(transactions, current_user_id),
        'total': len(transactions)
    }), 200


@transactions_bp.route('/lendings', methods=['GET'])
@token_required
def get_lendings(current_user_id):
    """Transactions where the user is the lender.

    Query params:
    - status: Filter by transaction status
    """
    transactions = service.list_for_user(current_user_id, service.LENDER, request.args.get('status'))
    return jsonify({
        'transactions': _serialize(transactions, current_user_id),
        'total': len(transactions)
    }), 200


@transactions_bp.route('/quote', methods=['GET'])
@token_required
def get_quote(current_user_id):
    """Price a rental before requesting it.

    Query params:
    - item_id (required)
    - from, to: Rental dates (YYYY-MM-DD)
    """
    item_id = request.args.get('item_id', type=int)
    if not item_id:
        raise ValidationError('item_id is required')
    pricing = service.quote(item_id, request.args.get('from'), request.args.get('to'), current_user_id)
    return jsonify(pricing), 200


@transactions_bp.route('/<int:transaction_id>', methods=['GET'])
@token_required
def get_transaction(current_user_id, transaction_id):
    """Transaction detail for one of its participants."""
    transaction = service.get_for_participant(transaction_id, current_user_id)
    return jsonify(transaction.to_dict(viewer_id=current_user_id)), 200


@transactions_bp.route('/<int:transaction_id>/summary', methods=['GET'])
@token_required
def get_payment_summary(current_user_id, transaction_id):
    return jsonify(service.payment_summary(transaction_id, current_user_id)), 200


@transactions_bp.route('/<int:transaction_id>/financials', methods=['GET'])
@token_required
def get_financials(current_user_id, transaction_id):
    return jsonify(service.financials(transaction_id, current_user_id)), 200
