"""Handoff routes: pickup and return codes, deposit resolution."""

from flask import request, jsonify
from lendit.services import transactions as service
from lendit.utils import token_required
from lendit.routes.transactions import transactions_bp


def _respond(transaction, current_user_id, message):
    return jsonify({
        'message': message,
        'transaction': transaction.to_dict(viewer_id=current_user_id)
    }), 200


@transactions_bp.route('/<int:transaction_id>/pickup-code', methods=['PATCH'])
@token_required
def generate_pickup_code(current_user_id, transaction_id):
    """Borrower gets the code to show the lender at pickup."""
    transaction = service.generate_pickup_code(transaction_id, current_user_id)
    return jsonify({
        'pickup_code': transaction.pickup_code,
        'transaction': transaction.to_dict(viewer_id=current_user_id)
    }), 200


@transactions_bp.route('/<int:transaction_id>/pickup-code', methods=['POST'])
@token_required
def use_pickup_code(current_user_id, transaction_id):
    """Lender enters the borrower's code. Body: code."""
    transaction = service.use_pickup_code(transaction_id, current_user_id, request.get_json(silent=True))
    return _respond(transaction, current_user_id, 'Pickup confirmed')


@transactions_bp.route('/<int:transaction_id>/force-pickup', methods=['PATCH'])
@token_required
def force_pickup(current_user_id, transaction_id):
    transaction = service.force_pickup(transaction_id, current_user_id)
    return _respond(transaction, current_user_id, 'Pickup confirmed')


@transactions_bp.route('/<int:transaction_id>/return-code', methods=['PATCH'])
@token_required
def generate_return_code(current_user_id, transaction_id):
    """Lender gets the code to give the borrower at return."""
    transaction = service.generate_return_code(transaction_id, current_user_id)
    return jsonify({
        'return_code': transaction.return_code,
        'transaction': transaction.to_dict(viewer_id=current_user_id)
    }), 200


@transactions_bp.route('/<int:transaction_id>/return-code', methods=['POST'])
@token_required
def submit_return_code(current_user_id, transaction_id):
    """Borrower enters the lender's code. Body: code."""
    transaction = service.submit_return_code(transaction_id, current_user_id, request.get_json(silent=True))
    return _respond(transaction, current_user_id, 'Return confirmed')


@transactions_bp.route('/<int:transaction_id>/return-complete', methods=['PATCH'])
@token_required
def force_complete_return(current_user_id, transaction_id):
    transaction = service.force_complete_return(transaction_id, current_user_id)
    return _respond(transaction, current_user_id, 'Return confirmed')


@transactions_bp.route('/<int:transaction_id>/report-damage', methods=['PATCH'])
@token_required
def report_damage(current_user_id, transaction_id):
    """Lender reports damage.

    Body: deposit_refund_percentage (0-100), damage_description
    """
    transaction = service.report_damage(transaction_id, current_user_id, request.get_json(silent=True))
    return _respond(transaction, current_user_id, 'Damage reported, deposit resolved')


@transactions_bp.route('/<int:transaction_id>/confirm-no-damage', methods=['PATCH'])
@token_required
def confirm_no_damage(current_user_id, transaction_id):
    transaction = service.confirm_no_damage(transaction_id, current_user_id)
    return _respond(transaction, current_user_id, 'Deposit returned to borrower')


@transactions_bp.route('/<int:transaction_id>/complete', methods=['PATCH'])
@token_required
def complete(current_user_id, transaction_id):
    transaction = service.complete(transaction_id, current_user_id)
    return _respond(transaction, current_user_id, 'Transaction completed')
