"""Transaction workflow routes (request, negotiation, retraction, payment)."""

from flask import request, jsonify, current_app
from lendit.services import transactions as service
from lendit.utils import token_required
from lendit.routes.transactions import transactions_bp


def _respond(transaction, current_user_id, message, status_code=200):
    return jsonify({
        'message': message,
        'transaction': transaction.to_dict(viewer_id=current_user_id)
    }), status_code


@transactions_bp.route('/request', methods=['POST'])
@token_required
def request_lend(current_user_id):
    """Borrower requests an item.

    Body: item_id, requested_from, requested_to, message (optional)
    """
    transaction = service.request_lend(current_user_id, request.get_json(silent=True))
    current_app.logger.info(f'User {current_user_id} requested item {transaction.item_id}')
    return _respond(transaction, current_user_id, 'Request sent', 201)


@transactions_bp.route('/<int:transaction_id>/accept', methods=['PATCH'])
@token_required
def accept(current_user_id, transaction_id):
    transaction = service.accept(transaction_id, current_user_id)
    return _respond(transaction, current_user_id, 'Request accepted')


@transactions_bp.route('/<int:transaction_id>/decline', methods=['PATCH'])
@token_required
def decline(current_user_id, transaction_id):
    transaction = service.decline(transaction_id, current_user_id)
    return _respond(transaction, current_user_id, 'Request declined')


@transactions_bp.route('/<int:transaction_id>/renegotiate', methods=['PATCH'])
@token_required
def renegotiate(current_user_id, transaction_id):
    """Either party proposes new dates. Body: requested_from, requested_to, message."""
    transaction = service.renegotiate(transaction_id, current_user_id, request.get_json(silent=True))
    return _respond(transaction, current_user_id, 'Renegotiation requested')


@transactions_bp.route('/<int:transaction_id>/renegotiation/accept', methods=['PATCH'])
@token_required
def accept_renegotiation(current_user_id, transaction_id):
    transaction = service.accept_renegotiation(transaction_id, current_user_id)
    return _respond(transaction, current_user_id, 'Renegotiation accepted')


@transactions_bp.route('/<int:transaction_id>/renegotiation/decline', methods=['PATCH'])
@token_required
def decline_renegotiation(current_user_id, transaction_id):
    transaction = service.decline_renegotiation(transaction_id, current_user_id)
    return _respond(transaction, current_user_id, 'Renegotiation declined')


@transactions_bp.route('/<int:transaction_id>/edit', methods=['PATCH'])
@token_required
def edit(current_user_id, transaction_id):
    """Borrower edits dates or message. Body: requested_from, requested_to, message."""
    transaction = service.edit(transaction_id, current_user_id, request.get_json(silent=True))
    return _respond(transaction, current_user_id, 'Request updated')


@transactions_bp.route('/<int:transaction_id>/retract', methods=['PATCH'])
@token_required
def retract(current_user_id, transaction_id):
    transaction = service.retract(transaction_id, current_user_id)
    return _respond(transaction, current_user_id, 'Request retracted')


@transactions_bp.route('/<int:transaction_id>/complete-payment', methods=['PATCH'])
@token_required
def complete_payment(current_user_id, transaction_id):
    """Borrower pays; fee, discount and deposit are fixed at this point."""
    transaction = service.complete_payment(transaction_id, current_user_id)
    current_app.logger.info(
        f'Transaction {transaction_id} paid: total {transaction.total_amount / 100:.2f}'
    )
    return _respond(transaction, current_user_id, 'Payment completed')
