"""Transaction lifecycle: the only place a transaction's status changes.

Every operation follows the same order: load the record, check the actor,
check the source status, validate the payload, then commit through a
compare-and-swap UPDATE guarded by ``status`` and ``version_id``. A caller
that loses a race gets ConflictError and nothing is written.

Operations that move money (pickup, deposit resolution) first claim the
record by setting ``pending_operation``, call the payment gateway with no
database transaction open, and then commit the target state. A record left
with ``pending_operation`` or ``needs_reconciliation`` set after a crash or
a partial transfer is picked up by ``list_needing_reconciliation``.
"""

import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from lendit import db
from lendit.errors import (
    ConflictError,
    ForbiddenError,
    GatewayError,
    InvalidStateError,
    ItemSyncError,
    NotFoundError,
    ValidationError,
)
from lendit.models import Item, ItemStatus, Transaction, TransactionStatus, User
from lendit.services import codes
from lendit.services.deposit import split_deposit, validate_percentage
from lendit.services.payment_gateway import TransferResult, account_for, get_payment_gateway
from lendit.services.pricing import (
    calculate_rental_pricing,
    get_discount_rate,
    parse_date,
    quote_for_user,
    to_cents,
)
from lendit.utils.user_helpers import get_full_name

logger = logging.getLogger(__name__)

LENDER = 'lender'
BORROWER = 'borrower'
EITHER = 'either'

PICKUP_OPERATION = 'pickup'
DEPOSIT_OPERATION = 'deposit_resolution'

# Item status implied by each transaction status
ITEM_STATUS_BY_TRANSACTION = {
    TransactionStatus.REQUESTED: ItemStatus.REQUESTED,
    TransactionStatus.RENEGOTIATION_REQUESTED: ItemStatus.REQUESTED,
    TransactionStatus.ACCEPTED: ItemStatus.LENT,
    TransactionStatus.PAID: ItemStatus.LENT,
    TransactionStatus.BORROWED: ItemStatus.BORROWED,
    TransactionStatus.RETURNED: ItemStatus.AVAILABLE,
    TransactionStatus.COMPLETED: ItemStatus.AVAILABLE,
    TransactionStatus.REJECTED: ItemStatus.AVAILABLE,
    TransactionStatus.RETRACTED: ItemStatus.AVAILABLE,
}

# Strongest hold wins when several transactions reference one item
ITEM_HOLD_RANK = {
    ItemStatus.AVAILABLE: 0,
    ItemStatus.REQUESTED: 1,
    ItemStatus.LENT: 2,
    ItemStatus.BORROWED: 3,
}

# Transactions that still hold the item
HOLDING_STATUSES = (
    TransactionStatus.REQUESTED,
    TransactionStatus.RENEGOTIATION_REQUESTED,
    TransactionStatus.ACCEPTED,
    TransactionStatus.PAID,
    TransactionStatus.BORROWED,
)

OPEN_REQUEST_STATUSES = (
    TransactionStatus.REQUESTED,
    TransactionStatus.RENEGOTIATION_REQUESTED,
    TransactionStatus.ACCEPTED,
    TransactionStatus.PAID,
)

PRE_PICKUP_STATUSES = (TransactionStatus.ACCEPTED, TransactionStatus.PAID)
EDITABLE_STATUSES = (TransactionStatus.REQUESTED, TransactionStatus.ACCEPTED)
RETRACTABLE_STATUSES = (
    TransactionStatus.REQUESTED,
    TransactionStatus.ACCEPTED,
    TransactionStatus.PAID,
    TransactionStatus.RENEGOTIATION_REQUESTED,
)


# ---------------------------------------------------------------------------
# Shared guards
# ---------------------------------------------------------------------------

def get_transaction(transaction_id):
    transaction = Transaction.query.get(transaction_id)
    if not transaction:
        raise NotFoundError('Transaction not found')
    return transaction


def _authorize(transaction, actor_id, role):
    if role == LENDER and transaction.lender_id == actor_id:
        return
    if role == BORROWER and transaction.borrower_id == actor_id:
        return
    if role == EITHER and transaction.role_of(actor_id):
        return
    raise ForbiddenError('Not authorized')


def _require_status(transaction, allowed, operation):
    if transaction.status in allowed:
        return
    if transaction.status.is_terminal:
        raise InvalidStateError(f'Transaction is already {transaction.status.value}')
    raise InvalidStateError(
        f'Cannot {operation} a transaction with status "{transaction.status.value}"'
    )


def _require_idle(transaction):
    if transaction.pending_operation:
        raise ConflictError(
            f'Another operation ({transaction.pending_operation}) is in progress for this transaction'
        )


def _date_range(payload, from_key='requested_from', to_key='requested_to'):
    payload = payload or {}
    start = parse_date(payload.get(from_key), from_key)
    end = parse_date(payload.get(to_key), to_key)
    if start > end:
        raise ValidationError(f'{from_key} must be on or before {to_key}')
    return start, end


def _compare_and_swap(transaction, sources, changes, expected_version=None, **conditions):
    """Apply ``changes`` only if the stored row still matches what we read.

    The row must have the expected ``version_id``, a status in ``sources``
    and match every keyword condition. Exactly one caller can win for a
    given version.
    """
    version = transaction.version_id if expected_version is None else expected_version
    transaction_id = transaction.id

    query = Transaction.query.filter(
        Transaction.id == transaction_id,
        Transaction.version_id == version,
        Transaction.status.in_(list(sources)),
    )
    for column, value in conditions.items():
        attr = getattr(Transaction, column)
        query = query.filter(attr.is_(None) if value is None else attr == value)

    values = dict(changes)
    values['version_id'] = version + 1
    values['updated_at'] = datetime.utcnow()

    updated = query.update(values, synchronize_session=False)
    if updated != 1:
        db.session.rollback()
        logger.warning(f'Transaction {transaction_id}: concurrent update lost (version {version})')
        raise ConflictError('Transaction was modified by another request, please retry')
    db.session.commit()
    return version + 1


def _transition(transaction, actor_id, sources, target, changes=None, **conditions):
    previous = transaction.status
    values = dict(changes or {})
    if target is not None:
        values['status'] = target
    _compare_and_swap(transaction, sources, values, pending_operation=None, **conditions)
    db.session.refresh(transaction)
    logger.info(
        f'Transaction {transaction.id}: {previous.value} -> {transaction.status.value} by user {actor_id}'
    )
    return transaction


# ---------------------------------------------------------------------------
# Item cascade
# ---------------------------------------------------------------------------

def item_status_for(transaction):
    """Item status implied by the transaction, given other open requests.

    Every transaction still holding the item is considered and the
    strongest hold wins, so a new request never downgrades an item that
    is already lent or borrowed under another transaction.
    """
    others = Transaction.query.filter(
        Transaction.item_id == transaction.item_id,
        Transaction.id != transaction.id,
        Transaction.status.in_(HOLDING_STATUSES),
    ).all()
    candidates = [ITEM_STATUS_BY_TRANSACTION[transaction.status]]
    candidates.extend(ITEM_STATUS_BY_TRANSACTION[other.status] for other in others)
    return max(candidates, key=ITEM_HOLD_RANK.get)


def apply_item_status(transaction):
    """Set the linked item's status from the transaction.

    Safe to repeat: the target is derived from stored state only. Failures
    are reported, the transaction's own change is not reverted.
    """
    try:
        item = Item.query.get(transaction.item_id)
        if item is None:
            raise ItemSyncError(
                f'Transaction {transaction.id} updated but item {transaction.item_id} no longer exists'
            )
        target = item_status_for(transaction)
        if item.status != target:
            item.status = target
            db.session.commit()
            logger.info(f'Item {item.id} status -> {target} (transaction {transaction.id})')
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f'Item status update failed for transaction {transaction.id}: {e}')
        raise ItemSyncError(f'Transaction {transaction.id} updated but item status could not be updated')
    return transaction


def reconcile_item_status(transaction_id):
    """Re-apply the item status for a transaction (repair pass)."""
    return apply_item_status(get_transaction(transaction_id))


# ---------------------------------------------------------------------------
# Request and negotiation
# ---------------------------------------------------------------------------

def request_lend(actor_id, payload):
    """Create a borrow request for an item.

    Body:
        item_id, requested_from, requested_to, message (optional)
    """
    payload = payload or {}
    item_id = payload.get('item_id')
    if not item_id:
        raise ValidationError('item_id is required')

    item = Item.query.get(item_id)
    if not item:
        raise NotFoundError('Item not found')
    if not User.query.get(actor_id):
        raise NotFoundError('User not found')
    if item.owner_id == actor_id:
        raise ValidationError('You cannot request your own item.')
    if item.status == ItemStatus.UNAVAILABLE:
        raise InvalidStateError('Item is not available for lending')

    start, end = _date_range(payload)

    existing = Transaction.query.filter(
        Transaction.item_id == item.id,
        Transaction.borrower_id == actor_id,
        Transaction.status.in_(OPEN_REQUEST_STATUSES),
    ).first()
    if existing:
        raise ConflictError('You have already requested this item.')

    transaction = Transaction(
        item_id=item.id,
        lender_id=item.owner_id,
        borrower_id=actor_id,
        status=TransactionStatus.REQUESTED,
        requested_from=start,
        requested_to=end,
        message=payload.get('message'),
    )
    db.session.add(transaction)
    db.session.commit()
    logger.info(f'Transaction {transaction.id}: requested item {item.id} by user {actor_id}')

    return apply_item_status(transaction)


def accept(transaction_id, actor_id, payload=None):
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, LENDER)
    _require_status(transaction, (TransactionStatus.REQUESTED,), 'accept')
    _require_idle(transaction)
    _transition(transaction, actor_id, (TransactionStatus.REQUESTED,), TransactionStatus.ACCEPTED)
    return apply_item_status(transaction)


def decline(transaction_id, actor_id, payload=None):
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, LENDER)
    _require_status(transaction, (TransactionStatus.REQUESTED,), 'decline')
    _require_idle(transaction)
    _transition(transaction, actor_id, (TransactionStatus.REQUESTED,), TransactionStatus.REJECTED)
    return apply_item_status(transaction)


def renegotiate(transaction_id, actor_id, payload):
    """Propose new dates. Body: requested_from, requested_to, message."""
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, EITHER)
    sources = (TransactionStatus.REQUESTED, TransactionStatus.ACCEPTED)
    _require_status(transaction, sources, 'renegotiate')
    _require_idle(transaction)
    start, end = _date_range(payload)

    _transition(transaction, actor_id, sources, TransactionStatus.RENEGOTIATION_REQUESTED, {
        'renegotiation_from': start,
        'renegotiation_to': end,
        'renegotiation_message': (payload or {}).get('message'),
        'renegotiation_requested_by': actor_id,
    })
    return apply_item_status(transaction)


def _clear_renegotiation():
    return {
        'renegotiation_from': None,
        'renegotiation_to': None,
        'renegotiation_message': None,
        'renegotiation_requested_by': None,
    }


def accept_renegotiation(transaction_id, actor_id, payload=None):
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, BORROWER)
    sources = (TransactionStatus.RENEGOTIATION_REQUESTED,)
    _require_status(transaction, sources, 'accept a renegotiation for')
    _require_idle(transaction)

    changes = _clear_renegotiation()
    changes['requested_from'] = transaction.renegotiation_from
    changes['requested_to'] = transaction.renegotiation_to
    _transition(transaction, actor_id, sources, TransactionStatus.ACCEPTED, changes)
    return apply_item_status(transaction)


def decline_renegotiation(transaction_id, actor_id, payload=None):
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, BORROWER)
    sources = (TransactionStatus.RENEGOTIATION_REQUESTED,)
    _require_status(transaction, sources, 'decline a renegotiation for')
    _require_idle(transaction)
    _transition(transaction, actor_id, sources, TransactionStatus.REJECTED, _clear_renegotiation())
    return apply_item_status(transaction)


def edit(transaction_id, actor_id, payload):
    """Borrower changes dates or message without a status change."""
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, BORROWER)
    _require_status(transaction, EDITABLE_STATUSES, 'edit')
    _require_idle(transaction)

    payload = payload or {}
    changes = {}
    if 'requested_from' in payload or 'requested_to' in payload:
        merged = {
            'requested_from': payload.get('requested_from', transaction.requested_from),
            'requested_to': payload.get('requested_to', transaction.requested_to),
        }
        changes['requested_from'], changes['requested_to'] = _date_range(merged)
    if 'message' in payload:
        changes['message'] = payload['message']
    if not changes:
        raise ValidationError('Nothing to update')

    return _transition(transaction, actor_id, EDITABLE_STATUSES, None, changes)


def retract(transaction_id, actor_id, payload=None):
    """Borrower withdraws the request before pickup.

    A paid transaction is flagged for reconciliation so the collected
    payment can be refunded.
    """
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, BORROWER)
    _require_status(transaction, RETRACTABLE_STATUSES, 'retract')
    _require_idle(transaction)

    changes = _clear_renegotiation()
    if transaction.status == TransactionStatus.PAID:
        changes['needs_reconciliation'] = True
    _transition(transaction, actor_id, RETRACTABLE_STATUSES, TransactionStatus.RETRACTED, changes)
    return apply_item_status(transaction)


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------

def complete_payment(transaction_id, actor_id, payload=None):
    """Freeze the financials and move to ``paid``.

    No money is transferred here; the lender's share is released at pickup.
    """
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, BORROWER)
    sources = (TransactionStatus.ACCEPTED,)
    _require_status(transaction, sources, 'pay for')
    _require_idle(transaction)

    item = Item.query.get(transaction.item_id)
    if not item:
        raise NotFoundError('Item not found')
    borrower = User.query.get(transaction.borrower_id)

    pricing = calculate_rental_pricing(
        item.price,
        transaction.requested_from,
        transaction.requested_to,
        get_discount_rate(borrower),
    )
    multiplier = current_app.config.get('DEPOSIT_MULTIPLIER', 5)
    deposit = to_cents(item.price * multiplier)
    final_fee = to_cents(pricing['final_price'])

    _transition(transaction, actor_id, sources, TransactionStatus.PAID, {
        'deposit': deposit,
        'original_lending_fee': to_cents(pricing['original_price']),
        'final_lending_fee': final_fee,
        'discount_applied': to_cents(pricing['discount_amount']),
        'discount_rate': pricing['discount_rate'],
        'is_premium_transaction': pricing['discount_rate'] > 0,
        'total_amount': final_fee + deposit,
        'paid_at': datetime.utcnow(),
    })
    return apply_item_status(transaction)


# ---------------------------------------------------------------------------
# Handoff codes
# ---------------------------------------------------------------------------

def generate_pickup_code(transaction_id, actor_id, payload=None):
    """Issue the pickup code to the borrower; repeated calls return the same code."""
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, BORROWER)
    if transaction.pickup_code_used:
        raise ConflictError('Pickup code has already been used')
    _require_status(transaction, PRE_PICKUP_STATUSES, 'generate a pickup code for')
    if transaction.pickup_code:
        return transaction
    _require_idle(transaction)

    try:
        _compare_and_swap(
            transaction, PRE_PICKUP_STATUSES,
            {'pickup_code': codes.generate_code(), 'pickup_code_generated_at': datetime.utcnow()},
            pickup_code=None,
            pending_operation=None,
        )
    except ConflictError:
        # Another request may have issued it first
        db.session.refresh(transaction)
        if not transaction.pickup_code:
            raise
    db.session.refresh(transaction)
    logger.info(f'Transaction {transaction.id}: pickup code issued')
    return transaction


def generate_return_code(transaction_id, actor_id, payload=None):
    """Issue the return code to the lender; repeated calls return the same code."""
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, LENDER)
    if transaction.return_code_used:
        raise ConflictError('Return code has already been used')
    sources = (TransactionStatus.BORROWED,)
    _require_status(transaction, sources, 'generate a return code for')
    if transaction.return_code:
        return transaction
    _require_idle(transaction)

    try:
        _compare_and_swap(
            transaction, sources,
            {
                'return_code': codes.generate_code(),
                'return_code_generated': True,
                'return_code_generated_at': datetime.utcnow(),
            },
            return_code=None,
            pending_operation=None,
        )
    except ConflictError:
        db.session.refresh(transaction)
        if not transaction.return_code:
            raise
    db.session.refresh(transaction)
    logger.info(f'Transaction {transaction.id}: return code issued')
    return transaction


# ---------------------------------------------------------------------------
# Pickup
# ---------------------------------------------------------------------------

def _claim(transaction, sources, operation, **conditions):
    version = _compare_and_swap(
        transaction, sources, {'pending_operation': operation}, pending_operation=None, **conditions
    )
    logger.info(f'Transaction {transaction.id}: claimed for {operation}')
    return version


def _release_claim(transaction_id, version, sources):
    updated = Transaction.query.filter(
        Transaction.id == transaction_id,
        Transaction.version_id == version,
        Transaction.status.in_(list(sources)),
    ).update({
        'pending_operation': None,
        'version_id': version + 1,
        'updated_at': datetime.utcnow(),
    }, synchronize_session=False)
    db.session.commit()
    if updated != 1:
        logger.error(f'Transaction {transaction_id}: could not release claim at version {version}')


def _flag_for_reconciliation(transaction_id, extra=None):
    values = {'needs_reconciliation': True, 'updated_at': datetime.utcnow()}
    values.update(extra or {})
    Transaction.query.filter(Transaction.id == transaction_id).update(values, synchronize_session=False)
    db.session.commit()
    logger.error(f'Transaction {transaction_id}: flagged for manual reconciliation')


def _transfer(from_account, to_account, amount_cents, description):
    """Call the gateway; timeouts and client errors count as a failed transfer."""
    gateway = get_payment_gateway()
    try:
        return gateway.transfer(from_account, to_account, amount_cents, description)
    except Exception as e:
        logger.error(f'Gateway {gateway.name} raised during transfer to {to_account}: {e}')
        return TransferResult(success=False, error=str(e))


def _pickup(transaction, actor_id):
    transaction_id = transaction.id
    version = _claim(transaction, PRE_PICKUP_STATUSES, PICKUP_OPERATION, pickup_code_used=False)
    amount = transaction.final_lending_fee or 0
    lender_account = account_for(transaction.lender)
    # End the read transaction; nothing is held open during the transfer
    db.session.commit()

    transfer_id = None
    if amount > 0:
        result = _transfer(
            current_app.config['PLATFORM_ACCOUNT_ID'],
            lender_account,
            amount,
            f'Lending fee for transaction {transaction_id}',
        )
        if not result.success:
            _release_claim(transaction_id, version, PRE_PICKUP_STATUSES)
            logger.warning(f'Transaction {transaction_id}: pickup aborted, transfer failed: {result.error}')
            raise GatewayError(f'Payment transfer to lender failed: {result.error}')
        transfer_id = result.transfer_id

    changes = {
        'status': TransactionStatus.BORROWED,
        'pickup_code_used': True,
        'picked_up_at': datetime.utcnow(),
        'payment_to_lender_released': amount > 0,
        'lender_transfer_id': transfer_id,
        'pending_operation': None,
    }
    previous = transaction.status
    try:
        _compare_and_swap(transaction, PRE_PICKUP_STATUSES, changes, expected_version=version)
    except ConflictError:
        if transfer_id:
            _flag_for_reconciliation(transaction_id, {'lender_transfer_id': transfer_id})
        raise
    db.session.refresh(transaction)
    logger.info(f'Transaction {transaction_id}: {previous.value} -> borrowed by user {actor_id}')
    return apply_item_status(transaction)


def use_pickup_code(transaction_id, actor_id, payload):
    """Lender redeems the code the borrower shows at handoff. Body: code."""
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, LENDER)
    if transaction.pickup_code_used:
        raise ConflictError('Pickup code has already been used')
    _require_status(transaction, PRE_PICKUP_STATUSES, 'pick up')
    _require_idle(transaction)

    submitted = (payload or {}).get('code')
    if not submitted:
        raise ValidationError('code is required')
    if not transaction.pickup_code:
        raise InvalidStateError('No pickup code has been generated')
    if not codes.codes_match(transaction.pickup_code, submitted):
        raise ValidationError('Invalid pickup code')

    return _pickup(transaction, actor_id)


def force_pickup(transaction_id, actor_id, payload=None):
    """Borrower confirms pickup without a code."""
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, BORROWER)
    if transaction.pickup_code_used:
        raise ConflictError('Pickup has already been confirmed')
    _require_status(transaction, PRE_PICKUP_STATUSES, 'pick up')
    _require_idle(transaction)
    return _pickup(transaction, actor_id)


# ---------------------------------------------------------------------------
# Return
# ---------------------------------------------------------------------------

def submit_return_code(transaction_id, actor_id, payload):
    """Borrower submits the code the lender gave at return. Body: code."""
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, BORROWER)
    if transaction.return_code_used:
        raise ConflictError('Return code has already been used')
    sources = (TransactionStatus.BORROWED,)
    _require_status(transaction, sources, 'return')
    _require_idle(transaction)

    submitted = (payload or {}).get('code')
    if not submitted:
        raise ValidationError('code is required')
    if not transaction.return_code:
        raise InvalidStateError('No return code has been generated')
    if not codes.codes_match(transaction.return_code, submitted):
        raise ValidationError('Invalid return code')

    _transition(transaction, actor_id, sources, TransactionStatus.RETURNED, {
        'return_code_used': True,
        'returned_at': datetime.utcnow(),
    }, return_code_used=False)
    return apply_item_status(transaction)


def force_complete_return(transaction_id, actor_id, payload=None):
    """Lender confirms the item came back without a code."""
    transaction = get_transaction(transaction_id)
    _authorize(transaction, actor_id, LENDER)
    if transaction.return_code_used:
        raise ConflictError('Return has already been confirmed')
    sources = (TransactionStatus.BORROWED,)
    _require_status(transaction, sources, 'complete the return of')
    _require_idle(transaction)

    _transition(transaction, actor_id, sources, TransactionStatus.RETURNED, {
        'return_code_used': True,
        'returned_at': datetime.utcnow(),
    }, return_code_used=False)
    return apply_item_status(transaction)


# ---------------------------------------------------------------------------
# Deposit resolution
# ---------------------------------------------------------------------------

def _resolve_deposit(transaction, actor_id, refund_percentage, damage_reported, damage_description):
    transaction_id = transaction.id
    sources = (TransactionStatus.RETURNED,)
    split = split_deposit(transaction.deposit or 0, refund_percentage)

    version = _claim(transaction, sources, DEPOSIT_OPERATION, deposit_returned=False)
    platform = current_app.config['PLATFORM_ACCOUNT_ID']
    legs = [
        ('borrower', account_for(transaction.borrower), split.to_borrower),
        ('lender', account_for(transaction.lender), split.to_lender),
    ]
    db.session.commit()

    transfer_ids = {}
    for party, account, amount in legs:
        if amount <= 0:
            continue
        result = _transfer(platform, account, amount, f'Deposit share ({party}) for transaction {transaction_id}')
        if result.success:
            transfer_ids[party] = result.transfer_id
            continue
        if not transfer_ids:
            _release_claim(transaction_id, version, sources)
            logger.warning(f'Transaction {transaction_id}: deposit resolution aborted: {result.error}')
            raise GatewayError(f'Deposit transfer to {party} failed: {result.error}')
        # One leg already moved; keep the claim so nobody retries blindly
        _flag_for_reconciliation(transaction_id, {'deposit_transfer_ids': transfer_ids})
        raise GatewayError(
            f'Deposit transfer to {party} failed after a partial payout; flagged for reconciliation'
        )

    try:
        _compare_and_swap(transaction, sources, {
            'status': TransactionStatus.COMPLETED,
            'damage_reported': damage_reported,
            'damage_description': damage_description,
            'deposit_refund_percentage': float(refund_percentage),
            'deposit_to_borrower': split.to_borrower,
            'deposit_to_lender': split.to_lender,
            'deposit_transfer_ids': transfer_ids or None,
            'deposit_returned': True,
            'return_date': datetime.utcnow(),
            'pending_operation': None,
        }, expected_version=version)
    except ConflictError:
        if transfer_ids:
            _flag_for_reconciliation(transaction_id, {'deposit_transfer_ids': transfer_ids})
        raise
    db.session.refresh(transaction)
    logger.info(
        f'Transaction {transaction_id}: returned -> completed by user {actor_id} '
        f'(deposit {split.to_borrower / 100:.2f} to borrower, {split.to_lender / 100:.2f} to lender)'
    )
    return apply_item_status(transaction)


def _check_resolvable(transaction, actor_id):
    _authorize(transaction, actor_id, LENDER)
    if transaction.deposit_returned:
        raise ConflictError('Deposit has already been resolved')
    _require_status(transaction, (TransactionStatus.RETURNED,), 'resolve the deposit of')
    _require_idle(transaction)


def report_damage(transaction_id, actor_id, payload):
    """Lender reports damage. Body: deposit_refund_percentage, damage_description."""
    transaction = get_transaction(transaction_id)
    _check_resolvable(transaction, actor_id)

    payload = payload or {}
    if 'deposit_refund_percentage' not in payload:
        raise ValidationError('deposit_refund_percentage is required')
    percentage = validate_percentage(payload['deposit_refund_percentage'])
    description = payload.get('damage_description')
    if description is not None and not isinstance(description, str):
        raise ValidationError('damage_description must be a string')

    return _resolve_deposit(transaction, actor_id, percentage, True, description)


def confirm_no_damage(transaction_id, actor_id, payload=None):
    """Lender confirms the item is fine; the whole deposit goes back."""
    transaction = get_transaction(transaction_id)
    _check_resolvable(transaction, actor_id)
    return _resolve_deposit(transaction, actor_id, 100, False, None)


complete = confirm_no_damage


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_for_participant(transaction_id, user_id):
    transaction = get_transaction(transaction_id)
    if not transaction.role_of(user_id):
        raise ForbiddenError('Not authorized to view this transaction.')
    return transaction


def list_for_user(user_id, role, status=None):
    """Transactions where the user is the lender or the borrower."""
    column = Transaction.lender_id if role == LENDER else Transaction.borrower_id
    query = Transaction.query.filter(column == user_id)
    if status:
        try:
            query = query.filter(Transaction.status == TransactionStatus(status))
        except ValueError:
            raise ValidationError(f'Unknown status: {status}')
    return query.order_by(Transaction.created_at.desc()).all()


def payment_summary(transaction_id, user_id):
    transaction = get_for_participant(transaction_id, user_id)
    item = transaction.item
    return {
        'id': transaction.id,
        'borrower': get_full_name(transaction.borrower, 'Unknown Borrower'),
        'lender': get_full_name(transaction.lender, 'Unknown Lender'),
        'item_title': item.title if item else 'Unknown Item',
        'item_price': item.price if item else 0,
        'status': transaction.status.value,
        'request_date': transaction.request_date.isoformat() if transaction.request_date else None,
    }


def financials(transaction_id, user_id):
    transaction = get_for_participant(transaction_id, user_id)

    def amount(cents):
        return cents / 100 if cents is not None else None

    return {
        'id': transaction.id,
        'status': transaction.status.value,
        'deposit': amount(transaction.deposit),
        'total_amount': amount(transaction.total_amount),
        'original_lending_fee': amount(transaction.original_lending_fee),
        'final_lending_fee': amount(transaction.final_lending_fee),
        'discount_applied': amount(transaction.discount_applied),
        'discount_rate': transaction.discount_rate,
        'is_premium_transaction': transaction.is_premium_transaction,
        'payment_to_lender_released': transaction.payment_to_lender_released,
        'damage_reported': transaction.damage_reported,
        'damage_description': transaction.damage_description,
        'deposit_refund_percentage': transaction.deposit_refund_percentage,
        'deposit_returned': transaction.deposit_returned,
        'deposit_to_borrower': amount(transaction.deposit_to_borrower),
        'deposit_to_lender': amount(transaction.deposit_to_lender),
    }


def list_needing_reconciliation():
    """Records a crash or partial payout left inconsistent."""
    return Transaction.query.filter(
        db.or_(
            Transaction.needs_reconciliation.is_(True),
            Transaction.pending_operation.isnot(None),
        )
    ).order_by(Transaction.updated_at).all()


def quote(item_id, from_date, to_date, user_id):
    """Price a prospective rental for the given user."""
    item = Item.query.get(item_id)
    if not item:
        raise NotFoundError('Item not found')
    start, end = _date_range({'requested_from': from_date, 'requested_to': to_date})
    pricing = quote_for_user(item.price, start, end, User.query.get(user_id))
    pricing['deposit'] = float(to_cents(item.price * current_app.config.get('DEPOSIT_MULTIPLIER', 5))) / 100
    return pricing
