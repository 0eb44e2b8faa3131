"""Transaction model for the lending lifecycle."""

import enum
from datetime import datetime
from lendit import db


class TransactionStatus(str, enum.Enum):
    """Closed set of lending transaction states."""

    REQUESTED = 'requested'
    ACCEPTED = 'accepted'
    PAID = 'paid'
    REJECTED = 'rejected'
    BORROWED = 'borrowed'
    RETURNED = 'returned'
    COMPLETED = 'completed'
    RENEGOTIATION_REQUESTED = 'renegotiation_requested'
    RETRACTED = 'retracted'

    @property
    def is_terminal(self):
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    TransactionStatus.COMPLETED,
    TransactionStatus.REJECTED,
    TransactionStatus.RETRACTED,
})


def _cents_to_amount(cents):
    return cents / 100 if cents is not None else None


class Transaction(db.Model):
    """A borrow request and everything that follows from it.

    Monetary columns are stored in cents to avoid float issues.
    """

    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey('items.id'), nullable=False, index=True)
    lender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    borrower_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    status = db.Column(
        db.Enum(
            TransactionStatus,
            native_enum=False,
            length=32,
            values_callable=lambda statuses: [s.value for s in statuses],
            validate_strings=True,
        ),
        default=TransactionStatus.REQUESTED,
        nullable=False,
        index=True,
    )

    # Rental period
    request_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    return_date = db.Column(db.DateTime, nullable=True)
    requested_from = db.Column(db.Date, nullable=False)
    requested_to = db.Column(db.Date, nullable=False)
    message = db.Column(db.Text, nullable=True)

    # Pending renegotiation proposal
    renegotiation_from = db.Column(db.Date, nullable=True)
    renegotiation_to = db.Column(db.Date, nullable=True)
    renegotiation_message = db.Column(db.Text, nullable=True)
    renegotiation_requested_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    # Financials (frozen at payment)
    deposit = db.Column(db.Integer, nullable=True)
    total_amount = db.Column(db.Integer, nullable=True)
    final_lending_fee = db.Column(db.Integer, nullable=True)
    original_lending_fee = db.Column(db.Integer, nullable=True)
    discount_applied = db.Column(db.Integer, nullable=True)
    discount_rate = db.Column(db.Float, nullable=True)
    is_premium_transaction = db.Column(db.Boolean, default=False, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    # Handoff codes
    pickup_code = db.Column(db.String(16), nullable=True)
    pickup_code_used = db.Column(db.Boolean, default=False, nullable=False)
    pickup_code_generated_at = db.Column(db.DateTime, nullable=True)
    picked_up_at = db.Column(db.DateTime, nullable=True)
    return_code = db.Column(db.String(16), nullable=True)
    return_code_generated = db.Column(db.Boolean, default=False, nullable=False)
    return_code_used = db.Column(db.Boolean, default=False, nullable=False)
    return_code_generated_at = db.Column(db.DateTime, nullable=True)
    returned_at = db.Column(db.DateTime, nullable=True)

    # Damage and deposit
    damage_reported = db.Column(db.Boolean, default=False, nullable=False)
    damage_description = db.Column(db.Text, nullable=True)
    deposit_refund_percentage = db.Column(db.Float, nullable=True)
    deposit_returned = db.Column(db.Boolean, default=False, nullable=False)
    deposit_to_borrower = db.Column(db.Integer, nullable=True)
    deposit_to_lender = db.Column(db.Integer, nullable=True)
    payment_to_lender_released = db.Column(db.Boolean, default=False, nullable=False)
    lender_transfer_id = db.Column(db.String(255), nullable=True)
    deposit_transfer_ids = db.Column(db.JSON, nullable=True)

    # Gateway bookkeeping: set while a transfer is in flight
    pending_operation = db.Column(db.String(32), nullable=True, index=True)
    needs_reconciliation = db.Column(db.Boolean, default=False, nullable=False, index=True)

    lender_reviewed = db.Column(db.Boolean, default=False, nullable=False)
    borrower_reviewed = db.Column(db.Boolean, default=False, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    item = db.relationship('Item', backref=db.backref('transactions', lazy='dynamic'))
    lender = db.relationship('User', foreign_keys=[lender_id])
    borrower = db.relationship('User', foreign_keys=[borrower_id])

    __mapper_args__ = {'version_id_col': version_id}

    def role_of(self, user_id):
        """Return 'lender', 'borrower' or None for the given user."""
        if user_id == self.lender_id:
            return 'lender'
        if user_id == self.borrower_id:
            return 'borrower'
        return None

    def to_dict(self, viewer_id=None):
        """Convert transaction to dictionary.

        Handoff codes are only shown to the party that hands them over:
        the borrower sees the pickup code, the lender sees the return code.
        """
        data = {
            'id': self.id,
            'item_id': self.item_id,
            'item': self.item.title if self.item else None,
            'lender_id': self.lender_id,
            'borrower_id': self.borrower_id,
            'status': self.status.value,
            'request_date': self.request_date.isoformat() if self.request_date else None,
            'return_date': self.return_date.isoformat() if self.return_date else None,
            'requested_from': self.requested_from.isoformat(),
            'requested_to': self.requested_to.isoformat(),
            'message': self.message,
            'renegotiation': None,
            'deposit': _cents_to_amount(self.deposit),
            'total_amount': _cents_to_amount(self.total_amount),
            'final_lending_fee': _cents_to_amount(self.final_lending_fee),
            'original_lending_fee': _cents_to_amount(self.original_lending_fee),
            'discount_applied': _cents_to_amount(self.discount_applied),
            'discount_rate': self.discount_rate,
            'is_premium_transaction': self.is_premium_transaction,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
            'pickup_code_used': self.pickup_code_used,
            'picked_up_at': self.picked_up_at.isoformat() if self.picked_up_at else None,
            'return_code_generated': self.return_code_generated,
            'return_code_used': self.return_code_used,
            'returned_at': self.returned_at.isoformat() if self.returned_at else None,
            'damage_reported': self.damage_reported,
            'damage_description': self.damage_description,
            'deposit_refund_percentage': self.deposit_refund_percentage,
            'deposit_returned': self.deposit_returned,
            'deposit_to_borrower': _cents_to_amount(self.deposit_to_borrower),
            'deposit_to_lender': _cents_to_amount(self.deposit_to_lender),
            'payment_to_lender_released': self.payment_to_lender_released,
            'pending_operation': self.pending_operation,
            'needs_reconciliation': self.needs_reconciliation,
            'lender_reviewed': self.lender_reviewed,
            'borrower_reviewed': self.borrower_reviewed,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }
        if self.status == TransactionStatus.RENEGOTIATION_REQUESTED:
            data['renegotiation'] = {
                'from': self.renegotiation_from.isoformat() if self.renegotiation_from else None,
                'to': self.renegotiation_to.isoformat() if self.renegotiation_to else None,
                'message': self.renegotiation_message,
                'requested_by': self.renegotiation_requested_by,
            }
        if viewer_id is not None and viewer_id == self.borrower_id and not self.pickup_code_used:
            data['pickup_code'] = self.pickup_code
        if viewer_id is not None and viewer_id == self.lender_id and not self.return_code_used:
            data['return_code'] = self.return_code
        return data

    def __repr__(self):
        return f'<Transaction {self.id}: item {self.item_id} - {self.status.value}>'
