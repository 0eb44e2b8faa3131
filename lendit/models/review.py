"""Review model for lender/borrower feedback."""
from datetime import datetime
from lendit import db


class Review(db.Model):
    """A rating one party leaves the other after a completed transaction."""

    __tablename__ = 'reviews'
    __table_args__ = (
        db.UniqueConstraint('transaction_id', 'reviewer_id', name='uq_reviews_transaction_reviewer'),
    )

    ROLES = ('lender', 'borrower')

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), nullable=False, index=True)
    reviewer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    reviewee_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    reviewer_role = db.Column(db.String(10), nullable=False)  # 'lender' or 'borrower'
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    transaction = db.relationship('Transaction', backref=db.backref('reviews', lazy='dynamic'))
    reviewer = db.relationship('User', foreign_keys=[reviewer_id], backref='reviews_given')
    reviewee = db.relationship('User', foreign_keys=[reviewee_id], backref='reviews_received')

    def to_dict(self):
        """Convert review to dictionary."""
        return {
            'id': self.id,
            'transaction_id': self.transaction_id,
            'item': self.transaction.item.title if self.transaction and self.transaction.item else None,
            'reviewer_id': self.reviewer_id,
            'reviewer': self.reviewer.username if self.reviewer else None,
            'reviewee_id': self.reviewee_id,
            'reviewer_role': self.reviewer_role,
            'rating': self.rating,
            'comment': self.comment,
            'created_at': self.created_at.isoformat(),
        }

    def __repr__(self):
        return f'<Review {self.id}: {self.rating}stars>'
