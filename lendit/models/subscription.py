"""Premium subscription periods."""

from datetime import datetime
from lendit import db


class SubscriptionPlan:
    MONTHLY = 'monthly'
    YEARLY = 'yearly'


class SubscriptionStatus:
    ACTIVE = 'active'
    CANCELLED = 'cancelled'
    EXPIRED = 'expired'


class Subscription(db.Model):
    """One billing period of a user's premium tier.

    A cancelled subscription stops renewing but keeps its benefits until
    ``end_date``.
    """

    __tablename__ = 'subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    plan = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), default=SubscriptionStatus.ACTIVE, nullable=False, index=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False, index=True)
    next_billing_date = db.Column(db.DateTime, nullable=True)
    auto_renew = db.Column(db.Boolean, default=True, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancellation_reason = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship('User', backref=db.backref('subscriptions', lazy=True))

    def is_expired(self, now=None):
        return (now or datetime.utcnow()) >= self.end_date

    def is_active(self, now=None):
        """Benefits apply: active or cancelled, and the period has not ended."""
        if self.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED):
            return False
        return not self.is_expired(now)

    def to_dict(self):
        return {
            'id': self.id,
            'plan': self.plan,
            'status': self.status,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'next_billing_date': self.next_billing_date.isoformat() if self.next_billing_date else None,
            'auto_renew': self.auto_renew,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'cancellation_reason': self.cancellation_reason,
            'is_active': self.is_active(),
            'is_expired': self.is_expired(),
            'created_at': self.created_at.isoformat(),
        }

    def __repr__(self):
        return f'<Subscription {self.id}: user {self.user_id} {self.plan} {self.status}>'
