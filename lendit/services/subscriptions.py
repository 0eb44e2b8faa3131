"""Premium subscriptions: monthly or yearly periods with cancel-at-period-end.

Billing and automatic renewal run outside this service. Cancelling only
stops renewal; the user keeps premium until the period's ``end_date``.
"""

import calendar
import logging
from datetime import datetime

from lendit import db
from lendit.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from lendit.models import PremiumStatus, Subscription, SubscriptionPlan, SubscriptionStatus, User

logger = logging.getLogger(__name__)

PLAN_MONTHS = {
    SubscriptionPlan.MONTHLY: 1,
    SubscriptionPlan.YEARLY: 12,
}


def add_months(value, months):
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _get_user(user_id):
    user = User.query.get(user_id)
    if not user:
        raise NotFoundError('User not found')
    return user


def current_subscription(user_id):
    """Latest subscription that is active or cancelled but not yet ended."""
    return Subscription.query.filter(
        Subscription.user_id == user_id,
        Subscription.status.in_([SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED]),
    ).order_by(Subscription.created_at.desc(), Subscription.id.desc()).first()


def subscribe(user_id, plan=SubscriptionPlan.MONTHLY, now=None):
    """Start a new premium period for the user."""
    if plan not in PLAN_MONTHS:
        raise ValidationError('Invalid plan type')
    user = _get_user(user_id)

    active = Subscription.query.filter_by(user_id=user_id, status=SubscriptionStatus.ACTIVE).first()
    if active:
        raise ConflictError('User already has an active subscription')

    now = now or datetime.utcnow()
    # A cancelled period still running is replaced by the new one
    Subscription.query.filter_by(
        user_id=user_id, status=SubscriptionStatus.CANCELLED
    ).update({'status': SubscriptionStatus.EXPIRED}, synchronize_session=False)

    end_date = add_months(now, PLAN_MONTHS[plan])
    subscription = Subscription(
        user_id=user_id,
        plan=plan,
        status=SubscriptionStatus.ACTIVE,
        start_date=now,
        end_date=end_date,
        next_billing_date=end_date,
        auto_renew=True,
    )
    db.session.add(subscription)
    user.premium_status = PremiumStatus.ACTIVE
    user.premium_until = None
    db.session.commit()
    logger.info(f'User {user_id} subscribed to premium ({plan}) until {end_date.date()}')
    return subscription


def cancel(user_id, reason=None, now=None):
    """Stop renewal. Premium benefits continue until the period ends."""
    user = _get_user(user_id)
    subscription = Subscription.query.filter_by(user_id=user_id, status=SubscriptionStatus.ACTIVE).first()
    if not subscription:
        raise InvalidStateError('No active subscription found')
    if reason is not None and (not isinstance(reason, str) or len(reason) > 500):
        raise ValidationError('reason must be a string of at most 500 characters')

    subscription.status = SubscriptionStatus.CANCELLED
    subscription.auto_renew = False
    subscription.next_billing_date = None
    subscription.cancelled_at = now or datetime.utcnow()
    subscription.cancellation_reason = reason
    user.premium_status = PremiumStatus.CANCELLED
    user.premium_until = subscription.end_date
    db.session.commit()
    logger.info(f'User {user_id} cancelled premium, benefits until {subscription.end_date.date()}')
    return subscription


def history(user_id, page=1, per_page=10):
    """All of the user's subscription periods, newest first."""
    return Subscription.query.filter_by(user_id=user_id).order_by(
        Subscription.created_at.desc(), Subscription.id.desc()
    ).paginate(page=page, per_page=per_page, error_out=False)
