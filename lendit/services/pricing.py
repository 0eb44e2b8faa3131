"""Rental pricing with premium discounts."""

import math
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app, has_app_context

from lendit.errors import ValidationError

DEFAULT_PREMIUM_DISCOUNT_RATE = 10
DAYS_PER_WEEK = 7
_CENT = Decimal('0.01')


def round2(value) -> Decimal:
    """Round to 2 decimal places, halves away from zero."""
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def to_cents(value) -> int:
    """Convert a currency amount to integer cents."""
    return int(round2(value) * 100)


def is_premium(user) -> bool:
    """Check if user has an active premium subscription."""
    return bool(user is not None and user.is_premium)


def get_discount_rate(user) -> float:
    """Discount percentage for the user's tier (0 for free users)."""
    if not is_premium(user):
        return 0
    if has_app_context():
        return current_app.config.get('PREMIUM_DISCOUNT_RATE', DEFAULT_PREMIUM_DISCOUNT_RATE)
    return DEFAULT_PREMIUM_DISCOUNT_RATE


def rental_days(from_date, to_date) -> int:
    """Days covered by the range, counting both endpoints."""
    if isinstance(from_date, datetime) or isinstance(to_date, datetime):
        from_dt = _as_datetime(from_date)
        to_dt = _as_datetime(to_date)
        return math.ceil((to_dt - from_dt).total_seconds() / 86400) + 1
    return (to_date - from_date).days + 1


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def calculate_rental_pricing(weekly_price, from_date=None, to_date=None, discount_rate=0):
    """Calculate the lending fee breakdown for a rental.

    Args:
        weekly_price: Base weekly price (non-negative)
        from_date: Start of the rental (optional)
        to_date: End of the rental, inclusive (optional)
        discount_rate: Percentage between 0 and 100

    Returns:
        dict: {
            'original_price', 'final_price', 'discount_rate',
            'discount_amount', 'is_premium', 'weeks',
            'weekly_rate': {'original', 'final'}
        }

    Without a date range a single week is charged. Ordering of the range
    is validated by the caller.
    """
    if weekly_price is None or weekly_price < 0:
        raise ValueError('weekly_price must be a non-negative number')
    if not 0 <= discount_rate <= 100:
        raise ValueError('discount_rate must be between 0 and 100')

    price = Decimal(str(weekly_price))
    rate = Decimal(str(discount_rate))
    weeks = 1

    if from_date is not None and to_date is not None:
        days = rental_days(from_date, to_date)
        weeks = math.ceil(days / DAYS_PER_WEEK)

    total = price * weeks
    discount_amount = round2(total * rate / 100)
    final_price = round2(total - discount_amount)

    return {
        'original_price': float(round2(total)),
        'final_price': float(final_price),
        'discount_rate': float(rate),
        'discount_amount': float(discount_amount),
        'is_premium': rate > 0,
        'weeks': weeks,
        'weekly_rate': {
            'original': float(round2(price)),
            'final': float(round2(price * (1 - rate / 100))),
        },
    }


def quote_for_user(weekly_price, from_date, to_date, user):
    """Pricing breakdown using the user's premium discount."""
    pricing = calculate_rental_pricing(weekly_price, from_date, to_date, get_discount_rate(user))
    pricing['is_premium'] = is_premium(user)
    return pricing


def parse_date(value, field):
    """Parse an ISO date (or datetime) string into a date."""
    if value is None or value == '':
        raise ValidationError(f'{field} is required')
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f'{field} must be an ISO date (YYYY-MM-DD)')
