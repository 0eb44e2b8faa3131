"""
Tests for rental pricing and premium discounts.
"""

from datetime import date, datetime, timedelta

import pytest

from lendit.models import PremiumStatus, User
from lendit.services.pricing import (
    calculate_rental_pricing,
    get_discount_rate,
    parse_date,
    quote_for_user,
    rental_days,
    to_cents,
)
from lendit.errors import ValidationError


class TestRentalDays:

    def test_same_day_counts_as_one(self):
        assert rental_days(date(2026, 11, 1), date(2026, 11, 1)) == 1

    def test_inclusive_range(self):
        assert rental_days(date(2026, 11, 1), date(2026, 11, 7)) == 7
        assert rental_days(date(2026, 11, 1), date(2026, 11, 8)) == 8


class TestCalculateRentalPricing:

    def test_single_week_without_dates(self):
        pricing = calculate_rental_pricing(12.5)
        assert pricing['weeks'] == 1
        assert pricing['original_price'] == 12.5
        assert pricing['final_price'] == 12.5
        assert pricing['discount_amount'] == 0
        assert pricing['is_premium'] is False

    def test_partial_week_rounds_up(self):
        pricing = calculate_rental_pricing(10, date(2026, 11, 1), date(2026, 11, 8))
        assert pricing['weeks'] == 2
        assert pricing['original_price'] == 20.0

    def test_exact_week(self):
        pricing = calculate_rental_pricing(10, date(2026, 11, 1), date(2026, 11, 7))
        assert pricing['weeks'] == 1

    def test_discount_applied(self):
        pricing = calculate_rental_pricing(10, date(2026, 11, 1), date(2026, 11, 10), discount_rate=10)
        assert pricing['original_price'] == 20.0
        assert pricing['discount_amount'] == 2.0
        assert pricing['final_price'] == 18.0
        assert pricing['is_premium'] is True
        assert pricing['weekly_rate'] == {'original': 10.0, 'final': 9.0}

    def test_discount_rounds_half_up(self):
        # 0.05 * 10% = 0.005 -> 0.01
        pricing = calculate_rental_pricing(0.05, discount_rate=10)
        assert pricing['discount_amount'] == 0.01
        assert pricing['final_price'] == 0.04

    def test_final_plus_discount_equals_original(self):
        pricing = calculate_rental_pricing(33.33, date(2026, 1, 1), date(2026, 1, 20), discount_rate=15)
        assert to_cents(pricing['final_price']) + to_cents(pricing['discount_amount']) == \
            to_cents(pricing['original_price'])

    def test_free_item(self):
        pricing = calculate_rental_pricing(0, discount_rate=10)
        assert pricing['final_price'] == 0
        assert pricing['discount_amount'] == 0

    @pytest.mark.parametrize('price', [-1, None])
    def test_rejects_bad_price(self, price):
        with pytest.raises(ValueError):
            calculate_rental_pricing(price)

    @pytest.mark.parametrize('rate', [-5, 101])
    def test_rejects_bad_rate(self, rate):
        with pytest.raises(ValueError):
            calculate_rental_pricing(10, discount_rate=rate)


class TestDiscountRate:

    def test_free_user_gets_no_discount(self, app):
        with app.app_context():
            assert get_discount_rate(User(premium_status=PremiumStatus.NONE)) == 0
            assert get_discount_rate(None) == 0

    def test_premium_user_gets_configured_rate(self, app):
        with app.app_context():
            assert get_discount_rate(User(premium_status=PremiumStatus.ACTIVE)) == \
                app.config['PREMIUM_DISCOUNT_RATE']

    def test_cancelled_premium_after_period_gets_no_discount(self, app):
        with app.app_context():
            assert get_discount_rate(User(premium_status=PremiumStatus.CANCELLED)) == 0
            ended = User(premium_status=PremiumStatus.CANCELLED, premium_until=datetime.utcnow() - timedelta(days=1))
            assert get_discount_rate(ended) == 0

    def test_cancelled_premium_keeps_discount_until_period_ends(self, app):
        with app.app_context():
            running = User(premium_status=PremiumStatus.CANCELLED, premium_until=datetime.utcnow() + timedelta(days=5))
            assert get_discount_rate(running) == app.config['PREMIUM_DISCOUNT_RATE']

    def test_quote_for_user_marks_premium(self, app):
        with app.app_context():
            pricing = quote_for_user(10, date(2026, 11, 1), date(2026, 11, 7),
                                     User(premium_status=PremiumStatus.ACTIVE))
            assert pricing['is_premium'] is True
            assert pricing['final_price'] == 9.0


class TestParseDate:

    def test_parses_iso_date(self):
        assert parse_date('2026-11-01', 'requested_from') == date(2026, 11, 1)

    def test_accepts_datetime_string(self):
        assert parse_date('2026-11-01T10:00:00', 'requested_from') == date(2026, 11, 1)

    def test_missing_value(self):
        with pytest.raises(ValidationError, match='requested_from is required'):
            parse_date(None, 'requested_from')

    def test_garbage(self):
        with pytest.raises(ValidationError):
            parse_date('next tuesday', 'requested_to')
