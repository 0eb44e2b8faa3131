"""Splitting a held deposit between borrower and lender."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from lendit.errors import ValidationError


@dataclass(frozen=True)
class DepositSplit:
    """Deposit shares in cents. ``to_borrower + to_lender`` equals the deposit."""

    to_borrower: int
    to_lender: int

    @property
    def total(self):
        return self.to_borrower + self.to_lender

    def to_dict(self):
        return {
            'to_borrower': self.to_borrower / 100,
            'to_lender': self.to_lender / 100,
        }


def validate_percentage(percentage):
    """Coerce a refund percentage to float, rejecting values outside 0-100."""
    if isinstance(percentage, bool):
        raise ValidationError('deposit_refund_percentage must be a number')
    try:
        value = float(percentage)
    except (TypeError, ValueError):
        raise ValidationError('deposit_refund_percentage must be a number')
    if not 0 <= value <= 100:
        raise ValidationError('deposit_refund_percentage must be between 0 and 100')
    return value


def split_deposit(deposit_cents, refund_percentage):
    """Split a deposit given the percentage that goes back to the borrower.

    The borrower share is rounded to the cent; the lender receives the rest,
    so no cent is lost or created.
    """
    if deposit_cents is None or deposit_cents < 0:
        raise ValidationError('deposit must be a non-negative amount')
    pct = Decimal(str(validate_percentage(refund_percentage)))
    to_borrower = int((Decimal(deposit_cents) * pct / 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    return DepositSplit(to_borrower=to_borrower, to_lender=deposit_cents - to_borrower)
