"""Payment gateway adapters for moving lending fees and deposits."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

import stripe
from flask import current_app

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    """Outcome of a single transfer call."""

    success: bool
    transfer_id: str = None
    timestamp: datetime = field(default_factory=datetime.utcnow)
    error: str = None


class PaymentGateway:
    """Port for fund transfers between platform and user accounts."""

    name = 'base'

    def transfer(self, from_account, to_account, amount_cents, description):
        """Move ``amount_cents`` and return a TransferResult.

        Implementations report failures through the result instead of raising.
        """
        raise NotImplementedError


class MockPaymentGateway(PaymentGateway):
    """Simulated processor: every transfer succeeds immediately."""

    name = 'mock'

    def transfer(self, from_account, to_account, amount_cents, description):
        transfer_id = f'mock_tr_{uuid.uuid4().hex[:16]}'
        logger.info(
            f'Mock transfer {transfer_id}: {amount_cents / 100:.2f} '
            f'from {from_account} to {to_account} ({description})'
        )
        return TransferResult(success=True, transfer_id=transfer_id)


class StripeGateway(PaymentGateway):
    """Transfers to Stripe Connect accounts from the platform balance."""

    name = 'stripe'

    def __init__(self, api_key, currency='eur'):
        stripe.api_key = api_key
        self.currency = currency.lower()

    def transfer(self, from_account, to_account, amount_cents, description):
        try:
            transfer = stripe.Transfer.create(
                amount=amount_cents,
                currency=self.currency,
                destination=to_account,
                description=description,
                metadata={'source_account': from_account},
            )
        except stripe.StripeError as e:
            logger.error(f'Stripe transfer to {to_account} failed: {e}')
            return TransferResult(success=False, error=str(e))
        return TransferResult(
            success=True,
            transfer_id=transfer.id,
            timestamp=datetime.utcfromtimestamp(transfer.created) if getattr(transfer, 'created', None) else datetime.utcnow(),
        )


def build_payment_gateway(config):
    """Create the gateway named by ``PAYMENT_GATEWAY`` in the app config."""
    kind = (config.get('PAYMENT_GATEWAY') or 'mock').lower()
    if kind == 'stripe':
        if not config.get('STRIPE_SECRET_KEY'):
            raise RuntimeError('PAYMENT_GATEWAY=stripe requires STRIPE_SECRET_KEY')
        return StripeGateway(config['STRIPE_SECRET_KEY'], config.get('PAYMENT_CURRENCY', 'eur'))
    if kind != 'mock':
        raise RuntimeError(f'Unknown PAYMENT_GATEWAY: {kind}')
    return MockPaymentGateway()


def get_payment_gateway():
    """Gateway configured for the current app."""
    return current_app.extensions['payment_gateway']


def account_for(user):
    """Transfer destination for a user."""
    if user is None:
        return None
    return user.payout_account_id or f'user:{user.id}'
