"""
Tests for concurrent requests against one transaction.

Two threads load the same record, wait for each other at a barrier and then
commit. Exactly one compare-and-swap can match the stored version, so one
caller wins and the other gets ConflictError.
"""

import threading

import pytest
from faker import Faker

from lendit import db
from lendit.errors import LendingError
from lendit.models import Item, ItemStatus, TransactionStatus, User
from lendit.services import transactions as service

fake = Faker()

DATES = {'requested_from': '2026-11-01', 'requested_to': '2026-11-10'}


def _user():
    user = User(username=fake.pystr(min_chars=8, max_chars=12), email=fake.unique.email())
    user.set_password('testpassword123')
    db.session.add(user)
    db.session.commit()
    return user.id


def _paid_transaction():
    lender_id = _user()
    borrower_id = _user()
    item = Item(
        title=fake.sentence(nb_words=3),
        description=fake.paragraph(),
        category='tools',
        price=10.0,
        owner_id=lender_id,
        status=ItemStatus.AVAILABLE,
    )
    db.session.add(item)
    db.session.commit()

    transaction = service.request_lend(borrower_id, dict(DATES, item_id=item.id))
    service.accept(transaction.id, lender_id)
    service.complete_payment(transaction.id, borrower_id)
    return {'id': transaction.id, 'lender': lender_id, 'borrower': borrower_id, 'item': item.id}


@pytest.fixture
def paid(file_app):
    with file_app.app_context():
        return _paid_transaction()


@pytest.fixture
def borrowed(file_app, paid):
    with file_app.app_context():
        service.force_pickup(paid['id'], paid['borrower'])
        paid['return_code'] = service.generate_return_code(paid['id'], paid['lender']).return_code
    return paid


@pytest.fixture
def returned(file_app, borrowed):
    with file_app.app_context():
        service.force_complete_return(borrowed['id'], borrowed['lender'])
    file_app.extensions['payment_gateway'].transfers.clear()
    return borrowed


def _race(file_app, monkeypatch, *calls):
    """Run each call in its own thread and app context once all have read the record."""
    barrier = threading.Barrier(len(calls), timeout=10)
    require_idle = service._require_idle
    results = [None] * len(calls)

    def require_idle_then_wait(transaction):
        require_idle(transaction)
        barrier.wait()

    def run(index, call):
        with file_app.app_context():
            try:
                call()
                results[index] = 'ok'
            except LendingError as e:
                results[index] = type(e).__name__
            except threading.BrokenBarrierError:
                results[index] = 'BrokenBarrierError'

    with monkeypatch.context() as m:
        m.setattr(service, '_require_idle', require_idle_then_wait)
        threads = [threading.Thread(target=run, args=(i, call), daemon=True) for i, call in enumerate(calls)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        assert not any(thread.is_alive() for thread in threads)

    return sorted(results)


class TestConcurrentTransitions:

    def test_accept_race(self, file_app, monkeypatch):
        with file_app.app_context():
            lender_id = _user()
            borrower_id = _user()
            item = Item(title='Drill', description='Cordless drill', category='tools',
                        price=10.0, owner_id=lender_id, status=ItemStatus.AVAILABLE)
            db.session.add(item)
            db.session.commit()
            transaction_id = service.request_lend(borrower_id, dict(DATES, item_id=item.id)).id

        results = _race(
            file_app, monkeypatch,
            lambda: service.accept(transaction_id, lender_id),
            lambda: service.accept(transaction_id, lender_id),
        )

        assert results == ['ConflictError', 'ok']
        with file_app.app_context():
            transaction = service.get_transaction(transaction_id)
            assert transaction.status == TransactionStatus.ACCEPTED
            assert transaction.version_id == 2

    def test_pickup_race_transfers_once(self, file_app, monkeypatch, paid):
        gateway = file_app.extensions['payment_gateway']
        with file_app.app_context():
            code = service.generate_pickup_code(paid['id'], paid['borrower']).pickup_code

        results = _race(
            file_app, monkeypatch,
            lambda: service.use_pickup_code(paid['id'], paid['lender'], {'code': code}),
            lambda: service.force_pickup(paid['id'], paid['borrower']),
        )

        assert results == ['ConflictError', 'ok']
        assert [(t['to'], t['amount']) for t in gateway.transfers] == [(f"user:{paid['lender']}", 2000)]
        with file_app.app_context():
            transaction = service.get_transaction(paid['id'])
            assert transaction.status == TransactionStatus.BORROWED
            assert transaction.pending_operation is None
            assert transaction.needs_reconciliation is False

    def test_return_code_race(self, file_app, monkeypatch, borrowed):
        submit = {'code': borrowed['return_code']}
        results = _race(
            file_app, monkeypatch,
            lambda: service.submit_return_code(borrowed['id'], borrowed['borrower'], submit),
            lambda: service.submit_return_code(borrowed['id'], borrowed['borrower'], submit),
        )

        assert results == ['ConflictError', 'ok']
        with file_app.app_context():
            assert service.get_transaction(borrowed['id']).status == TransactionStatus.RETURNED

    def test_deposit_resolution_race(self, file_app, monkeypatch, returned):
        gateway = file_app.extensions['payment_gateway']
        results = _race(
            file_app, monkeypatch,
            lambda: service.confirm_no_damage(returned['id'], returned['lender']),
            lambda: service.report_damage(returned['id'], returned['lender'], {
                'deposit_refund_percentage': 40,
                'damage_description': 'Cracked casing',
            }),
        )

        assert results == ['ConflictError', 'ok']
        assert sum(t['amount'] for t in gateway.transfers) == 5000
        with file_app.app_context():
            transaction = service.get_transaction(returned['id'])
            assert transaction.status == TransactionStatus.COMPLETED
            assert transaction.deposit_to_borrower + transaction.deposit_to_lender == 5000
            assert transaction.pending_operation is None
