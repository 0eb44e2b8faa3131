"""
Tests for transaction endpoints.
"""

import pytest

DATES = {'requested_from': '2026-11-01', 'requested_to': '2026-11-10'}


@pytest.fixture
def requested(client, second_auth_headers, test_item):
    """A transaction requested by second_user for test_item."""
    response = client.post('/api/transactions/request',
                           json=dict(DATES, item_id=test_item['id']),
                           headers=second_auth_headers)
    assert response.status_code == 201
    return response.get_json()['transaction']


@pytest.fixture
def paid(client, requested, auth_headers, second_auth_headers):
    client.patch(f"/api/transactions/{requested['id']}/accept", headers=auth_headers)
    response = client.patch(f"/api/transactions/{requested['id']}/complete-payment", headers=second_auth_headers)
    assert response.status_code == 200
    return response.get_json()['transaction']


class TestRequestEndpoint:

    def test_request_item(self, requested, test_item):
        assert requested['status'] == 'requested'
        assert requested['item_id'] == test_item['id']
        assert requested['requested_from'] == '2026-11-01'

    def test_requires_token(self, client, test_item):
        response = client.post('/api/transactions/request', json=dict(DATES, item_id=test_item['id']))
        assert response.status_code == 401

    def test_own_item(self, client, auth_headers, test_item):
        response = client.post('/api/transactions/request',
                               json=dict(DATES, item_id=test_item['id']),
                               headers=auth_headers)
        assert response.status_code == 400
        assert 'error' in response.get_json()

    def test_duplicate_request(self, client, requested, second_auth_headers, test_item):
        response = client.post('/api/transactions/request',
                               json=dict(DATES, item_id=test_item['id']),
                               headers=second_auth_headers)
        assert response.status_code == 409

    def test_missing_body(self, client, second_auth_headers):
        response = client.post('/api/transactions/request', headers=second_auth_headers)
        assert response.status_code == 400

    def test_item_becomes_requested(self, client, requested, test_item):
        response = client.get(f"/api/items/{test_item['id']}")
        assert response.get_json()['status'] == 'requested'


class TestWorkflowEndpoints:

    def test_accept(self, client, requested, auth_headers):
        response = client.patch(f"/api/transactions/{requested['id']}/accept", headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['transaction']['status'] == 'accepted'

    def test_accept_by_borrower(self, client, requested, second_auth_headers):
        response = client.patch(f"/api/transactions/{requested['id']}/accept", headers=second_auth_headers)
        assert response.status_code == 403
        assert response.get_json() == {'error': 'Not authorized'}

    def test_accept_twice(self, client, requested, auth_headers):
        client.patch(f"/api/transactions/{requested['id']}/accept", headers=auth_headers)
        response = client.patch(f"/api/transactions/{requested['id']}/accept", headers=auth_headers)
        assert response.status_code == 400

    def test_unknown_transaction(self, client, auth_headers, db_session):
        response = client.patch('/api/transactions/99999/accept', headers=auth_headers)
        assert response.status_code == 404

    def test_decline(self, client, requested, auth_headers):
        response = client.patch(f"/api/transactions/{requested['id']}/decline", headers=auth_headers)
        assert response.get_json()['transaction']['status'] == 'rejected'

    def test_renegotiation_round_trip(self, client, requested, auth_headers, second_auth_headers):
        response = client.patch(f"/api/transactions/{requested['id']}/renegotiate",
                                json={'requested_from': '2026-12-01', 'requested_to': '2026-12-03'},
                                headers=auth_headers)
        assert response.status_code == 200
        body = response.get_json()['transaction']
        assert body['status'] == 'renegotiation_requested'
        assert body['renegotiation']['to'] == '2026-12-03'

        response = client.patch(f"/api/transactions/{requested['id']}/renegotiation/accept",
                                headers=second_auth_headers)
        body = response.get_json()['transaction']
        assert body['status'] == 'accepted'
        assert body['requested_to'] == '2026-12-03'

    def test_decline_renegotiation(self, client, requested, auth_headers, second_auth_headers):
        client.patch(f"/api/transactions/{requested['id']}/renegotiate", json=DATES, headers=auth_headers)
        response = client.patch(f"/api/transactions/{requested['id']}/renegotiation/decline",
                                headers=second_auth_headers)
        assert response.get_json()['transaction']['status'] == 'rejected'

    def test_edit(self, client, requested, second_auth_headers):
        response = client.patch(f"/api/transactions/{requested['id']}/edit",
                                json={'message': 'Can I pick it up in the evening?'},
                                headers=second_auth_headers)
        assert response.status_code == 200
        assert response.get_json()['transaction']['message'] == 'Can I pick it up in the evening?'

    def test_retract(self, client, requested, second_auth_headers):
        response = client.patch(f"/api/transactions/{requested['id']}/retract", headers=second_auth_headers)
        assert response.get_json()['transaction']['status'] == 'retracted'

    def test_complete_payment(self, paid):
        assert paid['status'] == 'paid'
        assert paid['final_lending_fee'] == 20.0
        assert paid['deposit'] == 50.0
        assert paid['total_amount'] == 70.0


class TestHandoffEndpoints:

    def test_full_lifecycle(self, client, paid, auth_headers, second_auth_headers, test_item):
        transaction_id = paid['id']

        response = client.patch(f'/api/transactions/{transaction_id}/pickup-code', headers=second_auth_headers)
        pickup_code = response.get_json()['pickup_code']
        assert pickup_code

        response = client.post(f'/api/transactions/{transaction_id}/pickup-code',
                               json={'code': pickup_code}, headers=auth_headers)
        assert response.status_code == 200
        body = response.get_json()['transaction']
        assert body['status'] == 'borrowed'
        assert body['payment_to_lender_released'] is True
        assert client.get(f"/api/items/{test_item['id']}").get_json()['status'] == 'borrowed'

        response = client.patch(f'/api/transactions/{transaction_id}/return-code', headers=auth_headers)
        return_code = response.get_json()['return_code']

        response = client.post(f'/api/transactions/{transaction_id}/return-code',
                               json={'code': return_code}, headers=second_auth_headers)
        assert response.get_json()['transaction']['status'] == 'returned'

        response = client.patch(f'/api/transactions/{transaction_id}/report-damage',
                                json={'deposit_refund_percentage': 40, 'damage_description': 'Scratched'},
                                headers=auth_headers)
        assert response.status_code == 200
        body = response.get_json()['transaction']
        assert body['status'] == 'completed'
        assert body['deposit_to_borrower'] == 20.0
        assert body['deposit_to_lender'] == 30.0
        assert client.get(f"/api/items/{test_item['id']}").get_json()['status'] == 'available'

    def test_pickup_code_reuse(self, client, paid, auth_headers, second_auth_headers):
        code = client.patch(f"/api/transactions/{paid['id']}/pickup-code",
                            headers=second_auth_headers).get_json()['pickup_code']
        client.post(f"/api/transactions/{paid['id']}/pickup-code", json={'code': code}, headers=auth_headers)
        response = client.post(f"/api/transactions/{paid['id']}/pickup-code",
                               json={'code': code}, headers=auth_headers)
        assert response.status_code == 409

    def test_wrong_pickup_code(self, client, paid, auth_headers, second_auth_headers):
        client.patch(f"/api/transactions/{paid['id']}/pickup-code", headers=second_auth_headers)
        response = client.post(f"/api/transactions/{paid['id']}/pickup-code",
                               json={'code': 'NOPE00'}, headers=auth_headers)
        assert response.status_code == 400

    def test_gateway_failure(self, client, paid, auth_headers, second_auth_headers, test_user, gateway):
        gateway.fail_for.add(f"user:{test_user['id']}")
        response = client.patch(f"/api/transactions/{paid['id']}/force-pickup", headers=second_auth_headers)
        assert response.status_code == 502

        response = client.get(f"/api/transactions/{paid['id']}", headers=auth_headers)
        assert response.get_json()['status'] == 'paid'

    def test_force_pickup_and_return(self, client, paid, auth_headers, second_auth_headers):
        response = client.patch(f"/api/transactions/{paid['id']}/force-pickup", headers=second_auth_headers)
        assert response.get_json()['transaction']['status'] == 'borrowed'
        response = client.patch(f"/api/transactions/{paid['id']}/return-complete", headers=auth_headers)
        assert response.get_json()['transaction']['status'] == 'returned'
        response = client.patch(f"/api/transactions/{paid['id']}/confirm-no-damage", headers=auth_headers)
        body = response.get_json()['transaction']
        assert body['status'] == 'completed'
        assert body['deposit_to_borrower'] == 50.0

    def test_complete_alias(self, client, paid, auth_headers, second_auth_headers):
        client.patch(f"/api/transactions/{paid['id']}/force-pickup", headers=second_auth_headers)
        client.patch(f"/api/transactions/{paid['id']}/return-complete", headers=auth_headers)
        response = client.patch(f"/api/transactions/{paid['id']}/complete", headers=auth_headers)
        assert response.get_json()['transaction']['status'] == 'completed'

        response = client.patch(f"/api/transactions/{paid['id']}/complete", headers=auth_headers)
        assert response.status_code == 409

    def test_report_damage_validation(self, client, paid, auth_headers, second_auth_headers):
        client.patch(f"/api/transactions/{paid['id']}/force-pickup", headers=second_auth_headers)
        client.patch(f"/api/transactions/{paid['id']}/return-complete", headers=auth_headers)
        response = client.patch(f"/api/transactions/{paid['id']}/report-damage",
                                json={'deposit_refund_percentage': 120}, headers=auth_headers)
        assert response.status_code == 400


class TestQueryEndpoints:

    def test_borrowings_and_lendings(self, client, requested, auth_headers, second_auth_headers):
        borrowings = client.get('/api/transactions/borrowings', headers=second_auth_headers).get_json()
        lendings = client.get('/api/transactions/lendings', headers=auth_headers).get_json()
        assert [t['id'] for t in borrowings['transactions']] == [requested['id']]
        assert [t['id'] for t in lendings['transactions']] == [requested['id']]

        mine = client.get('/api/transactions', headers=auth_headers).get_json()
        assert mine['total'] == 1
        assert mine['borrowings'] == []

    def test_status_filter(self, client, requested, auth_headers):
        response = client.get('/api/transactions/lendings?status=completed', headers=auth_headers)
        assert response.get_json()['total'] == 0
        response = client.get('/api/transactions/lendings?status=bogus', headers=auth_headers)
        assert response.status_code == 400

    def test_detail_hidden_from_strangers(self, client, requested, create_user, get_headers):
        stranger = create_user()
        response = client.get(f"/api/transactions/{requested['id']}", headers=get_headers(stranger))
        assert response.status_code == 403

    def test_summary_and_financials(self, client, paid, second_auth_headers, test_item):
        summary = client.get(f"/api/transactions/{paid['id']}/summary", headers=second_auth_headers).get_json()
        assert summary['item_title'] == test_item['title']
        assert summary['status'] == 'paid'

        financials = client.get(f"/api/transactions/{paid['id']}/financials",
                                headers=second_auth_headers).get_json()
        assert financials['total_amount'] == 70.0

    def test_quote(self, client, second_auth_headers, test_item):
        response = client.get(
            f"/api/transactions/quote?item_id={test_item['id']}&from=2026-11-01&to=2026-11-10",
            headers=second_auth_headers
        )
        assert response.status_code == 200
        data = response.get_json()
        assert data['final_price'] == 20.0
        assert data['deposit'] == 50.0

    def test_quote_requires_item(self, client, second_auth_headers):
        response = client.get('/api/transactions/quote?from=2026-11-01&to=2026-11-10',
                              headers=second_auth_headers)
        assert response.status_code == 400
