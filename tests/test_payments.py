"""
Tests for payment configuration and reconciliation endpoints.
"""


def test_payment_config(client, app, db_session):
    response = client.get('/api/payments/config')
    assert response.status_code == 200
    data = response.get_json()
    assert data['gateway'] == 'mock'
    assert data['currency'] == app.config['PAYMENT_CURRENCY']
    assert data['deposit_multiplier'] == app.config['DEPOSIT_MULTIPLIER']


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'ok'


def test_reconciliation_lists_partial_payouts(client, test_item, test_user, auth_headers,
                                              second_auth_headers, gateway, create_user, get_headers):
    response = client.post('/api/transactions/request', headers=second_auth_headers, json={
        'item_id': test_item['id'], 'requested_from': '2026-11-01', 'requested_to': '2026-11-05'
    })
    transaction_id = response.get_json()['transaction']['id']
    client.patch(f'/api/transactions/{transaction_id}/accept', headers=auth_headers)
    client.patch(f'/api/transactions/{transaction_id}/complete-payment', headers=second_auth_headers)
    client.patch(f'/api/transactions/{transaction_id}/force-pickup', headers=second_auth_headers)
    client.patch(f'/api/transactions/{transaction_id}/return-complete', headers=auth_headers)

    gateway.fail_for.add(f"user:{test_user['id']}")
    response = client.patch(f'/api/transactions/{transaction_id}/report-damage',
                            json={'deposit_refund_percentage': 50}, headers=auth_headers)
    assert response.status_code == 502

    data = client.get('/api/payments/reconciliation', headers=auth_headers).get_json()
    assert [t['id'] for t in data['transactions']] == [transaction_id]
    assert data['transactions'][0]['pending_operation'] == 'deposit_resolution'

    stranger = client.get('/api/payments/reconciliation', headers=get_headers(create_user())).get_json()
    assert stranger['total'] == 0
