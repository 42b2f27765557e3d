"""
Tests for dues periods and the SSLCommerz payment flow.
The gateway is replaced by a mock of requests.post.
"""
from datetime import datetime, timedelta
from unittest.mock import Mock, patch
import json

import pytest
import requests

from hall.modules.database_manager import now_str, add_months


def gateway_response(body):
    response = Mock()
    response.text = json.dumps(body)
    response.json.return_value = body
    return response


def session_ok():
    return gateway_response({
        'status': 'SUCCESS',
        'sessionkey': 'SESSION123',
        'GatewayPageURL': 'https://sandbox.sslcommerz.com/gwprocess/v4/gw.php?Q=pay&SESSIONKEY=SESSION123'
    })


def validation_ok(tran_id, status='VALID'):
    return gateway_response({
        'status': status,
        'tran_id': tran_id,
        'bank_tran_id': 'BANK987',
        'amount': '1320.00',
        'currency': 'BDT',
        'card_type': 'BKASH-BKash',
        'card_no': '',
        'tran_date': '2025-03-01 10:15:00'
    })


@pytest.fixture
def current_period(client, student_headers):
    body = client.get('/api/payments/dues/current', headers=student_headers).get_json()
    return body['dues_period']


@pytest.fixture
def initiated(client, student_headers, current_period, managers):
    """A payment opened against the student's current dues period"""
    with patch('hall.modules.sslcommerz_client.requests.post', return_value=session_ok()):
        response = client.post('/api/payments/initiate', headers=student_headers,
                               json={'dues_period_id': current_period['id']})
    assert response.status_code == 200, response.get_json()
    payment_id = response.get_json()['payment_id']
    return managers['payment_manager'].get_payment_by_id(payment_id)


class TestDuesPeriods:
    """Dues period lookup, rollover and overdue marking"""

    def test_current_dues_after_registration(self, client, student_headers, current_period):
        assert current_period['status'] == 'Pending'
        assert current_period['amount'] == 1320

    def test_overdue_period_stays_payable(self, client, student, student_headers, managers):
        db = managers['db_manager']
        past = datetime.now() - timedelta(days=400)
        db.execute_update(
            "UPDATE dues_periods SET period_start = ?, period_end = ? WHERE student_id = ?",
            (now_str(past), now_str(add_months(past, 6)), student['student']['id'])
        )

        body = client.get('/api/payments/dues/current', headers=student_headers).get_json()

        assert body['has_dues'] is True
        assert body['dues_period']['status'] == 'Overdue'

    def test_rollover_opens_next_period(self, client, student, student_headers, managers):
        db = managers['db_manager']
        pk = student['student']['id']
        end = datetime.now() - timedelta(days=1)
        db.execute_update(
            "UPDATE dues_periods SET period_start = ?, period_end = ?, status = 'Paid' WHERE student_id = ?",
            (now_str(add_months(end, -6)), now_str(end), pk)
        )

        body = client.get('/api/payments/dues/current', headers=student_headers).get_json()

        assert body['dues_period']['status'] == 'Pending'
        assert body['dues_period']['period_start'] == now_str(end)
        assert len(managers['payment_manager'].get_dues_periods(pk)) == 2

    def test_admins_have_no_current_dues(self, client, admin_headers):
        assert client.get('/api/payments/dues/current', headers=admin_headers).status_code == 403


class TestInitiation:
    """Opening gateway sessions"""

    def test_initiate_creates_pending_payment(self, initiated, current_period):
        assert initiated['status'] == 'Pending'
        assert initiated['session_key'] == 'SESSION123'
        assert initiated['transaction_id'].startswith('HMS')
        assert initiated['dues_period_id'] == current_period['id']

    def test_initiate_sends_dues_amount(self, client, student_headers, current_period):
        with patch('hall.modules.sslcommerz_client.requests.post', return_value=session_ok()) as post:
            client.post('/api/payments/initiate', headers=student_headers,
                        json={'dues_period_id': current_period['id']})

        payload = post.call_args.kwargs['data']
        assert payload['total_amount'] == '1320.00'
        assert payload['store_id'] == 'teststore'
        assert payload['value_b'] == str(current_period['id'])
        assert payload['ipn_url'].endswith('/api/payments/ipn')

    def test_initiate_reuses_pending_session(self, client, student_headers, current_period, initiated):
        with patch('hall.modules.sslcommerz_client.requests.post') as post:
            response = client.post('/api/payments/initiate', headers=student_headers,
                                   json={'dues_period_id': current_period['id']})

        assert response.get_json()['payment_id'] == initiated['id']
        post.assert_not_called()

    def test_initiate_for_someone_elses_period(self, client, register_student, current_period):
        other = register_student('S1002')
        response = client.post('/api/payments/initiate', headers={'Authorization': f"Bearer {other['token']}"},
                               json={'dues_period_id': current_period['id']})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid dues period'

    def test_gateway_refusal(self, client, student_headers, current_period):
        refused = gateway_response({'status': 'FAILED', 'failedreason': 'Store Credential Error'})
        with patch('hall.modules.sslcommerz_client.requests.post', return_value=refused):
            response = client.post('/api/payments/initiate', headers=student_headers,
                                   json={'dues_period_id': current_period['id']})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Store Credential Error'

    def test_gateway_unreachable(self, client, student_headers, current_period):
        with patch('hall.modules.sslcommerz_client.requests.post',
                   side_effect=requests.ConnectionError('down')):
            response = client.post('/api/payments/initiate', headers=student_headers,
                                   json={'dues_period_id': current_period['id']})

        assert response.status_code == 400
        assert 'payment gateway' in response.get_json()['message']

    def test_dues_period_required(self, client, student_headers):
        assert client.post('/api/payments/initiate', headers=student_headers, json={}).status_code == 400


class TestValidation:
    """Settling payments after the gateway redirect"""

    def test_validate_marks_payment_and_period_paid(self, client, student, student_headers, initiated, managers):
        with patch('hall.modules.sslcommerz_client.requests.post',
                   return_value=validation_ok(initiated['transaction_id'])):
            response = client.post('/api/payments/validate', headers=student_headers,
                                   json={'val_id': 'VAL1', 'payment_id': initiated['id']})

        assert response.status_code == 200
        payment = response.get_json()['payment']
        assert payment['status'] == 'Paid'
        assert payment['bank_transaction_id'] == 'BANK987'
        assert payment['paid_date'] == '2025-03-01 10:15:00'
        assert payment['receipt_number'] == f"RCP{datetime.now().strftime('%Y%m%d')}0001"

        periods = managers['payment_manager'].get_dues_periods(student['student']['id'])
        assert periods[0]['status'] == 'Paid'
        assert periods[0]['payment_id'] == initiated['id']

    def test_validate_twice_is_idempotent(self, client, student_headers, initiated):
        with patch('hall.modules.sslcommerz_client.requests.post',
                   return_value=validation_ok(initiated['transaction_id'])):
            client.post('/api/payments/validate', headers=student_headers,
                        json={'val_id': 'VAL1', 'payment_id': initiated['id']})
            again = client.post('/api/payments/validate', headers=student_headers,
                                json={'val_id': 'VAL1', 'payment_id': initiated['id']})

        assert again.status_code == 200
        assert again.get_json()['message'] == 'Payment already processed'

    def test_foreign_transaction_rejected(self, client, student_headers, initiated):
        with patch('hall.modules.sslcommerz_client.requests.post',
                   return_value=validation_ok('HMS-SOMEONE-ELSE')):
            response = client.post('/api/payments/validate', headers=student_headers,
                                   json={'val_id': 'VAL1', 'payment_id': initiated['id']})

        assert response.status_code == 400

    def test_invalid_status_from_gateway(self, client, student_headers, initiated):
        with patch('hall.modules.sslcommerz_client.requests.post',
                   return_value=validation_ok(initiated['transaction_id'], status='INVALID_TRANSACTION')):
            response = client.post('/api/payments/validate', headers=student_headers,
                                   json={'val_id': 'VAL1', 'payment_id': initiated['id']})

        assert response.status_code == 400

    def test_html_error_page_from_gateway(self, client, student_headers, initiated):
        html = Mock()
        html.text = '<html><body>Error</body></html>'
        with patch('hall.modules.sslcommerz_client.requests.post', return_value=html):
            response = client.post('/api/payments/validate', headers=student_headers,
                                   json={'val_id': 'VAL1', 'payment_id': initiated['id']})

        assert response.status_code == 400
        assert 'expired' in response.get_json()['message']

    def test_paid_period_cannot_be_initiated_again(self, client, student_headers, initiated):
        with patch('hall.modules.sslcommerz_client.requests.post',
                   return_value=validation_ok(initiated['transaction_id'])):
            client.post('/api/payments/validate', headers=student_headers,
                        json={'val_id': 'VAL1', 'payment_id': initiated['id']})

        response = client.post('/api/payments/initiate', headers=student_headers,
                               json={'dues_period_id': initiated['dues_period_id']})
        assert response.get_json()['message'] == 'Dues already paid'


class TestIPN:
    """Gateway instant payment notifications"""

    def test_ipn_settles_payment_once(self, client, initiated, managers):
        form = {'status': 'VALID', 'tran_id': initiated['transaction_id'], 'val_id': 'VAL1'}

        with patch('hall.modules.sslcommerz_client.requests.post',
                   return_value=validation_ok(initiated['transaction_id'])):
            first = client.post('/api/payments/ipn', data=form)
            second = client.post('/api/payments/ipn', data=form)

        assert first.status_code == 200
        assert first.get_json()['processed'] is True
        assert second.status_code == 200
        assert second.get_json()['processed'] is False
        assert managers['payment_manager'].get_payment_by_id(initiated['id'])['status'] == 'Paid'

    def test_ipn_rejects_validation_of_another_transaction(self, client, initiated, managers):
        form = {'status': 'VALID', 'tran_id': initiated['transaction_id'], 'val_id': 'VAL-OTHER'}

        with patch('hall.modules.sslcommerz_client.requests.post',
                   return_value=validation_ok('HMS20250101000000999')):
            response = client.post('/api/payments/ipn', data=form)

        assert response.status_code == 200
        assert response.get_json()['processed'] is False
        payment = managers['payment_manager'].get_payment_by_id(initiated['id'])
        assert payment['status'] == 'Pending'
        period = managers['payment_manager'].get_dues_periods(initiated['student_id'])[0]
        assert period['status'] == 'Pending'

    def test_ipn_falls_back_to_form_data(self, client, initiated, managers):
        form = {'status': 'VALID', 'tran_id': initiated['transaction_id'], 'val_id': 'VAL1',
                'bank_tran_id': 'BANKIPN', 'card_type': 'VISA-Dutch Bangla'}

        with patch('hall.modules.sslcommerz_client.requests.post',
                   side_effect=requests.Timeout('slow')):
            response = client.post('/api/payments/ipn', data=form)

        assert response.get_json()['processed'] is True
        payment = managers['payment_manager'].get_payment_by_id(initiated['id'])
        assert payment['bank_transaction_id'] == 'BANKIPN'
        assert payment['validation_status'] == 'VALID'

    def test_ipn_ignores_failed_status_and_unknown_transactions(self, client, initiated):
        failed = client.post('/api/payments/ipn', data={'status': 'FAILED', 'tran_id': initiated['transaction_id']})
        assert failed.status_code == 200
        assert failed.get_json()['processed'] is False

        with patch('hall.modules.sslcommerz_client.requests.post', return_value=validation_ok('HMS0')):
            unknown = client.post('/api/payments/ipn', data={'status': 'VALID', 'tran_id': 'HMS0', 'val_id': 'V'})
        assert unknown.status_code == 200
        assert unknown.get_json()['message'] == 'Payment not found'


class TestPaymentViews:
    """History and admin views"""

    def test_history_and_admin_views(self, client, student, student_headers, admin_headers, initiated):
        history = client.get('/api/payments/history', headers=student_headers).get_json()['payments']
        assert [payment['id'] for payment in history] == [initiated['id']]
        assert history[0]['period_start']

        all_payments = client.get('/api/payments', headers=admin_headers).get_json()['payments']
        assert all_payments[0]['student_number'] == 'S1001'

        pending = client.get('/api/payments/status/pending', headers=admin_headers).get_json()['payments']
        assert len(pending) == 1

        dues = client.get('/api/payments/admin/all-dues', headers=admin_headers).get_json()['students']
        assert dues[0]['student_id'] == 'S1001'
        assert dues[0]['dues_periods'][0]['payment'] is None

    def test_students_see_only_their_own_payments(self, client, register_student, initiated):
        other = register_student('S1002')
        headers = {'Authorization': f"Bearer {other['token']}"}

        assert client.get(f"/api/payments/{initiated['id']}", headers=headers).status_code == 404
        assert client.get(f"/api/payments/student/{initiated['student_id']}", headers=headers).status_code == 403

    def test_student_sees_own_payment(self, client, student_headers, initiated):
        response = client.get(f"/api/payments/{initiated['id']}", headers=student_headers)
        assert response.get_json()['payment']['transaction_id'] == initiated['transaction_id']

    def test_admin_exports_dues_ledger(self, client, student, admin_headers):
        response = client.get('/api/payments/admin/export?format=csv', headers=admin_headers)

        assert response.status_code == 200
        assert 'attachment' in response.headers['Content-Disposition']
        assert b'S1001' in response.data


def record(client, admin_headers, student_pk, **extra):
    payload = {'student_id': student_pk, 'payment_type': 'Fine', 'amount': 500,
               'description': 'Late night entry'}
    payload.update(extra)
    return client.post('/api/payments', headers=admin_headers, json=payload)


class TestManualPayments:
    """Payments recorded and settled by admins outside the gateway"""

    def test_create_issues_receipt(self, client, student, admin_headers):
        response = record(client, admin_headers, student['student']['id'])

        assert response.status_code == 201
        payment = response.get_json()['payment']
        assert payment['status'] == 'Pending'
        assert payment['payment_method'] == 'Cash'
        assert payment['amount'] == 500
        assert payment['receipt_number'] == f"RCP{datetime.now().strftime('%Y%m%d')}0001"

    def test_create_validation(self, client, student, admin_headers):
        pk = student['student']['id']

        assert record(client, admin_headers, 9999).status_code == 404
        assert record(client, admin_headers, pk, amount=0).status_code == 400
        assert record(client, admin_headers, pk, amount='lots').status_code == 400
        assert record(client, admin_headers, pk, payment_type='Donation').status_code == 400
        assert record(client, admin_headers, pk, status='Paid').status_code == 400

    def test_students_cannot_record_payments(self, client, student, student_headers):
        assert record(client, student_headers, student['student']['id']).status_code == 403

    def test_update_unpaid_payment(self, client, student, admin_headers):
        payment_id = record(client, admin_headers, student['student']['id']).get_json()['payment']['id']

        response = client.put(f'/api/payments/{payment_id}', headers=admin_headers,
                              json={'amount': 750, 'status': 'Failed', 'due_date': '2025-06-30'})

        assert response.status_code == 200
        payment = response.get_json()['payment']
        assert payment['amount'] == 750
        assert payment['status'] == 'Failed'
        assert payment['due_date'] == '2025-06-30 00:00:00'

        assert client.put(f'/api/payments/{payment_id}', headers=admin_headers,
                          json={'status': 'Paid'}).status_code == 400
        assert client.put('/api/payments/999', headers=admin_headers, json={'amount': 1}).status_code == 404

    def test_process_settles_dues_period(self, client, student, admin_headers, current_period, managers):
        payment_id = record(client, admin_headers, student['student']['id'], payment_type='Semester Dues',
                            amount=1320, dues_period_id=current_period['id']).get_json()['payment']['id']

        response = client.put(f'/api/payments/{payment_id}/process', headers=admin_headers,
                              json={'transaction_id': 'SLIP-42', 'payment_method': 'Cash'})

        assert response.status_code == 200
        payment = response.get_json()['payment']
        assert payment['status'] == 'Paid'
        assert payment['transaction_id'] == 'SLIP-42'
        assert payment['validation_status'] == 'MANUAL'
        period = managers['payment_manager'].get_dues_periods(student['student']['id'])[0]
        assert period['status'] == 'Paid'
        assert period['payment_id'] == payment_id

        again = client.put(f'/api/payments/{payment_id}/process', headers=admin_headers,
                           json={'transaction_id': 'SLIP-43', 'payment_method': 'Cash'})
        assert again.get_json()['message'] == 'Payment already processed'
        assert again.get_json()['payment']['transaction_id'] == 'SLIP-42'

    def test_paid_payments_are_final(self, client, student, admin_headers):
        payment_id = record(client, admin_headers, student['student']['id']).get_json()['payment']['id']
        client.put(f'/api/payments/{payment_id}/process', headers=admin_headers,
                   json={'transaction_id': 'BT-1', 'payment_method': 'Bank Transfer'})

        update = client.put(f'/api/payments/{payment_id}', headers=admin_headers, json={'amount': 1})
        delete = client.delete(f'/api/payments/{payment_id}', headers=admin_headers)

        assert update.get_json()['message'] == 'Paid payments cannot be modified'
        assert delete.get_json()['message'] == 'Paid payments cannot be deleted'

    def test_process_rejects_already_paid_period(self, client, student, student_headers, admin_headers,
                                                 initiated):
        with patch('hall.modules.sslcommerz_client.requests.post',
                   return_value=validation_ok(initiated['transaction_id'])):
            client.post('/api/payments/validate', headers=student_headers,
                        json={'val_id': 'VAL1', 'payment_id': initiated['id']})

        payment_id = record(client, admin_headers, student['student']['id'], payment_type='Semester Dues',
                            amount=1320, dues_period_id=initiated['dues_period_id']).get_json()['payment']['id']
        response = client.put(f'/api/payments/{payment_id}/process', headers=admin_headers,
                              json={'transaction_id': 'SLIP-1', 'payment_method': 'Cash'})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Dues already paid'

    def test_process_validation(self, client, student, admin_headers):
        payment_id = record(client, admin_headers, student['student']['id']).get_json()['payment']['id']

        bad_method = client.put(f'/api/payments/{payment_id}/process', headers=admin_headers,
                                json={'transaction_id': 'X', 'payment_method': 'Cheque'})
        assert bad_method.status_code == 400

        client.put(f'/api/payments/{payment_id}', headers=admin_headers, json={'status': 'Cancelled'})
        cancelled = client.put(f'/api/payments/{payment_id}/process', headers=admin_headers,
                               json={'transaction_id': 'X', 'payment_method': 'Cash'})
        assert cancelled.status_code == 400

        assert client.put('/api/payments/999/process', headers=admin_headers,
                          json={'payment_method': 'Cash'}).status_code == 404

    def test_delete_unpaid_payment(self, client, student, admin_headers):
        payment_id = record(client, admin_headers, student['student']['id']).get_json()['payment']['id']

        assert client.delete(f'/api/payments/{payment_id}', headers=admin_headers).status_code == 200
        assert client.get(f'/api/payments/{payment_id}', headers=admin_headers).status_code == 404
        assert client.delete(f'/api/payments/{payment_id}', headers=admin_headers).status_code == 404
