"""
SSLCommerz Client Module - Hall Management System

Thin HTTP client for the SSLCommerz payment gateway: opening a hosted
checkout session and validating a completed transaction. Both calls post
form data and expect JSON back; transport errors and HTML error pages are
turned into failure results.
"""

from datetime import datetime
from typing import Dict, Any
import logging

import requests

VALID_STATUSES = ('VALID', 'VALIDATED')


def build_transaction_id(student_pk: int, moment: datetime = None) -> str:
    """Transaction ids look like HMS20250101093000<student pk>."""
    return f"HMS{(moment or datetime.now()).strftime('%Y%m%d%H%M%S')}{student_pk}"


class SSLCommerzClient:
    """REST client for the SSLCommerz session and validation APIs."""

    def __init__(self, settings=None):
        """
        Initialize the client from application settings.

        Args:
            settings (Mapping): SSLCOMMERZ_* settings and BACKEND_URL
        """
        self.settings = settings or {}
        self.store_id = self.settings.get('SSLCOMMERZ_STORE_ID', '')
        self.store_password = self.settings.get('SSLCOMMERZ_STORE_PASSWORD', '')
        self.session_api_url = self.settings.get(
            'SSLCOMMERZ_SESSION_API_URL', 'https://sandbox.sslcommerz.com/gwprocess/v4/api.php'
        )
        self.validation_api_url = self.settings.get(
            'SSLCOMMERZ_VALIDATION_API_URL',
            'https://sandbox.sslcommerz.com/validator/api/validationserverAPI.php'
        )
        self.timeout = self.settings.get('SSLCOMMERZ_TIMEOUT', 30)
        self.currency = self.settings.get('DUES_CURRENCY', 'BDT')
        self.logger = logging.getLogger(__name__)

    def initiate_session(self, transaction_id: str, amount: float, student_pk: int,
                         dues_period_id: int, student_name: str, student_email: str,
                         student_phone: str) -> Dict[str, Any]:
        """
        Open a hosted checkout session.

        Args:
            transaction_id (str): Merchant transaction id
            amount (float): Amount to charge
            student_pk (int): Student database id (sent as value_a)
            dues_period_id (int): Dues period id (sent as value_b)
            student_name (str): Customer name
            student_email (str): Customer email
            student_phone (str): Customer phone

        Returns:
            Dict[str, Any]: success, session_key and gateway_url, or error
        """
        payload = {
            'store_id': self.store_id,
            'store_passwd': self.store_password,
            'total_amount': f"{float(amount):.2f}",
            'currency': self.currency,
            'tran_id': transaction_id,
            'success_url': self.settings.get('SSLCOMMERZ_SUCCESS_URL', ''),
            'fail_url': self.settings.get('SSLCOMMERZ_FAIL_URL', ''),
            'cancel_url': self.settings.get('SSLCOMMERZ_CANCEL_URL', ''),
            'ipn_url': f"{self.settings.get('BACKEND_URL', '')}/api/payments/ipn",
            'cus_name': student_name,
            'cus_email': student_email,
            'cus_add1': 'Bijoy 24 Hall',
            'cus_city': 'Dhaka',
            'cus_country': 'Bangladesh',
            'cus_phone': student_phone,
            'shipping_method': 'NO',
            'product_name': 'Hall Dues Payment',
            'product_category': 'Dues',
            'product_profile': 'general',
            'value_a': str(student_pk),
            'value_b': str(dues_period_id),
        }

        body = self._post(self.session_api_url, payload)
        if 'transport_error' in body:
            return {'success': False, 'error': body['transport_error']}

        if body.get('status') == 'SUCCESS':
            self.logger.info(f"Payment session opened for {transaction_id}")
            return {
                'success': True,
                'transaction_id': transaction_id,
                'session_key': body.get('sessionkey', ''),
                'gateway_url': body.get('GatewayPageURL', '')
            }

        reason = body.get('failedreason') or 'Payment initiation failed'
        self.logger.warning(f"Payment session refused for {transaction_id}: {reason}")
        return {'success': False, 'error': reason}

    def validate(self, val_id: str) -> Dict[str, Any]:
        """
        Validate a completed transaction.

        Args:
            val_id (str): Validation id returned by the gateway

        Returns:
            Dict[str, Any]: success, status and transaction fields, or error
        """
        body = self._post(self.validation_api_url, {
            'store_id': self.store_id,
            'store_passwd': self.store_password,
            'val_id': val_id,
        })
        if 'transport_error' in body:
            return {'success': False, 'status': 'ERROR', 'error': body['transport_error']}

        status = body.get('status', '')
        if status not in VALID_STATUSES:
            return {'success': False, 'status': status, 'error': body.get('error') or 'Validation failed'}

        try:
            amount = float(body.get('amount') or 0)
        except (TypeError, ValueError):
            amount = 0.0

        return {
            'success': True,
            'status': status,
            'transaction_id': body.get('tran_id', ''),
            'bank_transaction_id': body.get('bank_tran_id', ''),
            'amount': amount,
            'currency': body.get('currency', ''),
            'card_type': body.get('card_type', ''),
            'card_number': body.get('card_no', ''),
            'transaction_date': body.get('tran_date', ''),
        }

    def _post(self, url: str, payload: Dict[str, str]) -> Dict[str, Any]:
        """POST form data and decode the JSON answer; failures come back as {'transport_error': ...}."""
        try:
            response = requests.post(url, data=payload, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.error(f"SSLCommerz request to {url} failed: {str(e)}")
            return {'transport_error': 'Could not reach the payment gateway'}

        text = response.text or ''
        if text.lstrip().startswith('<'):
            self.logger.error("SSLCommerz returned HTML instead of JSON")
            return {'transport_error': 'Payment validation failed. The payment may have expired or is invalid.'}

        try:
            body = response.json()
        except ValueError:
            self.logger.error(f"Unparseable SSLCommerz response: {text[:200]}")
            return {'transport_error': 'Invalid response from payment gateway'}

        if not isinstance(body, dict):
            return {'transport_error': 'Invalid response from payment gateway'}
        return body
