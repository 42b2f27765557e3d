"""
Payment Manager Module - Hall Management System

This module manages hall dues and their online payment. Every student owes
a fixed amount per six-month dues period; periods are opened at
registration and then on demand, one after another, so there is always a
period covering today. Payments go through the SSLCommerz hosted checkout:
a session is opened, the gateway redirects back with a validation id (or
calls the IPN endpoint), and the payment and its dues period are marked
Paid exactly once.

Features:
- Dues period rollover and overdue marking
- Payment initiation through SSLCommerz
- Payment validation and IPN handling
- Receipt numbering
- Manual payment records and office settlement
- Payment history and admin dues ledger
"""

from datetime import datetime
from typing import Dict, List, Any, Optional
import logging

from hall.modules.database_manager import now_str, parse_timestamp, add_months
from hall.modules.sslcommerz_client import SSLCommerzClient, build_transaction_id, VALID_STATUSES

STATUS_PENDING = 'Pending'
STATUS_PAID = 'Paid'
STATUS_OVERDUE = 'Overdue'
STATUS_FAILED = 'Failed'
STATUS_CANCELLED = 'Cancelled'

UNPAID_STATUSES = (STATUS_PENDING, STATUS_OVERDUE)

PAYMENT_TYPES = ('Semester Dues', 'Room Rent', 'Mess Fee', 'Security Deposit', 'Fine')
PAYMENT_METHODS = ('SSLCommerz', 'Cash', 'Bank Transfer')


class PaymentManager:
    """
    Dues periods and SSLCommerz payments.
    """

    def __init__(self, database_manager, settings=None, gateway=None):
        """
        Initialize the payment manager.

        Args:
            database_manager: Database manager instance
            settings (Mapping): Dues and gateway settings
            gateway: SSLCommerz client (built from settings when omitted)
        """
        self.db = database_manager
        self.settings = settings or {}
        self.gateway = gateway or SSLCommerzClient(self.settings)
        self.logger = logging.getLogger(__name__)

        self.DUES_AMOUNT = self.settings.get('DUES_AMOUNT', 1320)
        self.PERIOD_MONTHS = self.settings.get('DUES_PERIOD_MONTHS', 6)
        self.CURRENCY = self.settings.get('DUES_CURRENCY', 'BDT')

    # ------------------------------------------------------------------
    # Dues periods
    # ------------------------------------------------------------------

    def get_current_dues(self, student_number: str) -> Dict[str, Any]:
        """
        Get the student's earliest unpaid dues period, opening new periods
        until one covers today when nothing is outstanding.

        Args:
            student_number (str): Student id

        Returns:
            Dict[str, Any]: has_dues flag and the dues period
        """
        try:
            student = self._get_student(student_number)
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            now = datetime.now()
            self._mark_overdue(student['id'], now)

            current = self._earliest_unpaid(student['id'])
            if not current:
                self._open_periods(student, now)
                current = self._earliest_unpaid(student['id'])

            return {
                'success': True,
                'has_dues': current is not None,
                'dues_period': current
            }

        except Exception as e:
            self.logger.error(f"Failed to get current dues for {student_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to load dues'}

    def get_dues_periods(self, student_pk: int) -> List[Dict[str, Any]]:
        """
        Get all dues periods of a student, newest first.

        Args:
            student_pk (int): Student database id

        Returns:
            List[Dict[str, Any]]: Dues periods
        """
        return self.db.execute_query(
            "SELECT * FROM dues_periods WHERE student_id = ? ORDER BY period_start DESC",
            (student_pk,)
        )

    def _mark_overdue(self, student_pk: int, now: datetime) -> None:
        self.db.execute_update(
            "UPDATE dues_periods SET status = ? WHERE student_id = ? AND status = ? AND period_end < ?",
            (STATUS_OVERDUE, student_pk, STATUS_PENDING, now_str(now))
        )

    def _earliest_unpaid(self, student_pk: int) -> Optional[Dict[str, Any]]:
        return self.db.execute_query("""
            SELECT * FROM dues_periods
            WHERE student_id = ? AND status IN (?, ?)
            ORDER BY period_start ASC
            LIMIT 1
        """, (student_pk, STATUS_PENDING, STATUS_OVERDUE), fetch_all=False)

    def _open_periods(self, student: Dict[str, Any], now: datetime) -> int:
        """
        Create consecutive periods from the end of the last one (or the
        registration date) until one covers now.

        Returns:
            int: Number of periods created
        """
        last = self.db.execute_query(
            "SELECT period_end FROM dues_periods WHERE student_id = ? ORDER BY period_end DESC LIMIT 1",
            (student['id'],),
            fetch_all=False
        )
        start = parse_timestamp(last['period_end']) if last else parse_timestamp(student['registration_date'])

        created = 0
        with self.db.transaction() as conn:
            while start <= now:
                end = add_months(start, self.PERIOD_MONTHS)
                conn.execute("""
                    INSERT INTO dues_periods (student_id, period_start, period_end, amount, status)
                    VALUES (?, ?, ?, ?, ?)
                """, (student['id'], now_str(start), now_str(end), self.DUES_AMOUNT,
                      STATUS_PENDING if end >= now else STATUS_OVERDUE))
                created += 1
                start = end

        if created:
            self.logger.info(f"Opened {created} dues period(s) for {student['student_id']}")
        return created

    # ------------------------------------------------------------------
    # Gateway flow
    # ------------------------------------------------------------------

    def initiate_payment(self, student_number: str, dues_period_id: int) -> Dict[str, Any]:
        """
        Start paying a dues period through SSLCommerz.

        Args:
            student_number (str): Student id
            dues_period_id (int): Dues period to pay

        Returns:
            Dict[str, Any]: session_key, gateway_url and payment_id
        """
        try:
            student = self._get_student(student_number)
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            period = self.db.execute_query(
                "SELECT * FROM dues_periods WHERE id = ?", (dues_period_id,), fetch_all=False
            )
            if not period or period['student_id'] != student['id']:
                return {'success': False, 'error': 'Invalid dues period'}

            if period['status'] not in UNPAID_STATUSES:
                return {'success': False, 'error': 'Dues already paid'}

            existing = self.db.execute_query("""
                SELECT * FROM payments
                WHERE dues_period_id = ? AND status = ?
                ORDER BY id DESC LIMIT 1
            """, (dues_period_id, STATUS_PENDING), fetch_all=False)

            if existing and existing['session_key'] and existing['gateway_page_url']:
                self.logger.info(f"Reusing pending payment {existing['id']} for dues period {dues_period_id}")
                return {
                    'success': True,
                    'session_key': existing['session_key'],
                    'gateway_url': existing['gateway_page_url'],
                    'payment_id': existing['id']
                }

            transaction_id = build_transaction_id(student['id'])
            session = self.gateway.initiate_session(
                transaction_id=transaction_id,
                amount=period['amount'],
                student_pk=student['id'],
                dues_period_id=dues_period_id,
                student_name=f"{student['first_name']} {student['last_name']}",
                student_email=student['email'],
                student_phone=student['phone_number']
            )

            if not session['success']:
                return {'success': False, 'error': session['error']}

            if not session['session_key'] or not session['gateway_url']:
                self.logger.error(f"Gateway answered without session data for {transaction_id}")
                return {'success': False, 'error': 'Payment gateway configuration error. Please contact administrator.'}

            payment_id = self.db.execute_update("""
                INSERT INTO payments (student_id, payment_type, amount, payment_date, due_date, status,
                                      transaction_id, payment_method, description, session_key,
                                      gateway_page_url, currency, dues_period_id)
                VALUES (?, 'Semester Dues', ?, ?, ?, ?, ?, 'SSLCommerz', ?, ?, ?, ?, ?)
            """, (student['id'], period['amount'], now_str(), period['period_end'], STATUS_PENDING,
                  transaction_id, f"Hall dues {period['period_start'][:10]} to {period['period_end'][:10]}",
                  session['session_key'], session['gateway_url'], self.CURRENCY, dues_period_id))

            self.logger.info(f"Payment {payment_id} initiated by {student_number} ({transaction_id})")

            return {
                'success': True,
                'session_key': session['session_key'],
                'gateway_url': session['gateway_url'],
                'payment_id': payment_id
            }

        except Exception as e:
            self.logger.error(f"Payment initiation failed for {student_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to initiate payment'}

    def validate_payment(self, val_id: str, payment_id: int) -> Dict[str, Any]:
        """
        Confirm a payment with the gateway and settle its dues period.

        Args:
            val_id (str): Gateway validation id
            payment_id (int): Payment id

        Returns:
            Dict[str, Any]: Validation result with the payment
        """
        try:
            if not val_id:
                return {'success': False, 'error': 'Validation id is required'}

            validation = self.gateway.validate(val_id)
            if not validation['success']:
                return {'success': False, 'error': validation['error']}

            payment = self.get_payment_by_id(payment_id)
            if not payment:
                return {'success': False, 'error': 'Payment not found', 'status': 404}

            if payment['status'] == STATUS_PAID:
                return {'success': True, 'message': 'Payment already processed', 'payment': payment}

            if validation['transaction_id'] and validation['transaction_id'] != payment['transaction_id']:
                self.logger.warning(f"Validation for payment {payment_id} returned foreign transaction "
                                    f"{validation['transaction_id']}")
                return {'success': False, 'error': 'Transaction does not match this payment'}

            self._settle(payment, {
                'bank_transaction_id': validation['bank_transaction_id'],
                'card_type': validation['card_type'],
                'card_number': validation['card_number'],
                'validation_status': validation['status'],
                'paid_date': self._gateway_date(validation['transaction_date'])
            })

            return {
                'success': True,
                'message': 'Payment validated successfully',
                'payment': self.get_payment_by_id(payment_id)
            }

        except Exception as e:
            self.logger.error(f"Payment validation failed for payment {payment_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to validate payment'}

    def handle_ipn(self, form: Dict[str, Any]) -> Dict[str, Any]:
        """
        Process an instant payment notification from the gateway.
        The caller always acknowledges with 200.

        Args:
            form (Dict[str, Any]): IPN form fields (tran_id, val_id, status, bank_tran_id, card_type, ...)

        Returns:
            Dict[str, Any]: processed flag and message
        """
        try:
            status = form.get('status', '')
            tran_id = form.get('tran_id', '')

            if status not in VALID_STATUSES:
                self.logger.info(f"IPN ignored for {tran_id} with status {status}")
                return {'processed': False, 'message': 'IPN received'}

            validation = self.gateway.validate(form.get('val_id', ''))
            if not validation['success']:
                self.logger.warning(f"IPN re-validation failed for {tran_id}; using IPN data")
            elif validation['transaction_id'] and validation['transaction_id'] != tran_id:
                self.logger.warning(f"IPN for {tran_id} validated foreign transaction "
                                    f"{validation['transaction_id']}")
                return {'processed': False, 'message': 'Transaction does not match this payment'}

            payment = self.db.execute_query(
                "SELECT * FROM payments WHERE transaction_id = ? ORDER BY id DESC LIMIT 1",
                (tran_id,),
                fetch_all=False
            )
            if not payment:
                self.logger.warning(f"IPN for unknown transaction {tran_id}")
                return {'processed': False, 'message': 'Payment not found'}

            if payment['status'] == STATUS_PAID:
                return {'processed': False, 'message': 'Payment already processed'}

            if validation['success']:
                details = {
                    'bank_transaction_id': validation['bank_transaction_id'],
                    'card_type': validation['card_type'],
                    'card_number': validation['card_number'],
                    'validation_status': validation['status'],
                    'paid_date': self._gateway_date(validation['transaction_date'])
                }
            else:
                details = {
                    'bank_transaction_id': form.get('bank_tran_id', ''),
                    'card_type': form.get('card_type', ''),
                    'card_number': form.get('card_no', ''),
                    'validation_status': status,
                    'paid_date': now_str()
                }

            self._settle(payment, details)
            return {'processed': True, 'message': 'IPN processed successfully'}

        except Exception as e:
            self.logger.error(f"IPN processing error: {str(e)}")
            return {'processed': False, 'message': 'IPN processing error'}

    def _settle(self, payment: Dict[str, Any], details: Dict[str, Any]) -> bool:
        """
        Mark a payment and its dues period Paid. No-op if already paid.

        Returns:
            bool: True if this call settled the payment
        """
        timestamp = now_str()
        receipt_number = payment['receipt_number'] or self.generate_receipt_number()

        with self.db.transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE payments
                SET status = ?, bank_transaction_id = ?, card_type = ?, card_number = ?,
                    validation_status = ?, paid_date = ?, validated_date = ?, receipt_number = ?,
                    transaction_id = COALESCE(?, transaction_id), payment_method = COALESCE(?, payment_method)
                WHERE id = ? AND status != ?
            """, (STATUS_PAID, details['bank_transaction_id'] or '', details['card_type'] or '',
                  details['card_number'] or '', details['validation_status'], details['paid_date'],
                  timestamp, receipt_number, details.get('transaction_id'), details.get('payment_method'),
                  payment['id'], STATUS_PAID))

            if cursor.rowcount == 0:
                return False

            if payment['dues_period_id']:
                cursor.execute(
                    "UPDATE dues_periods SET status = ?, paid_date = ?, payment_id = ? WHERE id = ? AND status != ?",
                    (STATUS_PAID, details['paid_date'], payment['id'], payment['dues_period_id'], STATUS_PAID)
                )

        self.logger.info(f"Payment {payment['id']} settled ({payment['transaction_id']}), receipt {receipt_number}")
        return True

    def generate_receipt_number(self) -> str:
        """
        Next receipt number for today: RCP<yyyyMMdd><4-digit sequence>.

        Returns:
            str: Receipt number
        """
        prefix = f"RCP{datetime.now().strftime('%Y%m%d')}"
        last = self.db.execute_query(
            "SELECT receipt_number FROM payments WHERE receipt_number LIKE ? ORDER BY receipt_number DESC LIMIT 1",
            (f"{prefix}%",),
            fetch_all=False
        )
        sequence = 1
        if last:
            suffix = last['receipt_number'][len(prefix):]
            if suffix.isdigit():
                sequence = int(suffix) + 1
        return f"{prefix}{sequence:04d}"

    @staticmethod
    def _gateway_date(value: str) -> str:
        try:
            return now_str(parse_timestamp(value)) if value else now_str()
        except ValueError:
            return now_str()

    # ------------------------------------------------------------------
    # Admin bookkeeping
    # ------------------------------------------------------------------

    def create_payment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Record a payment by hand, e.g. a fine or a fee collected at the office.
        A receipt number is issued immediately.

        Args:
            data (Dict[str, Any]): student_id (database id), payment_type, amount and
                optional due_date, description, payment_method, dues_period_id

        Returns:
            Dict[str, Any]: Creation result with the payment
        """
        try:
            student = self.db.execute_query(
                "SELECT id FROM students WHERE id = ?", (data.get('student_id'),), fetch_all=False
            )
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            fields = self._payment_fields(data, required=True)
            if 'error' in fields:
                return {'success': False, 'error': fields['error']}

            status = data.get('status') or STATUS_PENDING
            if status not in (STATUS_PENDING, STATUS_FAILED, STATUS_CANCELLED):
                return {'success': False, 'error': 'New payments must be Pending; process them to mark them Paid'}

            method = data.get('payment_method') or 'Cash'
            if method not in PAYMENT_METHODS:
                return {'success': False, 'error': f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}"}

            dues_period_id = data.get('dues_period_id')
            if dues_period_id:
                period = self.db.execute_query(
                    "SELECT student_id FROM dues_periods WHERE id = ?", (dues_period_id,), fetch_all=False
                )
                if not period or period['student_id'] != student['id']:
                    return {'success': False, 'error': 'Invalid dues period'}

            payment_id = self.db.execute_update("""
                INSERT INTO payments (student_id, payment_type, amount, payment_date, due_date, status,
                                      payment_method, description, receipt_number, currency, dues_period_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (student['id'], fields['payment_type'], fields['amount'], now_str(),
                  fields.get('due_date') or now_str(), status, method, fields.get('description', ''),
                  self.generate_receipt_number(), self.CURRENCY, dues_period_id or None))

            self.logger.info(f"Payment {payment_id} recorded for student {student['id']}")
            return {'success': True, 'message': 'Payment created successfully',
                    'payment': self.get_payment_by_id(payment_id)}

        except Exception as e:
            self.logger.error(f"Failed to create payment: {str(e)}")
            return {'success': False, 'error': 'Failed to create payment'}

    def update_payment(self, payment_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Edit an unpaid payment's type, amount, due date, status or description.
        Paid payments are final.

        Args:
            payment_id (int): Payment id
            data (Dict[str, Any]): Fields to change

        Returns:
            Dict[str, Any]: Update result with the payment
        """
        try:
            payment = self.get_payment_by_id(payment_id)
            if not payment:
                return {'success': False, 'error': 'Payment not found', 'status': 404}

            if payment['status'] == STATUS_PAID:
                return {'success': False, 'error': 'Paid payments cannot be modified'}

            fields = self._payment_fields(data, required=False)
            if 'error' in fields:
                return {'success': False, 'error': fields['error']}

            if 'status' in data:
                if data['status'] not in (STATUS_PENDING, STATUS_FAILED, STATUS_CANCELLED):
                    return {'success': False, 'error': 'Status must be Pending, Failed or Cancelled'}
                fields['status'] = data['status']

            if not fields:
                return {'success': False, 'error': 'No valid fields to update'}

            assignments = ', '.join(f"{column} = ?" for column in fields)
            self.db.execute_update(
                f"UPDATE payments SET {assignments} WHERE id = ?",
                tuple(fields.values()) + (payment_id,)
            )

            self.logger.info(f"Payment {payment_id} updated: {', '.join(fields)}")
            return {'success': True, 'message': 'Payment updated successfully',
                    'payment': self.get_payment_by_id(payment_id)}

        except Exception as e:
            self.logger.error(f"Failed to update payment {payment_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to update payment'}

    def process_payment(self, payment_id: int, transaction_id: str, payment_method: str) -> Dict[str, Any]:
        """
        Settle a payment received outside the gateway and mark its dues period Paid.

        Args:
            payment_id (int): Payment id
            transaction_id (str): Reference of the cash slip or bank transfer
            payment_method (str): Cash, Bank Transfer or SSLCommerz

        Returns:
            Dict[str, Any]: Processing result with the payment
        """
        try:
            payment = self.get_payment_by_id(payment_id)
            if not payment:
                return {'success': False, 'error': 'Payment not found', 'status': 404}

            if payment['status'] == STATUS_PAID:
                return {'success': True, 'message': 'Payment already processed', 'payment': payment}

            if payment['status'] == STATUS_CANCELLED:
                return {'success': False, 'error': 'Cancelled payments cannot be processed'}

            if payment_method not in PAYMENT_METHODS:
                return {'success': False, 'error': f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}"}

            if payment['dues_period_id']:
                period = self.db.execute_query(
                    "SELECT status FROM dues_periods WHERE id = ?", (payment['dues_period_id'],), fetch_all=False
                )
                if period and period['status'] == STATUS_PAID:
                    return {'success': False, 'error': 'Dues already paid'}

            self._settle(payment, {
                'bank_transaction_id': '',
                'card_type': '',
                'card_number': '',
                'validation_status': 'MANUAL',
                'paid_date': now_str(),
                'transaction_id': (transaction_id or '').strip(),
                'payment_method': payment_method
            })

            return {'success': True, 'message': 'Payment processed successfully',
                    'payment': self.get_payment_by_id(payment_id)}

        except Exception as e:
            self.logger.error(f"Failed to process payment {payment_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to process payment'}

    def delete_payment(self, payment_id: int) -> Dict[str, Any]:
        """
        Delete an unpaid payment record.

        Args:
            payment_id (int): Payment id

        Returns:
            Dict[str, Any]: Deletion result
        """
        try:
            payment = self.get_payment_by_id(payment_id)
            if not payment:
                return {'success': False, 'error': 'Payment not found', 'status': 404}

            if payment['status'] == STATUS_PAID:
                return {'success': False, 'error': 'Paid payments cannot be deleted'}

            self.db.execute_update("DELETE FROM payments WHERE id = ?", (payment_id,))
            self.logger.info(f"Payment {payment_id} deleted")
            return {'success': True, 'message': 'Payment deleted successfully'}

        except Exception as e:
            self.logger.error(f"Failed to delete payment {payment_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to delete payment'}

    def _payment_fields(self, data: Dict[str, Any], required: bool) -> Dict[str, Any]:
        """Validated payment_type, amount, due_date and description from request data."""
        fields = {}

        if required or 'payment_type' in data:
            payment_type = data.get('payment_type') or 'Semester Dues'
            if payment_type not in PAYMENT_TYPES:
                return {'error': f"Payment type must be one of: {', '.join(PAYMENT_TYPES)}"}
            fields['payment_type'] = payment_type

        if required or 'amount' in data:
            try:
                amount = float(data.get('amount'))
            except (TypeError, ValueError):
                return {'error': 'Amount must be a number'}
            if amount <= 0:
                return {'error': 'Amount must be greater than zero'}
            fields['amount'] = amount

        if data.get('due_date'):
            try:
                fields['due_date'] = now_str(parse_timestamp(data['due_date']))
            except (TypeError, ValueError):
                return {'error': 'Invalid due date'}

        if 'description' in data:
            fields['description'] = (data.get('description') or '').strip()[:500]

        return fields

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_payment_by_id(self, payment_id: int) -> Optional[Dict[str, Any]]:
        """
        Get a payment with its student.

        Args:
            payment_id (int): Payment id

        Returns:
            Dict[str, Any]: Payment or None
        """
        return self.db.execute_query("""
            SELECT p.*, s.student_id as student_number, s.first_name || ' ' || s.last_name as student_name
            FROM payments p
            JOIN students s ON p.student_id = s.id
            WHERE p.id = ?
        """, (payment_id,), fetch_all=False)

    def get_payment_history(self, student_number: str) -> Dict[str, Any]:
        """
        Get a student's own payments with their dues periods.

        Args:
            student_number (str): Student id

        Returns:
            Dict[str, Any]: Payments, newest first
        """
        student = self._get_student(student_number)
        if not student:
            return {'success': False, 'error': 'Student not found', 'status': 404}

        payments = self.db.execute_query("""
            SELECT p.id, p.amount, p.status, p.transaction_id, p.payment_method, p.paid_date,
                   p.due_date, p.receipt_number, d.period_start, d.period_end
            FROM payments p
            LEFT JOIN dues_periods d ON p.dues_period_id = d.id
            WHERE p.student_id = ?
            ORDER BY COALESCE(p.paid_date, p.due_date) DESC
        """, (student['id'],))

        return {'success': True, 'payments': payments}

    def get_payments_by_student(self, student_pk: int) -> List[Dict[str, Any]]:
        """Get a student's payments, newest first."""
        return self.db.execute_query(
            "SELECT * FROM payments WHERE student_id = ? ORDER BY payment_date DESC",
            (student_pk,)
        )

    def get_all_payments(self) -> List[Dict[str, Any]]:
        """Get every payment with its student, newest first."""
        return self.db.execute_query("""
            SELECT p.*, s.student_id as student_number, s.first_name || ' ' || s.last_name as student_name
            FROM payments p
            JOIN students s ON p.student_id = s.id
            ORDER BY p.payment_date DESC
        """)

    def get_payments_by_status(self, status: str) -> List[Dict[str, Any]]:
        """Get payments in one status, newest first."""
        return self.db.execute_query("""
            SELECT p.*, s.student_id as student_number, s.first_name || ' ' || s.last_name as student_name
            FROM payments p
            JOIN students s ON p.student_id = s.id
            WHERE p.status = ?
            ORDER BY p.payment_date DESC
        """, (status,))

    def get_overdue_payments(self) -> List[Dict[str, Any]]:
        """Get pending payments past their due date, oldest due first."""
        return self.db.execute_query("""
            SELECT p.*, s.student_id as student_number, s.first_name || ' ' || s.last_name as student_name
            FROM payments p
            JOIN students s ON p.student_id = s.id
            WHERE p.status = ? AND p.due_date < ?
            ORDER BY p.due_date ASC
        """, (STATUS_PENDING, now_str()))

    def get_all_student_dues(self) -> List[Dict[str, Any]]:
        """
        Admin dues ledger: every student with their dues periods and the
        payment that settled each one.

        Returns:
            List[Dict[str, Any]]: Students with nested dues periods
        """
        students = self.db.execute_query("""
            SELECT id, student_id, first_name || ' ' || last_name as name, email, phone_number,
                   session, room_no as room_number, block, registration_date
            FROM students
            ORDER BY student_id
        """)

        periods = self.db.execute_query("""
            SELECT d.*, p.transaction_id, p.payment_method, p.paid_date as payment_paid_date,
                   p.receipt_number
            FROM dues_periods d
            LEFT JOIN payments p ON d.payment_id = p.id
            ORDER BY d.period_start DESC
        """)

        by_student = {}
        for period in periods:
            payment = None
            if period['payment_id']:
                payment = {
                    'id': period['payment_id'],
                    'transaction_id': period['transaction_id'],
                    'payment_method': period['payment_method'],
                    'paid_date': period['payment_paid_date'],
                    'receipt_number': period['receipt_number']
                }
            by_student.setdefault(period['student_id'], []).append({
                'id': period['id'],
                'period_start': period['period_start'],
                'period_end': period['period_end'],
                'amount': period['amount'],
                'status': period['status'],
                'paid_date': period['paid_date'],
                'payment': payment
            })

        for student in students:
            student['dues_periods'] = by_student.get(student['id'], [])

        return students

    def get_students_with_pending_dues(self) -> int:
        """Count students holding at least one unpaid dues period."""
        result = self.db.execute_query("""
            SELECT COUNT(DISTINCT student_id) as count FROM dues_periods
            WHERE status IN (?, ?)
        """, UNPAID_STATUSES, fetch_all=False)
        return result['count'] if result else 0

    def _get_student(self, student_number: str) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT * FROM students WHERE student_id = ? AND is_active = 1",
            (student_number,),
            fetch_all=False
        )
