"""
Payment routes: dues, SSLCommerz initiation and validation, the gateway IPN
listener and admin payment views.
"""

import logging

from flask import Blueprint, jsonify, request, send_file

from hall.routes import get_manager, json_body, respond, error_response, server_error
from hall.security import (token_required, student_required, admin_required,
                           current_user_id, current_user_pk, is_admin)

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__)


@payments_bp.route('', methods=['GET'])
@admin_required
def list_payments():
    try:
        return jsonify({'success': True, 'payments': get_manager('payment_manager').get_all_payments()})
    except Exception as e:
        return server_error('Loading payments', e)


@payments_bp.route('/<int:payment_id>', methods=['GET'])
@token_required
def get_payment(payment_id):
    """A payment (own payments for students)"""
    try:
        payment = get_manager('payment_manager').get_payment_by_id(payment_id)
        if not payment or (not is_admin() and payment['student_id'] != current_user_pk()):
            return error_response('Payment not found', 404)
        return jsonify({'success': True, 'payment': payment})
    except Exception as e:
        return server_error('Loading payment', e)


@payments_bp.route('', methods=['POST'])
@admin_required
def create_payment():
    """Record a payment by hand"""
    try:
        return respond(get_manager('payment_manager').create_payment(json_body()), 201)
    except Exception as e:
        return server_error('Creating payment', e)


@payments_bp.route('/<int:payment_id>', methods=['PUT'])
@admin_required
def update_payment(payment_id):
    try:
        return respond(get_manager('payment_manager').update_payment(payment_id, json_body()))
    except Exception as e:
        return server_error('Updating payment', e)


@payments_bp.route('/<int:payment_id>/process', methods=['PUT'])
@admin_required
def process_payment(payment_id):
    """Settle a payment collected at the office or by bank transfer"""
    try:
        data = json_body()
        result = get_manager('payment_manager').process_payment(
            payment_id, data.get('transaction_id', ''), data.get('payment_method', '')
        )
        return respond(result)
    except Exception as e:
        return server_error('Processing payment', e)


@payments_bp.route('/<int:payment_id>', methods=['DELETE'])
@admin_required
def delete_payment(payment_id):
    try:
        return respond(get_manager('payment_manager').delete_payment(payment_id))
    except Exception as e:
        return server_error('Deleting payment', e)


@payments_bp.route('/student/<int:student_pk>', methods=['GET'])
@token_required
def student_payments(student_pk):
    try:
        if not is_admin() and current_user_pk() != student_pk:
            return error_response('You can only view your own payments', 403)
        payments = get_manager('payment_manager').get_payments_by_student(student_pk)
        return jsonify({'success': True, 'payments': payments})
    except Exception as e:
        return server_error('Loading payments', e)


@payments_bp.route('/status/<status>', methods=['GET'])
@admin_required
def payments_by_status(status):
    try:
        payments = get_manager('payment_manager').get_payments_by_status(status.capitalize())
        return jsonify({'success': True, 'payments': payments})
    except Exception as e:
        return server_error('Loading payments', e)


@payments_bp.route('/overdue', methods=['GET'])
@admin_required
def overdue_payments():
    try:
        return jsonify({'success': True, 'payments': get_manager('payment_manager').get_overdue_payments()})
    except Exception as e:
        return server_error('Loading overdue payments', e)


@payments_bp.route('/dues/current', methods=['GET'])
@student_required
def current_dues():
    """The logged-in student's earliest unpaid dues period"""
    try:
        return respond(get_manager('payment_manager').get_current_dues(current_user_id()))
    except Exception as e:
        return server_error('Loading dues', e)


@payments_bp.route('/initiate', methods=['POST'])
@student_required
def initiate_payment():
    """Open an SSLCommerz session for a dues period"""
    try:
        dues_period_id = json_body().get('dues_period_id')
        if not dues_period_id:
            return error_response('dues_period_id is required')
        return respond(get_manager('payment_manager').initiate_payment(current_user_id(), dues_period_id))
    except Exception as e:
        return server_error('Initiating payment', e)


@payments_bp.route('/validate', methods=['POST'])
@token_required
def validate_payment():
    """Confirm a payment after the gateway redirect"""
    try:
        data = json_body()
        result = get_manager('payment_manager').validate_payment(data.get('val_id'), data.get('payment_id'))
        return respond(result)
    except Exception as e:
        return server_error('Validating payment', e)


@payments_bp.route('/ipn', methods=['POST'])
def payment_ipn():
    """Gateway instant payment notification; always acknowledged"""
    try:
        form = request.form.to_dict() or json_body()
        result = get_manager('payment_manager').handle_ipn(form)
        return jsonify({'success': True, 'processed': result['processed'], 'message': result['message']})
    except Exception as e:
        logger.error(f"IPN handling error: {str(e)}")
        return jsonify({'success': True, 'processed': False, 'message': 'IPN received'})


@payments_bp.route('/history', methods=['GET'])
@student_required
def payment_history():
    try:
        return respond(get_manager('payment_manager').get_payment_history(current_user_id()))
    except Exception as e:
        return server_error('Loading payment history', e)


@payments_bp.route('/admin/all-dues', methods=['GET'])
@admin_required
def all_dues():
    """Every student with their dues periods"""
    try:
        return jsonify({'success': True, 'students': get_manager('payment_manager').get_all_student_dues()})
    except Exception as e:
        return server_error('Loading dues', e)


@payments_bp.route('/admin/export', methods=['GET'])
@admin_required
def export_dues():
    """Download the dues ledger as CSV or Excel"""
    try:
        filters = {
            'status': request.args.get('status'),
            'student_id': request.args.get('student_id')
        }
        result = get_manager('report_generator').generate_report(
            'dues', filters, request.args.get('format', 'csv')
        )
        if not result['success']:
            return respond(result)

        return send_file(result['filepath'], mimetype=result['mimetype'],
                         as_attachment=True, download_name=result['filename'])
    except Exception as e:
        return server_error('Exporting dues', e)
