"""
Report export routes.
"""

from flask import Blueprint, jsonify, request, send_file

from hall.routes import get_manager, respond, server_error
from hall.security import admin_required

reports_bp = Blueprint('reports', __name__)


@reports_bp.route('', methods=['GET'])
@admin_required
def available_reports():
    return jsonify({'success': True, 'reports': get_manager('report_generator').get_available_reports()})


@reports_bp.route('/students', methods=['GET'])
@admin_required
def student_roster():
    """Download the student roster as CSV or Excel"""
    try:
        filters = {
            'department': request.args.get('department'),
            'year': request.args.get('year', type=int),
            'block': request.args.get('block'),
            'room_status': request.args.get('room_status')
        }
        result = get_manager('report_generator').generate_report(
            'students', filters, request.args.get('format', 'csv')
        )
        if not result['success']:
            return respond(result)

        return send_file(result['filepath'], mimetype=result['mimetype'],
                         as_attachment=True, download_name=result['filename'])
    except Exception as e:
        return server_error('Exporting students', e)
