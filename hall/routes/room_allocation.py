"""
Room allocation routes: availability, layouts, student requests and the
admin allotment workflow.
"""

from flask import Blueprint, current_app, jsonify

from hall.routes import get_manager, json_body, respond, error_response, server_error
from hall.security import token_required, student_required, admin_required, current_user_id

room_allocation_bp = Blueprint('room_allocation', __name__)


def _room_key(block, room_no):
    return block.strip().upper(), room_no.strip()


@room_allocation_bp.route('/room-layout/<block>/<room_no>', methods=['GET'])
@token_required
def room_layout(block, room_no):
    """Occupancy, roommates and bed map of a room"""
    try:
        layout = get_manager('room_manager').get_room_layout(*_room_key(block, room_no))
        if not layout:
            return error_response(f'Room {room_no}/{block} not found', 404)
        return jsonify({'success': True, **layout})
    except Exception as e:
        return server_error('Loading room layout', e)


@room_allocation_bp.route('/availability/<int:floor>/<block>', methods=['GET'])
@token_required
def availability(floor, block):
    """Free beds per room on one floor of a block"""
    try:
        block = block.strip().upper()
        if floor not in current_app.config['HALL_FLOORS']:
            return error_response(f'Unknown floor {floor}')
        if block not in current_app.config['HALL_BLOCKS']:
            return error_response(f'Unknown block {block}')

        rooms = get_manager('room_manager').get_room_availability(floor, block)
        return jsonify({'success': True, 'floor': floor, 'block': block, 'rooms': rooms})
    except Exception as e:
        return server_error('Loading room availability', e)


@room_allocation_bp.route('/bed-status/<block>/<room_no>', methods=['GET'])
@token_required
def bed_status(block, room_no):
    """Occupied or free state of every bed in a room"""
    try:
        status = get_manager('room_manager').get_bed_status(*_room_key(block, room_no))
        if not status:
            return error_response(f'Room {room_no}/{block} not found', 404)
        return jsonify({'success': True, **status})
    except Exception as e:
        return server_error('Loading bed status', e)


@room_allocation_bp.route('/student-status', methods=['GET'])
@student_required
def student_status():
    """The logged-in student's allotment state"""
    try:
        status = get_manager('allotment_manager').get_student_status(current_user_id())
        if status is None:
            return error_response('Student not found', 404)
        return jsonify({'success': True, **status})
    except Exception as e:
        return server_error('Loading allocation status', e)


@room_allocation_bp.route('/apply', methods=['POST'])
@student_required
def apply():
    """Request a specific bed"""
    try:
        data = json_body()
        result = get_manager('allotment_manager').apply_for_room(
            current_user_id(), data.get('block'), data.get('room_no'), data.get('bed_no'),
            data.get('student_notes') or data.get('notes') or ''
        )
        return respond(result, 201)
    except Exception as e:
        return server_error('Submitting room application', e)


@room_allocation_bp.route('/edit-request/<int:request_id>', methods=['POST'])
@student_required
def edit_request(request_id):
    """Change the target of the student's pending request"""
    try:
        data = json_body()
        result = get_manager('allotment_manager').edit_request(
            request_id, current_user_id(), data.get('block'), data.get('room_no'), data.get('bed_no'),
            data.get('student_notes', data.get('notes'))
        )
        return respond(result)
    except Exception as e:
        return server_error('Updating room request', e)


@room_allocation_bp.route('/change', methods=['POST'])
@student_required
def request_change():
    """Request a move to another bed"""
    try:
        data = json_body()
        result = get_manager('allotment_manager').request_room_change(
            current_user_id(), data.get('block'), data.get('room_no'), data.get('bed_no'),
            data.get('student_notes') or data.get('notes') or ''
        )
        return respond(result, 201)
    except Exception as e:
        return server_error('Submitting room change request', e)


@room_allocation_bp.route('/deallocate', methods=['DELETE'])
@student_required
def deallocate():
    """Give up the logged-in student's bed"""
    try:
        result = get_manager('allotment_manager').deallocate(
            current_user_id(), note='Room deallocated by student'
        )
        return respond(result)
    except Exception as e:
        return server_error('Deallocating room', e)


@room_allocation_bp.route('/admin/bulk-deallocate', methods=['POST'])
@admin_required
def bulk_deallocate():
    try:
        student_ids = json_body().get('student_ids') or []
        if not isinstance(student_ids, list):
            return error_response('student_ids must be a list')
        return respond(get_manager('allotment_manager').bulk_deallocate(student_ids))
    except Exception as e:
        return server_error('Deallocating rooms', e)


@room_allocation_bp.route('/update-capacity/<block>/<room_no>', methods=['POST'])
@admin_required
def update_capacity(block, room_no):
    """Change the number of beds in a room"""
    try:
        capacity = json_body().get('capacity')
        try:
            capacity = int(capacity)
        except (TypeError, ValueError):
            return error_response('capacity must be a number')
        return respond(get_manager('room_manager').update_capacity(*_room_key(block, room_no), capacity))
    except Exception as e:
        return server_error('Updating room capacity', e)


@room_allocation_bp.route('/admin/requests', methods=['GET'])
@admin_required
def admin_requests():
    """Every allotment record with its student"""
    try:
        return jsonify({'success': True, 'requests': get_manager('allotment_manager').get_all_requests()})
    except Exception as e:
        return server_error('Loading room requests', e)


@room_allocation_bp.route('/allocate-by-admin/<int:request_id>', methods=['POST'])
@admin_required
def allocate_by_admin(request_id):
    """Place a request's student into a chosen bed"""
    try:
        data = json_body()
        result = get_manager('allotment_manager').admin_allocate(
            request_id, data.get('block'), data.get('room_no'), data.get('bed_no'),
            data.get('admin_notes') or '', current_user_id()
        )
        return respond(result)
    except Exception as e:
        return server_error('Allocating room', e)


@room_allocation_bp.route('/admin-action/<int:request_id>', methods=['POST'])
@admin_required
def admin_action(request_id):
    """Approve or reject a pending request"""
    try:
        data = json_body()
        result = get_manager('allotment_manager').admin_action(
            request_id, (data.get('action') or '').lower(), data.get('admin_notes') or '',
            current_user_id()
        )
        return respond(result)
    except Exception as e:
        return server_error('Processing room request', e)
