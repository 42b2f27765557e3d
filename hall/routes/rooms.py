"""
Room inventory routes.
"""

from flask import Blueprint, jsonify

from hall.routes import get_manager, json_body, respond, error_response, server_error
from hall.security import token_required, admin_required

rooms_bp = Blueprint('rooms', __name__)


@rooms_bp.route('', methods=['GET'])
@token_required
def list_rooms():
    """All rooms with free bed counts"""
    try:
        return jsonify({'success': True, 'rooms': get_manager('room_manager').get_all_rooms()})
    except Exception as e:
        return server_error('Loading rooms', e)


@rooms_bp.route('/available', methods=['GET'])
@token_required
def available_rooms():
    """Rooms with at least one free bed"""
    try:
        return jsonify({'success': True, 'rooms': get_manager('room_manager').get_available_rooms()})
    except Exception as e:
        return server_error('Loading available rooms', e)


@rooms_bp.route('/<int:room_id>', methods=['GET'])
@token_required
def get_room(room_id):
    """A room with its occupants"""
    try:
        room = get_manager('room_manager').get_room_by_id(room_id)
        if not room:
            return error_response('Room not found', 404)
        return jsonify({'success': True, 'room': room})
    except Exception as e:
        return server_error('Loading room', e)


@rooms_bp.route('', methods=['POST'])
@admin_required
def create_room():
    try:
        return respond(get_manager('room_manager').create_room(json_body()), 201)
    except Exception as e:
        return server_error('Creating room', e)


@rooms_bp.route('/<int:room_id>', methods=['PUT'])
@admin_required
def update_room(room_id):
    try:
        return respond(get_manager('room_manager').update_room(room_id, json_body()))
    except Exception as e:
        return server_error('Updating room', e)


@rooms_bp.route('/<int:room_id>', methods=['DELETE'])
@admin_required
def delete_room(room_id):
    try:
        return respond(get_manager('room_manager').delete_room(room_id))
    except Exception as e:
        return server_error('Deleting room', e)


@rooms_bp.route('/<int:room_id>/occupancy', methods=['PUT'])
@admin_required
def adjust_occupancy(room_id):
    """Shift a room's occupancy counter by a signed change"""
    try:
        change = json_body().get('change')
        if change is None:
            return error_response('change is required')
        return respond(get_manager('room_manager').adjust_occupancy(room_id, change))
    except Exception as e:
        return server_error('Updating room occupancy', e)
