"""
Gallery routes: public approved gallery, student submissions and admin review.
"""

from flask import Blueprint, jsonify

from hall.routes import get_manager, json_body, respond, server_error
from hall.security import student_required, admin_required, current_user_id, current_user_pk

gallery_bp = Blueprint('gallery', __name__)


@gallery_bp.route('/approved', methods=['GET'])
def approved_gallery():
    """Approved gallery entries; no login required"""
    try:
        return jsonify({'success': True, 'galleries': get_manager('gallery_manager').get_approved()})
    except Exception as e:
        return server_error('Loading gallery', e)


@gallery_bp.route('', methods=['GET'])
@admin_required
def all_requests():
    try:
        return jsonify({'success': True, 'galleries': get_manager('gallery_manager').get_all_requests()})
    except Exception as e:
        return server_error('Loading gallery requests', e)


@gallery_bp.route('', methods=['POST'])
@student_required
def submit():
    try:
        data = json_body()
        result = get_manager('gallery_manager').create_request(
            current_user_id(), data.get('image_url'), data.get('short_description'),
            data.get('time_of_event')
        )
        return respond(result, 201)
    except Exception as e:
        return server_error('Submitting gallery request', e)


@gallery_bp.route('/my-galleries', methods=['GET'])
@student_required
def my_galleries():
    try:
        galleries = get_manager('gallery_manager').get_student_galleries(current_user_id())
        return jsonify({'success': True, 'galleries': galleries})
    except Exception as e:
        return server_error('Loading gallery requests', e)


@gallery_bp.route('/<int:gallery_id>/approve', methods=['PUT'])
@admin_required
def approve(gallery_id):
    try:
        result = get_manager('gallery_manager').review(
            gallery_id, current_user_pk(), True, json_body().get('admin_response')
        )
        return respond(result)
    except Exception as e:
        return server_error('Approving gallery request', e)


@gallery_bp.route('/<int:gallery_id>/reject', methods=['PUT'])
@admin_required
def reject(gallery_id):
    try:
        result = get_manager('gallery_manager').review(
            gallery_id, current_user_pk(), False, json_body().get('admin_response')
        )
        return respond(result)
    except Exception as e:
        return server_error('Rejecting gallery request', e)


@gallery_bp.route('/<int:gallery_id>', methods=['DELETE'])
@admin_required
def delete(gallery_id):
    try:
        return respond(get_manager('gallery_manager').delete(gallery_id))
    except Exception as e:
        return server_error('Deleting gallery request', e)
