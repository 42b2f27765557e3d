"""
Admin dashboard routes.
"""

from flask import Blueprint, jsonify, request

from hall.routes import get_manager, server_error
from hall.security import admin_required

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/stats', methods=['GET'])
@admin_required
def stats():
    try:
        return jsonify({'success': True, **get_manager('dashboard_manager').get_stats()})
    except Exception as e:
        return server_error('Fetching dashboard statistics', e)


@dashboard_bp.route('/recent-activities', methods=['GET'])
@admin_required
def recent_activities():
    try:
        limit = max(request.args.get('limit', 4, type=int), 1)
        activities = get_manager('dashboard_manager').get_recent_activities(limit)
        return jsonify({'success': True, 'activities': activities})
    except Exception as e:
        return server_error('Fetching recent activities', e)


@dashboard_bp.route('/monthly-overview', methods=['GET'])
@admin_required
def monthly_overview():
    try:
        months = min(max(request.args.get('months', 6, type=int), 1), 24)
        overview = get_manager('dashboard_manager').get_monthly_overview(months)
        return jsonify({'success': True, 'months': overview})
    except Exception as e:
        return server_error('Fetching monthly overview', e)


@dashboard_bp.route('/sidebar-counts', methods=['GET'])
@admin_required
def sidebar_counts():
    try:
        return jsonify({'success': True, **get_manager('dashboard_manager').get_sidebar_counts()})
    except Exception as e:
        return server_error('Fetching sidebar counts', e)
