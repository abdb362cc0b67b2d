"""
Notification log API for LoyalLink.

Lets a business see what was delivered and what is waiting in the
dead-letter queue for the next retry run.
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.business_auth import require_business
from ..services.notification_service import NotificationService
from ..utils.validation import coerce_int

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('/notifications', methods=['GET'])
@require_business
def list_notifications():
    """
    List the business's notification deliveries, newest first.

    Query params:
        status: sent or failed (failed lists the dead letters)
        limit: Max rows (default 50, at most 200)
    """
    limit = coerce_int(request.args.get('limit'), 'limit', minimum=1) or 50
    logs = NotificationService(business_id=g.business_id).list_logs(
        status=request.args.get('status') or None,
        limit=min(limit, 200)
    )

    return jsonify({
        'success': True,
        'notifications': [log.to_dict() for log in logs],
        'count': len(logs)
    })
