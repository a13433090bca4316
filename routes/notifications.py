from flask import Blueprint, jsonify, g

from services import notifications
from utils.auth_context import login_required
from utils.serializers import notification_json

notifications_bp = Blueprint("notifications", __name__, url_prefix="/notifications")


@notifications_bp.get("")
@login_required
def list_notifications():
    rows, unread = notifications.list_inbox(g.user.id)
    return jsonify(notifications=[notification_json(n) for n in rows], unreadCount=unread), 200


@notifications_bp.put("/<int:notification_id>/read")
@login_required
def mark_read(notification_id: int):
    row = notifications.mark_read(notification_id, g.user.id)
    return jsonify(notification_json(row)), 200


@notifications_bp.post("/mark-all-read")
@login_required
def mark_all_read():
    count = notifications.mark_all_read(g.user.id)
    return jsonify(message="All notifications marked as read", count=count), 200


@notifications_bp.delete("/<int:notification_id>")
@login_required
def delete_notification(notification_id: int):
    notifications.delete_notification(notification_id, g.user.id)
    return jsonify(message="Notification deleted"), 200
