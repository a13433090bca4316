from flask import Blueprint, request, jsonify, g

from models.user import ROLE_FACULTY, ROLE_STUDENT
from security.rbac import require_roles
from services import recurring
from services.errors import ValidationError
from utils.audit import log_event
from utils.auth_context import current_identity, login_required
from utils.serializers import series_json
from utils.textparse import optional_text
from utils.timeparse import parse_date

recurring_bp = Blueprint("recurring", __name__, url_prefix="/recurring")


@recurring_bp.post("")
@require_roles(ROLE_STUDENT)
def create_recurring():
    data = request.get_json(silent=True) or {}
    slot_id = data.get("slotId")
    if not slot_id or not data.get("recurrenceType") or not data.get("endDate"):
        raise ValidationError("Missing required fields")
    try:
        slot_id = int(slot_id)
    except (TypeError, ValueError):
        raise ValidationError("slotId must be an integer")

    series = recurring.create_series(
        slot_id,
        data.get("recurrenceType"),
        parse_date(data.get("endDate"), "endDate"),
        g.user.id,
    )
    log_event("RECURRING_CREATE", user_id=g.user.id, entity="recurring", entity_id=series.id)
    return jsonify(
        message="Recurring appointment created",
        recurringAppointment=series_json(series),
        generatedBookings=len(series.generated_bookings),
    ), 201


@recurring_bp.get("/me")
@login_required
def my_series():
    user_id, role = current_identity()
    if role == ROLE_FACULTY:
        rows = recurring.series_for_faculty(user_id)
    else:
        rows = recurring.series_for_student(user_id)
    return jsonify([series_json(r) for r in rows]), 200


@recurring_bp.post("/<int:series_id>/cancel")
@login_required
def cancel_recurring(series_id: int):
    data = request.get_json(silent=True) or {}
    reason = optional_text(data.get("reason"), "reason")

    recurring.cancel_series(series_id, g.user.id, reason=reason)
    log_event("RECURRING_CANCEL", user_id=g.user.id, entity="recurring", entity_id=series_id, metadata={"reason": reason})
    return jsonify(message="Recurring appointment cancelled"), 200
