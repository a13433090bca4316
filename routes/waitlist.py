from flask import Blueprint, request, jsonify, g

from models.user import ROLE_STUDENT
from security.rbac import require_roles
from services import waitlist
from services.errors import ValidationError
from utils.audit import log_event
from utils.auth_context import login_required
from utils.serializers import booking_json, waitlist_json
from utils.textparse import check_text, optional_text

waitlist_bp = Blueprint("waitlist", __name__, url_prefix="/waitlist")


@waitlist_bp.post("/join")
@require_roles(ROLE_STUDENT)
def join_waitlist():
    data = request.get_json(silent=True) or {}
    slot_id = data.get("slotId")
    if slot_id in (None, "") or isinstance(slot_id, bool):
        raise ValidationError("Slot ID is required")
    try:
        slot_id = int(slot_id)
    except (TypeError, ValueError):
        raise ValidationError("Slot ID must be an integer")

    entry = waitlist.join(
        slot_id,
        g.user.id,
        preferred_timing=optional_text(data.get("preferredTiming"), "preferredTiming"),
        notes=check_text(data.get("notes"), "notes"),
    )
    log_event("WAITLIST_JOIN", user_id=g.user.id, entity="waitlist", entity_id=entry.id, metadata={"slot_id": slot_id})
    return jsonify(
        message="Added to waitlist successfully",
        waitlist=waitlist_json(entry),
        position=entry.position,
    ), 201


@waitlist_bp.get("/slot/<int:slot_id>")
@login_required
def slot_waitlist(slot_id: int):
    return jsonify([waitlist_json(w) for w in waitlist.entries_for_slot(slot_id)]), 200


@waitlist_bp.get("/me")
@require_roles(ROLE_STUDENT)
def my_waitlist():
    return jsonify([waitlist_json(w) for w in waitlist.entries_for_student(g.user.id)]), 200


@waitlist_bp.post("/<int:waitlist_id>/accept")
@require_roles(ROLE_STUDENT)
def accept_offer(waitlist_id: int):
    booking = waitlist.accept(waitlist_id, g.user.id)
    log_event("WAITLIST_ACCEPT", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata={"waitlist_id": waitlist_id})
    return jsonify(message="Booking confirmed from waitlist", booking=booking_json(booking)), 200


@waitlist_bp.post("/<int:waitlist_id>/cancel")
@require_roles(ROLE_STUDENT)
def cancel_entry(waitlist_id: int):
    waitlist.cancel(waitlist_id, g.user.id)
    log_event("WAITLIST_CANCEL", user_id=g.user.id, entity="waitlist", entity_id=waitlist_id)
    return jsonify(message="Removed from waitlist"), 200
