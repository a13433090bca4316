from flask import Blueprint, request, jsonify, g

from models.slot import Slot
from models.user import User, ROLE_FACULTY
from security.rbac import require_roles
from services import bookings, directory, slots
from services.errors import ValidationError
from utils.audit import log_event
from utils.serializers import booking_json, slot_json, user_public
from utils.textparse import check_text, optional_text
from utils.timeparse import parse_date, parse_iso_datetime, parse_time_of_day

faculty_bp = Blueprint("faculty", __name__, url_prefix="/faculty")


def _capacity(data):
    value = data.get("capacity")
    return 1 if value in (None, "") else value


# ---------- slots ----------
@faculty_bp.post("/slots")
@require_roles(ROLE_FACULTY)
def create_slot():
    data = request.get_json(silent=True) or {}
    if not data.get("startTime") or not data.get("endTime") or not data.get("location"):
        raise ValidationError("Missing required fields")

    slot = slots.create_slot(
        g.user.id,
        parse_iso_datetime(data.get("startTime"), "startTime"),
        parse_iso_datetime(data.get("endTime"), "endTime"),
        check_text(data.get("location"), "location"),
        notes=check_text(data.get("notes"), "notes"),
        capacity=_capacity(data),
    )
    log_event("SLOT_CREATE", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(slot_json(slot)), 201


@faculty_bp.get("/slots")
@require_roles(ROLE_FACULTY)
def list_slots():
    rows = slots.slots_for_faculty(g.user.id)
    counts = directory.slot_availability(rows)
    return jsonify([slot_json(s, counts.get(s.id)) for s in rows]), 200


@faculty_bp.post("/bulk-slots")
@require_roles(ROLE_FACULTY)
def create_bulk_slots():
    data = request.get_json(silent=True) or {}
    repeat_days = data.get("repeatDays")
    if not data.get("startDate") or not data.get("endDate") or not data.get("location") or not repeat_days:
        raise ValidationError("Missing required fields")
    if not isinstance(repeat_days, list):
        raise ValidationError("repeatDays must be a list of weekday numbers")

    created = slots.create_bulk_slots(
        g.user.id,
        parse_date(data.get("startDate"), "startDate"),
        parse_date(data.get("endDate"), "endDate"),
        parse_time_of_day(data.get("startTime"), "startTime"),
        parse_time_of_day(data.get("endTime"), "endTime"),
        repeat_days,
        check_text(data.get("location"), "location"),
        notes=check_text(data.get("notes"), "notes"),
        capacity=_capacity(data),
    )
    log_event("SLOT_BULK_CREATE", user_id=g.user.id, entity="slot", metadata={"count": len(created)})
    return jsonify(
        message=f"Created {len(created)} slots",
        count=len(created),
        slots=[slot_json(s) for s in created],
    ), 201


@faculty_bp.put("/slots/<int:slot_id>")
@require_roles(ROLE_FACULTY)
def update_slot(slot_id: int):
    data = request.get_json(silent=True) or {}
    patch = {}
    if data.get("startTime"):
        patch["start_time"] = parse_iso_datetime(data["startTime"], "startTime")
    if data.get("endTime"):
        patch["end_time"] = parse_iso_datetime(data["endTime"], "endTime")
    if data.get("location"):
        patch["location"] = check_text(data["location"], "location")
    if "notes" in data:
        patch["notes"] = check_text(data["notes"], "notes")
    if data.get("capacity") not in (None, ""):
        patch["capacity"] = data["capacity"]

    slot = slots.update_slot(slot_id, g.user.id, patch)
    log_event("SLOT_UPDATE", user_id=g.user.id, entity="slot", entity_id=slot_id, metadata={"fields": sorted(patch)})
    return jsonify(slot_json(slot)), 200


@faculty_bp.post("/slots/<int:slot_id>/cancel")
@require_roles(ROLE_FACULTY)
def cancel_slot(slot_id: int):
    slot = slots.cancel_slot(slot_id, g.user.id)
    log_event("SLOT_CANCEL", user_id=g.user.id, entity="slot", entity_id=slot_id)
    return jsonify(slot_json(slot)), 200


@faculty_bp.delete("/slots/<int:slot_id>")
@require_roles(ROLE_FACULTY)
def delete_slot(slot_id: int):
    slots.delete_slot(slot_id, g.user.id)
    log_event("SLOT_DELETE", user_id=g.user.id, entity="slot", entity_id=slot_id)
    return jsonify(message="Slot deleted"), 200


# ---------- bookings ----------
@faculty_bp.get("/bookings")
@require_roles(ROLE_FACULTY)
def list_bookings():
    rows = bookings.bookings_for_faculty(g.user.id)

    student_ids = {b.student_id for b in rows}
    slot_ids = {b.slot_id for b in rows}
    students = {u.id: u for u in User.query.filter(User.id.in_(student_ids)).all()} if student_ids else {}
    slot_map = {s.id: s for s in Slot.query.filter(Slot.id.in_(slot_ids)).all()} if slot_ids else {}

    out = []
    for b in rows:
        item = booking_json(b)
        item["student"] = user_public(students.get(b.student_id))
        s = slot_map.get(b.slot_id)
        item["slot"] = slot_json(s) if s else None
        out.append(item)
    return jsonify(out), 200


@faculty_bp.put("/bookings/<int:booking_id>/approve")
@require_roles(ROLE_FACULTY)
def approve_booking(booking_id: int):
    booking = bookings.approve(booking_id, g.user.id)
    log_event("BOOKING_APPROVE", user_id=g.user.id, entity="booking", entity_id=booking_id)
    return jsonify(message="Booking approved", booking=booking_json(booking)), 200


@faculty_bp.put("/bookings/<int:booking_id>/reject")
@require_roles(ROLE_FACULTY)
def reject_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = optional_text(data.get("reason"), "reason")

    booking = bookings.reject(booking_id, g.user.id, reason=reason)
    log_event("BOOKING_REJECT", user_id=g.user.id, entity="booking", entity_id=booking_id, metadata={"reason": reason})
    return jsonify(message="Booking rejected", booking=booking_json(booking)), 200


@faculty_bp.put("/bookings/<int:booking_id>/cancel")
@require_roles(ROLE_FACULTY)
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = optional_text(data.get("reason"), "reason")

    booking = bookings.cancel(booking_id, g.user.id, reason=reason)
    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking_id, metadata={"reason": reason})
    return jsonify(message="Booking cancelled", booking=booking_json(booking)), 200


# ---------- public share link ----------
@faculty_bp.post("/generate-share-token")
@require_roles(ROLE_FACULTY)
def generate_share_token():
    token = directory.generate_share_token(g.user.id)
    log_event("SHARE_TOKEN_GENERATE", user_id=g.user.id, entity="user", entity_id=g.user.id)
    return jsonify(token=token), 200
