from flask import Blueprint, request, jsonify, g

from models.slot import Slot
from models.user import User, ROLE_STUDENT
from security.rbac import require_roles
from services import bookings, directory, recurring, slots
from services.errors import ValidationError
from utils.audit import log_event
from utils.serializers import booking_json, series_json, slot_json, user_public
from utils.textparse import optional_text
from utils.timeparse import parse_date

student_bp = Blueprint("student", __name__, url_prefix="/student")


def _slot_id(value, field="slotId") -> int:
    if value in (None, "") or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


# ---------- browse ----------
@student_bp.get("/faculty")
@require_roles(ROLE_STUDENT)
def list_faculty():
    rows = directory.search_faculty(
        search=(request.args.get("search") or "").strip() or None,
        department=(request.args.get("department") or "").strip() or None,
    )
    return jsonify([user_public(u) for u in rows]), 200


@student_bp.get("/faculty/<int:faculty_id>/slots")
@require_roles(ROLE_STUDENT)
def faculty_slots(faculty_id: int):
    rows = slots.upcoming_slots(faculty_id)
    counts = directory.slot_availability(rows, student_id=g.user.id)
    return jsonify([slot_json(s, counts.get(s.id)) for s in rows]), 200


# ---------- book ----------
@student_bp.post("/book-slot")
@require_roles(ROLE_STUDENT)
def book_slot():
    data = request.get_json(silent=True) or {}
    slot_id = _slot_id(data.get("slotId"))
    with_recurring = data.get("withRecurring")

    if with_recurring:
        if not isinstance(with_recurring, dict):
            raise ValidationError("withRecurring must be an object with recurrenceType and endDate")
        series = recurring.create_series(
            slot_id,
            with_recurring.get("recurrenceType"),
            parse_date(with_recurring.get("endDate"), "endDate"),
            g.user.id,
        )
        log_event("RECURRING_CREATE", user_id=g.user.id, entity="recurring", entity_id=series.id)
        return jsonify(
            message="Recurring appointment created",
            recurringAppointment=series_json(series),
            generatedBookings=len(series.generated_bookings),
        ), 201

    booking = bookings.request_booking(slot_id, g.user.id)
    log_event("BOOKING_REQUEST", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata={"slot_id": slot_id})
    return jsonify(message="Slot booked successfully", booking=booking_json(booking)), 201


@student_bp.get("/bookings")
@require_roles(ROLE_STUDENT)
def my_bookings():
    status = request.args.get("status")
    rows = bookings.bookings_for_student(g.user.id)
    if status:
        rows = [b for b in rows if b.status == status]

    faculty_ids = {b.faculty_id for b in rows}
    slot_ids = {b.slot_id for b in rows}
    faculty = {u.id: u for u in User.query.filter(User.id.in_(faculty_ids)).all()} if faculty_ids else {}
    slot_map = {s.id: s for s in Slot.query.filter(Slot.id.in_(slot_ids)).all()} if slot_ids else {}

    out = []
    for b in rows:
        item = booking_json(b)
        item["faculty"] = user_public(faculty.get(b.faculty_id))
        s = slot_map.get(b.slot_id)
        item["slot"] = slot_json(s) if s else None
        out.append(item)
    return jsonify(out), 200


@student_bp.put("/bookings/<int:booking_id>/cancel")
@require_roles(ROLE_STUDENT)
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = optional_text(data.get("reason"), "reason")

    booking = bookings.cancel(booking_id, g.user.id, reason=reason)
    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking_id, metadata={"reason": reason})
    return jsonify(message="Booking cancelled successfully", booking=booking_json(booking)), 200


@student_bp.post("/reschedule-booking/<int:booking_id>")
@require_roles(ROLE_STUDENT)
def reschedule_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    new_slot_id = _slot_id(data.get("newSlotId"), "newSlotId")

    old, new = bookings.reschedule(booking_id, new_slot_id, g.user.id)
    log_event(
        "BOOKING_RESCHEDULE",
        user_id=g.user.id,
        entity="booking",
        entity_id=new.id,
        metadata={"from_booking": old.id, "to_slot": new_slot_id},
    )
    return jsonify(
        message="Booking rescheduled successfully",
        oldBooking=booking_json(old),
        newBooking=booking_json(new),
    ), 200
