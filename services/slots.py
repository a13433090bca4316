"""
Slot ledger: existence, capacity and the cancellation flag of slots.
"""
import logging
from datetime import datetime, timedelta

from flask import current_app

from models import db
from models.booking import ACTIVE_STATUSES, Booking
from models.slot import Slot
from models.waitlist import WaitlistEntry
from security.ownership import owns_slot
from services import capacity, notifications
from services.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from utils.slot_lock import slot_lock

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("start_time", "end_time", "location", "notes", "capacity")


def _check_capacity(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("capacity must be a positive integer")
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError("capacity must be a positive integer")
    if value < 1:
        raise ValidationError("capacity must be a positive integer")
    return value


def _check_range(start, end) -> None:
    if start >= end:
        raise ValidationError("end_time must be after start_time")


def get_slot(slot_id) -> Slot:
    slot = db.session.get(Slot, slot_id)
    if slot is None:
        raise NotFoundError("Slot not found")
    return slot


def create_slot(faculty_id, start, end, location, notes=None, capacity=1) -> Slot:
    location = (location or "").strip()
    if start is None or end is None or not location:
        raise ValidationError("start_time, end_time and location are required")
    _check_range(start, end)

    slot = Slot(
        faculty_id=faculty_id,
        start_time=start,
        end_time=end,
        location=location,
        notes=notes,
        capacity=_check_capacity(capacity),
    )
    db.session.add(slot)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("slot_created id=%s faculty_id=%s start=%s", slot.id, faculty_id, slot.start_time.isoformat())
    return slot


def create_bulk_slots(faculty_id, start_date, end_date, start_time, end_time, days_of_week,
                      location, notes=None, capacity=1):
    """
    One slot per calendar day in [start_date, end_date] whose weekday
    (Monday=0 .. Sunday=6) is in ``days_of_week``. Inserted as one batch.
    """
    location = (location or "").strip()
    if not location:
        raise ValidationError("location is required")
    if not days_of_week:
        raise ValidationError("At least one day of week is required")
    days = set()
    for day in days_of_week:
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise ValidationError("days of week must be integers 0 (Monday) to 6 (Sunday)")
        days.add(day)
    if start_date > end_date:
        raise ValidationError("endDate must not be before startDate")
    max_days = current_app.config.get("BULK_SLOT_MAX_DAYS", 366)
    if (end_date - start_date).days + 1 > max_days:
        raise ValidationError(f"Date range may span at most {max_days} days")
    if start_time >= end_time:
        raise ValidationError("endTime must be after startTime")
    seats = _check_capacity(capacity)

    slots = []
    day = start_date
    while day <= end_date:
        if day.weekday() in days:
            slots.append(Slot(
                faculty_id=faculty_id,
                start_time=datetime.combine(day, start_time),
                end_time=datetime.combine(day, end_time),
                location=location,
                notes=notes,
                capacity=seats,
            ))
        day += timedelta(days=1)

    db.session.add_all(slots)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("bulk_slots_created faculty_id=%s count=%s range=%s..%s", faculty_id, len(slots), start_date, end_date)
    return slots


def update_slot(slot_id, requester_id, patch, authorize=owns_slot) -> Slot:
    get_slot(slot_id)
    seat_added = False

    with slot_lock(slot_id):
        try:
            slot = capacity.load_slot_for_update(slot_id)
            if slot is None:
                raise NotFoundError("Slot not found")
            if not authorize(requester_id, slot):
                raise AuthorizationError("Unauthorized")
            if slot.is_cancelled:
                raise InvalidStateError("Cancelled slots cannot be edited")

            changes = {k: v for k, v in (patch or {}).items() if k in UPDATABLE_FIELDS and v is not None}
            start = changes.get("start_time", slot.start_time)
            end = changes.get("end_time", slot.end_time)
            _check_range(start, end)

            if "location" in changes:
                location = (changes["location"] or "").strip()
                if not location:
                    raise ValidationError("location cannot be empty")
                slot.location = location
            if "capacity" in changes:
                seats = _check_capacity(changes["capacity"])
                taken = capacity.active_count(slot.id)
                if seats < taken:
                    raise ValidationError(f"capacity cannot be lower than the {taken} active bookings")
                seat_added = seats > slot.capacity
                slot.capacity = seats
            if "notes" in changes:
                slot.notes = changes["notes"]
            slot.start_time = start
            slot.end_time = end
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("slot_updated id=%s fields=%s", slot_id, sorted(changes))
    if seat_added:
        capacity.on_seat_freed(slot_id)
    return slot


def cancel_slot(slot_id, requester_id, authorize=owns_slot) -> Slot:
    """
    Soft-cancel. Existing bookings keep their status; their students are
    told the slot was cancelled and the waitlist is not promoted.
    """
    get_slot(slot_id)

    with slot_lock(slot_id):
        try:
            slot = capacity.load_slot_for_update(slot_id)
            if slot is None:
                raise NotFoundError("Slot not found")
            if not authorize(requester_id, slot):
                raise AuthorizationError("Unauthorized")
            if slot.is_cancelled:
                raise InvalidStateError("Slot is already cancelled")

            slot.is_cancelled = True
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("slot_cancelled id=%s faculty_id=%s", slot_id, slot.faculty_id)
    affected = (
        Booking.query
        .filter(Booking.slot_id == slot_id, Booking.status.in_(ACTIVE_STATUSES))
        .all()
    )
    for booking in affected:
        notifications.notify_slot_cancelled(booking.student_id, slot)
    return slot


def delete_slot(slot_id, requester_id, authorize=owns_slot) -> None:
    get_slot(slot_id)

    with slot_lock(slot_id):
        try:
            slot = capacity.load_slot_for_update(slot_id)
            if slot is None:
                raise NotFoundError("Slot not found")
            if not authorize(requester_id, slot):
                raise AuthorizationError("Unauthorized")
            if Booking.query.filter_by(slot_id=slot_id).first() is not None:
                raise InvalidStateError("Slots with bookings cannot be deleted; cancel the slot instead")

            WaitlistEntry.query.filter_by(slot_id=slot_id).delete(synchronize_session=False)
            db.session.delete(slot)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("slot_deleted id=%s faculty_id=%s", slot_id, requester_id)


def slots_for_faculty(faculty_id):
    return (
        Slot.query
        .filter_by(faculty_id=faculty_id)
        .order_by(Slot.start_time.desc())
        .all()
    )


def upcoming_slots(faculty_id, now=None):
    now = now or datetime.utcnow()
    return (
        Slot.query
        .filter(Slot.faculty_id == faculty_id, Slot.is_cancelled.is_(False), Slot.end_time > now)
        .order_by(Slot.start_time.asc())
        .all()
    )
