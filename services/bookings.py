"""
Booking ledger.

State machine::

    pending -> approved | rejected | cancelled
    approved -> cancelled

``rejected`` and ``cancelled`` are terminal. Every mutation takes an
ownership predicate and runs under the lock of each slot it touches;
anything that frees a seat hands the slot to the capacity coordinator
once its own transaction has committed and the lock is released. Mail
is never sent with a slot lock held.
"""
import logging
from datetime import datetime, timedelta

from flask import current_app

from models import db
from models.booking import (
    ACTIVE_STATUSES,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    Booking,
)
from models.slot import Slot
from models.waitlist import (
    STATUS_BOOKED as WAITLIST_BOOKED,
    STATUS_CANCELLED as WAITLIST_CANCELLED,
    STATUS_EXPIRED as WAITLIST_EXPIRED,
    STATUS_NOTIFIED as WAITLIST_NOTIFIED,
    STATUS_WAITING as WAITLIST_WAITING,
    WaitlistEntry,
)
from security.ownership import is_booking_faculty, is_booking_party, is_booking_student
from services import capacity, notifications
from services.errors import (
    AuthorizationError,
    CapacityExceededError,
    DuplicateBookingError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from utils.slot_lock import slot_lock, slot_locks

logger = logging.getLogger(__name__)

RESCHEDULE_REASON = "Rescheduled to a different slot"

WAITLIST_REFUSALS = {
    WAITLIST_WAITING: "You are already on the waitlist for this slot",
    WAITLIST_NOTIFIED: "A seat on this slot is already offered to you, accept the waitlist offer instead",
    WAITLIST_BOOKED: "You already took a seat on this slot from the waitlist",
    WAITLIST_EXPIRED: "Your waitlist offer for this slot has expired",
}


def get_booking(booking_id) -> Booking:
    booking = db.session.get(Booking, booking_id, populate_existing=True)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def active_booking_for(slot_id, student_id):
    return (
        Booking.query
        .filter(
            Booking.slot_id == slot_id,
            Booking.student_id == student_id,
            Booking.status.in_(ACTIVE_STATUSES),
        )
        .first()
    )


def _open_slot(slot_id, missing="Slot not found"):
    slot = capacity.load_slot_for_update(slot_id)
    if slot is None:
        raise NotFoundError(missing)
    if slot.is_cancelled:
        raise InvalidStateError("Slot is cancelled")
    return slot


def request_booking(slot_id, student_id) -> Booking:
    with slot_lock(slot_id):
        try:
            slot = _open_slot(slot_id)
            if not capacity.has_capacity(slot):
                raise CapacityExceededError(slot_id)

            if active_booking_for(slot_id, student_id) is not None:
                raise DuplicateBookingError("You have already booked this slot")
            on_waitlist = (
                WaitlistEntry.query
                .filter(
                    WaitlistEntry.slot_id == slot_id,
                    WaitlistEntry.student_id == student_id,
                    WaitlistEntry.status != WAITLIST_CANCELLED,
                )
                .first()
            )
            if on_waitlist is not None:
                raise DuplicateBookingError(
                    WAITLIST_REFUSALS.get(on_waitlist.status, WAITLIST_REFUSALS[WAITLIST_WAITING])
                )

            booking = Booking(
                slot_id=slot_id,
                faculty_id=slot.faculty_id,
                student_id=student_id,
                status=STATUS_PENDING,
                booked_at=datetime.utcnow(),
            )
            db.session.add(booking)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("booking_requested id=%s slot_id=%s student_id=%s", booking.id, slot_id, student_id)
    notifications.notify_booking_request(booking, slot)
    return booking


def _decide(booking_id, faculty_id, authorize, new_status):
    slot_id = get_booking(booking_id).slot_id

    with slot_lock(slot_id):
        try:
            booking = get_booking(booking_id)
            if not authorize(faculty_id, booking):
                raise AuthorizationError("Only the owning faculty can decide this booking")
            if booking.status != STATUS_PENDING:
                raise InvalidStateError(f"Booking is already {booking.status}")
            slot = capacity.load_slot_for_update(slot_id)
            if new_status == STATUS_APPROVED and slot is not None and slot.is_cancelled:
                raise InvalidStateError("Slot is cancelled")

            now = datetime.utcnow()
            booking.status = new_status
            if new_status == STATUS_APPROVED:
                booking.approved_at = now
            else:
                booking.rejected_at = now
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("booking_%s id=%s slot_id=%s faculty_id=%s", new_status, booking_id, slot_id, faculty_id)
    return booking, slot


def approve(booking_id, faculty_id, authorize=is_booking_faculty) -> Booking:
    booking, slot = _decide(booking_id, faculty_id, authorize, STATUS_APPROVED)
    notifications.notify_booking_approved(booking, slot)
    return booking


def reject(booking_id, faculty_id, reason=None, authorize=is_booking_faculty) -> Booking:
    booking, _ = _decide(booking_id, faculty_id, authorize, STATUS_REJECTED)
    notifications.notify_booking_rejected(booking, reason or "Rejected by faculty")
    capacity.on_seat_freed(booking.slot_id)
    return booking


def cancel(booking_id, actor_id, reason=None, authorize=is_booking_party) -> Booking:
    slot_id = get_booking(booking_id).slot_id

    with slot_lock(slot_id):
        try:
            booking = get_booking(booking_id)
            if not authorize(actor_id, booking):
                raise AuthorizationError("Only the student or the owning faculty can cancel this booking")
            if not booking.is_active:
                raise InvalidStateError(f"Booking is already {booking.status}")

            if not reason:
                reason = "Cancelled by student" if actor_id == booking.student_id else "Cancelled by faculty"
            booking.mark_cancelled(reason)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("booking_cancelled id=%s slot_id=%s actor_id=%s", booking_id, slot_id, actor_id)
    notifications.notify_booking_cancelled(booking, reason)
    capacity.on_seat_freed(slot_id)
    return booking


def reschedule(old_booking_id, new_slot_id, student_id, authorize=is_booking_student):
    """
    Move a student's booking to another slot as one unit: a new pending
    booking pointing back at the old one, and the old one cancelled with a
    forward pointer. Returns ``(old_booking, new_booking)``.
    """
    old_slot_id = get_booking(old_booking_id).slot_id
    if old_slot_id == new_slot_id:
        raise ValidationError("New slot must differ from the current slot")

    with slot_locks(old_slot_id, new_slot_id):
        try:
            old = get_booking(old_booking_id)
            if not authorize(student_id, old):
                raise AuthorizationError("Unauthorized")
            if not old.is_active:
                raise InvalidStateError(f"Booking is already {old.status}")

            new_slot = _open_slot(new_slot_id, missing="New slot not found")
            if not capacity.has_capacity(new_slot):
                raise CapacityExceededError(new_slot_id)
            if active_booking_for(new_slot_id, old.student_id) is not None:
                raise DuplicateBookingError("You already have a booking on the new slot")

            now = datetime.utcnow()
            new = Booking(
                slot_id=new_slot_id,
                faculty_id=new_slot.faculty_id,
                student_id=old.student_id,
                status=STATUS_PENDING,
                booked_at=now,
                original_booking_id=old.id,
            )
            db.session.add(new)
            db.session.flush()

            old.mark_cancelled(RESCHEDULE_REASON, now)
            old.rescheduled_to = new.id
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("booking_rescheduled old_id=%s new_id=%s from_slot=%s to_slot=%s",
                old.id, new.id, old_slot_id, new_slot_id)
    notifications.notify_booking_request(new, new_slot)
    capacity.on_seat_freed(old_slot_id)
    return old, new


def bookings_for_student(student_id):
    return (
        Booking.query
        .filter_by(student_id=student_id)
        .order_by(Booking.booked_at.desc(), Booking.id.desc())
        .all()
    )


def bookings_for_faculty(faculty_id):
    return (
        Booking.query
        .filter_by(faculty_id=faculty_id)
        .order_by(Booking.booked_at.desc(), Booking.id.desc())
        .all()
    )


def send_meeting_reminders(now=None) -> int:
    """Remind students of approved meetings starting within the lead window, once each."""
    now = now or datetime.utcnow()
    lead = timedelta(hours=current_app.config.get("REMINDER_LEAD_HOURS", 24))
    due = (
        db.session.query(Booking, Slot)
        .join(Slot, Booking.slot_id == Slot.id)
        .filter(
            Booking.status == STATUS_APPROVED,
            Booking.reminder_sent_at.is_(None),
            Slot.is_cancelled.is_(False),
            Slot.start_time > now,
            Slot.start_time <= now + lead,
        )
        .all()
    )
    for booking, slot in due:
        booking.reminder_sent_at = now
    db.session.commit()

    for booking, slot in due:
        notifications.notify_meeting_reminder(booking, slot)
    logger.info("meeting_reminders_sent count=%s", len(due))
    return len(due)
