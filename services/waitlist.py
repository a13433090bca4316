"""
Waitlist queue: a per-slot FIFO of students waiting for a seat.

Positions of the {waiting, notified} entries of a slot always form a dense
1..N sequence; this module is the only writer of ``position``. Joining,
accepting and every compaction run under the slot's lock.
"""
import logging
from datetime import datetime, timedelta

from flask import current_app

from models import db
from models.booking import ACTIVE_STATUSES, STATUS_APPROVED, Booking
from models.waitlist import (
    QUEUED_STATUSES,
    STATUS_BOOKED,
    STATUS_CANCELLED,
    STATUS_EXPIRED,
    STATUS_NOTIFIED,
    STATUS_WAITING,
    WaitlistEntry,
)
from security.ownership import owns_waitlist_entry
from services import capacity, notifications
from services.errors import (
    AuthorizationError,
    CapacityExceededError,
    DuplicateBookingError,
    DuplicateEntryError,
    InvalidStateError,
    NotFoundError,
)
from utils.slot_lock import slot_lock

logger = logging.getLogger(__name__)


def _response_window() -> timedelta:
    return timedelta(hours=current_app.config.get("WAITLIST_RESPONSE_HOURS", 24))


def queued_entries(slot_id):
    return (
        WaitlistEntry.query
        .filter(WaitlistEntry.slot_id == slot_id, WaitlistEntry.status.in_(QUEUED_STATUSES))
        .order_by(WaitlistEntry.position.asc(), WaitlistEntry.id.asc())
        .all()
    )


def _active_entry(slot_id, student_id):
    return (
        WaitlistEntry.query
        .filter(
            WaitlistEntry.slot_id == slot_id,
            WaitlistEntry.student_id == student_id,
            WaitlistEntry.status != STATUS_CANCELLED,
        )
        .first()
    )


def _compact_positions(slot_id) -> None:
    # keeps prior relative order; caller holds the slot lock and commits
    db.session.flush()
    for index, entry in enumerate(queued_entries(slot_id), start=1):
        if entry.position != index:
            entry.position = index


def _get_entry(waitlist_id) -> WaitlistEntry:
    entry = db.session.get(WaitlistEntry, waitlist_id, populate_existing=True)
    if entry is None:
        raise NotFoundError("Waitlist entry not found")
    return entry


def join(slot_id, student_id, preferred_timing=None, notes=None) -> WaitlistEntry:
    with slot_lock(slot_id):
        try:
            slot = capacity.load_slot_for_update(slot_id)
            if slot is None:
                raise NotFoundError("Slot not found")
            if slot.is_cancelled:
                raise InvalidStateError("Slot is cancelled")
            if capacity.has_capacity(slot):
                raise InvalidStateError("Slot is not fully booked")

            if _active_entry(slot_id, student_id) is not None:
                raise DuplicateEntryError()
            has_booking = (
                Booking.query
                .filter(
                    Booking.slot_id == slot_id,
                    Booking.student_id == student_id,
                    Booking.status.in_(ACTIVE_STATUSES),
                )
                .first()
            )
            if has_booking is not None:
                raise DuplicateBookingError()

            position = len(queued_entries(slot_id)) + 1
            entry = WaitlistEntry(
                slot_id=slot_id,
                faculty_id=slot.faculty_id,
                student_id=student_id,
                position=position,
                status=STATUS_WAITING,
                preferred_timing=preferred_timing,
                notes=notes,
            )
            db.session.add(entry)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("waitlist_join id=%s slot_id=%s student_id=%s position=%s", entry.id, slot_id, student_id, position)
    return entry


def offer_next_seat(slot):
    """
    Mark the lowest-position waiting entry of ``slot`` as notified.

    Called by the capacity coordinator with the slot lock held, after it has
    checked there is a free seat and no outstanding offer. The coordinator
    sends the offer itself once the lock is released.
    """
    head = (
        WaitlistEntry.query
        .filter_by(slot_id=slot.id, status=STATUS_WAITING)
        .order_by(WaitlistEntry.position.asc(), WaitlistEntry.id.asc())
        .first()
    )
    if head is None:
        db.session.rollback()
        return None

    now = datetime.utcnow()
    head.status = STATUS_NOTIFIED
    head.notification_sent_at = now
    head.response_deadline = now + _response_window()
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("waitlist_offer id=%s slot_id=%s student_id=%s deadline=%s",
                head.id, slot.id, head.student_id, head.response_deadline.isoformat())
    return head


def accept(waitlist_id, student_id, authorize=owns_waitlist_entry) -> Booking:
    entry = _get_entry(waitlist_id)
    slot_id = entry.slot_id

    with slot_lock(slot_id):
        try:
            entry = _get_entry(waitlist_id)
            if not authorize(student_id, entry):
                raise AuthorizationError("Not your waitlist entry")
            if entry.status != STATUS_NOTIFIED:
                raise InvalidStateError("This offer has expired or already processed")

            slot = capacity.load_slot_for_update(slot_id)
            if slot is None:
                raise NotFoundError("Slot not found")
            if slot.is_cancelled:
                raise InvalidStateError("Slot is cancelled")
            if not capacity.has_capacity(slot):
                raise CapacityExceededError(slot_id, "The seat is no longer available")

            now = datetime.utcnow()
            booking = Booking(
                slot_id=slot_id,
                faculty_id=entry.faculty_id,
                student_id=entry.student_id,
                status=STATUS_APPROVED,
                booked_at=now,
                approved_at=now,
            )
            db.session.add(booking)
            entry.status = STATUS_BOOKED
            _compact_positions(slot_id)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("waitlist_accept id=%s booking_id=%s slot_id=%s", waitlist_id, booking.id, slot_id)
    notifications.notify_booking_approved(booking, slot)
    # capacity > 1 may still leave a seat for the next in line
    capacity.on_seat_freed(slot_id)
    return booking


def cancel(waitlist_id, student_id, authorize=owns_waitlist_entry) -> WaitlistEntry:
    entry = _get_entry(waitlist_id)
    slot_id = entry.slot_id

    with slot_lock(slot_id):
        try:
            entry = _get_entry(waitlist_id)
            if not authorize(student_id, entry):
                raise AuthorizationError("Not your waitlist entry")
            if entry.status not in QUEUED_STATUSES:
                raise InvalidStateError(f"Waitlist entry is already {entry.status}")

            was_notified = entry.status == STATUS_NOTIFIED
            entry.status = STATUS_CANCELLED
            _compact_positions(slot_id)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    logger.info("waitlist_cancel id=%s slot_id=%s", waitlist_id, slot_id)
    if was_notified:
        # the declined offer goes to the next in line
        capacity.on_seat_freed(slot_id)
    return entry


def expire_overdue_offers(now=None) -> int:
    """
    Expire notified entries past their response deadline and re-offer.

    Safe to run at any cadence: entries already expired are not touched and
    promotion re-checks capacity and outstanding offers per slot.
    """
    now = now or datetime.utcnow()
    overdue_slot_ids = sorted({
        row.slot_id
        for row in WaitlistEntry.query.filter(
            WaitlistEntry.status == STATUS_NOTIFIED,
            WaitlistEntry.response_deadline < now,
        ).all()
    })
    db.session.rollback()

    expired = 0
    for slot_id in overdue_slot_ids:
        with slot_lock(slot_id):
            try:
                rows = (
                    WaitlistEntry.query
                    .filter(
                        WaitlistEntry.slot_id == slot_id,
                        WaitlistEntry.status == STATUS_NOTIFIED,
                        WaitlistEntry.response_deadline < now,
                    )
                    .all()
                )
                for entry in rows:
                    entry.status = STATUS_EXPIRED
                    logger.info("waitlist_expired id=%s slot_id=%s student_id=%s", entry.id, slot_id, entry.student_id)
                _compact_positions(slot_id)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        expired += len(rows)
        capacity.on_seat_freed(slot_id)

    return expired


def entries_for_slot(slot_id):
    return queued_entries(slot_id)


def entries_for_student(student_id):
    return (
        WaitlistEntry.query
        .filter(WaitlistEntry.student_id == student_id, WaitlistEntry.status != STATUS_CANCELLED)
        .order_by(WaitlistEntry.created_at.desc(), WaitlistEntry.id.desc())
        .all()
    )
