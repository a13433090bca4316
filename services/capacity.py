"""
Capacity coordinator: fit/overflow decisions and waitlist promotion.

Holds no state of its own. Callers that act on ``has_capacity`` must be
inside ``slot_lock(slot_id)`` for the answer to stay true.
"""
import logging

from models import db
from models.booking import Booking, INACTIVE_STATUSES
from models.slot import Slot
from models.waitlist import STATUS_NOTIFIED, WaitlistEntry
from services import notifications
from utils.slot_lock import slot_lock

logger = logging.getLogger(__name__)


def active_count(slot_id) -> int:
    return (
        Booking.query
        .filter(Booking.slot_id == slot_id, Booking.status.notin_(INACTIVE_STATUSES))
        .count()
    )


def has_capacity(slot) -> bool:
    return active_count(slot.id) < slot.capacity


def load_slot_for_update(slot_id):
    """Row-locks the slot where the database supports it."""
    return (
        db.session.query(Slot)
        .filter(Slot.id == slot_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def notified_entry(slot_id):
    return WaitlistEntry.query.filter_by(slot_id=slot_id, status=STATUS_NOTIFIED).first()


def on_seat_freed(slot_id):
    """
    Offer a freed seat to the head of the slot's waitlist.

    No-op when the slot is gone or cancelled, still full, or already has an
    outstanding offer. The offer is mailed once the slot lock is released,
    so callers must not hold it either. Returns the entry that was
    notified, if any.
    """
    from services.waitlist import offer_next_seat

    with slot_lock(slot_id):
        slot = load_slot_for_update(slot_id)
        if slot is None or slot.is_cancelled:
            db.session.rollback()
            return None
        if not has_capacity(slot):
            db.session.rollback()
            return None
        if notified_entry(slot_id) is not None:
            db.session.rollback()
            logger.debug("seat_freed_offer_outstanding slot_id=%s", slot_id)
            return None
        offered = offer_next_seat(slot)

    if offered is not None:
        notifications.notify_waitlist_offer(offered, slot)
    return offered
