"""
Notification sink.

``notify`` is fire-and-forget: it persists an inbox row, tries to e-mail the
user, and never raises. Callers invoke it only after their own transaction
has committed, so a failure here can never undo a booking mutation.
"""
import logging
from datetime import datetime, timedelta

from flask import current_app

from models import db
from models.notification import (
    EVENT_BOOKING_APPROVED,
    EVENT_BOOKING_CANCELLED,
    EVENT_BOOKING_REJECTED,
    EVENT_BOOKING_REQUEST,
    EVENT_MEETING_REMINDER,
    EVENT_STATUS_CHANGE,
    EVENT_TYPES,
    Notification,
)
from models.user import User
from services.errors import NotFoundError
from utils.emailer import send_email

logger = logging.getLogger(__name__)

INBOX_LIMIT = 50


def notify(user_id, event_type, title, message, booking_id=None, slot_id=None):
    if event_type not in EVENT_TYPES:
        logger.warning("notify_unknown_event type=%s user_id=%s", event_type, user_id)
        return None
    try:
        row = Notification(
            user_id=user_id,
            type=event_type,
            title=title,
            message=message,
            related_booking_id=booking_id,
            related_slot_id=slot_id,
        )
        db.session.add(row)
        db.session.commit()
        logger.info("notification_created user_id=%s type=%s id=%s", user_id, event_type, row.id)
    except Exception:
        db.session.rollback()
        logger.exception("notification_create_failed user_id=%s type=%s", user_id, event_type)
        return None

    _send_email_copy(row)
    return row


def _send_email_copy(row):
    try:
        user = db.session.get(User, row.user_id)
        if user is None:
            return
        sent, error = send_email(user.email, row.title, row.message)
        if sent:
            row.email_sent = True
            db.session.commit()
        elif error:
            logger.debug("notification_email_skipped id=%s: %s", row.id, error)
    except Exception:
        db.session.rollback()
        logger.exception("notification_email_failed id=%s", row.id)


def _name(user_id) -> str:
    user = db.session.get(User, user_id)
    return user.name if user else "Someone"


def _when(slot) -> str:
    return slot.start_time.strftime("%Y-%m-%d %H:%M") if slot else "the scheduled time"


def notify_booking_request(booking, slot):
    notify(
        booking.faculty_id,
        EVENT_BOOKING_REQUEST,
        "New Booking Request",
        f"{_name(booking.student_id)} has requested to book a slot at {_when(slot)}",
        booking_id=booking.id,
        slot_id=booking.slot_id,
    )


def notify_booking_approved(booking, slot):
    notify(
        booking.student_id,
        EVENT_BOOKING_APPROVED,
        "Booking Approved",
        f"Your booking with {_name(booking.faculty_id)} at {_when(slot)} has been approved!",
        booking_id=booking.id,
        slot_id=booking.slot_id,
    )


def notify_booking_rejected(booking, reason=None):
    faculty_name = _name(booking.faculty_id)
    message = (
        f"Your booking with {faculty_name} has been rejected. Reason: {reason}"
        if reason
        else f"Your booking with {faculty_name} has been rejected."
    )
    notify(
        booking.student_id,
        EVENT_BOOKING_REJECTED,
        "Booking Rejected",
        message,
        booking_id=booking.id,
        slot_id=booking.slot_id,
    )


def notify_booking_cancelled(booking, reason=None):
    suffix = f" Reason: {reason}" if reason else ""
    notify(
        booking.student_id,
        EVENT_BOOKING_CANCELLED,
        "Booking Cancelled",
        f"Your booking with {_name(booking.faculty_id)} has been cancelled.{suffix}",
        booking_id=booking.id,
        slot_id=booking.slot_id,
    )
    notify(
        booking.faculty_id,
        EVENT_BOOKING_CANCELLED,
        "Booking Cancelled",
        f"{_name(booking.student_id)}'s booking has been cancelled.{suffix}",
        booking_id=booking.id,
        slot_id=booking.slot_id,
    )


def notify_waitlist_offer(entry, slot):
    notify(
        entry.student_id,
        EVENT_STATUS_CHANGE,
        "A Seat Opened Up",
        f"A seat is available for the slot at {_when(slot)}. "
        f"Accept before {entry.response_deadline:%Y-%m-%d %H:%M} UTC to book it.",
        slot_id=entry.slot_id,
    )


def notify_slot_cancelled(student_id, slot):
    notify(
        student_id,
        EVENT_STATUS_CHANGE,
        "Slot Cancelled",
        f"{_name(slot.faculty_id)} cancelled the slot at {_when(slot)}.",
        slot_id=slot.id,
    )


def notify_meeting_reminder(booking, slot):
    notify(
        booking.student_id,
        EVENT_MEETING_REMINDER,
        "Meeting Reminder",
        f"Your meeting with {_name(booking.faculty_id)} is scheduled for {_when(slot)} at {slot.location}",
        booking_id=booking.id,
        slot_id=slot.id,
    )


# ---------- inbox ----------

def list_inbox(user_id):
    rows = (
        Notification.query
        .filter_by(user_id=user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(INBOX_LIMIT)
        .all()
    )
    unread = Notification.query.filter_by(user_id=user_id, is_read=False).count()
    return rows, unread


def _owned(notification_id, user_id) -> Notification:
    row = db.session.get(Notification, notification_id)
    # other users' notifications are indistinguishable from missing ones
    if row is None or row.user_id != user_id:
        raise NotFoundError("Notification not found")
    return row


def mark_read(notification_id, user_id) -> Notification:
    row = _owned(notification_id, user_id)
    row.is_read = True
    db.session.commit()
    return row


def mark_all_read(user_id) -> int:
    count = (
        Notification.query
        .filter_by(user_id=user_id, is_read=False)
        .update({"is_read": True}, synchronize_session=False)
    )
    db.session.commit()
    return count


def delete_notification(notification_id, user_id) -> None:
    row = _owned(notification_id, user_id)
    db.session.delete(row)
    db.session.commit()


def cleanup_old_notifications(now=None) -> int:
    now = now or datetime.utcnow()
    days = current_app.config.get("NOTIFICATION_RETENTION_DAYS", 30)
    cutoff = now - timedelta(days=days)
    count = (
        Notification.query
        .filter(Notification.created_at < cutoff, Notification.is_read.is_(True))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    logger.info("notifications_cleaned count=%s cutoff=%s", count, cutoff.isoformat())
    return count
