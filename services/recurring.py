"""
Recurring series generator.

A series is expanded eagerly when it is created: one approved booking per
occurrence from the origin slot's date up to ``end_date``. Occurrences come
from a lazy iterator so the expansion can be bounded (and resumed from any
cursor date); the whole expansion commits as a single transaction.
"""
import calendar
import logging
from datetime import date, datetime, timedelta

from flask import current_app

from models import db
from models.booking import ACTIVE_STATUSES, STATUS_APPROVED, Booking
from models.recurring import (
    RECURRENCE_BIWEEKLY,
    RECURRENCE_MONTHLY,
    RECURRENCE_TYPES,
    RECURRENCE_WEEKLY,
    RecurringAppointment,
)
from models.slot import Slot
from models.waitlist import STATUS_CANCELLED as WAITLIST_CANCELLED, WaitlistEntry
from security.ownership import is_series_party
from services import capacity, notifications
from services.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from utils.slot_lock import slot_locks

logger = logging.getLogger(__name__)

RECURRING_SUFFIX = " (Recurring)"
DEFAULT_CANCEL_REASON = "Recurring series cancelled"


def _add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def iter_occurrences(start: date, end: date, recurrence_type: str):
    """
    Yield occurrence dates from ``start`` while they are on or before ``end``.

    Monthly steps are counted from ``start`` so a series anchored on the
    31st lands on the last day of shorter months without drifting.
    """
    if recurrence_type not in RECURRENCE_TYPES:
        raise ValidationError("Invalid recurrence type")
    step = 0
    cursor = start
    while cursor <= end:
        yield cursor
        step += 1
        if recurrence_type == RECURRENCE_WEEKLY:
            cursor = start + timedelta(days=7 * step)
        elif recurrence_type == RECURRENCE_BIWEEKLY:
            cursor = start + timedelta(days=14 * step)
        elif recurrence_type == RECURRENCE_MONTHLY:
            cursor = _add_months(start, step)


def _occurrence_times(origin: Slot, day: date):
    start = datetime.combine(day, origin.start_time.time())
    return start, start + (origin.end_time - origin.start_time)


def _existing_slot(faculty_id, start, end):
    return (
        Slot.query
        .filter_by(faculty_id=faculty_id, start_time=start, end_time=end, is_cancelled=False)
        .order_by(Slot.id.asc())
        .first()
    )


def get_series(series_id) -> RecurringAppointment:
    series = db.session.get(RecurringAppointment, series_id, populate_existing=True)
    if series is None:
        raise NotFoundError("Recurring appointment not found")
    return series


def create_series(origin_slot_id, recurrence_type, end_date, student_id) -> RecurringAppointment:
    if recurrence_type not in RECURRENCE_TYPES:
        raise ValidationError("Invalid recurrence type")
    origin = db.session.get(Slot, origin_slot_id)
    if origin is None:
        raise NotFoundError("Slot not found")
    if origin.is_cancelled:
        raise InvalidStateError("Slot is cancelled")
    first_day = origin.start_time.date()
    if end_date < first_day:
        raise ValidationError("endDate must not be before the slot date")

    limit = current_app.config.get("RECURRING_MAX_OCCURRENCES", 52)
    days = []
    for day in iter_occurrences(first_day, end_date, recurrence_type):
        days.append(day)
        if len(days) > limit:
            raise ValidationError(f"A series may generate at most {limit} appointments")

    planned = [_occurrence_times(origin, day) for day in days]
    existing_ids = [
        slot.id
        for slot in (_existing_slot(origin.faculty_id, start, end) for start, end in planned)
        if slot is not None
    ]
    db.session.rollback()

    with slot_locks(*existing_ids):
        try:
            series = RecurringAppointment(
                slot_id=origin.id,
                student_id=student_id,
                faculty_id=origin.faculty_id,
                recurrence_type=recurrence_type,
                end_date=end_date,
                generated_bookings=[],
            )
            db.session.add(series)
            db.session.flush()

            generated = []
            skipped = 0
            for start, end in planned:
                slot = _existing_slot(origin.faculty_id, start, end)
                if slot is None:
                    slot = Slot(
                        faculty_id=origin.faculty_id,
                        start_time=start,
                        end_time=end,
                        location=origin.location,
                        notes=((origin.notes or "").removesuffix(RECURRING_SUFFIX) + RECURRING_SUFFIX).strip(),
                        capacity=origin.capacity,
                    )
                    db.session.add(slot)
                    db.session.flush()
                elif slot.id not in existing_ids:
                    # appeared after planning; not covered by the held locks
                    raise InvalidStateError("Schedule changed while generating the series, please retry")
                else:
                    already_booked = (
                        Booking.query
                        .filter(
                            Booking.slot_id == slot.id,
                            Booking.student_id == student_id,
                            Booking.status.in_(ACTIVE_STATUSES),
                        )
                        .first()
                    )
                    queued = (
                        WaitlistEntry.query
                        .filter(
                            WaitlistEntry.slot_id == slot.id,
                            WaitlistEntry.student_id == student_id,
                            WaitlistEntry.status != WAITLIST_CANCELLED,
                        )
                        .first()
                    )
                    if already_booked is not None or queued is not None or not capacity.has_capacity(slot):
                        skipped += 1
                        logger.info("recurring_occurrence_skipped series_id=%s slot_id=%s", series.id, slot.id)
                        continue

                now = datetime.utcnow()
                booking = Booking(
                    slot_id=slot.id,
                    faculty_id=origin.faculty_id,
                    student_id=student_id,
                    status=STATUS_APPROVED,
                    booked_at=now,
                    approved_at=now,
                    recurring_appointment_id=series.id,
                )
                db.session.add(booking)
                db.session.flush()
                generated.append(booking.id)

            series.generated_bookings = generated
            series.booking_id = generated[0] if generated else None
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception("recurring_generation_failed origin_slot_id=%s student_id=%s", origin_slot_id, student_id)
            raise

    logger.info("recurring_created id=%s type=%s generated=%s skipped=%s",
                series.id, recurrence_type, len(generated), skipped)
    return series


def cancel_series(series_id, actor_id, reason=None, authorize=is_series_party) -> RecurringAppointment:
    series = get_series(series_id)
    slot_ids = [
        row.slot_id
        for row in Booking.query.filter_by(recurring_appointment_id=series.id).all()
    ]
    db.session.rollback()
    reason = reason or DEFAULT_CANCEL_REASON

    with slot_locks(*slot_ids):
        try:
            series = get_series(series_id)
            if not authorize(actor_id, series):
                raise AuthorizationError("Unauthorized")
            if not series.is_active:
                raise InvalidStateError("Recurring appointment is already cancelled")

            now = datetime.utcnow()
            series.is_active = False
            series.cancelled_at = now
            series.cancel_reason = reason

            cancelled = (
                Booking.query
                .filter(
                    Booking.recurring_appointment_id == series.id,
                    Booking.status.in_(ACTIVE_STATUSES),
                )
                .all()
            )
            for booking in cancelled:
                booking.mark_cancelled(reason, now)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    freed = sorted({b.slot_id for b in cancelled})
    logger.info("recurring_cancelled id=%s bookings=%s", series.id, len(cancelled))
    if cancelled:
        notifications.notify_booking_cancelled(cancelled[0], reason)
    for slot_id in freed:
        capacity.on_seat_freed(slot_id)
    return series


def series_for_student(student_id):
    return (
        RecurringAppointment.query
        .filter_by(student_id=student_id, is_active=True)
        .order_by(RecurringAppointment.created_at.desc())
        .all()
    )


def series_for_faculty(faculty_id):
    return (
        RecurringAppointment.query
        .filter_by(faculty_id=faculty_id, is_active=True)
        .order_by(RecurringAppointment.created_at.desc())
        .all()
    )
