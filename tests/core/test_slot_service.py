from datetime import date, datetime, time, timedelta

import pytest

from models import db
from models.booking import STATUS_PENDING, Booking
from models.notification import EVENT_STATUS_CHANGE, Notification
from models.slot import Slot
from models.waitlist import STATUS_NOTIFIED, STATUS_WAITING
from services import bookings, slots, waitlist
from services.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

MONDAY_10AM = datetime(2030, 1, 7, 10, 0)


def test_create_slot_defaults(faculty, make_slot):
    slot = make_slot()

    assert slot.id is not None
    assert slot.faculty_id == faculty.id
    assert slot.capacity == 1
    assert slot.is_cancelled is False


@pytest.mark.parametrize("capacity", [0, -3, "many", True])
def test_create_slot_rejects_bad_capacity(make_slot, capacity):
    with pytest.raises(ValidationError):
        make_slot(capacity=capacity)


def test_create_slot_rejects_inverted_range(faculty):
    with pytest.raises(ValidationError):
        slots.create_slot(faculty.id, MONDAY_10AM, MONDAY_10AM, "Room 101")
    with pytest.raises(ValidationError):
        slots.create_slot(faculty.id, MONDAY_10AM, MONDAY_10AM - timedelta(hours=1), "Room 101")


def test_create_slot_requires_location(faculty):
    with pytest.raises(ValidationError):
        slots.create_slot(faculty.id, MONDAY_10AM, MONDAY_10AM + timedelta(hours=1), "   ")


def test_bulk_slots_follow_weekdays(faculty):
    created = slots.create_bulk_slots(
        faculty.id,
        date(2030, 1, 7),
        date(2030, 1, 20),
        time(10, 0),
        time(10, 30),
        [0, 2],
        "Room 101",
        capacity=2,
    )

    assert [s.start_time for s in created] == [
        datetime(2030, 1, 7, 10, 0),
        datetime(2030, 1, 9, 10, 0),
        datetime(2030, 1, 14, 10, 0),
        datetime(2030, 1, 16, 10, 0),
    ]
    assert all(s.end_time - s.start_time == timedelta(minutes=30) for s in created)
    assert all(s.capacity == 2 for s in created)
    assert Slot.query.count() == 4


@pytest.mark.parametrize("days", [[], [7], [-1], ["mon"]])
def test_bulk_slots_reject_bad_weekdays(faculty, days):
    with pytest.raises(ValidationError):
        slots.create_bulk_slots(
            faculty.id, date(2030, 1, 7), date(2030, 1, 20), time(10, 0), time(10, 30), days, "Room 101",
        )
    assert Slot.query.count() == 0


def test_bulk_slots_reject_reversed_dates(faculty):
    with pytest.raises(ValidationError):
        slots.create_bulk_slots(
            faculty.id, date(2030, 1, 20), date(2030, 1, 7), time(10, 0), time(10, 30), [0], "Room 101",
        )


def test_bulk_slots_reject_long_range(app, faculty):
    app.config["BULK_SLOT_MAX_DAYS"] = 14
    with pytest.raises(ValidationError):
        slots.create_bulk_slots(
            faculty.id, date(2030, 1, 1), date(2030, 3, 1), time(10, 0), time(10, 30), [0], "Room 101",
        )


def test_bulk_slots_are_all_or_nothing(faculty, fail_session_call):
    fail_session_call("commit", flush_first=True)

    with pytest.raises(RuntimeError):
        slots.create_bulk_slots(
            faculty.id, date(2030, 1, 7), date(2030, 1, 20), time(10, 0), time(10, 30), [0, 2], "Room 101",
        )

    assert Slot.query.count() == 0


def test_update_slot_by_owner(make_slot, faculty):
    slot = make_slot()

    updated = slots.update_slot(slot.id, faculty.id, {"location": "Lab 3", "notes": "bring laptop"})

    assert updated.location == "Lab 3"
    assert updated.notes == "bring laptop"


def test_update_slot_by_other_faculty_is_forbidden(make_slot, make_user):
    slot = make_slot()
    intruder = make_user("faculty")

    with pytest.raises(AuthorizationError):
        slots.update_slot(slot.id, intruder.id, {"location": "Elsewhere"})


def test_update_missing_slot(faculty):
    with pytest.raises(NotFoundError):
        slots.update_slot(999, faculty.id, {"location": "Lab"})


def test_update_capacity_below_active_bookings(make_slot, faculty, student, other_student):
    slot = make_slot(capacity=2)
    bookings.request_booking(slot.id, student.id)
    bookings.request_booking(slot.id, other_student.id)

    with pytest.raises(ValidationError):
        slots.update_slot(slot.id, faculty.id, {"capacity": 1})
    assert db.session.get(Slot, slot.id).capacity == 2


def test_capacity_increase_offers_seat_to_waitlist(make_slot, faculty, student, other_student):
    slot = make_slot(capacity=1)
    bookings.request_booking(slot.id, student.id)
    entry = waitlist.join(slot.id, other_student.id)
    assert entry.status == STATUS_WAITING

    slots.update_slot(slot.id, faculty.id, {"capacity": 2})

    entry = waitlist.entries_for_slot(slot.id)[0]
    assert entry.status == STATUS_NOTIFIED
    assert entry.response_deadline is not None


def test_cancel_slot_keeps_bookings_and_notifies(make_slot, faculty, student):
    slot = make_slot()
    booking = bookings.request_booking(slot.id, student.id)

    cancelled = slots.cancel_slot(slot.id, faculty.id)

    assert cancelled.is_cancelled is True
    assert db.session.get(Booking, booking.id).status == STATUS_PENDING
    notes = Notification.query.filter_by(user_id=student.id, type=EVENT_STATUS_CHANGE).all()
    assert len(notes) == 1
    assert notes[0].related_slot_id == slot.id


def test_cancel_slot_twice(make_slot, faculty):
    slot = make_slot()
    slots.cancel_slot(slot.id, faculty.id)

    with pytest.raises(InvalidStateError):
        slots.cancel_slot(slot.id, faculty.id)


def test_cancelled_slot_cannot_be_edited(make_slot, faculty):
    slot = make_slot()
    slots.cancel_slot(slot.id, faculty.id)

    with pytest.raises(InvalidStateError):
        slots.update_slot(slot.id, faculty.id, {"location": "Lab"})


def test_delete_slot_without_bookings(make_slot, faculty):
    slot_id = make_slot().id

    slots.delete_slot(slot_id, faculty.id)

    assert db.session.get(Slot, slot_id) is None


def test_delete_slot_with_bookings_is_refused(make_slot, faculty, student):
    slot = make_slot()
    bookings.request_booking(slot.id, student.id)

    with pytest.raises(InvalidStateError):
        slots.delete_slot(slot.id, faculty.id)
    assert db.session.get(Slot, slot.id) is not None


def test_upcoming_slots_hide_cancelled_and_past(make_slot, faculty):
    past = make_slot(start=datetime(2020, 1, 6, 10, 0))
    live = make_slot()
    gone = make_slot(start=MONDAY_10AM + timedelta(days=1))
    slots.cancel_slot(gone.id, faculty.id)

    upcoming = slots.upcoming_slots(faculty.id, now=datetime(2029, 12, 1))

    assert [s.id for s in upcoming] == [live.id]
    assert past.id not in [s.id for s in upcoming]
