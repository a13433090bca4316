from datetime import timedelta

import pytest

from models import db
from models.booking import STATUS_APPROVED, Booking
from models.notification import EVENT_STATUS_CHANGE, Notification
from models.waitlist import (
    STATUS_BOOKED,
    STATUS_CANCELLED,
    STATUS_EXPIRED,
    STATUS_NOTIFIED,
    STATUS_WAITING,
    WaitlistEntry,
)
from services import bookings, capacity, waitlist
from services.errors import (
    AuthorizationError,
    CapacityExceededError,
    DuplicateBookingError,
    DuplicateEntryError,
    InvalidStateError,
    NotFoundError,
)


@pytest.fixture
def full_slot(make_slot, make_user):
    """A one-seat slot already taken by a pending booking."""
    slot = make_slot(capacity=1)
    holder = make_user()
    booking = bookings.request_booking(slot.id, holder.id)
    return slot, holder, booking


def _queue(slot_id):
    return [(e.student_id, e.position, e.status) for e in waitlist.entries_for_slot(slot_id)]


def _notified(slot_id):
    return WaitlistEntry.query.filter_by(slot_id=slot_id, status=STATUS_NOTIFIED).count()


def test_join_requires_full_slot(make_slot, student):
    slot = make_slot(capacity=2)

    with pytest.raises(InvalidStateError):
        waitlist.join(slot.id, student.id)


def test_join_missing_slot(student):
    with pytest.raises(NotFoundError):
        waitlist.join(999, student.id)


def test_join_assigns_dense_positions(full_slot, make_user):
    slot, _, _ = full_slot
    students = [make_user() for _ in range(3)]

    entries = [waitlist.join(slot.id, s.id, preferred_timing="morning") for s in students]

    assert [e.position for e in entries] == [1, 2, 3]
    assert all(e.status == STATUS_WAITING for e in entries)
    assert entries[0].preferred_timing == "morning"


def test_join_twice_is_duplicate(full_slot, student):
    slot, _, _ = full_slot
    waitlist.join(slot.id, student.id)

    with pytest.raises(DuplicateEntryError):
        waitlist.join(slot.id, student.id)


def test_join_with_active_booking_is_duplicate(full_slot):
    slot, holder, _ = full_slot

    with pytest.raises(DuplicateBookingError):
        waitlist.join(slot.id, holder.id)


def test_waitlisted_student_cannot_book_directly(make_slot, student, other_student):
    slot = make_slot(capacity=1)
    first = bookings.request_booking(slot.id, other_student.id)
    waitlist.join(slot.id, student.id)
    # the seat frees up and goes to the queue head as an offer
    bookings.cancel(first.id, other_student.id)

    with pytest.raises(DuplicateBookingError, match="accept the waitlist offer instead"):
        bookings.request_booking(slot.id, student.id)


def test_student_behind_an_offer_is_told_they_are_still_waiting(full_slot, student, other_student):
    slot, holder, booking = full_slot
    waitlist.join(slot.id, student.id)
    waitlist.join(slot.id, other_student.id)
    bookings.cancel(booking.id, holder.id)

    with pytest.raises(DuplicateBookingError, match="already on the waitlist"):
        bookings.request_booking(slot.id, other_student.id)


def test_refusal_after_an_expired_offer(full_slot, student):
    slot, holder, booking = full_slot
    entry = waitlist.join(slot.id, student.id)
    bookings.cancel(booking.id, holder.id)
    deadline = db.session.get(WaitlistEntry, entry.id).response_deadline
    waitlist.expire_overdue_offers(now=deadline + timedelta(seconds=1))

    with pytest.raises(DuplicateBookingError, match="offer for this slot has expired"):
        bookings.request_booking(slot.id, student.id)


def test_refusal_after_a_seat_taken_from_the_waitlist(full_slot, student):
    slot, holder, booking = full_slot
    entry = waitlist.join(slot.id, student.id)
    bookings.cancel(booking.id, holder.id)
    seat = waitlist.accept(entry.id, student.id)
    bookings.cancel(seat.id, student.id)

    with pytest.raises(DuplicateBookingError, match="already took a seat on this slot from the waitlist"):
        bookings.request_booking(slot.id, student.id)


def test_freed_seat_is_offered_to_head_then_accepted(app, full_slot, student, other_student):
    slot, holder, booking = full_slot
    first = waitlist.join(slot.id, student.id)
    second = waitlist.join(slot.id, other_student.id)

    bookings.cancel(booking.id, holder.id)

    head = db.session.get(WaitlistEntry, first.id)
    assert head.status == STATUS_NOTIFIED
    assert head.notification_sent_at is not None
    window = timedelta(hours=app.config["WAITLIST_RESPONSE_HOURS"])
    assert head.response_deadline - head.notification_sent_at == window
    assert db.session.get(WaitlistEntry, second.id).status == STATUS_WAITING
    assert Notification.query.filter_by(user_id=student.id, type=EVENT_STATUS_CHANGE).count() == 1

    new_booking = waitlist.accept(first.id, student.id)

    assert new_booking.status == STATUS_APPROVED
    assert new_booking.approved_at is not None
    assert db.session.get(WaitlistEntry, first.id).status == STATUS_BOOKED
    assert _queue(slot.id) == [(other_student.id, 1, STATUS_WAITING)]
    assert capacity.active_count(slot.id) == 1


def test_declining_an_offer_passes_it_on(full_slot, student, other_student):
    slot, holder, booking = full_slot
    first = waitlist.join(slot.id, student.id)
    second = waitlist.join(slot.id, other_student.id)
    bookings.cancel(booking.id, holder.id)

    waitlist.cancel(first.id, student.id)

    assert db.session.get(WaitlistEntry, first.id).status == STATUS_CANCELLED
    assert _queue(slot.id) == [(other_student.id, 1, STATUS_NOTIFIED)]
    assert db.session.get(WaitlistEntry, second.id).response_deadline is not None


def test_cancel_compacts_positions(full_slot, make_user):
    slot, _, _ = full_slot
    a, b, c = make_user(), make_user(), make_user()
    waitlist.join(slot.id, a.id)
    middle = waitlist.join(slot.id, b.id)
    waitlist.join(slot.id, c.id)

    waitlist.cancel(middle.id, b.id)

    assert _queue(slot.id) == [(a.id, 1, STATUS_WAITING), (c.id, 2, STATUS_WAITING)]


def test_cancel_twice(full_slot, student):
    slot, _, _ = full_slot
    entry = waitlist.join(slot.id, student.id)
    waitlist.cancel(entry.id, student.id)

    with pytest.raises(InvalidStateError):
        waitlist.cancel(entry.id, student.id)


def test_rejoin_after_cancel(full_slot, student, other_student):
    slot, _, _ = full_slot
    entry = waitlist.join(slot.id, student.id)
    waitlist.join(slot.id, other_student.id)
    waitlist.cancel(entry.id, student.id)

    again = waitlist.join(slot.id, student.id)

    assert again.id != entry.id
    assert again.position == 2


def test_accept_without_offer(full_slot, student):
    slot, _, _ = full_slot
    entry = waitlist.join(slot.id, student.id)

    with pytest.raises(InvalidStateError):
        waitlist.accept(entry.id, student.id)


def test_accept_someone_elses_offer(full_slot, student, other_student):
    slot, holder, booking = full_slot
    entry = waitlist.join(slot.id, student.id)
    bookings.cancel(booking.id, holder.id)

    with pytest.raises(AuthorizationError):
        waitlist.accept(entry.id, other_student.id)
    assert db.session.get(WaitlistEntry, entry.id).status == STATUS_NOTIFIED


def test_accept_after_seat_was_taken(full_slot, student, make_user):
    slot, holder, booking = full_slot
    entry = waitlist.join(slot.id, student.id)
    bookings.cancel(booking.id, holder.id)
    walk_in = make_user()
    bookings.request_booking(slot.id, walk_in.id)

    with pytest.raises(CapacityExceededError):
        waitlist.accept(entry.id, student.id)

    assert db.session.get(WaitlistEntry, entry.id).status == STATUS_NOTIFIED
    assert Booking.query.filter_by(slot_id=slot.id, student_id=student.id).count() == 0


def test_at_most_one_outstanding_offer(make_slot, make_user):
    slot = make_slot(capacity=2)
    holders = [make_user(), make_user()]
    held = [bookings.request_booking(slot.id, h.id) for h in holders]
    waiting = [make_user() for _ in range(3)]
    for s in waiting:
        waitlist.join(slot.id, s.id)

    bookings.cancel(held[0].id, holders[0].id)
    bookings.cancel(held[1].id, holders[1].id)

    assert _notified(slot.id) == 1
    assert [p for _, p, _ in _queue(slot.id)] == [1, 2, 3]


def test_accept_with_spare_seat_offers_the_next(make_slot, make_user):
    slot = make_slot(capacity=2)
    holders = [make_user(), make_user()]
    held = [bookings.request_booking(slot.id, h.id) for h in holders]
    a, b = make_user(), make_user()
    first = waitlist.join(slot.id, a.id)
    waitlist.join(slot.id, b.id)
    bookings.cancel(held[0].id, holders[0].id)
    bookings.cancel(held[1].id, holders[1].id)

    waitlist.accept(first.id, a.id)

    assert _queue(slot.id) == [(b.id, 1, STATUS_NOTIFIED)]


def test_expire_overdue_offers_moves_to_next(full_slot, student, other_student):
    slot, holder, booking = full_slot
    first = waitlist.join(slot.id, student.id)
    waitlist.join(slot.id, other_student.id)
    bookings.cancel(booking.id, holder.id)
    deadline = db.session.get(WaitlistEntry, first.id).response_deadline

    assert waitlist.expire_overdue_offers(now=deadline - timedelta(minutes=1)) == 0

    expired = waitlist.expire_overdue_offers(now=deadline + timedelta(seconds=1))

    assert expired == 1
    assert db.session.get(WaitlistEntry, first.id).status == STATUS_EXPIRED
    assert _queue(slot.id) == [(other_student.id, 1, STATUS_NOTIFIED)]
    with pytest.raises(InvalidStateError):
        waitlist.accept(first.id, student.id)


def test_expired_entry_blocks_rejoin(full_slot, student):
    slot, holder, booking = full_slot
    entry = waitlist.join(slot.id, student.id)
    bookings.cancel(booking.id, holder.id)
    deadline = db.session.get(WaitlistEntry, entry.id).response_deadline
    waitlist.expire_overdue_offers(now=deadline + timedelta(seconds=1))
    other = bookings.request_booking(slot.id, holder.id)
    assert other.status == "pending"

    with pytest.raises(DuplicateEntryError):
        waitlist.join(slot.id, student.id)


def test_entries_for_student_skip_cancelled(full_slot, student):
    slot, _, _ = full_slot
    entry = waitlist.join(slot.id, student.id)
    assert [e.id for e in waitlist.entries_for_student(student.id)] == [entry.id]

    waitlist.cancel(entry.id, student.id)

    assert waitlist.entries_for_student(student.id) == []
