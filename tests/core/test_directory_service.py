import pytest

from models.user import ROLE_FACULTY
from services import bookings, directory, slots, waitlist
from services.errors import NotFoundError


def test_search_faculty_by_name_and_department(faculty, make_user):
    make_user(ROLE_FACULTY, name="Grace Hopper", department="Mathematics")
    make_user(name="Ada Student")

    assert [u.name for u in directory.search_faculty(search="ada")] == ["Ada Lovelace"]
    assert [u.name for u in directory.search_faculty(department="Mathematics")] == ["Grace Hopper"]
    assert len(directory.search_faculty()) == 2


def test_get_faculty_rejects_students(student):
    with pytest.raises(NotFoundError):
        directory.get_faculty(student.id)


def test_slot_availability_counts(make_slot, student, other_student, make_user):
    slot = make_slot(capacity=1)
    bookings.request_booking(slot.id, student.id)
    waitlist.join(slot.id, other_student.id)
    open_slot = make_slot(capacity=3, start=slot.start_time.replace(hour=14))

    counts = directory.slot_availability([slot, open_slot], student_id=student.id)

    assert counts[slot.id] == {
        "bookingCount": 1,
        "availableSpots": 0,
        "isFull": True,
        "isBooked": True,
        "isApproved": False,
        "waitlistCount": 1,
    }
    assert counts[open_slot.id]["availableSpots"] == 3
    assert counts[open_slot.id]["isBooked"] is False


def test_share_token_regeneration_invalidates_old(faculty, make_slot):
    make_slot()
    first = directory.generate_share_token(faculty.id)

    assert len(first) == 32
    owner, rows, counts = directory.public_schedule(first)
    assert owner.id == faculty.id
    assert len(rows) == 1

    second = directory.generate_share_token(faculty.id)

    assert second != first
    with pytest.raises(NotFoundError):
        directory.resolve_share_token(first)
    assert directory.resolve_share_token(second).id == faculty.id


def test_public_schedule_hides_cancelled_slots(faculty, make_slot):
    live = make_slot()
    gone = make_slot(start=live.start_time.replace(hour=15))
    slots.cancel_slot(gone.id, faculty.id)
    token = directory.generate_share_token(faculty.id)

    _, rows, _ = directory.public_schedule(token)

    assert [s.id for s in rows] == [live.id]
