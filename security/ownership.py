"""
Ownership predicates, one per kind of mutation.

Services take these as ``(actor_id, resource) -> bool`` callables so the
check is an explicit precondition of the operation instead of something
implied by which blueprint the request arrived on.
"""


def owns_slot(actor_id, slot) -> bool:
    return slot is not None and slot.faculty_id == actor_id


def is_booking_faculty(actor_id, booking) -> bool:
    return booking is not None and booking.faculty_id == actor_id


def is_booking_student(actor_id, booking) -> bool:
    return booking is not None and booking.student_id == actor_id


def is_booking_party(actor_id, booking) -> bool:
    return is_booking_student(actor_id, booking) or is_booking_faculty(actor_id, booking)


def owns_waitlist_entry(actor_id, entry) -> bool:
    return entry is not None and entry.student_id == actor_id


def is_series_party(actor_id, series) -> bool:
    return series is not None and actor_id in (series.student_id, series.faculty_id)
