"""
Read-side queries: faculty search, slot availability, public share links.
"""
import logging
import secrets

from sqlalchemy import or_

from models import db
from models.booking import ACTIVE_STATUSES, STATUS_APPROVED, Booking
from models.slot import Slot
from models.user import ROLE_FACULTY, User
from models.waitlist import QUEUED_STATUSES, WaitlistEntry
from services.errors import NotFoundError

logger = logging.getLogger(__name__)

SHARE_TOKEN_BYTES = 16  # 128 bits


def search_faculty(search=None, department=None):
    q = User.query.filter(User.role == ROLE_FACULTY)
    if department:
        q = q.filter(User.department == department)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(User.name.ilike(like), User.email.ilike(like)))
    return q.order_by(User.name.asc()).all()


def get_faculty(faculty_id) -> User:
    user = db.session.get(User, faculty_id)
    if user is None or user.role != ROLE_FACULTY:
        raise NotFoundError("Faculty not found")
    return user


def slot_availability(slots, student_id=None):
    """Per-slot counters keyed by slot id."""
    slot_ids = [s.id for s in slots]
    if not slot_ids:
        return {}

    active = (
        Booking.query
        .filter(Booking.slot_id.in_(slot_ids), Booking.status.in_(ACTIVE_STATUSES))
        .all()
    )
    queued = (
        WaitlistEntry.query
        .filter(WaitlistEntry.slot_id.in_(slot_ids), WaitlistEntry.status.in_(QUEUED_STATUSES))
        .all()
    )

    out = {}
    for slot in slots:
        count = sum(1 for b in active if b.slot_id == slot.id)
        out[slot.id] = {
            "bookingCount": count,
            "availableSpots": max(0, slot.capacity - count),
            "isFull": count >= slot.capacity,
            "isBooked": any(b.slot_id == slot.id and b.student_id == student_id for b in active),
            "isApproved": any(b.slot_id == slot.id and b.status == STATUS_APPROVED for b in active),
            "waitlistCount": sum(1 for w in queued if w.slot_id == slot.id),
        }
    return out


def generate_share_token(faculty_id) -> str:
    user = get_faculty(faculty_id)
    token = secrets.token_hex(SHARE_TOKEN_BYTES)
    # overwrite; the previous token stops resolving
    user.public_share_token = token
    db.session.commit()
    logger.info("share_token_generated faculty_id=%s", faculty_id)
    return token


def resolve_share_token(token) -> User:
    if not token:
        raise NotFoundError("Faculty not found")
    user = User.query.filter_by(public_share_token=token, role=ROLE_FACULTY).first()
    if user is None:
        raise NotFoundError("Faculty not found")
    return user


def public_schedule(token):
    faculty = resolve_share_token(token)
    slots = (
        Slot.query
        .filter_by(faculty_id=faculty.id, is_cancelled=False)
        .order_by(Slot.start_time.asc())
        .all()
    )
    return faculty, slots, slot_availability(slots)
