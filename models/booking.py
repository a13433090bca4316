from datetime import datetime
from models.db import db

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_CANCELLED = "cancelled"

# bookings in these states hold a seat
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_APPROVED)
INACTIVE_STATUSES = (STATUS_REJECTED, STATUS_CANCELLED)


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    slot_id = db.Column(db.Integer, db.ForeignKey("slots.id"), nullable=False, index=True)
    faculty_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    # status values: pending, approved, rejected, cancelled

    cancellation_reason = db.Column(db.String(255), nullable=True)

    booked_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    reminder_sent_at = db.Column(db.DateTime, nullable=True)

    # plain id references, never owning relationships
    original_booking_id = db.Column(db.Integer, nullable=True)
    rescheduled_to = db.Column(db.Integer, nullable=True)
    recurring_appointment_id = db.Column(db.Integer, nullable=True, index=True)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def mark_cancelled(self, reason, when=None):
        # only the timestamp of the current terminal state stays set
        self.status = STATUS_CANCELLED
        self.cancelled_at = when or datetime.utcnow()
        self.cancellation_reason = reason
        self.approved_at = None
