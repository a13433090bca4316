from datetime import datetime
from models.db import db

STATUS_WAITING = "waiting"
STATUS_NOTIFIED = "notified"
STATUS_BOOKED = "booked"
STATUS_CANCELLED = "cancelled"
STATUS_EXPIRED = "expired"

# entries in these states are "in line" and carry a dense position
QUEUED_STATUSES = (STATUS_WAITING, STATUS_NOTIFIED)


class WaitlistEntry(db.Model):
    __tablename__ = "waitlist_entries"

    id = db.Column(db.Integer, primary_key=True)

    slot_id = db.Column(db.Integer, db.ForeignKey("slots.id"), nullable=False, index=True)
    faculty_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    position = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_WAITING, index=True)

    notification_sent_at = db.Column(db.DateTime, nullable=True)
    response_deadline = db.Column(db.DateTime, nullable=True)

    preferred_timing = db.Column(db.String(40), nullable=True)  # morning, afternoon, evening
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_waitlist_slot_position", "slot_id", "position"),
    )
