from datetime import datetime
from models.db import db

EVENT_BOOKING_REQUEST = "booking_request"
EVENT_BOOKING_APPROVED = "booking_approved"
EVENT_BOOKING_REJECTED = "booking_rejected"
EVENT_BOOKING_CANCELLED = "booking_cancelled"
EVENT_MEETING_REMINDER = "meeting_reminder"
EVENT_STATUS_CHANGE = "status_change"

EVENT_TYPES = (
    EVENT_BOOKING_REQUEST,
    EVENT_BOOKING_APPROVED,
    EVENT_BOOKING_REJECTED,
    EVENT_BOOKING_CANCELLED,
    EVENT_MEETING_REMINDER,
    EVENT_STATUS_CHANGE,
)


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(40), nullable=False)
    title = db.Column(db.String(160), nullable=False)
    message = db.Column(db.Text, nullable=False)

    related_booking_id = db.Column(db.Integer, nullable=True)
    related_slot_id = db.Column(db.Integer, nullable=True)

    is_read = db.Column(db.Boolean, default=False, nullable=False, index=True)
    email_sent = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
