from datetime import datetime
from models.db import db

RECURRENCE_WEEKLY = "weekly"
RECURRENCE_BIWEEKLY = "biweekly"
RECURRENCE_MONTHLY = "monthly"
RECURRENCE_TYPES = (RECURRENCE_WEEKLY, RECURRENCE_BIWEEKLY, RECURRENCE_MONTHLY)


class RecurringAppointment(db.Model):
    __tablename__ = "recurring_appointments"

    id = db.Column(db.Integer, primary_key=True)

    booking_id = db.Column(db.Integer, nullable=True)  # first generated booking
    slot_id = db.Column(db.Integer, db.ForeignKey("slots.id"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    faculty_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    recurrence_type = db.Column(db.String(20), nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    # ordered booking ids, appended only during generation
    generated_bookings = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
