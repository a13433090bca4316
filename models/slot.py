from datetime import datetime
from models.db import db

class Slot(db.Model):
    __tablename__ = "slots"

    id = db.Column(db.Integer, primary_key=True)

    faculty_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)

    location = db.Column(db.String(160), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    capacity = db.Column(db.Integer, nullable=False, default=1)
    is_cancelled = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("capacity >= 1", name="ck_slot_capacity_positive"),
        db.CheckConstraint("start_time < end_time", name="ck_slot_time_range"),
    )
