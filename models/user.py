from datetime import datetime
from models.db import db

ROLE_FACULTY = "faculty"
ROLE_STUDENT = "student"
ROLES = (ROLE_FACULTY, ROLE_STUDENT)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(20), nullable=False, index=True)  # faculty, student
    department = db.Column(db.String(120), nullable=True)
    bio = db.Column(db.Text, nullable=True)

    # 128-bit hex token; regenerating overwrites the previous one
    public_share_token = db.Column(db.String(64), unique=True, nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
