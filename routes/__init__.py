from flask import Blueprint, jsonify

from .faculty import faculty_bp
from .student import student_bp
from .waitlist import waitlist_bp
from .recurring import recurring_bp
from .notifications import notifications_bp
from .public import public_bp

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(status="ok"), 200
