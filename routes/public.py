from flask import Blueprint, jsonify

from services import directory
from utils.serializers import slot_json

public_bp = Blueprint("public", __name__, url_prefix="/public")


@public_bp.get("/faculty/<int:faculty_id>/profile")
def faculty_profile(faculty_id: int):
    user = directory.get_faculty(faculty_id)
    return jsonify(
        id=user.id,
        name=user.name,
        email=user.email,
        department=user.department,
        bio=user.bio,
    ), 200


@public_bp.get("/faculty/<token>/schedule")
def shared_schedule(token: str):
    faculty, slots, counts = directory.public_schedule(token)
    return jsonify(
        faculty={
            "id": faculty.id,
            "name": faculty.name,
            "department": faculty.department,
        },
        slots=[
            slot_json(s, {"isBooked": counts[s.id]["isApproved"]})
            for s in slots
        ],
    ), 200
