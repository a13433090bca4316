from functools import wraps
from flask import g, jsonify
from models import db
from models.user import User
from security.session import get_session_from_request

def load_current_user():
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.session = None
        return
    g.session = sess
    g.user = db.session.get(User, sess.user_id)

def current_identity():
    """(user_id, role) of the resolved caller, or (None, None)."""
    user = getattr(g, "user", None)
    if user is None:
        return None, None
    return user.id, user.role

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required", code="authentication_required"), 401
        return fn(*args, **kwargs)
    return wrapper
