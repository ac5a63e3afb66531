from functools import wraps

from flask import g

from models import db
from models.user import User
from security.session import get_session_from_request
from services.errors import Unauthorized


def load_current_user():
    """before_request hook: resolve the session cookie into g.user (or None)."""
    g.session = get_session_from_request()
    g.user = db.session.get(User, g.session.user_id) if g.session else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            raise Unauthorized("Authentication required")
        return fn(*args, **kwargs)
    return wrapper
