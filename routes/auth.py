from flask import Blueprint, request, jsonify, g

from models import db
from models.user import User, Role
from security.password import hash_password, verify_password
from security.rbac import CUSTOMER
from security.session import (
    clear_session_cookie, create_session, current_token, revoke_session, set_session_cookie,
)
from services.errors import Conflict, Unauthorized, ValidationError
from utils.audit import log_event
from utils.auth_context import login_required

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

MIN_PASSWORD_LENGTH = 8


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _profile(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "roles": sorted(r.name for r in user.roles),
    }


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not _is_valid_email(email):
        raise ValidationError("Invalid email")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        raise Conflict("Email already registered")

    user = User(
        email=email,
        password_hash=hash_password(password),
        name=(data.get("name") or "").strip() or None,
        phone=(data.get("phone") or "").strip() or None,
    )
    customer_role = Role.query.filter_by(name=CUSTOMER).first()
    if customer_role:
        user.roles.append(customer_role)
    db.session.add(user)
    db.session.commit()

    log_event("REGISTER_SUCCESS", user_id=user.id)
    return jsonify(message="Registered successfully", id=user.id), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(data.get("password") or "", user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        raise Unauthorized("Invalid credentials")

    resp = set_session_cookie(jsonify(message="Login OK", user=_profile(user)), create_session(user.id))
    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_profile(g.user)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_session(current_token())
    log_event("LOGOUT", user_id=g.user.id)
    return clear_session_cookie(jsonify(message="Logged out")), 200
