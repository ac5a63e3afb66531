"""Opaque cookie sessions; the database keeps only a SHA-256 of each token."""
import hashlib
import secrets
from datetime import datetime, timedelta

from flask import request, current_app

from models import db
from models.session import Session


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "checkup_session")


def _lifetime_seconds() -> int:
    return int(current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60))


def create_session(user_id: int) -> str:
    """Store a new session and return the raw token for the cookie."""
    raw_token = secrets.token_urlsafe(32)
    db.session.add(Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=_lifetime_seconds()),
    ))
    db.session.commit()
    return raw_token


def current_token():
    return request.cookies.get(_cookie_name())


def get_session_from_request():
    raw_token = current_token()
    if not raw_token:
        return None
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token), revoked=False).first()
    if not sess or sess.expires_at <= datetime.utcnow():
        return None
    return sess


def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    if not sess:
        return False
    sess.revoked = True
    db.session.commit()
    return True


def set_session_cookie(resp, raw_token: str):
    cfg = current_app.config
    resp.set_cookie(
        _cookie_name(),
        raw_token,
        httponly=cfg.get("SESSION_COOKIE_HTTPONLY", True),
        secure=cfg.get("SESSION_COOKIE_SECURE", False),
        samesite=cfg.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=_lifetime_seconds(),
        path="/",
    )
    return resp


def clear_session_cookie(resp):
    resp.delete_cookie(_cookie_name(), path="/")
    return resp
