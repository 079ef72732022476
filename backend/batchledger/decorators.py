# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import Business, User


def _header_int(name: str) -> int | None:
    raw = (request.headers.get(name) or "").strip()
    if not raw.isdigit():
        return None
    return int(raw)


def require_context(f):
    """
    Establish the caller's tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.business_id: tenant every service call is scoped to
    - g.user_id: acting user (shift owner, breakdown confirmer, ...)
    - g.current_user: the User row

    Identity itself is established upstream; this only trusts the
    X-Business-Id / X-User-Id headers after checking that the user exists,
    is active and belongs to an active business.

    Returns 401 when either header is missing or does not resolve.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        business_id = _header_int("X-Business-Id")
        user_id = _header_int("X-User-Id")
        if business_id is None or user_id is None:
            return jsonify({"error": "X-Business-Id and X-User-Id headers are required"}), 401

        business = db.session.get(Business, business_id)
        if business is None or not business.is_active:
            return jsonify({"error": "Unknown or inactive business"}), 401

        user = db.session.query(User).filter_by(id=user_id, business_id=business_id).first()
        if user is None or not user.is_active:
            return jsonify({"error": "Unknown or inactive user"}), 401

        g.business_id = business_id
        g.user_id = user_id
        g.current_user = user

        return f(*args, **kwargs)

    return decorated_function
