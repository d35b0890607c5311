"""
Authentication utilities and decorators for route protection.

Provides:
- @require_auth: Decorator to require an authenticated user (401 JSON otherwise)
- Session/bearer token helpers backed by Supabase Auth
"""

from __future__ import annotations
from functools import wraps
from typing import Optional, Dict, Any
from flask import session, request, g, jsonify
from plantcare.services import supabase_client


# ============================================================================
# Session Management
# ============================================================================

SESSION_USER_KEY = "user"
SESSION_ACCESS_TOKEN_KEY = "access_token"
SESSION_REFRESH_TOKEN_KEY = "refresh_token"


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def get_current_user() -> Optional[Dict[str, Any]]:
    """
    Get the user making this request.

    Looks at an `Authorization: Bearer` token first (API clients), then the
    Supabase tokens stored in the Flask session (browser).

    Returns:
        User dict with id, email, etc. or None if not logged in
    """
    if hasattr(g, 'user'):
        return g.user

    bearer = _bearer_token()
    if bearer:
        g.user = supabase_client.verify_session(bearer)
        return g.user

    access_token = session.get(SESSION_ACCESS_TOKEN_KEY)
    refresh_token = session.get(SESSION_REFRESH_TOKEN_KEY)

    if not access_token:
        g.user = None
        return None

    user = supabase_client.verify_session(access_token, refresh_token)
    if not user:
        # Token invalid/expired, clear session
        clear_session()
        g.user = None
        return None

    g.user = user
    return user


def get_current_user_id() -> Optional[str]:
    """
    Get current user's ID.

    Returns:
        User UUID or None if not logged in
    """
    user = get_current_user()
    return user.get("id") if user else None


def clear_session() -> None:
    """Clear user session data."""
    session.pop(SESSION_USER_KEY, None)
    session.pop(SESSION_ACCESS_TOKEN_KEY, None)
    session.pop(SESSION_REFRESH_TOKEN_KEY, None)


def is_authenticated() -> bool:
    """Check if user is currently authenticated."""
    return get_current_user() is not None


def require_ajax_for_mutations():
    """Enforce X-Requested-With header on all state-changing API requests.

    Register with `blueprint.before_request(require_ajax_for_mutations)`.
    Custom headers cannot be set by cross-origin requests without CORS, and
    HTML forms cannot set them, so this stands in for CSRF tokens on the
    JSON blueprints (which are exempt from Flask-WTF).
    """
    if request.method in ("POST", "PUT", "DELETE", "PATCH"):
        if request.headers.get("X-Requested-With") != "XMLHttpRequest":
            return jsonify({
                "success": False,
                "error": {
                    "code": "INVALID_REQUEST",
                    "message": "Invalid request. Please refresh the page and try again.",
                },
            }), 403


# ============================================================================
# Decorators
# ============================================================================

def require_auth(f):
    """
    Decorator to require authentication for a JSON route.

    Usage:
        @reminders_bp.route('/')
        @require_auth
        def list_reminders():
            user_id = get_current_user_id()
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return jsonify({
                "success": False,
                "error": {"code": "AUTHENTICATION_REQUIRED", "message": "Please sign in."},
            }), 401

        return f(*args, **kwargs)

    return decorated_function
