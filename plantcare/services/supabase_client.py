"""
Supabase client initialization and helper functions.

Provides centralized access to Supabase for:
- Authentication (session and bearer token verification)
- Database queries (reminders, task_history, plant ownership)
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator, Optional, Dict, Any
from supabase import create_client, Client
from plantcare.utils.errors import CareScheduleError, StoreUnavailable, log_error


# Global client instances (initialized once per app)
_supabase_client: Optional[Client] = None  # User client (anon key)
_supabase_admin: Optional[Client] = None   # Admin client (service role key)


def init_supabase(app) -> None:
    """
    Initialize Supabase clients with app config.
    Creates two clients:
    - Regular client with anon key (for verifying user sessions)
    - Admin client with service role key (for schedule reads/writes, always
      filtered by user_id, and for the daily job which spans all users)

    Call this from the Flask app factory.
    """
    global _supabase_client, _supabase_admin

    url = app.config.get("SUPABASE_URL", "")
    anon_key = app.config.get("SUPABASE_ANON_KEY", "")
    service_key = app.config.get("SUPABASE_SERVICE_ROLE_KEY", "")

    if not url or not anon_key:
        app.logger.warning("Supabase URL or ANON_KEY not configured. Supabase features will be disabled.")
        _supabase_client = None
        _supabase_admin = None
        return

    try:
        _supabase_client = create_client(url, anon_key)
        app.logger.info("Supabase client initialized successfully")

        if service_key:
            _supabase_admin = create_client(url, service_key)
            app.logger.info("Supabase admin client initialized successfully")
        else:
            app.logger.warning("SUPABASE_SERVICE_ROLE_KEY not configured. Care schedule storage is disabled.")

    except Exception as e:
        app.logger.error(f"Failed to initialize Supabase client: {e}")
        _supabase_client = None
        _supabase_admin = None


def get_admin_client() -> Optional[Client]:
    """Get the admin Supabase client instance (admin client with service role key)."""
    return _supabase_admin


def require_admin_client() -> Client:
    """Admin client, or StoreUnavailable when the service role key is missing."""
    if not _supabase_admin:
        raise StoreUnavailable("Database not configured")
    return _supabase_admin


@contextmanager
def store_errors(action: str, **context) -> Iterator[None]:
    """
    Translate transport/database failures into StoreUnavailable.

    Care schedule errors raised inside the block pass through unchanged.

    Usage:
        with store_errors("fetching reminders", user_id=user_id):
            response = supabase.table("reminders").select("*").execute()
    """
    try:
        yield
    except CareScheduleError:
        raise
    except Exception as e:
        log_error(f"Store error while {action}: {e}", **context)
        raise StoreUnavailable(details={"action": action}) from e


def verify_session(access_token: str, refresh_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Verify a user session token and return user data.

    Args:
        access_token: JWT access token from Supabase Auth
        refresh_token: Optional refresh token (recommended for session refresh)

    Returns:
        User dict with id, email, etc. or None if invalid
    """
    if not _supabase_client:
        return None

    try:
        if refresh_token:
            session_response = _supabase_client.auth.set_session(
                access_token=access_token,
                refresh_token=refresh_token,
            )
        else:
            session_response = _supabase_client.auth.get_user(access_token)

        if session_response and session_response.user:
            return session_response.user.model_dump()
        return None

    except Exception as e:
        log_error(f"Error verifying session: {e}")
        return None


def get_plant_by_id(plant_id: str, user_id: str) -> dict | None:
    """
    Get a single plant by ID, verifying ownership.

    Args:
        plant_id: Plant UUID
        user_id: User UUID (for ownership verification)

    Returns:
        Plant dictionary if found and owned by user, None otherwise
    """
    if not _supabase_admin:
        return None

    response = (_supabase_admin
               .table("plants")
               .select("id, user_id, name")
               .eq("id", plant_id)
               .eq("user_id", user_id)
               .limit(1)
               .execute())
    return response.data[0] if response.data else None
