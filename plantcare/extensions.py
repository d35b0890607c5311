"""
Third-party extensions wiring.

Shared Flask extension instances, importable from routes without circular
imports. create_app() binds them to the app.
"""

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Routes apply per-endpoint limits with @limiter.limit(...); the default
# limit and storage come from RATELIMIT_* config.
limiter = Limiter(key_func=get_remote_address)
