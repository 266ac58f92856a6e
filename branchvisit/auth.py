"""
Branch Visit Reporting Platform
Actor resolution & role-based access control.

Provides:
    - Actor loading from the ACTOR_HEADER header (default X-User-Id) into g.actor
    - require_auth / require_role decorators
    - CSRF mitigation for state-changing requests (JSON-only bodies)

Security model:
    - Authentication happens upstream (identity gateway); it forwards the
      authenticated user's id in the X-User-Id header.
    - This service looks the user up and trusts the stored role only.
    - Unknown or inactive users are treated as unauthenticated.

Roles:
    bh     branch representative: records and submits visits
    zh     zonal head: reviews visits, manages branch assignments
    ch     channel head: analytics, reports, exports
    admin  everything
"""

import functools
import logging

from flask import current_app, g, request

from branchvisit.services import store
from branchvisit.utils.errors import E, api_error

logger = logging.getLogger(__name__)

DEFAULT_ACTOR_HEADER = "X-User-Id"

# Paths that never need an actor
_PUBLIC_PREFIXES = ("/api/v1/health",)


def actor_header() -> str:
    return current_app.config.get("ACTOR_HEADER", DEFAULT_ACTOR_HEADER)


def _actor_id_from_request() -> str | None:
    value = request.headers.get(actor_header(), "").strip()
    return value or None


def current_actor():
    """The authenticated User for this request, or None."""
    return getattr(g, "actor", None)


# ── Decorators ───────────────────────────────────────────────────────────────

def require_auth(f):
    """
    Decorator: require a resolved actor for the endpoint.

    Returns 401 when the X-User-Id header is missing or unknown.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_actor() is None:
            return api_error(E.UNAUTHENTICATED, f"Authentication required. Provide {actor_header()} header.")
        return f(*args, **kwargs)

    return decorated


def require_role(*roles: str):
    """
    Decorator: require the actor to hold one of *roles*.

    Usage:
        @require_role("zh", "admin")
        def approve(visit_id): ...
    """
    allowed = frozenset(roles)

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            actor = current_actor()
            if actor is None:
                return api_error(
                    E.UNAUTHENTICATED,
                    f"Authentication required. Provide {actor_header()} header.",
                )

            if actor.role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access %s (allowed: %s)",
                    actor.role, request.path, ", ".join(sorted(allowed)),
                    extra={"actor_id": actor.id},
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")

            return f(*args, **kwargs)
        return decorated
    return decorator


# ── CSRF protection for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    For state-changing requests (POST/PUT/PATCH/DELETE), require
    Content-Type: application/json. HTML forms cannot send that content
    type, which makes it a lightweight CSRF mitigation.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length and request.content_length > 0:
            return api_error(
                E.VALIDATION_INVALID,
                "Content-Type must be application/json for state-changing requests",
                status=415,
            )
    return None


# ── App-level before_request hook installer ──────────────────────────────────

def init_auth(app):
    """
    Install actor resolution on the Flask app.

    - Skips non-API routes, health probes and CORS pre-flight requests
    - Sets g.actor to the User row (or None)
    """
    @app.before_request
    def _resolve_actor():
        g.actor = None
        if not request.path.startswith("/api/v1/"):
            return None
        if request.path.startswith(_PUBLIC_PREFIXES):
            return None
        if request.method == "OPTIONS":
            return None

        csrf_error = _check_content_type()
        if csrf_error:
            return csrf_error

        actor_id = _actor_id_from_request()
        if not actor_id:
            return None

        user, err = store.get_user(actor_id)
        if err:
            return api_error(E.STORE_UNAVAILABLE, "Data store unavailable, please retry")
        if user is None or not user.is_active:
            logger.warning("Unknown or inactive actor id: %s", actor_id[:12])
            return None

        g.actor = user
        return None

    logger.info("Actor resolution installed (header=%s)",
                app.config.get("ACTOR_HEADER", DEFAULT_ACTOR_HEADER))
