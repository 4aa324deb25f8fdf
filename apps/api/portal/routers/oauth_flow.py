"""
Shared pieces of the Google and Microsoft connect flows.

``authorize`` stores a random state in a short-lived cookie scoped to the
callback path; the public callback checks it before exchanging the code.
"""

import logging
from urllib.parse import urlencode

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.security import generate_oauth_state, verify_oauth_state
from portal.services.oauth_service import TokenService

logger = logging.getLogger(__name__)

OAUTH_STATE_COOKIE_PREFIX = "portal_oauth_state_"
OAUTH_STATE_MAX_AGE = 600  # 10 minutes
SETTINGS_PATH = "/admin/parametres"


def _cookie_name(key: str) -> str:
    return f"{OAUTH_STATE_COOKIE_PREFIX}{key}"


def start_authorization(response: Response, tokens: TokenService, key: str, cookie_path: str) -> dict:
    state = generate_oauth_state()
    response.set_cookie(
        key=_cookie_name(key),
        value=state,
        max_age=OAUTH_STATE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path=cookie_path,
    )
    return {"auth_url": tokens.provider.authorization_url(state)}


def settings_redirect(key: str, error: str | None = None) -> RedirectResponse:
    """Back to the integrations tab with ``{key}_success`` or ``{key}_error``."""
    params = {"tab": "integrations"}
    if error:
        params[f"{key}_error"] = error
    else:
        params[f"{key}_success"] = "true"
    return RedirectResponse(
        f"{settings.FRONTEND_URL}{SETTINGS_PATH}?{urlencode(params)}",
        status_code=302,
    )


async def complete_authorization(
    request: Request,
    db: Session,
    tokens: TokenService,
    state_key: str,
    redirect_key: str,
    cookie_path: str,
    code: str | None,
    state: str | None,
    error: str | None,
) -> RedirectResponse:
    cookie_name = _cookie_name(state_key)
    stored_state = request.cookies.get(cookie_name)

    if error:
        outcome = error
    elif not code:
        outcome = "missing_code"
    elif not verify_oauth_state(stored_state, state):
        outcome = "invalid_state"
    else:
        try:
            await tokens.complete_oauth_flow(db, code)
            outcome = None
        except Exception as e:
            logger.error("OAuth callback failed for %s: %s", tokens.service_key, e)
            outcome = str(e) or "oauth_failed"

    response = settings_redirect(redirect_key, error=outcome)
    response.delete_cookie(cookie_name, path=cookie_path)
    return response
