from fastapi import HTTPException, Request
from ..core import OAuthBase, TokenManager
from ..config import Settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Session keys for the PKCE login in progress
CODE_VERIFIER_KEY = "code_verifier"
OAUTH_STATE_KEY = "oauth_state"

def _from_state(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        logger.error(f"Application component '{name}' is not initialized")
        raise HTTPException(status_code=500, detail=f"Service component '{name}' unavailable")
    return component

def get_app_settings(request: Request) -> Settings:
    return _from_state(request, "settings")

def get_oauth_handler(request: Request) -> OAuthBase:
    """Get the OAuth handler the application was built with."""
    return _from_state(request, "oauth_handler")

def get_token_manager(request: Request) -> TokenManager:
    return _from_state(request, "token_manager")

def store_code_verifier(request: Request, code_verifier: str, state: str) -> None:
    """Keep the PKCE verifier and state in the caller's session until the callback."""
    request.session[CODE_VERIFIER_KEY] = code_verifier
    request.session[OAUTH_STATE_KEY] = state

def pop_code_verifier(request: Request):
    """Remove and return the (verifier, state) pair saved for this session."""
    return (
        request.session.pop(CODE_VERIFIER_KEY, None),
        request.session.pop(OAUTH_STATE_KEY, None),
    )
