from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from typing import Optional
from urllib.parse import urlencode
from ..core import OAuthBase, TokenManager
from ..config import Settings
from ..exceptions import AuthenticationError, TokenStoreError
from ..models import CallbackResponse, LoginResponse
from ..utils.logger import get_logger
from .oauth_utils import (
    get_app_settings, get_oauth_handler, get_token_manager,
    pop_code_verifier, store_code_verifier
)

logger = get_logger(__name__)
router = APIRouter()

@router.get("/login", response_model=LoginResponse)
async def login(
    request: Request,
    oauth_handler: OAuthBase = Depends(get_oauth_handler)
) -> LoginResponse:
    """Start an OAuth 2.0 PKCE login and return the URL to send the user to."""
    try:
        auth_request = await oauth_handler.get_authorization_url()
    except Exception as e:
        logger.error(f"Error in /auth/login: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error initiating OAuth 2.0: {str(e)}")

    store_code_verifier(request, auth_request.code_verifier, auth_request.state)
    return LoginResponse(auth_url=auth_request.authorization_url)

@router.get("/callback", response_model=CallbackResponse)
async def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    oauth_handler: OAuthBase = Depends(get_oauth_handler),
    token_manager: TokenManager = Depends(get_token_manager),
    settings: Settings = Depends(get_app_settings)
):
    """Finish the login, store the user's tokens and send them back to the frontend."""
    code_verifier, expected_state = pop_code_verifier(request)

    if state and expected_state and state != expected_state:
        logger.warning("OAuth callback state does not match the session")
        raise HTTPException(status_code=400, detail="Invalid state parameter")

    try:
        record = await oauth_handler.complete_login(code, code_verifier)
        await token_manager.register(record)
    except AuthenticationError as e:
        logger.error(f"Error in /auth/callback: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except TokenStoreError as e:
        logger.error(f"Error in /auth/callback: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error completing OAuth 2.0: {str(e)}")

    if settings.FRONTEND_REDIRECT_URL:
        query = urlencode({"userId": record.user_id, "username": record.username})
        separator = '&' if '?' in settings.FRONTEND_REDIRECT_URL else '?'
        return RedirectResponse(
            url=f"{settings.FRONTEND_REDIRECT_URL}{separator}{query}",
            status_code=302
        )

    return CallbackResponse(user_id=record.user_id, username=record.username)
