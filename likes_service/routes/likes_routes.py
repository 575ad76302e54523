from fastapi import APIRouter, Depends, HTTPException
from ..core import TokenManager
from ..config import Settings
from ..exceptions import TokenStoreError
from ..models import LikesResponse, UserSummary, UsersResponse
from ..utils.logger import get_logger
from .oauth_utils import get_app_settings, get_token_manager

logger = get_logger(__name__)
router = APIRouter()

@router.get("/users", response_model=UsersResponse)
async def list_users(token_manager: TokenManager = Depends(get_token_manager)) -> UsersResponse:
    """List every authenticated user."""
    records = await token_manager.list_records()
    return UsersResponse(users=[
        UserSummary(user_id=record.user_id, username=record.username, name=record.name)
        for record in records
    ])

@router.get("/likes/{user_id}", response_model=LikesResponse)
async def get_likes(
    user_id: str,
    token_manager: TokenManager = Depends(get_token_manager),
    settings: Settings = Depends(get_app_settings)
) -> LikesResponse:
    """Fetch a user's most recent liked posts, refreshing their token if needed."""
    record = await token_manager.get_record(user_id)
    if not record:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        access_token = await token_manager.get_valid_access_token(record)
    except TokenStoreError as e:
        logger.error(f"Error refreshing token: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error refreshing token: {str(e)}")

    if not access_token:
        raise HTTPException(status_code=401, detail=f"Failed to refresh token for user ID {user_id}")

    try:
        likes = await token_manager.oauth_handler.get_liked_posts(
            access_token, user_id, max_results=settings.LIKES_MAX_RESULTS
        )
    except Exception as e:
        logger.error(f"Error in /likes: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error fetching likes for user ID {user_id}: {str(e)}"
        )

    return LikesResponse(user_id=user_id, likes=likes, count=len(likes))
