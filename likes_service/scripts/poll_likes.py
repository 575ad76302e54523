import asyncio
import sys
from ..config import get_settings
from ..core import LikesPoller, TokenManager, create_token_store
from ..exceptions import ConfigurationError
from ..platforms import TwitterOAuth
from ..utils.logger import get_logger

logger = get_logger(__name__)

async def main():
    """Run a single liked-posts poll cycle over every stored user."""
    settings = get_settings()
    oauth_handler = TwitterOAuth(
        client_id=settings.CLIENT_ID,
        client_secret=settings.CLIENT_SECRET,
        callback_url=settings.REDIRECT_URI,
        timeout=settings.HTTP_TIMEOUT_SECONDS
    )
    token_manager = TokenManager(create_token_store(settings), oauth_handler)
    poller = LikesPoller(
        token_manager,
        max_results=settings.LIKES_MAX_RESULTS,
        timezone=settings.POLL_TIMEZONE
    )
    await poller.fetch_liked_posts_for_all_users()

def run() -> None:
    try:
        asyncio.run(main())
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

if __name__ == "__main__":
    run()
