from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo
import asyncio
import time
from .token_manager import TokenManager
from ..models import CredentialRecord
from ..utils.logger import get_logger

logger = get_logger(__name__)

def seconds_until_next_tick(interval: int, now: Optional[float] = None) -> float:
    """Seconds until the next wall-clock multiple of ``interval`` (like a */N cron)."""
    now = time.time() if now is None else now
    remaining = interval - (now % interval)
    return remaining if remaining > 0 else float(interval)

class LikesPoller:
    """Periodically fetches every stored user's liked posts and logs them."""

    def __init__(self, token_manager: TokenManager, interval_seconds: int = 1200,
                 max_results: int = 10, timezone: str = "Africa/Lagos",
                 run_on_start: bool = True):
        self.token_manager = token_manager
        self.interval_seconds = interval_seconds
        self.max_results = max_results
        self.timezone = ZoneInfo(timezone)
        self.run_on_start = run_on_start
        self.running = False

    async def fetch_liked_posts_for_all_users(self) -> None:
        """Run one poll cycle. Failures are logged and never escape, so the schedule keeps running."""
        local_time = datetime.now(self.timezone).strftime("%Y-%m-%d %H:%M:%S %Z")
        logger.info(f"=== Running liked posts fetch at {local_time} ===")

        try:
            records = await self.token_manager.list_records()
        except Exception as e:
            logger.error(f"Error loading stored users: {str(e)}", exc_info=True)
            return

        if not records:
            logger.info("No authenticated users found.")
            return

        for record in records:
            try:
                await self._process_user(record)
            except Exception as e:
                logger.error(f"Error for user ID {record.user_id}: {str(e)}", exc_info=True)

    async def _process_user(self, record: CredentialRecord) -> None:
        access_token = await self.token_manager.get_valid_access_token(record)
        if not access_token:
            logger.info(f"Failed to refresh token for user ID {record.user_id}. Skipping.")
            return

        logger.info(f"Processing user ID: {record.user_id} ({record.username})")
        posts = await self.token_manager.oauth_handler.get_liked_posts(
            access_token, record.user_id, max_results=self.max_results
        )

        if not posts:
            logger.info(f"No liked posts found for user ID {record.user_id}.")
            return

        logger.info(f"Found {len(posts)} liked posts for user ID {record.user_id}:")
        for post in posts:
            logger.info(
                f"Post ID: {post.id} | Created at: {post.created_at} | "
                f"Author ID: {post.author_id} | Text: {post.text}"
            )

    async def start(self):
        """Poll until stopped: once immediately (if enabled), then on every interval boundary."""
        self.running = True
        logger.info(f"Likes poller started, interval {self.interval_seconds}s")
        if self.run_on_start:
            await self.fetch_liked_posts_for_all_users()
        while self.running:
            await asyncio.sleep(seconds_until_next_tick(self.interval_seconds))
            if not self.running:
                break
            logger.info("Starting scheduled task to fetch liked posts...")
            await self.fetch_liked_posts_for_all_users()

    async def stop(self):
        """Stop the poller after the current cycle."""
        self.running = False
        logger.info("Likes poller stopped")
