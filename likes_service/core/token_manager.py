from typing import List, Optional
import asyncio
from .oauth_base import OAuthBase
from .token_store import TokenStore
from ..models import CredentialRecord, current_millis
from ..utils.logger import get_logger

logger = get_logger(__name__)

class TokenManager:
    """Owns every write to the token store and the refresh of expired tokens.

    Writes reload the document under a single lock before changing one
    record, so the poller and request handlers never overwrite each other.
    """

    def __init__(self, store: TokenStore, oauth_handler: OAuthBase):
        self.store = store
        self.oauth_handler = oauth_handler
        self._lock = asyncio.Lock()

    async def list_records(self) -> List[CredentialRecord]:
        return self.store.load()

    async def get_record(self, user_id: str) -> Optional[CredentialRecord]:
        records = self.store.load()
        index = self._find(records, user_id)
        return records[index] if index is not None else None

    async def register(self, record: CredentialRecord) -> CredentialRecord:
        """
        Store the record from a completed login.

        A user who logs in again keeps a single record: its tokens, profile
        fields and creation time are replaced by the new login's.
        """
        async with self._lock:
            records = self.store.load()
            index = self._find(records, record.user_id)
            if index is not None:
                records[index] = record
                logger.info(f"Updated credentials for returning user ID {record.user_id}")
            else:
                records.append(record)
                logger.info(f"Stored credentials for new user ID {record.user_id}")
            self.store.save(records)
        return record

    def _find(self, records: List[CredentialRecord], user_id: str) -> Optional[int]:
        for index, existing in enumerate(records):
            if existing.user_id == user_id:
                return index
        return None

    async def get_valid_access_token(self, record: CredentialRecord) -> Optional[str]:
        """
        Return a usable access token for the record, refreshing it if expired.

        The refresh runs under the write lock against the stored copy of the
        record, so a refresh token is only ever sent once even when the
        poller and a request hit the same expired user together.

        Args:
            record: Credential record as loaded from the store

        Returns:
            The access token, or None if the refresh failed (the record is left unchanged)

        Raises:
            TokenStoreError: The refreshed tokens could not be persisted
        """
        if not record.is_expired():
            return record.access_token

        async with self._lock:
            records = self.store.load()
            index = self._find(records, record.user_id)
            current = records[index] if index is not None else record
            if not current.is_expired():
                logger.debug(f"Token for user ID {record.user_id} was already refreshed")
                return current.access_token

            logger.info(f"Token for user ID {record.user_id} expired. Refreshing...")
            tokens = await self.oauth_handler.refresh_token(current.refresh_token)
            if not tokens:
                logger.warning(f"Failed to refresh token for user ID {record.user_id}")
                return None

            if index is None:
                logger.warning(f"User ID {record.user_id} disappeared from the token store during refresh")
            else:
                records[index] = current.with_tokens(tokens, now=current_millis())
                self.store.save(records)

        logger.info(f"Refreshed token for user ID {record.user_id}")
        return tokens.access_token
