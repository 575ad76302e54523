from abc import ABC, abstractmethod
from typing import List, Optional
from ..models import AuthorizationRequest, CredentialRecord, LikedPost, TokenBundle, UserProfile
from ..exceptions import AuthenticationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

class OAuthBase(ABC):
    """Base class for OAuth 2.0 (PKCE) platform implementations."""

    def __init__(self, client_id: str, client_secret: str, callback_url: str):
        self.client_id = client_id
        self.callback_url = callback_url
        self._client_secret = client_secret
        # Extract base platform name without 'OAuth' suffix
        self.platform_name = self.__class__.__name__.lower().replace('oauth', '')

    async def complete_login(self, code: Optional[str], code_verifier: Optional[str]) -> CredentialRecord:
        """
        Finish a login: exchange the code and look up the authenticated user.

        Args:
            code: Authorization code from the callback
            code_verifier: PKCE verifier created by ``get_authorization_url``

        Returns:
            CredentialRecord: New record for the user

        Raises:
            AuthenticationError: Code or verifier missing, or the exchange failed
        """
        if not code or not code_verifier:
            raise AuthenticationError("Missing code or code verifier", status_code=400)

        try:
            tokens = await self.get_access_token(code, code_verifier)
            profile = await self.get_user_profile(tokens.access_token)
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error(f"Error completing {self.platform_name} login: {str(e)}")
            raise AuthenticationError(f"Error completing OAuth 2.0: {str(e)}") from e

        logger.info(f"Authenticated {self.platform_name} user {profile.username} ({profile.id})")
        return CredentialRecord.from_login(profile, tokens)

    @abstractmethod
    async def get_authorization_url(self) -> AuthorizationRequest:
        """Get the authorization URL, PKCE verifier and state for a new login."""
        pass

    @abstractmethod
    async def get_access_token(self, code: str, code_verifier: str) -> TokenBundle:
        """Exchange authorization code for access token."""
        pass

    @abstractmethod
    async def refresh_token(self, refresh_token: Optional[str]) -> Optional[TokenBundle]:
        """Refresh an expired access token. Returns None instead of raising."""
        pass

    @abstractmethod
    async def get_user_profile(self, access_token: str) -> UserProfile:
        """Look up the user the access token belongs to."""
        pass

    @abstractmethod
    async def get_liked_posts(self, access_token: str, user_id: str,
                              max_results: int = 10) -> List[LikedPost]:
        """Fetch the user's most recent liked posts."""
        pass
