from typing import Any, Callable, Dict, List, Optional
from requests_oauthlib import OAuth2Session
import aiohttp
from tweepy.asynchronous import AsyncClient
import base64
from ..core.oauth_base import OAuthBase
from ..models import AuthorizationRequest, LikedPost, TokenBundle, UserProfile
from ..utils.crypto import generate_code_challenge, generate_code_verifier, generate_oauth_state
from ..utils.logger import get_logger

logger = get_logger(__name__)

AUTHORIZATION_URL = "https://twitter.com/i/oauth2/authorize"
TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
SCOPES = ['tweet.read', 'users.read', 'like.read', 'offline.access']
USER_FIELDS = ['id', 'username', 'name']
TWEET_FIELDS = ['id', 'text', 'created_at', 'author_id']

# X hands out two hour access tokens when expires_in is omitted
DEFAULT_EXPIRES_IN = 7200

class TokenExchangeError(Exception):
    """The X token endpoint rejected a request."""

    def __init__(self, status: int, body: str):
        super().__init__(f"Token endpoint returned {status}: {body}")
        self.status = status
        self.body = body

class TwitterOAuth(OAuthBase):
    """X (Twitter) OAuth 2.0 with PKCE plus the read calls made with user tokens."""

    def __init__(self, client_id: str, client_secret: str, callback_url: str,
                 timeout: float = 30.0,
                 api_client_factory: Optional[Callable[[str], Any]] = None):
        super().__init__(client_id, client_secret, callback_url)
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._api_client_factory = api_client_factory or self._default_api_client

        # OAuth 2.0 setup with offline.access scope for refresh tokens
        self.oauth2_client = OAuth2Session(
            client_id=self.client_id,
            redirect_uri=self.callback_url,
            scope=SCOPES
        )

    @staticmethod
    def _default_api_client(access_token: str) -> AsyncClient:
        # OAuth 2.0 user context tokens are sent as bearer tokens
        return AsyncClient(bearer_token=access_token, return_type=dict)

    def _basic_auth_header(self) -> Dict[str, str]:
        auth_string = f"{self.client_id}:{self._client_secret}"
        basic_auth = base64.b64encode(auth_string.encode()).decode()
        return {
            'Authorization': f'Basic {basic_auth}',
            'Content-Type': 'application/x-www-form-urlencoded'
        }

    async def get_authorization_url(self) -> AuthorizationRequest:
        """Build the OAuth 2.0 authorization URL with a fresh PKCE pair and state."""
        code_verifier = generate_code_verifier()
        code_challenge = generate_code_challenge(code_verifier)

        authorization_url, state = self.oauth2_client.authorization_url(
            AUTHORIZATION_URL,
            state=generate_oauth_state(),
            code_challenge=code_challenge,
            code_challenge_method='S256'
        )

        logger.debug("Generated OAuth 2.0 authorization URL with parameters:")
        logger.debug(f"- Scopes: {' '.join(SCOPES)}")
        logger.debug(f"- Redirect URI: {self.callback_url}")
        logger.info(f"Generated auth URL: {authorization_url}")

        return AuthorizationRequest(
            authorization_url=authorization_url,
            code_verifier=code_verifier,
            state=state
        )

    async def _request_token(self, data: Dict[str, str]) -> Dict:
        """POST to the token endpoint with client Basic auth and return the JSON body."""
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(TOKEN_URL, data=data, headers=self._basic_auth_header()) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(f"Token request ({data.get('grant_type')}) failed with status {response.status}")
                    raise TokenExchangeError(response.status, error_text)
                return await response.json()

    @staticmethod
    def _parse_token_response(token: Dict) -> TokenBundle:
        if not token.get('access_token'):
            raise ValueError("Token response is missing access_token")
        logger.debug(f"Token response keys: {list(token.keys())}")
        logger.debug(f"Has refresh_token: {bool(token.get('refresh_token'))}")
        return TokenBundle(
            access_token=token['access_token'],
            refresh_token=token.get('refresh_token'),
            expires_in=int(token.get('expires_in', DEFAULT_EXPIRES_IN))
        )

    async def get_access_token(self, code: str, code_verifier: str) -> TokenBundle:
        """Exchange an authorization code and PKCE verifier for tokens."""
        logger.debug("Starting OAuth 2.0 token exchange")
        token = await self._request_token({
            'code': code,
            'grant_type': 'authorization_code',
            'redirect_uri': self.callback_url,
            'code_verifier': code_verifier,
            'client_id': self.client_id,
        })
        return self._parse_token_response(token)

    async def refresh_token(self, refresh_token: Optional[str]) -> Optional[TokenBundle]:
        """Refresh an OAuth 2.0 token pair.

        Args:
            refresh_token: The stored refresh token

        Returns:
            TokenBundle with the new pair, or None if the refresh failed
        """
        if not refresh_token:
            logger.error("No refresh token available")
            return None

        try:
            logger.debug("Attempting to refresh Twitter OAuth 2.0 token")
            token = await self._request_token({
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token,
                'client_id': self.client_id,
            })
            return self._parse_token_response(token)
        except TokenExchangeError as e:
            logger.error(f"Error refreshing token: status {e.status}")
            logger.debug(f"Error response: {e.body}")
        except Exception as e:
            logger.error(f"Error refreshing token: {str(e)}")
            logger.debug("Stack trace:", exc_info=True)
        return None

    async def get_user_profile(self, access_token: str) -> UserProfile:
        """Look up id, username and name of the token's owner."""
        client = self._api_client_factory(access_token)
        try:
            response = await client.get_me(user_auth=False, user_fields=USER_FIELDS)
        finally:
            await self._close_client(client)
        data = (response or {}).get('data')
        if not data:
            raise ValueError("User lookup returned no data")
        return UserProfile(id=str(data['id']), username=data['username'], name=data.get('name', ''))

    async def get_liked_posts(self, access_token: str, user_id: str,
                              max_results: int = 10) -> List[LikedPost]:
        """Fetch up to ``max_results`` of the user's most recent likes.

        tweepy errors (``tweepy.TweepyException``) propagate to the caller.
        """
        client = self._api_client_factory(access_token)
        try:
            response = await client.get_liked_tweets(
                user_id,
                user_auth=False,
                tweet_fields=TWEET_FIELDS,
                max_results=max_results
            )
        finally:
            await self._close_client(client)
        return [LikedPost.model_validate(tweet) for tweet in (response or {}).get('data') or []]

    @staticmethod
    async def _close_client(client: Any) -> None:
        # AsyncClient opens its aiohttp session lazily and leaves it open
        session = getattr(client, 'session', None)
        if session is not None and not session.closed:
            await session.close()
