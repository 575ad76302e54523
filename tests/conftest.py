import asyncio
import os

# Configure the environment before the package reads its settings
os.environ.update({
    'CLIENT_ID': 'test_client_id',
    'CLIENT_SECRET': 'test_client_secret',
    'SESSION_SECRET': 'test_session_secret',
    'ENVIRONMENT': 'testing',
    'POLLER_ENABLED': 'false',
    'LOG_FILE': '',
    'LOG_LEVEL': 'DEBUG',
})

import pytest
from typing import Dict, List, Optional, Union
from fastapi.testclient import TestClient
from likes_service.config import load_settings
from likes_service.core import JsonFileTokenStore, OAuthBase, TokenManager
from likes_service.exceptions import TokenStoreError
from likes_service.main import create_app
from likes_service.models import (
    AuthorizationRequest, CredentialRecord, LikedPost, TokenBundle, UserProfile, current_millis
)

class FakeOAuth(OAuthBase):
    """In-memory stand-in for the X platform."""

    def __init__(self):
        super().__init__("test_client_id", "test_client_secret", "http://testserver/auth/callback")
        self.profile = UserProfile(id="1001", username="alice", name="Alice")
        self.refresh_results: Dict[str, Optional[TokenBundle]] = {}
        self.likes: Dict[str, Union[List[LikedPost], Exception]] = {}
        self.refresh_calls: List[Optional[str]] = []
        self.fetch_calls: List[tuple] = []
        self.exchanged: List[tuple] = []
        self.logins = 0

    async def get_authorization_url(self) -> AuthorizationRequest:
        self.logins += 1
        return AuthorizationRequest(
            authorization_url=f"https://twitter.com/i/oauth2/authorize?state=state-{self.logins}",
            code_verifier=f"verifier-{self.logins}",
            state=f"state-{self.logins}",
        )

    async def get_access_token(self, code: str, code_verifier: str) -> TokenBundle:
        self.exchanged.append((code, code_verifier))
        if code == "bad":
            raise ValueError("invalid_grant")
        return TokenBundle(access_token=f"access-{code}", refresh_token=f"refresh-{code}", expires_in=7200)

    async def refresh_token(self, refresh_token: Optional[str]) -> Optional[TokenBundle]:
        self.refresh_calls.append(refresh_token)
        await asyncio.sleep(0)
        # Refresh tokens are single-use
        return self.refresh_results.pop(refresh_token, None)

    async def get_user_profile(self, access_token: str) -> UserProfile:
        return self.profile

    async def get_liked_posts(self, access_token: str, user_id: str,
                              max_results: int = 10) -> List[LikedPost]:
        self.fetch_calls.append((access_token, user_id, max_results))
        result = self.likes.get(user_id, [])
        if isinstance(result, Exception):
            raise result
        return result[:max_results]

class BrokenStore(JsonFileTokenStore):
    """JSON store whose reads or writes can be made to fail with TokenStoreError."""

    def __init__(self, path: str):
        super().__init__(path)
        self.failing_loads = 0
        self.fail_saves = False

    def load(self) -> List[CredentialRecord]:
        if self.failing_loads:
            self.failing_loads -= 1
            raise TokenStoreError("disk full")
        return super().load()

    def save(self, records) -> None:
        if self.fail_saves:
            raise TokenStoreError("disk full")
        super().save(records)

def make_record(user_id: str = "1001", expired: bool = False, **overrides) -> CredentialRecord:
    """Build a credential record that is either fresh or long expired."""
    values = dict(
        user_id=user_id,
        username=f"user{user_id}",
        name=f"User {user_id}",
        access_token=f"access-{user_id}",
        refresh_token=f"refresh-{user_id}",
        expires_in=7200,
        created_at=0 if expired else current_millis(),
    )
    values.update(overrides)
    return CredentialRecord(**values)

def make_post(post_id: str = "9001", author_id: str = "42") -> LikedPost:
    return LikedPost(id=post_id, text=f"post {post_id}", created_at="2024-05-01T12:00:00.000Z", author_id=author_id)

@pytest.fixture
def fake_oauth():
    """Provide a fresh FakeOAuth instance."""
    return FakeOAuth()

@pytest.fixture
def token_file(tmp_path):
    return tmp_path / "tokens.json"

@pytest.fixture
def json_store(token_file):
    """Provide a JSON token store inside the test's temp directory."""
    return JsonFileTokenStore(str(token_file))

@pytest.fixture
def broken_store(token_file):
    store = BrokenStore(str(token_file))
    store.save([])
    return store

@pytest.fixture
def token_manager(json_store, fake_oauth):
    return TokenManager(json_store, fake_oauth)

@pytest.fixture
def test_settings(token_file):
    return load_settings(
        TOKEN_FILE=str(token_file),
        POLLER_ENABLED=False,
        ENVIRONMENT="testing",
        FRONTEND_REDIRECT_URL=None,
    )

@pytest.fixture
def client(test_settings, json_store, fake_oauth):
    """Provide a TestClient around an app wired to the fakes."""
    app = create_app(test_settings, token_store=json_store, oauth_handler=fake_oauth)
    with TestClient(app) as test_client:
        yield test_client
