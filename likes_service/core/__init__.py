"""
Core token lifecycle: storage, OAuth base class, refresh and polling.
"""

from .oauth_base import OAuthBase
from .token_store import TokenStore, JsonFileTokenStore, SqliteTokenStore, create_token_store
from .token_manager import TokenManager
from .poller import LikesPoller

__all__ = [
    'OAuthBase',
    'TokenStore',
    'JsonFileTokenStore',
    'SqliteTokenStore',
    'create_token_store',
    'TokenManager',
    'LikesPoller',
]
