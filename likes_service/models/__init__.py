from .oauth_models import (
    AuthorizationRequest,
    CallbackResponse,
    CredentialRecord,
    LikedPost,
    LikesResponse,
    LoginResponse,
    TokenBundle,
    UserProfile,
    UsersResponse,
    UserSummary,
    current_millis,
)

__all__ = [
    'AuthorizationRequest',
    'CallbackResponse',
    'CredentialRecord',
    'LikedPost',
    'LikesResponse',
    'LoginResponse',
    'TokenBundle',
    'UserProfile',
    'UsersResponse',
    'UserSummary',
    'current_millis',
]
