from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
import time


def current_millis() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class CamelModel(BaseModel):
    """Base for models persisted or served with camelCase keys."""
    model_config = ConfigDict(populate_by_name=True)


class TokenBundle(CamelModel):
    """Access/refresh token pair returned by a code exchange or a refresh."""
    access_token: str = Field(alias="accessToken")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    expires_in: int = Field(alias="expiresIn")


class UserProfile(BaseModel):
    """The authenticated X account."""
    id: str
    username: str
    name: str


class CredentialRecord(CamelModel):
    """Persisted per-user token bundle, keyed by ``user_id``."""
    user_id: str = Field(alias="userId")
    username: str
    name: str
    access_token: str = Field(alias="accessToken")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    expires_in: int = Field(alias="expiresIn")
    created_at: int = Field(alias="createdAt")

    @classmethod
    def from_login(cls, profile: UserProfile, tokens: TokenBundle,
                   now: Optional[int] = None) -> "CredentialRecord":
        return cls(
            user_id=profile.id,
            username=profile.username,
            name=profile.name,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
            created_at=current_millis() if now is None else now,
        )

    @property
    def expires_at(self) -> int:
        """Expiry instant in milliseconds since the epoch."""
        return self.created_at + self.expires_in * 1000

    def is_expired(self, now: Optional[int] = None) -> bool:
        now = current_millis() if now is None else now
        return now >= self.expires_at

    def with_tokens(self, tokens: TokenBundle, now: Optional[int] = None) -> "CredentialRecord":
        """Copy of this record carrying freshly issued tokens."""
        return self.model_copy(update={
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
            "expires_in": tokens.expires_in,
            "created_at": current_millis() if now is None else now,
        })

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class AuthorizationRequest(BaseModel):
    """Everything needed to send a user to X and to finish the login later."""
    authorization_url: str
    code_verifier: str
    state: str


class LikedPost(BaseModel):
    """A post the user liked, with the fields requested from X."""
    model_config = ConfigDict(extra="ignore")

    id: str
    text: str
    created_at: Optional[str] = None
    author_id: Optional[str] = None


# Response models

class LoginResponse(CamelModel):
    auth_url: str = Field(alias="authUrl")


class CallbackResponse(CamelModel):
    user_id: str = Field(alias="userId")
    username: str


class UserSummary(CamelModel):
    user_id: str = Field(alias="userId")
    username: str
    name: str


class UsersResponse(BaseModel):
    users: List[UserSummary]


class LikesResponse(CamelModel):
    user_id: str = Field(alias="userId")
    likes: List[LikedPost]
    count: int
