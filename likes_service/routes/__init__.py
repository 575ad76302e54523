from .oauth_routes import router as oauth_router
from .likes_routes import router as likes_router

__all__ = ['oauth_router', 'likes_router']
