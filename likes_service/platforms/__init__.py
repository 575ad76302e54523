from .twitter import TwitterOAuth

__all__ = ['TwitterOAuth']
