"""
X Likes Service
---------------
Multi-user X (Twitter) OAuth 2.0 PKCE login with periodic polling of each
user's liked posts.
"""

__version__ = "1.0.0"
