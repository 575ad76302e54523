"""
Example of a terminal-driven X OAuth 2.0 PKCE login.

Opens no server: paste the ``code`` query parameter from the redirect
URL back into the prompt and the user is stored like a callback would.
"""

import asyncio
from likes_service.config import get_settings
from likes_service.core import TokenManager, create_token_store
from likes_service.platforms import TwitterOAuth

async def main():
    settings = get_settings()

    # Initialize OAuth handler
    oauth = TwitterOAuth(
        client_id=settings.CLIENT_ID,
        client_secret=settings.CLIENT_SECRET,
        callback_url=settings.REDIRECT_URI
    )

    auth_request = await oauth.get_authorization_url()
    print("\nOpen this URL and approve access:")
    print(auth_request.authorization_url)

    # In a real app, the callback route receives the code
    code = input("\nEnter the 'code' parameter from the redirect URL: ").strip()

    try:
        record = await oauth.complete_login(code, auth_request.code_verifier)
        token_manager = TokenManager(create_token_store(settings), oauth)
        await token_manager.register(record)
        print(f"\nStored credentials for @{record.username} ({record.user_id})")

        posts = await oauth.get_liked_posts(record.access_token, record.user_id)
        print(f"Latest likes: {len(posts)}")
        for post in posts:
            print(f"- {post.id}: {post.text}")

    except Exception as e:
        print(f"Error: {str(e)}")

if __name__ == "__main__":
    asyncio.run(main())
