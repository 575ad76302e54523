from setuptools import setup, find_packages

setup(
    name="x_likes_service",
    version="1.0.0",
    packages=find_packages(include=["likes_service", "likes_service.*"]),
    install_requires=[
        "aiohttp>=3.8.1",
        "cryptography>=3.4.7",
        "fastapi>=0.100.0",
        "itsdangerous>=2.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "python-dotenv>=0.19.0",
        "requests-oauthlib>=1.3.1",
        "tweepy[async]>=4.10.0",
        "uvicorn>=0.15.0",
    ],
    extras_require={
        "test": [
            "httpx>=0.24",
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "likes-service=likes_service.main:run",
            "likes-poll=likes_service.scripts.poll_likes:run",
        ],
    },
    python_requires=">=3.10",
    description="Multi-user X OAuth 2.0 login with periodic liked-posts polling",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
