# plugins/x/operations.py
"""
X Operation Catalogue
=====================

This module declares every operation the X plugin exposes.

Operations by capability:

Read (bearer token):
- search_tweets, get_user_profile, get_user_tweets, get_tweet_replies,
  get_tweet, get_user_followers, get_user_following, get_liking_users

Delegated (OAuth 1.0a user context):
- get_my_profile, get_user_mentions, get_quote_tweets, get_bookmarks,
  get_trending_topics
- create_post, delete_post, upload_media
- the toggle pairs declared in plugins.x.toggles

None:
- get_auth_status

The XOperationProvider declares the full catalogue regardless of the
credentials; the plugin manager drops what the credentials cannot serve.
The delegated client is only built the first time a delegated handler runs.
"""

import asyncio
import logging
import mimetypes
import os
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from auth.credentials import CredentialSet
from plugins import Capability, EmptyInput, OperationDescriptor, OperationProvider
from plugins.x.client import XBearerClient, XDelegatedClient
from plugins.x.config import XSettings, get_x_settings
from plugins.x.identity import IdentityCache
from plugins.x.toggles import NUMERIC_ID_PATTERN, TOGGLE_OPERATIONS, build_toggle_operations

logger = logging.getLogger(__name__)

settings = get_x_settings()

USERNAME_PATTERN = r"^[A-Za-z0-9_]{1,15}$"


class SearchTweetsInput(BaseModel):
    query: str = Field(description="Search query (supports X search operators like lang:en, -is:retweet, from:username)")
    max_results: int = Field(10, ge=10, le=100, description="Number of results (10-100)")


class UsernameInput(BaseModel):
    username: str = Field(pattern=USERNAME_PATTERN, description="X username (without @)")


class UserTweetsInput(BaseModel):
    user_id: str = Field(pattern=NUMERIC_ID_PATTERN, description="X user ID (numeric string, get this from get_user_profile)")
    max_results: int = Field(10, ge=5, le=100, description="Number of results (5-100)")


class TweetRepliesInput(BaseModel):
    tweet_id: str = Field(pattern=NUMERIC_ID_PATTERN, description="Tweet ID to find replies for (used as conversation_id)")
    max_results: int = Field(10, ge=10, le=100, description="Number of results (10-100)")


class TweetInput(BaseModel):
    tweet_id: str = Field(pattern=NUMERIC_ID_PATTERN, description="Tweet ID")


class UserConnectionsInput(BaseModel):
    user_id: str = Field(pattern=NUMERIC_ID_PATTERN, description="X user ID (numeric string)")
    max_results: int = Field(100, ge=1, le=1000, description="Number of results (1-1000)")


class LikingUsersInput(BaseModel):
    tweet_id: str = Field(pattern=NUMERIC_ID_PATTERN, description="Tweet ID")
    max_results: int = Field(100, ge=1, le=100, description="Number of results (1-100)")


class UserMentionsInput(BaseModel):
    user_id: str = Field(pattern=NUMERIC_ID_PATTERN, description="X user ID (numeric string)")
    max_results: int = Field(10, ge=5, le=100, description="Number of results (5-100)")


class QuoteTweetsInput(BaseModel):
    tweet_id: str = Field(pattern=NUMERIC_ID_PATTERN, description="Tweet ID")
    max_results: int = Field(10, ge=10, le=100, description="Number of results (10-100)")


class BookmarksInput(BaseModel):
    max_results: int = Field(20, ge=1, le=100, description="Number of results (1-100)")


class TrendingTopicsInput(BaseModel):
    woeid: int = Field(1, description="Where On Earth ID (1=worldwide, 23424977=US, 23424975=UK)")


class CreatePostInput(BaseModel):
    text: str = Field(max_length=settings.MAX_TWEET_LENGTH, description="Tweet text (max 280 characters)")
    reply_to: Optional[str] = Field(None, pattern=NUMERIC_ID_PATTERN, description="Tweet ID to reply to (makes this a reply)")
    quote_tweet_id: Optional[str] = Field(None, pattern=NUMERIC_ID_PATTERN, description="Tweet ID to quote (makes this a quote tweet)")
    poll_options: Optional[List[str]] = Field(
        None, min_length=2, max_length=4,
        description="Poll options (2-4 choices). Creates a poll attached to the tweet."
    )
    poll_duration_minutes: Optional[int] = Field(
        None, ge=5, le=10080,
        description="Poll duration in minutes (5-10080, default 1440 = 24h). Only used with poll_options."
    )
    media_ids: Optional[List[str]] = Field(
        None, min_length=1, max_length=4,
        description="Media IDs from upload_media to attach (1-4)"
    )


class DeletePostInput(BaseModel):
    tweet_id: str = Field(pattern=NUMERIC_ID_PATTERN, description="Tweet ID to delete (must be your own tweet)")


class UploadMediaInput(BaseModel):
    file_path: str = Field(description="Path to a local image, GIF or video file")
    media_category: Optional[str] = Field(
        None, description="Media category (tweet_image, tweet_gif, tweet_video)"
    )


def read_media_file(file_path: str, media_root: Optional[str], max_bytes: int) -> bytes:
    """
    Read a local file for upload.

    Args:
        file_path (str): Path given by the caller
        media_root (Optional[str]): Directory the file must resolve into, if set
        max_bytes (int): Largest accepted file size

    Returns:
        bytes: The file content

    Raises:
        ValueError: If the path escapes media_root, is not a regular file or is too large
    """
    path = os.path.realpath(file_path)
    if media_root is not None:
        root = os.path.realpath(media_root)
        if os.path.commonpath([root, path]) != root:
            raise ValueError(f"{file_path} is outside the media directory {media_root}")
    if not os.path.isfile(path):
        raise ValueError(f"{file_path} is not a file")
    size = os.path.getsize(path)
    if size > max_bytes:
        raise ValueError(f"{file_path} is {size} bytes, the limit is {max_bytes}")
    with open(path, "rb") as f:
        return f.read()


def build_post_body(data: CreatePostInput) -> Dict[str, Any]:
    """Build the JSON body of a create-tweet request."""
    body: Dict[str, Any] = {"text": data.text}
    if data.reply_to:
        body["reply"] = {"in_reply_to_tweet_id": data.reply_to}
    if data.quote_tweet_id:
        body["quote_tweet_id"] = data.quote_tweet_id
    if data.poll_options:
        body["poll"] = {
            "options": data.poll_options,
            "duration_minutes": data.poll_duration_minutes or settings.DEFAULT_POLL_DURATION_MINUTES,
        }
    if data.media_ids:
        body["media"] = {"media_ids": data.media_ids}
    return body


class XOperationProvider(OperationProvider):
    """
    Operation provider for the X API.

    Attributes:
        http (httpx.AsyncClient): Shared HTTP client for both dispatchers
        bearer (XBearerClient): App-only client
        identity (IdentityCache): The caller's own user id, resolved once

    Class Attributes:
        service_name (str): The unique identifier for this plugin
    """

    service_name = "x"

    def __init__(
        self,
        credentials: CredentialSet,
        http: Optional[httpx.AsyncClient] = None,
        x_settings: Optional[XSettings] = None,
        timeout: float = 30.0,
    ):
        super().__init__(credentials)
        self.x_settings = x_settings or settings
        self.http = http or httpx.AsyncClient(timeout=timeout)
        self.bearer = XBearerClient(credentials.bearer_token, self.http, self.x_settings)
        self._delegated: Optional[XDelegatedClient] = None
        self.identity = IdentityCache(self._resolve_my_user_id)

    @property
    def delegated(self) -> XDelegatedClient:
        """
        The OAuth 1.0a client, built on first use.

        Raises:
            SigningPreconditionError: If the credentials are not delegated-capable
        """
        if self._delegated is None:
            self._delegated = XDelegatedClient(self.credentials, self.http, self.x_settings)
        return self._delegated

    async def _resolve_my_user_id(self) -> str:
        data = await self.delegated.request("GET", "/users/me")
        return data["data"]["id"]

    async def aclose(self) -> None:
        await self.http.aclose()

    def _tweet_expansions(self) -> Dict[str, Any]:
        return {
            "tweet.fields": self.x_settings.TWEET_FIELDS,
            "expansions": "author_id",
            "user.fields": self.x_settings.AUTHOR_FIELDS,
        }

    def get_operations(self) -> List[OperationDescriptor]:
        operations = self._status_operations()
        operations += self._read_operations()
        operations += self._delegated_read_operations()
        operations += self._write_operations()
        operations += build_toggle_operations(TOGGLE_OPERATIONS, lambda: self.delegated, self.identity)
        return operations

    def _status_operations(self) -> List[OperationDescriptor]:
        async def get_auth_status(data: EmptyInput):
            return {
                "read": self.credentials.is_read_capable,
                "delegated": self.credentials.is_delegated_capable,
                "user_id": await self.identity.get() if self.identity.resolved else None,
            }

        return [
            OperationDescriptor(
                name="get_auth_status",
                description="Report which credential classes this server runs with (bearer read access, OAuth user context).",
                capability=Capability.NONE,
                handler=get_auth_status,
            ),
        ]

    def _read_operations(self) -> List[OperationDescriptor]:
        user_fields = self.x_settings.USER_FIELDS

        async def search_tweets(data: SearchTweetsInput):
            return await self.bearer.get("/tweets/search/recent", {
                "query": data.query,
                "max_results": data.max_results,
                **self._tweet_expansions(),
            })

        async def get_user_profile(data: UsernameInput):
            return await self.bearer.get(f"/users/by/username/{data.username}", {"user.fields": user_fields})

        async def get_user_tweets(data: UserTweetsInput):
            return await self.bearer.get(f"/users/{data.user_id}/tweets", {
                "max_results": data.max_results,
                "tweet.fields": self.x_settings.TWEET_FIELDS,
            })

        async def get_tweet_replies(data: TweetRepliesInput):
            return await self.bearer.get("/tweets/search/recent", {
                "query": f"conversation_id:{data.tweet_id}",
                "max_results": data.max_results,
                **self._tweet_expansions(),
            })

        async def get_tweet(data: TweetInput):
            return await self.bearer.get(f"/tweets/{data.tweet_id}", self._tweet_expansions())

        async def get_user_followers(data: UserConnectionsInput):
            return await self.bearer.get(f"/users/{data.user_id}/followers", {
                "max_results": data.max_results,
                "user.fields": user_fields,
            })

        async def get_user_following(data: UserConnectionsInput):
            return await self.bearer.get(f"/users/{data.user_id}/following", {
                "max_results": data.max_results,
                "user.fields": user_fields,
            })

        async def get_liking_users(data: LikingUsersInput):
            return await self.bearer.get(f"/tweets/{data.tweet_id}/liking_users", {
                "max_results": data.max_results,
                "user.fields": user_fields,
            })

        return [
            OperationDescriptor(
                name="search_tweets",
                description="Search recent tweets by keywords, hashtags, or advanced operators. Returns up to 100 tweets from the last 7 days.",
                input_model=SearchTweetsInput,
                handler=search_tweets,
            ),
            OperationDescriptor(
                name="get_user_profile",
                description="Get an X/Twitter user's profile by username. Returns bio, follower counts, and account details.",
                input_model=UsernameInput,
                handler=get_user_profile,
            ),
            OperationDescriptor(
                name="get_user_tweets",
                description="Get recent tweets from a specific user by their user ID. Use get_user_profile first to get the ID from a username.",
                input_model=UserTweetsInput,
                handler=get_user_tweets,
            ),
            OperationDescriptor(
                name="get_tweet_replies",
                description="Get replies to a specific tweet using its conversation ID. Returns recent replies from the last 7 days.",
                input_model=TweetRepliesInput,
                handler=get_tweet_replies,
            ),
            OperationDescriptor(
                name="get_tweet",
                description="Get a single tweet by ID with full details including metrics, author info, and conversation context.",
                input_model=TweetInput,
                handler=get_tweet,
            ),
            OperationDescriptor(
                name="get_user_followers",
                description="Get a list of users who follow the specified user. Use get_user_profile first to get the user ID.",
                input_model=UserConnectionsInput,
                handler=get_user_followers,
            ),
            OperationDescriptor(
                name="get_user_following",
                description="Get a list of users the specified user is following. Use get_user_profile first to get the user ID.",
                input_model=UserConnectionsInput,
                handler=get_user_following,
            ),
            OperationDescriptor(
                name="get_liking_users",
                description="Get a list of users who liked a specific tweet.",
                input_model=LikingUsersInput,
                handler=get_liking_users,
            ),
        ]

    def _delegated_read_operations(self) -> List[OperationDescriptor]:
        async def get_my_profile(data: EmptyInput):
            return await self.delegated.request("GET", "/users/me", {"user.fields": self.x_settings.USER_FIELDS})

        async def get_user_mentions(data: UserMentionsInput):
            return await self.delegated.request("GET", f"/users/{data.user_id}/mentions", {
                "max_results": data.max_results,
                **self._tweet_expansions(),
            })

        async def get_quote_tweets(data: QuoteTweetsInput):
            return await self.delegated.request("GET", f"/tweets/{data.tweet_id}/quote_tweets", {
                "max_results": data.max_results,
                **self._tweet_expansions(),
            })

        async def get_bookmarks(data: BookmarksInput):
            me = await self.identity.get()
            return await self.delegated.request("GET", f"/users/{me}/bookmarks", {
                "max_results": data.max_results,
                **self._tweet_expansions(),
            })

        async def get_trending_topics(data: TrendingTopicsInput):
            return await self.delegated.request("GET", "/1.1/trends/place.json", {"id": data.woeid})

        return [
            OperationDescriptor(
                name="get_my_profile",
                description="Get the authenticated user's own profile. Requires OAuth; returns your user ID, bio, metrics, etc.",
                capability=Capability.DELEGATED,
                handler=get_my_profile,
            ),
            OperationDescriptor(
                name="get_user_mentions",
                description="Get recent tweets mentioning a specific user. Requires OAuth for user-context access.",
                input_model=UserMentionsInput,
                capability=Capability.DELEGATED,
                handler=get_user_mentions,
            ),
            OperationDescriptor(
                name="get_quote_tweets",
                description="Get tweets that quote a specific tweet. Requires OAuth for user-context access.",
                input_model=QuoteTweetsInput,
                capability=Capability.DELEGATED,
                handler=get_quote_tweets,
            ),
            OperationDescriptor(
                name="get_bookmarks",
                description="Get the authenticated user's bookmarked tweets. Bearer token is explicitly forbidden for this endpoint.",
                input_model=BookmarksInput,
                capability=Capability.DELEGATED,
                handler=get_bookmarks,
            ),
            OperationDescriptor(
                name="get_trending_topics",
                description="Get current trending topics for a location. Uses v1.1 API. Default WOEID 1 = worldwide, 23424977 = US.",
                input_model=TrendingTopicsInput,
                capability=Capability.DELEGATED,
                handler=get_trending_topics,
            ),
        ]

    def _write_operations(self) -> List[OperationDescriptor]:
        async def create_post(data: CreatePostInput):
            return await self.delegated.request("POST", "/tweets", json_body=build_post_body(data))

        async def delete_post(data: DeletePostInput):
            return await self.delegated.request("DELETE", f"/tweets/{data.tweet_id}")

        async def upload_media(data: UploadMediaInput):
            content = await asyncio.to_thread(
                read_media_file,
                data.file_path,
                self.x_settings.MEDIA_ROOT,
                self.x_settings.MEDIA_MAX_BYTES,
            )
            mime_type = mimetypes.guess_type(data.file_path)[0] or "application/octet-stream"
            params = {"media_category": data.media_category}
            logger.info(f"Uploading {len(content)} bytes of {mime_type}")
            return await self.delegated.upload(
                "/1.1/media/upload.json",
                files={"media": (os.path.basename(data.file_path), content, mime_type)},
                params=params,
            )

        return [
            OperationDescriptor(
                name="create_post",
                description="Create a new tweet/post on X. Supports text, replies, quote tweets, polls and attached media. Max 280 characters for text.",
                input_model=CreatePostInput,
                capability=Capability.DELEGATED,
                handler=create_post,
            ),
            OperationDescriptor(
                name="delete_post",
                description="Delete one of your own tweets by ID. This action is irreversible.",
                input_model=DeletePostInput,
                capability=Capability.DELEGATED,
                handler=delete_post,
            ),
            OperationDescriptor(
                name="upload_media",
                description="Upload an image, GIF or short video from a local file. Returns a media_id_string to pass to create_post.",
                input_model=UploadMediaInput,
                capability=Capability.DELEGATED,
                handler=upload_media,
            ),
        ]
