# plugins/x/config.py
"""
Configuration for the X plugin
"""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class XSettings(BaseSettings):
    """
    X API endpoint settings

    These settings can be configured via environment variables
    prefixed with X_API_, e.g., X_API_BASE_URL
    """
    # Hosts
    BASE_URL: str = "https://api.x.com"
    UPLOAD_URL: str = "https://upload.x.com"

    # Field selections requested on tweet and user objects
    TWEET_FIELDS: str = "created_at,public_metrics,author_id,conversation_id,in_reply_to_user_id,lang"
    USER_FIELDS: str = "created_at,description,public_metrics,profile_image_url,url,verified"
    AUTHOR_FIELDS: str = "username,name"

    # Tweet settings
    MAX_TWEET_LENGTH: int = 280
    DEFAULT_POLL_DURATION_MINUTES: int = 1440

    # Media upload: files must live under MEDIA_ROOT when it is set
    MEDIA_ROOT: Optional[str] = None
    MEDIA_MAX_BYTES: int = 5 * 1024 * 1024

    class Config:
        env_prefix = "X_API_"
        env_file = ".env"
        extra = "ignore"

@lru_cache()
def get_x_settings():
    """
    Get the X settings, cached to avoid reloading
    """
    return XSettings()
