from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    # Credentials
    BEARER_TOKEN: Optional[str] = None
    API_KEY: Optional[str] = None
    API_SECRET: Optional[str] = None
    ACCESS_TOKEN: Optional[str] = None
    ACCESS_TOKEN_SECRET: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"

    # Upstream HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Authorization flow callback listener
    CALLBACK_HOST: str = "localhost"
    CALLBACK_PORT: int = 3456
    CALLBACK_PATH: str = "/callback"
    CALLBACK_TIMEOUT_SECONDS: float = 300.0

    @property
    def callback_url(self) -> str:
        return f"http://{self.CALLBACK_HOST}:{self.CALLBACK_PORT}{self.CALLBACK_PATH}"

    class Config:
        env_prefix = "X_"
        env_file = ".env"
        extra = "ignore"  # Allow extra fields from environment variables

@lru_cache()
def get_settings():
    return Settings()
