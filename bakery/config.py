# bakery/config.py
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BAKERY_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./bakery.db"
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    token_ttl_minutes: int = 60
    bcrypt_rounds: int = 10
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000


@lru_cache
def get_settings() -> Settings:
    return Settings()
