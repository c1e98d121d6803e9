import os
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

from .url_parser import parser

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "GharKhoj Rental Marketplace"
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./gharkhoj.db"
    )
    CREATE_TABLES_ON_STARTUP: bool = False
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_EXPIRE_MINUTES: int = 30
    REFRESH_EXPIRE_DAYS: int = 5
    BLACKLIST_RETENTION_DAYS: int = 7
    SECURE_COOKIES: bool = False  # must be false on localhost
    ALLOWED_HOSTS_RAW: str = os.getenv("ALLOWED_HOSTS", "")

    CLOUDINARY_CLOUD_NAME: str | None = os.getenv("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY: str | None = os.getenv("CLOUDINARY_API_KEY")
    CLOUDINARY_SECRET_KEY: str | None = os.getenv("CLOUDINARY_SECRET_KEY")
    PROPERTY_IMAGE_FOLDER: str = "property-images"
    AVATAR_FOLDER: str = "avatars"

    UPSTASH_REDIS_TOKEN: str | None = os.getenv("UPSTASH_REDIS_REST_TOKEN")
    UPSTASH_REDIS_URL: str | None = os.getenv("UPSTASH_REDIS_REST_URL")
    CACHE_TTL_SECONDS: int = 300

    RATE_LIMIT_REDIS_URL: str | None = os.getenv("RATE_LIMIT_REDIS_URL")
    RATE_LIMIT_TIMES: int = 20
    RATE_LIMIT_SECONDS: int = 10

    MAX_PROPERTY_IMAGES: int = 10
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    MAX_AVATAR_BYTES: int = 2 * 1024 * 1024
    MIN_PASSWORD_LENGTH: int = 6
    DEFAULT_PHONE_REGION: str = "NP"
    RECENT_LISTINGS_LIMIT: int = 10

    @property
    def ALLOWED_HOSTS(self) -> List[str]:
        return parser.parse_url_list(self.ALLOWED_HOSTS_RAW, "ALLOWED_HOSTS")

    class Config:
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


settings = Settings()
