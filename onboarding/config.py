from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./onboarding.db"
    SECRET_KEY: str = "dev-secret-onboarding"
    JWT_ALGORITHM: str = "HS256"
    TOKEN_TTL_DAYS: int = 1000
    LOG_LEVEL: str = "INFO"
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    CORS_ORIGINS: list[str] = ["*"]

    STREAM_BASE_URL: str = "https://video.stream-io-api.com/api/v2"
    STREAM_API_KEY: str = ""
    STREAM_API_TOKEN: str = ""
    STREAM_TIMEOUT_SECONDS: float = 10.0
    STREAM_MAX_ATTEMPTS: int = 3
    STREAM_BACKOFF_SECONDS: float = 0.5

    STORAGE_TIMEOUT_SECONDS: float = 5.0
    PHONE_COUNTRY_CODE: str = "234"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
