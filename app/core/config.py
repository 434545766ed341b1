from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    DEBUG: bool = False
    DATABASE_URL: str
    REDIS_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    ALLOWED_HOSTS: str = "*"
    APP_URL: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Page cache backstop against missed invalidations
    PAGE_CACHE_TTL_SECONDS: int = 600

    # Per-IP throttling, counters live in Redis
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    NOTIFICATIONS_CHANNEL: str = "notifications"

    @property
    def allowed_hosts(self) -> List[str]:
        return [host.strip() for host in self.ALLOWED_HOSTS.split(",") if host.strip()]

    class Config:
        env_file = [".env"]
        case_sensitive = True


settings = Settings()
