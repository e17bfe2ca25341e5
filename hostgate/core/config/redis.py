"""
Redis cache settings.
"""
from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings
import logging

logger = logging.getLogger(__name__)


class RedisSettings(BaseSettings):
    """
    Defines settings for the Redis connection holding the shared counters.

    Security Note:
        - REDIS_PASSWORD should be set whenever Redis is reachable from outside
          a trusted network.
        - Use REDIS_SSL (rediss://) when Redis is reached over an untrusted network.
    """
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = Field(ge=1, le=65535, default=6379)
    REDIS_PASSWORD: SecretStr = SecretStr("")
    REDIS_SSL: bool = False
    REDIS_DB: int = Field(ge=0, default=0)
    REDIS_URL: str = Field(default="", validate_default=True)

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_url(cls, v: str | None, info: ValidationInfo) -> str:
        """
        Assembles the Redis connection URL if not provided explicitly.
        The password is never logged.

        Args:
            v: Explicitly provided URL or None.
            info: Validation context with other field values.

        Returns:
            Assembled or provided Redis URL.
        """
        if v:
            return v

        values = info.data
        protocol = "rediss" if values.get("REDIS_SSL") else "redis"
        redis_password = values.get("REDIS_PASSWORD")
        secret = redis_password.get_secret_value() if redis_password else ""
        password = f":{secret}@" if secret else ""

        url = (
            f"{protocol}://{password}{values.get('REDIS_HOST')}:"
            f"{values.get('REDIS_PORT')}/{values.get('REDIS_DB', 0)}"
        )
        logger.debug("Assembled REDIS_URL (password masked).")
        return url
