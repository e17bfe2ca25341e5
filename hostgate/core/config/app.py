"""
Application-specific settings.
"""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; WOW64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/97.0.4692.71 YaBrowser/21.11.0 Yowser/2.5 Safari/537.36"
)


class AppSettings(BaseSettings):
    """
    Defines process-wide settings: naming, environment, logging and the
    defaults applied to outbound HTTP requests.

    Performance Note:
        - HTTP_TIMEOUT applies to a whole request (connect, send and read) unless
          a request overrides it.
    """
    PROJECT_NAME: str = "hostgate"
    VERSION: str = "0.1.0"
    APP_ENV: str = "development"

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    HTTP_TIMEOUT: float = Field(default=10.0, gt=0)
    HTTP_USER_AGENT: str = DEFAULT_USER_AGENT

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """
        Normalizes the log level name and rejects unknown levels.

        Args:
            value: Level name, case-insensitive.

        Returns:
            Upper-cased level name.
        """
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {value}")
        return level
