"""Portal client configuration loaded from environment variables."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class PortalConfig(BaseSettings):
    """Portal client configuration loaded from environment variables.

    Settings are loaded from CAMPUS_* environment variables with sensible
    defaults. For local development, create a .env file in the project root.
    """

    # Portal settings (cookie-authenticated JSON endpoints)
    base_url: str = Field(
        default="https://jw.example.edu.cn/",
        description="Portal base URL; the login endpoint is {base_url}login",
    )
    username: str = Field(
        default="",
        description="Portal username for form login",
    )
    password: str = Field(
        default="",
        description="Portal password for form login",
    )

    # Paths
    state_dir: str = Field(
        default="data/state",
        description="Directory for persisted preferences (cookies, semester, toggles)",
    )

    # Network settings
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Connect/read timeout for a single HTTP request",
    )
    overall_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound for one gateway call before it resolves as a 502",
    )
    login_attempts: int = Field(
        default=2,
        description="Login attempts when the portal is unreachable",
    )
    login_retry_wait_seconds: float = Field(
        default=5.0,
        description="Delay between login attempts",
    )

    # Preference sharing
    share_grace_seconds: float = Field(
        default=5.0,
        description="How long a shared preference stays open after its last subscriber leaves",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "CAMPUS_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"

    @property
    def login_url(self) -> str:
        """Canonical login endpoint, compared verbatim against request URLs."""
        return f"{self.base_url}login"


# Singleton pattern
_config: PortalConfig | None = None


def get_config() -> PortalConfig:
    """Get the portal configuration singleton.

    Returns:
        PortalConfig: Portal configuration instance
    """
    global _config
    if _config is None:
        _config = PortalConfig()
    return _config
