"""Environment configuration."""
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import MissingToken

DEFAULT_BASE_URL = "https://app.asana.com/api/1.0"


class Settings(BaseSettings):
    """Settings for the Asana client and MCP server.

    The credential and the default workspace are the only inputs the engine
    consumes; both are read once and passed explicitly from here on.
    """

    token: Optional[SecretStr] = Field(
        None, validation_alias=AliasChoices("ASANA_TOKEN", "ASANA_ACCESS_TOKEN")
    )
    default_workspace: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    max_concurrency: int = Field(4, ge=1)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="ASANA_", extra="ignore", populate_by_name=True)

    @field_validator("default_workspace")
    @classmethod
    def blank_workspace_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    def require_token(self) -> str:
        """Return the credential, or raise MissingToken if it is absent or blank."""
        if self.token is None:
            raise MissingToken()
        token = self.token.get_secret_value()
        if not token.strip():
            raise MissingToken()
        return token


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, read from the environment once."""
    return Settings()
