"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for KeyGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, bcrypt_rounds -> BCRYPT_ROUNDS).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved.

Signing secret policy:
  SECRET_KEY empty (the default) means every CredentialService instance draws
  its own random 32-byte secret. Tokens then die with the process, which is
  the documented behaviour: nothing about the signing key is ever persisted.
  A configured SECRET_KEY shorter than 32 characters is rejected outright --
  HS256 security rests entirely on key entropy.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("keygate.config")

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field has a default so Settings() works in tests without a .env.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "generate per process".
    secret_key: str = ""
    token_expire_seconds: int = Field(default=24 * 60 * 60, gt=0)
    # bcrypt accepts 4..31; 10 is the long-standing library default cost.
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    # Role *names* (registry keys), not role types.
    admin_role: str = "defaultAdmin"
    default_role: str = "defaultUser"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Identifier allocation
    # ------------------------------------------------------------------

    machine_id: int = Field(default=1, ge=0, le=0xFFFF)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Reject short secrets; warn when the secret is process-local."""
        if not self.secret_key:
            logger.warning(
                "SECRET_KEY not set -- using a random per-process signing key. "
                "Issued tokens will not survive a restart."
            )
        elif len(self.secret_key) < _MIN_SECRET_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.admin_role == self.default_role:
            raise ValueError("ADMIN_ROLE and DEFAULT_ROLE must name different roles.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
