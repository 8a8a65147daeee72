"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Stockify happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, protected_prefixes -> PROTECTED_PREFIXES).
      List fields accept a JSON array in the environment.

  @model_validator(mode="after"): cross-field validation once all fields are
      resolved. A missing signing secret is a startup failure, never a
      request-time error.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
  relies on key entropy -- a short key weakens every issued token.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a
  hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or inventory/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("stockify.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    # Empty string means "use the SQLite file next to the store module".
    database_url: str = ""
    inventory_database_url: str = ""
    # Pool bounds apply to server databases only; SQLite uses its own pool.
    db_pool_size: int = 10
    db_pool_timeout: int = 30

    # ------------------------------------------------------------------
    # Tokens and sessions
    # ------------------------------------------------------------------

    token_expire_seconds: int = 7 * 24 * 3600
    reset_token_expire_seconds: int = 3600
    password_hash_rounds: int = 12
    auth_cookie_name: str = "authToken"
    # When true, API-level identity checks also require a live session record
    # for the presented token. The edge guard never consults the registry.
    session_revocation: bool = False

    # ------------------------------------------------------------------
    # Edge guard
    # ------------------------------------------------------------------

    protected_prefixes: list[str] = ["/dashboard"]
    guard_exclusions: list[str] = ["/api", "/static", "/favicon.ico", "/icon", "/login"]
    public_entry_path: str = "/"

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not 4 <= self.password_hash_rounds <= 31:
            raise ValueError("PASSWORD_HASH_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
