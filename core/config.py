"""
core/config.py -- credgate settings, read once from the environment and .env.

Nothing else in the tree reads os.environ. Modules call get_settings(), which
builds Settings on first use and hands back the same instance afterwards; the
instance is not mutated once the app has started.

Every field maps to an upper-case environment variable of the same name
(token_expire_seconds -> TOKEN_EXPIRE_SECONDS). Range checks live in
field validators; rules that depend on DEBUG live in the model validator.

Production rules (relaxed only where noted):
  [M6] SECRET_KEY must be at least 32 characters, in every mode. All tokens
       are signed with it; a short key makes them forgeable.

  [M7] With DEBUG unset or false, a missing SECRET_KEY stops startup. With
       DEBUG=true a random key is generated per process and a warning is
       logged; tokens then die with the process.

  [M8] BCRYPT_ROUNDS below 12 is refused unless DEBUG=true. The test suite
       relies on that exception to hash at cost 4.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("credgate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'credgate_accounts.db'}"

# Production floor for the bcrypt work factor.
MIN_PRODUCTION_BCRYPT_ROUNDS = 12


class Settings(BaseSettings):
    """Service configuration.

    Every field has a default, but the production rules in validate_secret_key
    demand an explicit SECRET_KEY. Settings(debug=True) works with an empty
    environment.
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
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens and passwords
    # ------------------------------------------------------------------

    jwt_algorithm: str = "HS256"
    # Token lifetime in seconds. Shared process-wide, fixed at startup.
    token_expire_seconds: int = 3600
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_expire_seconds")
    @classmethod
    def validate_token_expire_seconds(cls, v: int) -> int:
        if v < 1 or v > 604800:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be between 1 and 604800 (1 second to 7 days)")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        # bcrypt.gensalt() accepts 4..31.
        if v < 4 or v > 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        if v not in ("HS256", "HS384", "HS512"):
            raise ValueError("JWT_ALGORITHM must be one of HS256, HS384, HS512")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Apply the DEBUG-dependent rules [M6][M7][M8].

        A debug process without SECRET_KEY gets a random one; a production
        process without it, or with a bcrypt cost under the floor, fails.
        """
        if not self.secret_key and not self.debug:
            raise ValueError(
                "SECRET_KEY is required when DEBUG is off. Set it in the environment "
                "or .env, or set DEBUG=true for a throwaway development key."
            )
        if not self.secret_key:
            self.secret_key = secrets.token_hex(32)
            logger.warning("SECRET_KEY not set; generated a per-process key. Issued tokens die with this process.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not self.debug and self.bcrypt_rounds < MIN_PRODUCTION_BCRYPT_ROUNDS:
            raise ValueError(f"BCRYPT_ROUNDS must be at least {MIN_PRODUCTION_BCRYPT_ROUNDS} when DEBUG is off.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, building it on the first call.

    Tests that need different values construct Settings(...) directly, or
    call get_settings.cache_clear() after changing the environment.
    """
    return Settings()
