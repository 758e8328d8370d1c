# statuspulse_server/internal/config/config.py

import logging
import os
from pathlib import Path

import tomli
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

CONFIG_FILE_PATH = Path(os.getenv("STATUSPULSE_CONFIG", "config.toml"))

PLACEHOLDER_SECRET = "REPLACE_ME"


class DBSettings(BaseModel):
    user: str
    password: str
    database: str
    host: str = "localhost"
    port: int = 5432
    min_pool_size: int = 5
    max_pool_size: int = 20


class JWTSettings(BaseModel):
    secret_key: str = PLACEHOLDER_SECRET
    algorithm: str = "HS256"


class ThresholdSettings(BaseModel):
    """Percent levels at which a host becomes warning / critical."""
    warning: float = Field(default=70.0, ge=0, le=100)
    critical: float = Field(default=90.0, ge=0, le=100)

    @model_validator(mode="after")
    def check_order(self):
        if self.warning >= self.critical:
            raise ValueError(
                f"warning threshold ({self.warning}) must be below critical ({self.critical})"
            )
        return self


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8282
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])


class Settings(BaseModel):
    database: DBSettings | None = None
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    thresholds: ThresholdSettings = Field(default_factory=ThresholdSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)


def load_config(path: Path = CONFIG_FILE_PATH) -> Settings:
    """
    Loads configuration from a TOML file.

    A missing file yields the defaults; the database section has no default,
    so the server will refuse to open its pool until one is configured.
    """
    if not path.exists():
        logger.warning(f"Configuration file not found at {path.resolve()}, using defaults")
        return Settings()

    with open(path, "rb") as f:
        data = tomli.load(f)
    settings = Settings.model_validate(data)

    if PLACEHOLDER_SECRET in settings.jwt.secret_key:
        logger.warning("Using the placeholder JWT secret key. Set [jwt].secret_key in config.toml.")

    return settings


def database_url(settings: Settings) -> str | None:
    db = settings.database
    if db is None:
        return None
    return f"postgres://{db.user}:{db.password}@{db.host}:{db.port}/{db.database}"


# Load config on import and make it available
settings = load_config()
DB_URL = database_url(settings)
