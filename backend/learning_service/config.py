"""Application settings and validation.

Settings are layered: `config.default.json` is merged with
`config.<env>.json` from the config directory, then individual values are
overridden by environment variables.
"""

import json
import os
from pathlib import Path
from typing import Optional

BASE = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = BASE / "config"
PLACEHOLDER_SECRET = "change_me_for_prod"
RELAXED_ENVS = ("dev", "test")


def merge_config(base: dict, override: dict) -> dict:
    """Deep-merge two config mappings.

    Nested objects are merged key by key; scalars and lists in `override`
    replace the value in `base`. Neither input is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_json(path: Path) -> dict:
    if not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise RuntimeError(f"config file {path} must contain a JSON object")
    return data


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    ENV: str
    SERVER_PORT: int
    TOKEN_EXPIRATION_MINUTES: int
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_REALM: str
    JWT_ISSUER: str
    DOMAIN: str
    INTERNAL_SECRET: str
    DATABASE_URL: str
    DATABASE_USER: Optional[str]
    DATABASE_PASSWORD: Optional[str]
    DATABASE_DROP_ON_START: bool
    CONTENT_DIR: Path
    LOG_LEVEL: str

    def __init__(self, env: Optional[str] = None, config_dir: Optional[Path] = None):
        self.ENV = (env or os.getenv("APP_ENV") or os.getenv("ENV", "dev")).lower()
        config_dir = Path(config_dir or os.getenv("CONFIG_DIR") or DEFAULT_CONFIG_DIR)
        raw = merge_config(
            _load_json(config_dir / "config.default.json"),
            _load_json(config_dir / f"config.{self.ENV}.json"),
        )
        database = raw.get("database") or {}

        self.SERVER_PORT = int(os.getenv("SERVER_PORT", raw.get("serverPort", 8080)))
        self.TOKEN_EXPIRATION_MINUTES = int(os.getenv("TOKEN_EXPIRATION_MINUTES", raw.get("tokenExpirationMinutes", 60)))
        self.JWT_SECRET = os.getenv("JWT_SECRET", raw.get("jwtSecret", PLACEHOLDER_SECRET))
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_REALM = raw.get("realm", "learning-service")
        self.JWT_ISSUER = os.getenv("JWT_ISSUER", raw.get("issuer", "auth-service"))
        self.DOMAIN = os.getenv("DOMAIN", raw.get("domain", "localhost"))
        self.INTERNAL_SECRET = os.getenv("INTERNAL_SECRET", raw.get("internalSecret", PLACEHOLDER_SECRET))
        self.DATABASE_URL = os.getenv("DATABASE_URL", database.get("url") or f"sqlite:///{BASE / 'app.db'}")
        self.DATABASE_USER = os.getenv("DATABASE_USER", database.get("user")) or None
        self.DATABASE_PASSWORD = os.getenv("DATABASE_PASSWORD", database.get("password")) or None
        self.DATABASE_DROP_ON_START = _env_bool("DATABASE_DROP_ON_START", bool(database.get("dropOnStart", False)))
        content_dir = Path(os.getenv("CONTENT_DIR", raw.get("contentDir") or BASE / "content"))
        # relative paths in config files are relative to the backend folder
        self.CONTENT_DIR = content_dir if content_dir.is_absolute() else BASE / content_dir
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV in RELAXED_ENVS:
            return
        if self.JWT_SECRET == PLACEHOLDER_SECRET:
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.INTERNAL_SECRET == PLACEHOLDER_SECRET:
            raise RuntimeError("INTERNAL_SECRET must be set to a non-default value in non-dev environments")


settings = Settings()
