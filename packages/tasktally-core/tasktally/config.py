"""
Tasktally Configuration

Settings come from ~/.tasktally/config.yaml; TASKTALLY_* environment
variables win over the file.

    database:
      type: sqlite            # or postgres
      sqlite:
        path: ~/.tasktally/tasktally.db
      postgres:
        url_env: DATABASE_URL # or url: postgresql://...
        min_pool: 1
        max_pool: 5
    identity:
      actor_id: alice
    analytics:
      scope: involved         # involved, created or assigned
    logging:
      level: INFO
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit
import os
import logging

import yaml

from tasktally.services.query import SCOPE_INVOLVED, SCOPE_MODES

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".tasktally"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

DEFAULT_SQLITE_PATH = "~/.tasktally/tasktally.db"
DEFAULT_ACTOR_ID = "local-user"


@dataclass
class DatabaseConfig:
    """Which store to use and how to reach it."""

    type: str = "sqlite"  # "sqlite" or "postgres"
    sqlite_path: str = DEFAULT_SQLITE_PATH
    postgres_url: Optional[str] = None
    min_pool: int = 1
    max_pool: int = 5


@dataclass
class IdentityConfig:
    """Actor identity used when a caller does not supply one."""

    actor_id: str = DEFAULT_ACTOR_ID


@dataclass
class AnalyticsConfig:
    scope: str = SCOPE_INVOLVED


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class TasktallyConfig:
    """Complete Tasktally configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def actor_id(self) -> str:
        return self.identity.actor_id

    def to_dict(self) -> dict:
        """Plain dict for display, with the database password hidden."""
        result = asdict(self)
        url = result["database"].get("postgres_url")
        if url:
            result["database"]["postgres_url"] = mask_url(url)
        return result


def mask_url(url: str) -> str:
    """Replace the password in a connection URL with ***."""
    parts = urlsplit(url)
    if not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    netloc = f"{parts.username}:***@{host}" if parts.username else f"***@{host}"
    return urlunsplit(parts._replace(netloc=netloc))


def _valid_scope(scope: str, source: str) -> str:
    if scope in SCOPE_MODES:
        return scope
    logger.warning(f"Unknown analytics scope '{scope}' in {source}, using '{SCOPE_INVOLVED}'")
    return SCOPE_INVOLVED


def _parse_database_config(section: dict) -> DatabaseConfig:
    sqlite_section = section.get("sqlite") or {}
    postgres_section = section.get("postgres") or {}

    # The URL may be kept out of the file and named by an env var instead
    url = postgres_section.get("url")
    if not url and postgres_section.get("url_env"):
        url = os.environ.get(postgres_section["url_env"])

    return DatabaseConfig(
        type=str(section.get("type", "sqlite")).lower(),
        sqlite_path=sqlite_section.get("path", DEFAULT_SQLITE_PATH),
        postgres_url=url,
        min_pool=int(postgres_section.get("min_pool", 1)),
        max_pool=int(postgres_section.get("max_pool", 5)),
    )


def _apply_file(config: TasktallyConfig, data: dict, source: str) -> None:
    config.database = _parse_database_config(data.get("database") or {})

    identity = data.get("identity") or {}
    config.identity.actor_id = identity.get("actor_id", DEFAULT_ACTOR_ID)

    analytics = data.get("analytics") or {}
    config.analytics.scope = _valid_scope(analytics.get("scope", SCOPE_INVOLVED), source)

    log_section = data.get("logging") or {}
    config.logging.level = str(log_section.get("level", "INFO")).upper()


def _apply_env(config: TasktallyConfig) -> None:
    env = os.environ

    # A database URL selects PostgreSQL even when the file says sqlite
    if env.get("TASKTALLY_DATABASE_URL"):
        config.database.type = "postgres"
        config.database.postgres_url = env["TASKTALLY_DATABASE_URL"]
    elif env.get("TASKTALLY_SQLITE_PATH"):
        config.database.type = "sqlite"
        config.database.sqlite_path = env["TASKTALLY_SQLITE_PATH"]

    if env.get("TASKTALLY_ACTOR_ID"):
        config.identity.actor_id = env["TASKTALLY_ACTOR_ID"]
    if env.get("TASKTALLY_ANALYTICS_SCOPE"):
        config.analytics.scope = _valid_scope(
            env["TASKTALLY_ANALYTICS_SCOPE"], "TASKTALLY_ANALYTICS_SCOPE"
        )
    if env.get("TASKTALLY_LOG_LEVEL"):
        config.logging.level = env["TASKTALLY_LOG_LEVEL"].upper()


def load_config(config_path: Optional[Path] = None) -> TasktallyConfig:
    """
    Build the configuration from defaults, the YAML file and the environment.

    An unreadable or malformed file is logged and skipped; the environment
    overrides still apply.

    Args:
        config_path: Config file to read. Defaults to ~/.tasktally/config.yaml
    """
    config_file = config_path or CONFIG_FILE
    config = TasktallyConfig()

    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Could not parse config file at {config_file}: {e}")
        except OSError as e:
            logger.warning(f"Could not read config file at {config_file}: {e}")
        else:
            _apply_file(config, data, str(config_file))

    _apply_env(config)
    return config


def save_config(config: TasktallyConfig, config_path: Optional[Path] = None) -> None:
    """Write config as YAML, readable only by the owner."""
    config_file = config_path or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)

    database: dict = {"type": config.database.type}
    if config.database.type == "sqlite":
        database["sqlite"] = {"path": config.database.sqlite_path}
    else:
        postgres = {"min_pool": config.database.min_pool, "max_pool": config.database.max_pool}
        if config.database.postgres_url:
            postgres["url"] = config.database.postgres_url
        database["postgres"] = postgres

    data = {
        "database": database,
        "identity": {"actor_id": config.identity.actor_id},
        "analytics": {"scope": config.analytics.scope},
        "logging": {"level": config.logging.level},
    }

    with open(config_file, 'w') as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    config_file.chmod(0o600)

    logger.info(f"Configuration saved to {config_file}")


_config: Optional[TasktallyConfig] = None


def get_config() -> TasktallyConfig:
    """Process-wide config, loaded on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> TasktallyConfig:
    global _config
    _config = load_config()
    return _config
