"""Configuration loading for the throttler."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from throttler.logging import DEFAULT_LOG_DIR, DEFAULT_LOG_LEVEL

CONFIG_FILENAME = "throttler.yaml"
CONFIG_ENV_VAR = "THROTTLER_CONFIG"

# TGS has no structured job type, compile jobs are recognised by description
DEFAULT_COMPILE_JOB_DESCRIPTION = "Compile active repository code"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


@dataclass
class ThrottleConfig:
    """Admission-control settings."""

    max: int
    compile_job_description: str = DEFAULT_COMPILE_JOB_DESCRIPTION


@dataclass
class DatabaseConfig:
    """State database connection settings.

    Either ``url`` (any SQLAlchemy URL) or the discrete ``host``/``db``
    fields are given. The discrete form builds a URL for ``driver``, which
    defaults to MySQL, the database TGS is most commonly deployed against.
    """

    url: str | None = None
    host: str | None = None
    port: int | None = None
    db: str | None = None
    user: str | None = None
    password: str | None = None
    driver: str = "mysql+pymysql"

    def get_url(self) -> URL:
        """Get the SQLAlchemy URL for the state database."""
        if self.url:
            try:
                return make_url(self.url)
            except ArgumentError as e:
                raise ConfigError(f"Invalid db.url: {e}") from e
        if not self.host or not self.db:
            raise ConfigError("db section needs either 'url' or both 'host' and 'db'")
        backend = self.driver.split("+", 1)[0]
        return URL.create(
            self.driver,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.db,
            query={"charset": "utf8mb4"} if backend in ("mysql", "mariadb") else {},
        )


@dataclass
class TGSConfig:
    """Build-orchestration API settings."""

    host: str
    user: str
    password: str
    port: int | None = None
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        """Host with the optional port appended."""
        host = self.host.rstrip("/")
        return f"{host}:{self.port}" if self.port else host


@dataclass
class GitConfig:
    """Working copy inspection settings."""

    timeout: float = 120.0
    repository_dir: str = "Repository"


@dataclass
class LoggingConfig:
    """Log output settings."""

    dir: str = DEFAULT_LOG_DIR
    level: str = DEFAULT_LOG_LEVEL
    console: bool = True


@dataclass
class ThrottlerConfig:
    """Complete throttler configuration."""

    throttle: ThrottleConfig
    db: DatabaseConfig
    tgs: TGSConfig
    git: GitConfig = field(default_factory=GitConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    root_path: Path = field(default_factory=Path)

    @classmethod
    def from_dict(cls, data: dict[str, Any], root_path: Path) -> ThrottlerConfig:
        """Create config from dictionary.

        Args:
            data: Configuration dictionary from YAML.
            root_path: Root directory containing the config file.

        Returns:
            Parsed configuration object.

        Raises:
            ConfigError: If required fields are missing or invalid.
        """
        required_sections = ["throttle", "db", "tgs"]
        missing = [s for s in required_sections if not isinstance(data.get(s), dict)]
        if missing:
            raise ConfigError(f"Missing required sections: {', '.join(missing)}")

        throttle_data = data["throttle"]
        if "max" not in throttle_data:
            raise ConfigError("Missing required field: throttle.max")
        try:
            max_jobs = int(throttle_data["max"])
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"throttle.max must be an integer, got {throttle_data['max']!r}"
            ) from e
        if max_jobs < 1:
            raise ConfigError(f"throttle.max must be positive, got {max_jobs}")
        throttle = ThrottleConfig(
            max=max_jobs,
            compile_job_description=throttle_data.get(
                "compile_job_description", DEFAULT_COMPILE_JOB_DESCRIPTION
            ),
        )

        db_data = data["db"]
        db = DatabaseConfig(
            url=db_data.get("url"),
            host=db_data.get("host"),
            port=_optional_int(db_data.get("port"), "db.port"),
            db=db_data.get("db"),
            user=db_data.get("user"),
            password=db_data.get("pass"),
            driver=db_data.get("driver", "mysql+pymysql"),
        )
        # Validate early so a bad db section fails at startup
        db.get_url()

        tgs_data = data["tgs"]
        tgs_missing = [k for k in ("host", "user", "pass") if not tgs_data.get(k)]
        if tgs_missing:
            raise ConfigError(
                f"Missing required fields: {', '.join(f'tgs.{k}' for k in tgs_missing)}"
            )
        tgs = TGSConfig(
            host=str(tgs_data["host"]),
            user=str(tgs_data["user"]),
            password=str(tgs_data["pass"]),
            port=_optional_int(tgs_data.get("port"), "tgs.port"),
            timeout=float(tgs_data.get("timeout", 30.0)),
        )

        git_data = data.get("git") or {}
        git = GitConfig(
            timeout=float(git_data.get("timeout", 120.0)),
            repository_dir=git_data.get("repository_dir", "Repository"),
        )

        logging_data = data.get("logging") or {}
        log_config = LoggingConfig(
            dir=logging_data.get("dir", DEFAULT_LOG_DIR),
            level=logging_data.get("level", DEFAULT_LOG_LEVEL),
            console=logging_data.get("console", True),
        )

        return cls(
            throttle=throttle,
            db=db,
            tgs=tgs,
            git=git,
            logging=log_config,
            root_path=root_path,
        )

    def get_log_dir(self) -> Path:
        """Get the log directory, relative paths resolved against the config file."""
        log_dir = Path(self.logging.dir)
        if log_dir.is_absolute():
            return log_dir
        return self.root_path / log_dir


def _optional_int(value: Any, name: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def load_config(config_path: Path | str) -> ThrottlerConfig:
    """Load throttler configuration from a YAML file.

    Args:
        config_path: Path to throttler.yaml file.

    Returns:
        Parsed configuration object.

    Raises:
        ConfigError: If file doesn't exist or is invalid.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")

    return ThrottlerConfig.from_dict(data, config_path.parent)


def find_config(start_path: Path | str | None = None) -> Path:
    """Find the configuration file.

    Uses THROTTLER_CONFIG when set, otherwise walks up the directory tree
    from ``start_path`` looking for throttler.yaml.

    Raises:
        ConfigError: If no config file is found.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)

    start_path = Path.cwd() if start_path is None else Path(start_path)
    current = start_path.resolve()

    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.exists():
            return config_path
        if current == current.parent:
            break
        current = current.parent

    raise ConfigError(f"No {CONFIG_FILENAME} found in {start_path} or any parent directory")
