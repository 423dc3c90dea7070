"""
Configuration loading for hfpersist.

Configuration is a flat key/value set. Values come from three layers,
lowest precedence first: built-in defaults, the process environment,
and the configuration file. The file is either shell-variable style
(``KEY=value`` lines) or a flat YAML mapping.

Keys may be written env-style (``SYNC_INTERVAL``), camelCase
(``syncIntervalSeconds``) or as the snake_case field name. Empty values
fall back to the default, the same way ``${VAR:-default}`` does.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigInvalidError
from .models import StoreBackendType

logger = logging.getLogger("hfpersist.config")

DRY_RUN_TOKEN = "test_token"

ENV_KEYS = {
    "HF_TOKEN": "hf_token",
    "DATASET_ID": "dataset_id",
    "ARCHIVE_PATHS": "archive_paths",
    "RESTORE_PATH": "restore_path",
    "SYNC_INTERVAL": "sync_interval_seconds",
    "MAX_ARCHIVES": "max_archives",
    "COMPRESSION_LEVEL": "compression_level",
    "ARCHIVE_PREFIX": "archive_prefix",
    "ARCHIVE_EXTENSION": "archive_extension",
    "EXCLUDE_PATTERNS": "exclude_patterns",
    "APP_COMMAND": "app_command",
    "ENABLE_AUTO_RESTORE": "enable_auto_restore",
    "ENABLE_AUTO_SYNC": "enable_auto_sync",
    "LOG_FILE": "log_file",
    "LOG_LEVEL": "log_level",
    "STORE_BACKEND": "store_backend",
    "LOCAL_STORE_PATH": "local_store_path",
    "WORK_DIR": "work_dir",
}

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class PersistenceConfig(BaseModel):
    """Complete persistence configuration.

    Attributes:
        hf_token: Access token for the Hugging Face Hub.
        dataset_id: Dataset repository holding the archives.
        archive_paths: Comma-separated list of paths to archive.
        restore_path: Directory archives are unpacked into.
        sync_interval_seconds: Pause between archive cycles.
        max_archives: How many archives to keep remotely.
        compression_level: gzip/bzip2 compression level.
        archive_prefix: Leading part of every archive name.
        archive_extension: Archive extension, e.g. ``tar.gz``.
        exclude_patterns: Comma-separated glob patterns to skip.
        app_command: Application launched by ``start``.
        enable_auto_restore: Restore the latest archive on ``start``.
        enable_auto_sync: Run the sync daemon on ``start``.
        log_file: Log file, appended to.
        log_level: Minimum log level.
        store_backend: Which remote namespace implementation to use.
        local_store_path: Directory used by the local backend.
        work_dir: Scratch directory for built and downloaded archives.
    """

    hf_token: str = Field(default="", repr=False)
    dataset_id: str = ""
    archive_paths: str = "/home/user/sync,/home/user/config"
    restore_path: Path = Path("./")

    sync_interval_seconds: int = Field(default=7200, ge=1)
    max_archives: int = Field(default=5, ge=1)
    compression_level: int = Field(default=6, ge=0, le=9)

    archive_prefix: str = "resilio_backup"
    archive_extension: str = "tar.gz"
    exclude_patterns: str = "*.log,*.tmp,__pycache__,.git"

    app_command: str = "python main.py"
    enable_auto_restore: bool = True
    enable_auto_sync: bool = True

    log_file: Optional[Path] = Path("/tmp/persistence.log")
    log_level: str = "INFO"

    store_backend: StoreBackendType = StoreBackendType.HUGGINGFACE
    local_store_path: Optional[Path] = None
    work_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))

    @field_validator("archive_extension")
    @classmethod
    def _strip_dot(cls, value: str) -> str:
        value = value.strip().lstrip(".")
        if not value:
            raise ValueError("archive_extension must not be empty")
        return value

    @field_validator("archive_prefix")
    @classmethod
    def _non_empty_prefix(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("archive_prefix must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level == "WARN":
            level = "WARNING"
        if level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def exclude_list(self) -> list[str]:
        """Exclude patterns as a list, blanks dropped."""
        return _split_list(self.exclude_patterns)

    @property
    def dry_run(self) -> bool:
        """True when the token is the dry-run placeholder.

        Dry runs build archives but never touch the remote store.
        """
        return self.hf_token == DRY_RUN_TOKEN

    @property
    def namespace(self) -> str:
        """Human-readable remote identifier for log context."""
        if self.store_backend == StoreBackendType.LOCAL:
            return str(self.local_store_path or "")
        return self.dataset_id

    def validate_persistence(self) -> None:
        """Check that remote persistence can run with this config.

        Raises:
            ConfigInvalidError: Listing every missing setting.
        """
        problems = []
        if self.store_backend == StoreBackendType.HUGGINGFACE:
            if not self.hf_token:
                problems.append("missing required setting: HF_TOKEN")
            if not self.dataset_id:
                problems.append("missing required setting: DATASET_ID")
        elif self.local_store_path is None:
            problems.append("missing required setting: LOCAL_STORE_PATH")

        if problems:
            for problem in problems:
                logger.error(problem)
            raise ConfigInvalidError(problems)

        logger.info("Configuration validated (%s: %s)", self.store_backend.value, self.namespace)


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _normalize_key(key: str) -> Optional[str]:
    """Map env-style, camelCase or snake_case keys to a field name."""
    key = key.strip()
    if key in ENV_KEYS:
        return ENV_KEYS[key]
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()
    if snake in PersistenceConfig.model_fields:
        return snake
    if key.upper() in ENV_KEYS:
        return ENV_KEYS[key.upper()]
    return None


def _parse_env_file(text: str) -> dict[str, str]:
    """Parse a shell-variable style file into raw key/value pairs.

    Supports ``#`` comments, an optional ``export`` prefix and
    single or double quoted values.
    """
    values: dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            logger.warning("Ignoring malformed config line %d: %s", lineno, line)
            continue

        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        elif " #" in value:
            value = value.split(" #", 1)[0].rstrip()
        values[key.strip()] = value
    return values


def _read_config_file(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ConfigInvalidError([f"cannot parse {path}: {exc}"]) from exc
        if not isinstance(data, dict):
            raise ConfigInvalidError([f"{path} must contain a flat mapping"])
        return data
    return _parse_env_file(text)


def _merge(target: dict[str, Any], source: Mapping[str, Any], origin: str) -> None:
    for key, value in source.items():
        field = _normalize_key(str(key))
        if field is None:
            logger.debug("Ignoring unknown %s key: %s", origin, key)
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        if value is None or value == "":
            continue
        target[field] = value


def load_config(
    config_path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PersistenceConfig:
    """Load configuration from defaults, environment and file.

    Args:
        config_path: Config file. A missing file is not an error.
        environ: Environment to read. Defaults to ``os.environ``.

    Returns:
        PersistenceConfig: The merged configuration.

    Raises:
        ConfigInvalidError: If the file is unreadable or a value is invalid.
    """
    values = _collect_values(config_path, environ)
    try:
        return PersistenceConfig(**values)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ConfigInvalidError(problems) from exc


def _collect_values(
    config_path: Optional[str | Path],
    environ: Optional[Mapping[str, str]],
) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    _merge(values, {k: v for k, v in env.items() if k in ENV_KEYS}, "environment")

    if config_path:
        path = Path(config_path).expanduser()
        if path.is_file():
            logger.info("Loading configuration file: %s", path)
            try:
                _merge(values, _read_config_file(path), "config file")
            except OSError as exc:
                raise ConfigInvalidError([f"cannot read {path}: {exc}"]) from exc
        else:
            logger.warning("Configuration file not found: %s, using defaults", path)
    return values


def load_fallback_config(
    config_path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PersistenceConfig:
    """Best-effort configuration for starting the application anyway.

    Used when ``load_config`` fails on ``start``. Invalid values are
    replaced by their defaults; an unreadable file is ignored in favour
    of the environment. The caller runs without persistence.
    """
    try:
        values = _collect_values(config_path, environ)
    except ConfigInvalidError as exc:
        logger.warning("Ignoring configuration file: %s", exc)
        values = _collect_values(None, environ)

    try:
        return PersistenceConfig(**values)
    except ValidationError as exc:
        invalid = {err["loc"][0] for err in exc.errors() if err["loc"]}

    try:
        return PersistenceConfig(**{k: v for k, v in values.items() if k not in invalid})
    except ValidationError as exc:
        logger.warning("Using default configuration: %s", exc)
        return PersistenceConfig()
