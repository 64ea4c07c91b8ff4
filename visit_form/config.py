"""Global configuration for visit-form.

Configuration lives in ``~/.config/visit-form/config.yaml`` (or under
``$VISIT_FORM_HOME``)::

    default_visit_registry_path: /home/me/.config/visit-form/registry/visit-registry
    log_level: INFO
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

HOME_ENV_VAR = "VISIT_FORM_HOME"
REGISTRY_ENV_VAR = "VISIT_FORM_REGISTRY"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class GlobalConfig(BaseModel):
    """Settings read from config.yaml."""

    default_visit_registry_path: str | None = None
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level


def get_visit_form_home() -> Path:
    """Directory holding config.yaml and the synced registry."""
    env_home = os.environ.get(HOME_ENV_VAR)
    if env_home:
        return Path(env_home)
    return Path.home() / ".config" / "visit-form"


def get_config_path() -> Path:
    return get_visit_form_home() / "config.yaml"


def get_registry_root() -> Path:
    return get_visit_form_home() / "registry"


def get_visit_registry_path() -> Path:
    """Where `visit-form init` syncs the visit registry to."""
    return get_registry_root() / "visit-registry"


def load_global_config(path: Path | None = None) -> GlobalConfig:
    """Load config.yaml, or defaults when it does not exist.

    Args:
        path: Config file path. Defaults to get_config_path().

    Raises:
        ValueError: If the file is not a YAML mapping.
        pydantic.ValidationError: If a setting has an invalid value.
    """
    path = path or get_config_path()
    if not path.exists():
        return GlobalConfig()

    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return GlobalConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return GlobalConfig.model_validate(data)


def save_global_config(config: GlobalConfig, path: Path | None = None) -> Path:
    """Write config.yaml, creating its directory if needed."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config.model_dump(exclude_none=True), f, sort_keys=False)
    return path


def resolve_visit_registry(explicit: Path | None = None) -> Path:
    """Pick the visit registry to use.

    Order: explicit path, $VISIT_FORM_REGISTRY, the configured default,
    then ./visit-registry.
    """
    if explicit is not None:
        return explicit
    env_path = os.environ.get(REGISTRY_ENV_VAR)
    if env_path:
        return Path(env_path)
    config = load_global_config()
    if config.default_visit_registry_path:
        return Path(config.default_visit_registry_path)
    return Path("visit-registry")
