"""Configuration file support for jdkstrap."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from platformdirs import PlatformDirs

from .constants import (
    BASE_URL_ENV_VAR_TEMPLATE,
    CONFIG_ENV_VAR,
    DEFAULT_APP_DIR_NAME,
    STORAGE_ENV_VAR,
)
from .errors import ConfigError
from .spec import JdkDistributionName

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover (py<311)
    import tomli as tomllib


@dataclass(frozen=True)
class ConfigFile:
    storage_dir: Optional[str] = None
    base_urls: Dict[JdkDistributionName, str] = field(default_factory=dict)


def _dirs() -> PlatformDirs:
    return PlatformDirs(appname=DEFAULT_APP_DIR_NAME, appauthor=False, roaming=True)


def default_config_path() -> Path:
    return Path(_dirs().user_config_path) / "config.toml"


def default_storage_dir() -> Path:
    return Path(_dirs().user_data_path) / "jdks"


def resolve_config_path() -> Path:
    env_value = (os.environ.get(CONFIG_ENV_VAR) or "").strip()
    if env_value:
        return Path(env_value).expanduser()
    return default_config_path()


def _safe_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        normalized = value.strip()
        return normalized or None
    return str(value).strip() or None


def _load_base_urls(value: Any) -> Dict[JdkDistributionName, str]:
    result: Dict[JdkDistributionName, str] = {}
    if not isinstance(value, dict):
        return result
    for name_raw, entry in value.items():
        if not isinstance(entry, dict):
            continue
        try:
            name = JdkDistributionName.from_ui_name(str(name_raw))
        except ValueError:
            continue
        base_url = _safe_str(entry.get("base_url") or entry.get("baseUrl"))
        if base_url:
            result[name] = base_url
    return result


def load_config(path: Optional[Path] = None) -> ConfigFile:
    config_path = path or resolve_config_path()
    if not config_path.exists():
        return ConfigFile()
    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"failed to read config file {config_path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"failed to parse config file {config_path}: {exc}") from exc
    return ConfigFile(
        storage_dir=_safe_str(data.get("storage_dir") or data.get("storageDir")),
        base_urls=_load_base_urls(data.get("distributions")),
    )


def config_template() -> str:
    return (
        "# jdkstrap configuration (TOML)\n"
        "#\n"
        "# Precedence (highest -> lowest):\n"
        "#   CLI flags > environment variables > this file > built-in defaults\n"
        "\n"
        f"# storage_dir = \"{default_storage_dir().as_posix()}\"  # or ${STORAGE_ENV_VAR}\n"
        "\n"
        "# Mirror a distribution's download host\n"
        "# (or set JDKSTRAP_<DISTRIBUTION>_BASE_URL, e.g. JDKSTRAP_AZUL_ZULU_BASE_URL)\n"
        "#\n"
        "# [distributions.azul-zulu]\n"
        "# base_url = \"https://cdn.azul.com/zulu/bin\"\n"
        "#\n"
        "# [distributions.amazon-corretto]\n"
        "# base_url = \"https://corretto.aws\"\n"
    )


def write_default_config(path: Optional[Path] = None, *, force: bool = False) -> Path:
    config_path = path or resolve_config_path()
    if config_path.exists() and not force:
        raise ConfigError(f"config file already exists: {config_path} (use --force to overwrite)")
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(config_template(), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to write config file {config_path}: {exc}") from exc
    return config_path


def base_url_env_var(name: JdkDistributionName) -> str:
    return BASE_URL_ENV_VAR_TEMPLATE.format(name=name.name)


def resolve_storage_dir(cli_value: Optional[Path], config: ConfigFile) -> Tuple[Path, str]:
    """Return the storage root and where it came from."""
    if cli_value is not None:
        return Path(cli_value).expanduser(), "cli"
    env_value = (os.environ.get(STORAGE_ENV_VAR) or "").strip()
    if env_value:
        return Path(env_value).expanduser(), "env"
    if config.storage_dir:
        return Path(config.storage_dir).expanduser(), "config"
    return default_storage_dir(), "default"


def resolve_base_urls(
    config: ConfigFile,
    cli_overrides: Optional[Mapping[JdkDistributionName, str]] = None,
) -> Dict[JdkDistributionName, str]:
    """Base URL overrides per distribution; names left out use the vendor default."""
    resolved: Dict[JdkDistributionName, str] = dict(config.base_urls)
    for name in JdkDistributionName:
        env_value = (os.environ.get(base_url_env_var(name)) or "").strip()
        if env_value:
            resolved[name] = env_value
    for name, value in (cli_overrides or {}).items():
        if value:
            resolved[name] = value
    return resolved
