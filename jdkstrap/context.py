"""Application context for injectable dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from .certs import CaResources
from .config import ConfigFile, load_config, resolve_base_urls, resolve_config_path, resolve_storage_dir
from .distributions import JdkDistributions
from .downloads import download_archive
from .manager import Fetcher, JdkManager
from .spec import JdkDistributionName


@dataclass(frozen=True)
class AppContext:
    """Shared dependencies for CLI flows (config, registry, fetcher, trust store)."""

    config: ConfigFile = field(default_factory=ConfigFile)
    config_path: Optional[Path] = None
    fetcher: Fetcher = download_archive
    ca_resources_factory: Callable[[], CaResources] = CaResources

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "AppContext":
        path = config_path or resolve_config_path()
        return cls(config=load_config(path), config_path=path)

    def storage_dir(self, cli_value: Optional[Path] = None) -> Path:
        return resolve_storage_dir(cli_value, self.config)[0]

    def distributions(
        self, cli_overrides: Optional[Mapping[JdkDistributionName, str]] = None
    ) -> JdkDistributions:
        overrides: Dict[JdkDistributionName, str] = resolve_base_urls(self.config, cli_overrides)
        return JdkDistributions(base_url_overrides=overrides)

    def manager(
        self,
        storage_dir: Optional[Path] = None,
        base_url_overrides: Optional[Mapping[JdkDistributionName, str]] = None,
    ) -> JdkManager:
        return JdkManager(
            self.storage_dir(storage_dir),
            self.distributions(base_url_overrides),
            self.ca_resources_factory(),
            fetcher=self.fetcher,
        )
