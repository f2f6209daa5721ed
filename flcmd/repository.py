"""
Package repository client.

The origins file holds one repository URL per line. Each origin serves a
YAML (or JSON) listing:

    name: open-fl-main
    plugins:
      - name: fl-noise
        version: 1.2.0
        origin: https://example.org/packages/fl-noise.zip

Listings are only read here, to turn package names into origin URLs.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import requests
import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginPointer:
    """A package as published by a repository."""

    name: str
    version: str
    origin: str


@dataclass
class Repository:
    """One repository listing."""

    name: str
    origin_url: str
    plugins: list[PluginPointer] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict, origin_url: str) -> "Repository":
        if not isinstance(data, dict):
            raise ValueError("repository listing must be a mapping")
        plugins = []
        for item in data.get("plugins") or []:
            if not isinstance(item, dict) or "name" not in item or "origin" not in item:
                raise ValueError(f"invalid plugin entry: {item!r}")
            plugins.append(PluginPointer(
                name=str(item["name"]),
                version=str(item.get("version", "0.0.0")),
                origin=str(item["origin"]),
            ))
        return cls(name=str(data.get("name", origin_url)), origin_url=origin_url, plugins=plugins)


class RepositoryClient:
    """Reads the origins file and fetches repository listings over HTTP."""

    def __init__(self, origins_file: Path, default_origin_url: str,
                 session: Optional[requests.Session] = None, timeout: float = 30.0):
        self.origins_file = Path(origins_file)
        self.default_origin_url = default_origin_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def has_origins_file(self) -> bool:
        return self.origins_file.exists()

    def read_origins(self) -> list[str]:
        """Origin URLs, skipping blank lines and # comments."""
        if not self.origins_file.exists():
            return []
        origins = []
        for line in self.origins_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                origins.append(line)
        return origins

    def write_default_origins(self) -> None:
        """Overwrite the origins file with the remote default."""
        logger.info(f"[repo] Downloading default origins from {self.default_origin_url}")
        response = self.session.get(self.default_origin_url, timeout=self.timeout)
        response.raise_for_status()
        self.origins_file.parent.mkdir(parents=True, exist_ok=True)
        self.origins_file.write_text(response.text, encoding="utf-8")

    def fetch_repository(self, origin_url: str) -> Repository:
        response = self.session.get(origin_url, timeout=self.timeout)
        response.raise_for_status()
        return Repository.from_dict(yaml.safe_load(response.text), origin_url)

    def fetch_repositories(self) -> list[Repository]:
        """
        Fetch every listing named in the origins file.

        An origin that cannot be fetched or parsed is logged and skipped.
        """
        repositories = []
        for origin in self.read_origins():
            try:
                repositories.append(self.fetch_repository(origin))
            except (requests.RequestException, yaml.YAMLError, ValueError) as e:
                logger.warning(f"[repo] Skipping origin {origin}: {e}")
        return repositories
