"""Configuration for the local platform-learning environment.

Values come from built-in defaults, an optional YAML file and finally the
environment (``GITHUB_USER``, ``GH_TOKEN``, ``GITHUB_TOKEN``).
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .errors import BootstrapError

DEFAULT_REGISTRY_OWNER = "munichbughunter"
ARGOCD_INSTALL_URL = "https://raw.githubusercontent.com/argoproj/argo-cd/stable/manifests/install.yaml"


@dataclasses.dataclass(frozen=True)
class NamespaceSpec:
    name: str
    environment: str


@dataclasses.dataclass(frozen=True)
class Component:
    """A deployable application with its image, workload selector and service."""

    name: str
    image: str
    path: str
    selector: str
    service: str
    local_port: int
    remote_port: int
    test_command: Tuple[str, ...]
    application: str


DEFAULT_NAMESPACES: Tuple[NamespaceSpec, ...] = (
    NamespaceSpec("platform-learning-dev", "dev"),
    NamespaceSpec("platform-learning-prod", "prod"),
)

DEFAULT_COMPONENTS: Tuple[Component, ...] = (
    Component(
        name="frontend",
        image="platform-frontend",
        path="apps/frontend",
        selector="frontend",
        service="frontend",
        local_port=3000,
        remote_port=80,
        test_command=("npm", "test", "--", "--run"),
        application="frontend-app",
    ),
    Component(
        name="backend",
        image="platform-backend-java",
        path="apps/backend-java",
        selector="backend-java",
        service="backend-java",
        local_port=8080,
        remote_port=8080,
        test_command=("./mvnw", "test"),
        application="backend-java-app",
    ),
)


@dataclasses.dataclass(frozen=True)
class BootstrapConfig:
    cluster_name: str = "platform-learning"
    registry_owner: str = DEFAULT_REGISTRY_OWNER
    registry_host: str = "ghcr.io"
    namespaces: Tuple[NamespaceSpec, ...] = DEFAULT_NAMESPACES
    components: Tuple[Component, ...] = DEFAULT_COMPONENTS
    app_namespace: str = "platform-learning-dev"

    # k3d topology
    servers: int = 1
    agents: int = 2
    api_port: int = 6550
    port_mappings: Tuple[str, ...] = ("8080:80@loadbalancer", "8443:443@loadbalancer")
    create_timeout: str = "120s"

    # Argo CD
    argocd_namespace: str = "argocd"
    argocd_install_url: str = ARGOCD_INSTALL_URL
    argocd_ready_timeout: str = "300s"
    argocd_url: str = "http://localhost:8080"
    argocd_ui_port: int = 8081
    pull_secret_name: str = "ghcr-secret"
    repo_secret_name: str = "platform-repo-secret"
    repository_name: str = "platform-learning"

    # Credentials, both hold a GitHub token with packages scope
    token: Optional[str] = None
    login_token: Optional[str] = None

    workspace: Path = dataclasses.field(default_factory=Path.cwd)

    @property
    def registry_url(self) -> str:
        return f"{self.registry_host}/{self.registry_owner}"

    @property
    def repository_url(self) -> str:
        return f"https://github.com/{self.registry_owner}/{self.repository_name}.git"

    @property
    def namespace_dir(self) -> Path:
        return self.workspace / "infrastructure" / "k8s" / "namespaces"

    def image_ref(self, component: Component) -> str:
        return f"{self.registry_url}/{component.image}:latest"

    def component(self, name: str) -> Component:
        for component in self.components:
            if component.name == name:
                return component
        raise BootstrapError(f"[Config] Unknown component name={name}")


def normalize_token(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


_FILE_KEYS = {
    "cluster_name",
    "registry_owner",
    "registry_host",
    "app_namespace",
    "servers",
    "agents",
    "api_port",
    "port_mappings",
    "create_timeout",
    "argocd_namespace",
    "argocd_install_url",
    "argocd_ready_timeout",
    "argocd_url",
    "argocd_ui_port",
    "pull_secret_name",
    "repo_secret_name",
    "repository_name",
    "namespaces",
}

_INT_KEYS = ("servers", "agents", "api_port", "argocd_ui_port")


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise BootstrapError(f"[Config] Config file {path} does not exist")

    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    if not isinstance(data, dict):
        raise BootstrapError(f"[Config] {path} must be a YAML map")

    unknown = sorted(set(data) - _FILE_KEYS)
    if unknown:
        raise BootstrapError(f"[Config] {path} has unknown keys: {', '.join(unknown)}")

    values: Dict[str, Any] = dict(data)
    for key in _INT_KEYS:
        if key in values:
            try:
                if isinstance(values[key], bool):
                    raise ValueError(values[key])
                values[key] = int(values[key])
            except (TypeError, ValueError) as exc:
                raise BootstrapError(f"[Config] {path} {key} must be an integer, got {values[key]!r}") from exc
    if "port_mappings" in values:
        mappings = values["port_mappings"]
        if not isinstance(mappings, list):
            raise BootstrapError(f"[Config] {path} port_mappings must be a list")
        values["port_mappings"] = tuple(str(item) for item in mappings)
    if "namespaces" in values:
        namespaces = []
        for entry in values["namespaces"] or ():
            if not isinstance(entry, dict) or not entry.get("name") or not entry.get("environment"):
                raise BootstrapError(f"[Config] {path} namespaces entries need name and environment")
            namespaces.append(NamespaceSpec(str(entry["name"]), str(entry["environment"])))
        values["namespaces"] = tuple(namespaces)
    return values


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    workspace: Optional[Path] = None,
) -> BootstrapConfig:
    environ = os.environ if environ is None else environ

    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_read_config_file(path))

    owner = (environ.get("GITHUB_USER") or "").strip()
    if owner:
        values["registry_owner"] = owner
    values["token"] = normalize_token(environ.get("GH_TOKEN"))
    values["login_token"] = normalize_token(environ.get("GITHUB_TOKEN"))
    if workspace is not None:
        values["workspace"] = workspace

    return BootstrapConfig(**values)
