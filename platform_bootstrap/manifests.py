"""Kubernetes manifests rendered by the bootstrap.

Everything here is deterministic so re-applying the same input is a no-op
for ``kubectl apply``.
"""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .config import BootstrapConfig, NamespaceSpec

MANAGED_BY = "argocd"
REPOSITORY_SECRET_LABEL = "argocd.argoproj.io/secret-type"
REFRESH_ANNOTATION = "argocd.argoproj.io/refresh"


def namespace_manifest(spec: NamespaceSpec) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {
            "name": spec.name,
            "labels": {
                "environment": spec.environment,
                "managed-by": MANAGED_BY,
            },
        },
    }


def dump_manifest(manifest: Dict[str, Any]) -> str:
    return yaml.safe_dump(manifest, sort_keys=False)


def write_namespace_manifests(config: BootstrapConfig) -> List[Path]:
    """Write one manifest per namespace into ``config.namespace_dir``."""
    target = config.namespace_dir
    target.mkdir(parents=True, exist_ok=True)

    written = []
    for spec in config.namespaces:
        path = target / f"{spec.name}.yaml"
        path.write_text(dump_manifest(namespace_manifest(spec)), encoding="utf-8")
        written.append(path)
    return written


def docker_config_json(host: str, username: str, token: str) -> str:
    auth = base64.b64encode(f"{username}:{token}".encode("utf-8")).decode("utf-8")
    config = {"auths": {host: {"username": username, "password": token, "auth": auth}}}
    return json.dumps(config, separators=(",", ":"))


def pull_secret_manifest(name: str, namespace: str, host: str, username: str, token: str) -> Dict[str, Any]:
    encoded = base64.b64encode(docker_config_json(host, username, token).encode("utf-8")).decode("utf-8")
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "type": "kubernetes.io/dockerconfigjson",
        "data": {".dockerconfigjson": encoded},
    }


def repository_secret_manifest(name: str, namespace: str, url: str, username: str, token: str) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": {REPOSITORY_SECRET_LABEL: "repository"},
        },
        "type": "Opaque",
        "stringData": {
            "type": "git",
            "url": url,
            "username": username,
            "password": token,
        },
    }


def hard_refresh_patch() -> str:
    return json.dumps({"metadata": {"annotations": {REFRESH_ANNOTATION: "hard"}}})


def load_service_type_patch() -> str:
    return json.dumps({"spec": {"type": "LoadBalancer"}})
