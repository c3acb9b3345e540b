"""Thin adapters over the external binaries the platform relies on."""

from __future__ import annotations

import base64
import binascii
import getpass
import json
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import BootstrapConfig
from .errors import BootstrapError
from .manifests import dump_manifest
from .runner import CommandRunner


class K3d:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def list_clusters(self) -> List[str]:
        result = self.runner.run(["k3d", "cluster", "list", "-o", "json"], check=False, capture_output=True)
        if result.returncode != 0 or not result.stdout.strip():
            return []
        try:
            clusters = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise BootstrapError(f"[Cluster] Unable to parse k3d cluster list: {exc}") from exc
        return [str(cluster.get("name")) for cluster in clusters if cluster.get("name")]

    def cluster_exists(self, name: str) -> bool:
        return name in self.list_clusters()

    def create_cluster(self, config: BootstrapConfig) -> None:
        cmd = [
            "k3d",
            "cluster",
            "create",
            config.cluster_name,
            "--api-port",
            str(config.api_port),
            "--servers",
            str(config.servers),
            "--agents",
            str(config.agents),
        ]
        for mapping in config.port_mappings:
            cmd.extend(["--port", mapping])
        cmd.extend(["--wait", "--timeout", config.create_timeout])
        self.runner.run(cmd)

    def delete_cluster(self, name: str) -> None:
        self.runner.run(["k3d", "cluster", "delete", name])

    def write_kubeconfig(self, name: str) -> str:
        path = self.runner.run(["k3d", "kubeconfig", "write", name], capture_output=True).stdout.strip()
        if not path:
            raise BootstrapError(f"[Kubeconfig] k3d returned no kubeconfig path name={name}")
        return path


class Kubectl:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def apply_file(self, path: Path, namespace: Optional[str] = None) -> None:
        cmd = ["kubectl", "apply"]
        if namespace:
            cmd.extend(["-n", namespace])
        cmd.extend(["-f", str(path)])
        self.runner.run(cmd)

    def apply_manifest(self, manifest: Dict[str, Any]) -> None:
        # Secrets carry the registry token; keep them off disk.
        self.runner.run(["kubectl", "apply", "-f", "-"], input=dump_manifest(manifest))

    def apply_remote(self, url: str, namespace: str) -> None:
        self.runner.run(["kubectl", "apply", "-n", namespace, "-f", url])

    def namespace_exists(self, namespace: str) -> bool:
        result = self.runner.run(["kubectl", "get", "namespace", namespace], check=False, capture_output=True)
        return result.returncode == 0

    def create_namespace(self, namespace: str) -> None:
        self.runner.run(["kubectl", "create", "namespace", namespace])

    def wait_ready(self, namespace: str, selector: str, timeout: str) -> None:
        self.runner.run(
            [
                "kubectl",
                "wait",
                "--for=condition=ready",
                "pod",
                "-l",
                selector,
                "-n",
                namespace,
                f"--timeout={timeout}",
            ]
        )

    def patch(self, kind: str, name: str, namespace: str, patch: str, patch_type: Optional[str] = None, check: bool = True) -> subprocess.CompletedProcess[str]:
        cmd = ["kubectl", "patch", kind, name, "-n", namespace]
        if patch_type:
            cmd.extend(["--type", patch_type])
        cmd.extend(["-p", patch])
        return self.runner.run(cmd, check=check, capture_output=not check)

    def get(self, resource: str, namespace: str) -> subprocess.CompletedProcess[str]:
        return self.runner.run(["kubectl", "get", resource, "-n", namespace], check=False, capture_output=True)

    def get_secret_value(self, namespace: str, name: str, key: str) -> Optional[str]:
        result = self.runner.run(
            ["kubectl", "-n", namespace, "get", "secret", name, "-o", f"jsonpath={{.data.{key}}}"],
            check=False,
            capture_output=True,
        )
        raw = (result.stdout or "").strip()
        if result.returncode != 0 or not raw:
            return None
        try:
            return base64.b64decode(raw, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None

    def cluster_info(self, check: bool = True) -> subprocess.CompletedProcess[str]:
        return self.runner.run(["kubectl", "cluster-info"], check=check)

    def show_nodes(self, check: bool = True) -> subprocess.CompletedProcess[str]:
        return self.runner.run(["kubectl", "get", "nodes"], check=check)

    def node_names(self) -> List[str]:
        result = self.runner.run(["kubectl", "get", "nodes", "--no-headers", "-o", "name"], check=False, capture_output=True)
        if result.returncode != 0:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def logs(self, namespace: str, selector: str, tail: int = 100, follow: bool = True) -> subprocess.CompletedProcess[str]:
        cmd = ["kubectl", "logs", "-n", namespace, "-l", selector, f"--tail={tail}"]
        if follow:
            cmd.append("-f")
        return self.runner.run(cmd, check=False)

    def port_forward(self, service: str, namespace: str, local_port: int, remote_port: int) -> subprocess.CompletedProcess[str]:
        return self.runner.run(
            ["kubectl", "port-forward", f"svc/{service}", "-n", namespace, f"{local_port}:{remote_port}"],
            check=False,
        )


class Docker:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def login(self, host: str, username: str, token: str) -> subprocess.CompletedProcess[str]:
        if not token:
            raise BootstrapError("[Registry] Refusing to log in with an empty token")
        return self.runner.run(
            ["docker", "login", host, "-u", username, "--password-stdin"],
            check=False,
            capture_output=True,
            input=f"{token}\n",
        )

    def build(self, tag: str, context: Path) -> None:
        self.runner.run(["docker", "build", "-t", tag, str(context)])

    def push(self, tag: str) -> None:
        self.runner.run(["docker", "push", tag])


class Prompter:
    """Interactive operator input. Tests swap in a scripted implementation."""

    YES = ("y", "yes", "j", "ja")

    def confirm(self, prompt: str) -> bool:
        try:
            answer = input(f"{prompt} (y/n) ")
        except EOFError:
            return False
        return answer.strip().lower() in self.YES

    def read_secret(self, prompt: str) -> str:
        try:
            return getpass.getpass(f"{prompt}: ")
        except EOFError:
            return ""
