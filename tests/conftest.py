from __future__ import annotations

import base64
import io
import json
import logging
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest
import yaml

from platform_bootstrap.commands import CommandContext
from platform_bootstrap.config import BootstrapConfig
from platform_bootstrap.log import Console

ALL_TOOLS = ("docker", "kubectl", "k3d", "helm")
KUBECONFIG_PATH = "/home/operator/.config/k3d/kubeconfig-platform-learning.yaml"


class FakeRunner:
    """Records commands and simulates k3d/kubectl/docker state in memory."""

    def __init__(self, available: Sequence[str] = ALL_TOOLS) -> None:
        self.env: Dict[str, str] = {}
        self.available = set(available)
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self.cwds: List[Optional[Path]] = []
        self.overrides: List[Tuple[Tuple[str, ...], Callable[[List[str]], subprocess.CompletedProcess]]] = []

        self.clusters: List[str] = []
        self.namespaces: set = set()
        self.objects: Dict[Tuple[str, str, str], dict] = {}
        self.admin_password: Optional[str] = None

    # --------------------------------------------------------- configuration
    def on(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        def respond(args: List[str]) -> subprocess.CompletedProcess:
            return subprocess.CompletedProcess(args, returncode, stdout, stderr)

        self.overrides.insert(0, (tuple(prefix), respond))

    def called(self, *prefix: str) -> List[List[str]]:
        return [call for call in self.calls if tuple(call[: len(prefix)]) == prefix]

    def objects_of(self, kind: str) -> Dict[Tuple[str, str, str], dict]:
        return {key: value for key, value in self.objects.items() if key[0] == kind}

    # --------------------------------------------------------- runner surface
    def set_env(self, key: str, value: str) -> None:
        self.env[key] = value

    def which(self, name: str) -> Optional[str]:
        return f"/usr/local/bin/{name}" if name in self.available else None

    def run(self, cmd, *, check=True, capture_output=False, input=None, cwd=None):
        args = [str(part) for part in cmd]
        self.calls.append(args)
        self.inputs.append(input)
        self.cwds.append(cwd)

        result = self._respond(args, input)
        if check and result.returncode != 0:
            raise subprocess.CalledProcessError(result.returncode, args, result.stdout, result.stderr)
        return result

    # --------------------------------------------------------- simulation
    def _respond(self, args: List[str], input: Optional[str] = None) -> subprocess.CompletedProcess:
        for prefix, respond in self.overrides:
            if tuple(args[: len(prefix)]) == prefix:
                return respond(args)

        def ok(stdout: str = "") -> subprocess.CompletedProcess:
            return subprocess.CompletedProcess(args, 0, stdout, "")

        def fail(stderr: str = "") -> subprocess.CompletedProcess:
            return subprocess.CompletedProcess(args, 1, "", stderr)

        if args[:3] == ["k3d", "cluster", "list"]:
            return ok(json.dumps([{"name": name} for name in self.clusters]))
        if args[:3] == ["k3d", "cluster", "create"]:
            self.clusters.append(args[3])
            return ok()
        if args[:3] == ["k3d", "cluster", "delete"]:
            if args[3] not in self.clusters:
                return fail("cluster not found")
            self.clusters.remove(args[3])
            return ok()
        if args[:3] == ["k3d", "kubeconfig", "write"]:
            if args[3] not in self.clusters:
                return fail("cluster not found")
            return ok(f"{KUBECONFIG_PATH}\n")
        if args[:2] == ["kubectl", "apply"]:
            self._record_apply(args, input)
            return ok()
        if args[:3] == ["kubectl", "get", "namespace"]:
            return ok() if args[3] in self.namespaces else fail("NotFound")
        if args[:3] == ["kubectl", "create", "namespace"]:
            self.namespaces.add(args[3])
            return ok()
        if args[:3] == ["kubectl", "get", "nodes"] and "-o" in args:
            return ok("node/k3d-server-0\nnode/k3d-agent-0\nnode/k3d-agent-1\n")
        if args[:1] == ["kubectl"] and "secret" in args and "get" in args:
            if self.admin_password is None:
                return fail("NotFound")
            return ok(base64.b64encode(self.admin_password.encode()).decode())
        return ok()

    def _record_apply(self, args: List[str], input: Optional[str]) -> None:
        target = args[args.index("-f") + 1]
        if target.startswith("http"):
            return
        if target == "-":
            sources = [input or ""]
        else:
            path = Path(target)
            files = sorted(path.glob("*.yaml")) if path.is_dir() else [path]
            sources = [file.read_text(encoding="utf-8") for file in files]
        for source in sources:
            for doc in yaml.safe_load_all(source):
                if not doc:
                    continue
                metadata = doc.get("metadata") or {}
                key = (doc["kind"], metadata.get("namespace", ""), metadata["name"])
                self.objects[key] = doc
                if doc["kind"] == "Namespace":
                    self.namespaces.add(metadata["name"])


class ScriptedPrompter:
    def __init__(self, answers: Sequence[bool] = (), secrets: Sequence[str] = ()) -> None:
        self.answers = list(answers)
        self.secrets = list(secrets)
        self.prompts: List[str] = []

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        assert self.answers, f"unexpected confirmation prompt: {prompt}"
        return self.answers.pop(0)

    def read_secret(self, prompt: str) -> str:
        self.prompts.append(prompt)
        assert self.secrets, f"unexpected secret prompt: {prompt}"
        return self.secrets.pop(0)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(output: io.StringIO) -> Console:
    return Console(stream=output, use_color=False)


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tests.platform_bootstrap")


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., BootstrapConfig]:
    def factory(**overrides) -> BootstrapConfig:
        overrides.setdefault("workspace", tmp_path)
        return BootstrapConfig(**overrides)

    return factory


@pytest.fixture
def make_context(runner: FakeRunner, console: Console, logger: logging.Logger, make_config) -> Callable[..., CommandContext]:
    def factory(prompter: Optional[ScriptedPrompter] = None, **overrides) -> CommandContext:
        return CommandContext(
            config=make_config(**overrides),
            runner=runner,
            prompter=prompter or ScriptedPrompter(),
            logger=logger,
            console=console,
        )

    return factory
