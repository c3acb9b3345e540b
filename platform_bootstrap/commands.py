"""Operator shortcuts around docker, kubectl and k3d.

Each command takes a :class:`CommandContext` and returns a process exit
code. Commands that need registry credentials check for them before
running anything.
"""

from __future__ import annotations

import dataclasses
import logging
import subprocess
from typing import Callable, Dict, Optional

from .bootstrap import ARGOCD_ADMIN_USER, Bootstrapper, read_admin_password
from .config import BootstrapConfig, Component
from .errors import BootstrapError, MissingTokenError
from .log import CYAN, YELLOW, Console
from .manifests import hard_refresh_patch
from .runner import CommandRunner
from .tools import Docker, K3d, Kubectl, Prompter


@dataclasses.dataclass
class CommandContext:
    config: BootstrapConfig
    runner: CommandRunner
    prompter: Prompter
    logger: logging.Logger
    console: Console

    @property
    def kubectl(self) -> Kubectl:
        return Kubectl(self.runner)

    @property
    def docker(self) -> Docker:
        return Docker(self.runner)

    @property
    def k3d(self) -> K3d:
        return K3d(self.runner)


@dataclasses.dataclass(frozen=True)
class Command:
    name: str
    help: str
    func: Callable[[CommandContext], int]


COMMANDS: Dict[str, Command] = {}


def command(name: str, help: str) -> Callable[[Callable[[CommandContext], int]], Callable[[CommandContext], int]]:
    def register(func: Callable[[CommandContext], int]) -> Callable[[CommandContext], int]:
        COMMANDS[name] = Command(name, help, func)
        return func

    return register


def run_command(name: str, ctx: CommandContext) -> int:
    try:
        entry = COMMANDS[name]
    except KeyError:
        raise BootstrapError(f"[CLI] Unknown command name={name}") from None
    return entry.func(ctx)


# ------------------------------------------------------------------ Helpers
def require_token(value: Optional[str], variable: str) -> str:
    if not value:
        raise MissingTokenError(variable)
    return value


def registry_login(ctx: CommandContext, token: str) -> None:
    config = ctx.config
    result = ctx.docker.login(config.registry_host, config.registry_owner, token)
    if result.returncode != 0:
        detail = (result.stderr or "").strip()
        raise BootstrapError(f"[Registry] Login failed host={config.registry_host} {detail}".rstrip())
    ctx.logger.info(f"[Registry] Login successful host={config.registry_host} user={config.registry_owner}")


def build_and_push(ctx: CommandContext, component: Component) -> None:
    tag = ctx.config.image_ref(component)
    ctx.logger.info(f"[Build] Building image component={component.name} tag={tag}")
    ctx.docker.build(tag, ctx.config.workspace / component.path)
    ctx.docker.push(tag)
    ctx.logger.info(f"[Build] Image pushed tag={tag}")


def print_fallback(ctx: CommandContext, result: subprocess.CompletedProcess, fallback: str) -> None:
    if result.returncode == 0 and result.stdout.strip():
        ctx.console.line(result.stdout.rstrip())
    else:
        ctx.console.line(fallback)


def port_forward(ctx: CommandContext, component: Component, scheme: str) -> int:
    ctx.console.line(f"{component.name.capitalize()}: {scheme}://localhost:{component.local_port}")
    result = ctx.kubectl.port_forward(component.service, ctx.config.app_namespace, component.local_port, component.remote_port)
    return result.returncode


def run_tests(ctx: CommandContext, component: Component) -> int:
    cwd = ctx.config.workspace / component.path
    ctx.logger.info(f"[Test] Running tests component={component.name} cwd={cwd}")
    result = ctx.runner.run(list(component.test_command), check=False, cwd=cwd)
    if result.returncode != 0:
        ctx.logger.error(f"[Test] Tests failed component={component.name} exit={result.returncode}")
    return result.returncode


# ----------------------------------------------------------------- Commands
@command("help", "Show this help")
def show_help(ctx: CommandContext) -> int:
    for name in sorted(COMMANDS):
        ctx.console.line(f"{ctx.console.color(name.ljust(26), CYAN)} {COMMANDS[name].help}")
    return 0


@command("bootstrap", "Initialize local environment (cluster, Argo CD, secrets)")
def bootstrap(ctx: CommandContext) -> int:
    Bootstrapper(ctx.config, runner=ctx.runner, prompter=ctx.prompter, logger=ctx.logger, console=ctx.console).execute()
    return 0


@command("build-all", "Build all Docker images and push to GHCR")
def build_all(ctx: CommandContext) -> int:
    token = require_token(ctx.config.token, "GH_TOKEN")
    registry_login(ctx, token)
    for component in ctx.config.components:
        build_and_push(ctx, component)
    ctx.logger.info("[Build] Images successfully built and pushed")
    return 0


@command("build-frontend", "Build the frontend Docker image and push to GHCR")
def build_frontend(ctx: CommandContext) -> int:
    token = require_token(ctx.config.token, "GH_TOKEN")
    registry_login(ctx, token)
    build_and_push(ctx, ctx.config.component("frontend"))
    return 0


@command("build-backend", "Build the backend Docker image and push to GHCR")
def build_backend(ctx: CommandContext) -> int:
    token = require_token(ctx.config.token, "GH_TOKEN")
    registry_login(ctx, token)
    build_and_push(ctx, ctx.config.component("backend"))
    return 0


@command("deploy", "Trigger an Argo CD hard refresh of the applications")
def deploy(ctx: CommandContext) -> int:
    ctx.logger.info("[ArgoCD] Triggering hard refresh")
    for component in ctx.config.components:
        result = ctx.kubectl.patch(
            "app",
            component.application,
            ctx.config.argocd_namespace,
            hard_refresh_patch(),
            patch_type="merge",
            check=False,
        )
        if result.returncode != 0:
            ctx.console.line(f"{component.application} not yet registered")
    ctx.logger.info("[ArgoCD] Sync triggered; check progress with: platform-bootstrap status")
    return 0


@command("status", "Show status of all services")
def status(ctx: CommandContext) -> int:
    config = ctx.config
    kubectl = ctx.kubectl

    ctx.console.section("Argo CD Applications")
    print_fallback(ctx, kubectl.get("applications", config.argocd_namespace), "No Argo CD applications found")

    ctx.console.section(f"Pods in {config.app_namespace}")
    print_fallback(ctx, kubectl.get("pods", config.app_namespace), f"No pods found in namespace {config.app_namespace}")

    ctx.console.section(f"Services in {config.app_namespace}")
    print_fallback(ctx, kubectl.get("svc", config.app_namespace), f"No services found in namespace {config.app_namespace}")
    ctx.console.line()
    return 0


@command("logs-frontend", "Follow frontend logs")
def logs_frontend(ctx: CommandContext) -> int:
    component = ctx.config.component("frontend")
    return ctx.kubectl.logs(ctx.config.app_namespace, f"app={component.selector}").returncode


@command("logs-backend", "Follow backend logs")
def logs_backend(ctx: CommandContext) -> int:
    component = ctx.config.component("backend")
    return ctx.kubectl.logs(ctx.config.app_namespace, f"app={component.selector}").returncode


@command("test-frontend", "Run frontend tests")
def frontend_tests(ctx: CommandContext) -> int:
    return run_tests(ctx, ctx.config.component("frontend"))


@command("test-backend", "Run backend tests")
def backend_tests(ctx: CommandContext) -> int:
    return run_tests(ctx, ctx.config.component("backend"))


@command("test", "Run all tests")
def all_tests(ctx: CommandContext) -> int:
    codes = [run_tests(ctx, component) for component in ctx.config.components]
    return next((code for code in codes if code != 0), 0)


@command("clean", "Delete the cluster completely")
def clean(ctx: CommandContext) -> int:
    name = ctx.config.cluster_name
    ctx.console.line(ctx.console.color("WARNING: This will delete the entire cluster!", YELLOW))
    if not ctx.prompter.confirm("Continue?"):
        ctx.logger.info("[Cluster] Delete aborted")
        return 0
    ctx.k3d.delete_cluster(name)
    ctx.logger.info(f"[Cluster] Deleted name={name}")
    return 0


@command("open-controller-ui", "Port-forward the Argo CD UI")
def open_controller_ui(ctx: CommandContext) -> int:
    config = ctx.config
    password = read_admin_password(ctx.kubectl, config.argocd_namespace)
    ctx.console.section("Argo CD UI")
    ctx.console.row("URL", f"https://localhost:{config.argocd_ui_port}", width=10)
    ctx.console.row("Username", ARGOCD_ADMIN_USER, width=10)
    ctx.console.row("Password", password or "(not yet available)", width=10)
    ctx.console.line()
    ctx.console.line("Starting port-forward (Ctrl+C to stop)...")
    result = ctx.kubectl.port_forward("argocd-server", config.argocd_namespace, config.argocd_ui_port, 443)
    return result.returncode


@command("show-controller-password", "Show the Argo CD admin password")
def show_controller_password(ctx: CommandContext) -> int:
    password = read_admin_password(ctx.kubectl, ctx.config.argocd_namespace)
    if password is None:
        ctx.logger.warning("[ArgoCD] Initial admin secret not found")
        return 1
    ctx.console.line(password)
    return 0


@command("open-frontend-ui", "Port-forward the frontend UI")
def open_frontend_ui(ctx: CommandContext) -> int:
    return port_forward(ctx, ctx.config.component("frontend"), "http")


@command("open-backend-api", "Port-forward the backend API")
def open_backend_api(ctx: CommandContext) -> int:
    return port_forward(ctx, ctx.config.component("backend"), "http")


@command("registry-login", "Log in to the GitHub Container Registry")
def registry_login_command(ctx: CommandContext) -> int:
    token = require_token(ctx.config.login_token, "GITHUB_TOKEN")
    registry_login(ctx, token)
    return 0


@command("cluster-info", "Show cluster information")
def cluster_info(ctx: CommandContext) -> int:
    ctx.console.section("Cluster Information")
    ctx.kubectl.cluster_info()
    ctx.console.line()
    ctx.kubectl.show_nodes()
    ctx.console.line()
    try:
        kubeconfig = ctx.k3d.write_kubeconfig(ctx.config.cluster_name)
    except (subprocess.CalledProcessError, BootstrapError):
        kubeconfig = "Cluster not found"
    ctx.console.line(f"Kubeconfig: {kubeconfig}")
    return 0
