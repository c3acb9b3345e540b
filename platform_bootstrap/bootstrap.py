"""Bootstrap the k3d-based platform-learning cluster and Argo CD install."""

from __future__ import annotations

import dataclasses
import logging
import subprocess
from typing import Dict, List, Optional

from .config import BootstrapConfig, normalize_token
from .errors import BootstrapError, MissingToolsError
from .log import GREEN, YELLOW, Console, build_logger
from .manifests import (
    load_service_type_patch,
    pull_secret_manifest,
    repository_secret_manifest,
    write_namespace_manifests,
)
from .runner import CommandRunner
from .tools import Docker, K3d, Kubectl, Prompter

REQUIRED_TOOLS = ("docker", "kubectl", "k3d", "helm")

INSTALL_GUIDANCE: Dict[str, List[str]] = {
    "docker": ["https://docs.docker.com/get-docker/"],
    "kubectl": [
        'curl -LO "https://dl.k8s.io/release/$(curl -L -s https://dl.k8s.io/release/stable.txt)/bin/linux/amd64/kubectl"',
        "chmod +x kubectl && sudo mv kubectl /usr/local/bin/",
    ],
    "k3d": ["curl -s https://raw.githubusercontent.com/k3d-io/k3d/main/install.sh | bash"],
    "helm": ["curl https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3 | bash"],
}

ARGOCD_SERVER_SELECTOR = "app.kubernetes.io/name=argocd-server"
ARGOCD_ADMIN_SECRET = "argocd-initial-admin-secret"
ARGOCD_ADMIN_USER = "admin"


@dataclasses.dataclass
class BootstrapResult:
    token_available: bool
    cluster_created: bool
    kubeconfig: Optional[str]
    node_count: int
    admin_password: Optional[str]


def read_admin_password(kubectl: Kubectl, namespace: str) -> Optional[str]:
    return kubectl.get_secret_value(namespace, ARGOCD_ADMIN_SECRET, "password")


class Bootstrapper:
    def __init__(
        self,
        config: BootstrapConfig,
        runner: Optional[CommandRunner] = None,
        prompter: Optional[Prompter] = None,
        logger: Optional[logging.Logger] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.config = config
        self.logger = logger or build_logger()
        self.runner = runner or CommandRunner(logger=self.logger)
        self.prompter = prompter or Prompter()
        self.console = console or Console()

        self.k3d = K3d(self.runner)
        self.kubectl = Kubectl(self.runner)
        self.docker = Docker(self.runner)

        # Runtime state
        self.token: Optional[str] = config.token
        self.kubeconfig: Optional[str] = None
        self.admin_password: Optional[str] = None
        self.cluster_created = False

    # --------------------------------------------------------- Execution flow
    def execute(self) -> BootstrapResult:
        self.logger.info(f"[Bootstrap] Starting create workflow cluster={self.config.cluster_name}")

        self.console.section("Step 1: Check prerequisites")
        self.check_prerequisites()

        self.console.section("Step 2: GitHub Container Registry Authentication")
        self.registry_login()

        self.console.section("Step 3: k3d Kubernetes Cluster Setup")
        self.cluster_created = self.ensure_cluster()

        self.console.section("Step 4: Set kubeconfig context")
        self.activate_context()

        self.console.section("Step 5: Create Kubernetes Namespaces")
        self.apply_namespaces()

        self.console.section(f"Step 6: Create ImagePullSecret for {self.config.registry_host}")
        self.apply_pull_secrets()

        self.console.section(f"Step 7: Install Argo CD in '{self.config.argocd_namespace}'")
        self.install_argocd()

        self.console.section("Step 8: Configure Git Repository in Argo CD")
        self.register_repository()

        node_count = len(self.kubectl.node_names())
        self.print_summary(node_count)
        self.logger.info(f"[Bootstrap] Complete kubeconfig={self.kubeconfig}")

        return BootstrapResult(
            token_available=bool(self.token),
            cluster_created=self.cluster_created,
            kubeconfig=self.kubeconfig,
            node_count=node_count,
            admin_password=self.admin_password,
        )

    # ---------------------------------------------------- Prerequisites
    def check_prerequisites(self) -> None:
        missing = []
        for name in REQUIRED_TOOLS:
            path = self.runner.which(name)
            if path is None:
                self.logger.error(f"[Deps] {name} is not installed")
                missing.append(name)
            else:
                self.logger.info(f"[Deps] {name} is installed path={path}")

        if missing:
            self.print_install_guidance(missing)
            raise MissingToolsError(missing)

        self.logger.info("[Deps] All prerequisites are installed")

    def print_install_guidance(self, missing: List[str]) -> None:
        self.console.line()
        self.console.line(self.console.color("Installation instructions:", YELLOW))
        for name in missing:
            self.console.line()
            self.console.line(f"{name}:")
            for hint in INSTALL_GUIDANCE.get(name, []):
                self.console.line(f"  {hint}")
        self.console.line()

    # ------------------------------------------------------- Registry auth
    def resolve_token(self) -> Optional[str]:
        if self.token:
            return self.token

        self.logger.warning("[Registry] GH_TOKEN environment variable not set")
        self.console.line(f"To push images to {self.config.registry_host}, you need a GitHub token")
        self.console.line("Create a token here: https://github.com/settings/tokens/new")
        self.console.line("Required permissions: write:packages, read:packages")
        self.console.line()
        self.console.line("You have the following options:")
        self.console.line("  1) Enter token now (for this bootstrap)")
        self.console.line("  2) Set manually later: export GH_TOKEN=ghp_...")
        self.console.line("  3) Continue without token (images will only be built locally)")
        self.console.line()

        if not self.prompter.confirm("Do you want to enter a token now?"):
            self.logger.warning("[Registry] Continuing without token; images will only be built locally")
            return None

        token = normalize_token(self.prompter.read_secret("GitHub Token"))
        if token is None:
            self.logger.warning("[Registry] Empty token entered; continuing without token")
        return token

    def registry_login(self) -> None:
        self.token = self.resolve_token()
        if not self.token:
            self.logger.warning(f"[Registry] Skipping login reason=no-token host={self.config.registry_host}")
            return

        self.logger.info(f"[Registry] Logging in host={self.config.registry_host} user={self.config.registry_owner}")
        result = self.docker.login(self.config.registry_host, self.config.registry_owner, self.token)
        if result.returncode != 0:
            detail = (result.stderr or "").strip()
            raise BootstrapError(f"[Registry] Login failed host={self.config.registry_host}; check your token {detail}".rstrip())
        self.logger.info("[Registry] Login successful")

    # ------------------------------------------------------- k3d cluster
    def ensure_cluster(self) -> bool:
        name = self.config.cluster_name
        if self.k3d.cluster_exists(name):
            self.logger.warning(f"[Cluster] Cluster already exists name={name}")
            if not self.prompter.confirm("Do you want to delete and recreate it?"):
                self.logger.info(f"[Cluster] Skipping create reason=cluster-exists name={name}")
                return False
            self.logger.info(f"[Cluster] Deleting existing cluster name={name}")
            self.k3d.delete_cluster(name)

        self.logger.info(
            f"[Cluster] Creating k3d cluster name={name} servers={self.config.servers} "
            f"agents={self.config.agents} ports={','.join(self.config.port_mappings)}"
        )
        try:
            self.k3d.create_cluster(self.config)
        except subprocess.CalledProcessError as exc:
            raise BootstrapError(f"[Cluster] Failed to create cluster name={name}") from exc
        self.logger.info(f"[Cluster] Created name={name}")
        return True

    # ----------------------------------------------------------- Kubeconfig
    def activate_context(self) -> None:
        self.kubeconfig = self.k3d.write_kubeconfig(self.config.cluster_name)
        self.runner.set_env("KUBECONFIG", self.kubeconfig)
        self.logger.info(f"[Kubeconfig] KUBECONFIG set path={self.kubeconfig}")

        self.logger.info("[Kubeconfig] Verifying access to the cluster")
        try:
            self.kubectl.cluster_info()
            self.kubectl.show_nodes()
        except subprocess.CalledProcessError as exc:
            raise BootstrapError(f"[Kubeconfig] Cluster not reachable name={self.config.cluster_name}") from exc
        self.logger.info("[Kubeconfig] Cluster is reachable")

    # ----------------------------------------------------------- Namespaces
    def apply_namespaces(self) -> None:
        paths = write_namespace_manifests(self.config)
        self.logger.info(f"[Namespaces] Wrote manifests files={' '.join(path.name for path in paths)}")
        self.kubectl.apply_file(self.config.namespace_dir)
        self.logger.info(f"[Namespaces] Applied names={' '.join(ns.name for ns in self.config.namespaces)}")

    # ----------------------------------------------------------- Secrets
    def apply_pull_secrets(self) -> None:
        if not self.token:
            self.logger.warning("[Secrets] Skipping ImagePullSecret creation reason=no-token")
            self.console.line("    Note: Use public images or create the secret later with:")
            self.console.line(f"    kubectl create secret docker-registry {self.config.pull_secret_name} --docker-server={self.config.registry_host} ...")
            return

        for namespace in self.config.namespaces:
            manifest = pull_secret_manifest(
                self.config.pull_secret_name,
                namespace.name,
                self.config.registry_host,
                self.config.registry_owner,
                self.token,
            )
            self.kubectl.apply_manifest(manifest)
            self.logger.info(f"[Secrets] ImagePullSecret applied name={self.config.pull_secret_name} namespace={namespace.name}")

    # ----------------------------------------------------------- Argo CD
    def install_argocd(self) -> None:
        namespace = self.config.argocd_namespace
        if self.kubectl.namespace_exists(namespace):
            self.logger.warning(f"[ArgoCD] Skipping install reason=namespace-exists namespace={namespace}")
        else:
            self.logger.info(f"[ArgoCD] Creating namespace name={namespace}")
            self.kubectl.create_namespace(namespace)
            self.logger.info(f"[ArgoCD] Installing manifest url={self.config.argocd_install_url}")
            self.kubectl.apply_remote(self.config.argocd_install_url, namespace)
            self.logger.info(f"[ArgoCD] Waiting for server pods to be ready timeout={self.config.argocd_ready_timeout}")
            self.kubectl.wait_ready(namespace, ARGOCD_SERVER_SELECTOR, self.config.argocd_ready_timeout)
            self.logger.info("[ArgoCD] Installed and server pods are ready")

        self.logger.info("[ArgoCD] Exposing argocd-server as LoadBalancer")
        self.kubectl.patch("svc", "argocd-server", namespace, load_service_type_patch())

        self.admin_password = read_admin_password(self.kubectl, namespace)
        if self.admin_password is None:
            self.logger.warning("[ArgoCD] Initial admin secret not yet available; Argo CD may still be starting")
            self.console.line("    Retrieve the password later with: platform-bootstrap show-controller-password")
        else:
            self.logger.info("[ArgoCD] Admin password retrieved")

    def register_repository(self) -> None:
        if not self.token:
            self.logger.warning("[ArgoCD] Skipping Git repository registration reason=no-token")
            self.console.line("    Note: Configure private repositories later in the Argo CD UI")
            return

        manifest = repository_secret_manifest(
            self.config.repo_secret_name,
            self.config.argocd_namespace,
            self.config.repository_url,
            self.config.registry_owner,
            self.token,
        )
        self.kubectl.apply_manifest(manifest)
        self.logger.info(f"[ArgoCD] Git repository registered url={self.config.repository_url}")

    # ----------------------------------------------------------- Summary
    def print_summary(self, node_count: int) -> None:
        console = self.console
        config = self.config

        console.section("Bootstrap done!")
        console.line()
        console.line(console.color("Platform Learning setup successful!", GREEN))
        console.line()
        console.heading("Cluster Information")
        console.row("Name", config.cluster_name)
        console.row("Kubeconfig", self.kubeconfig or "(not set)")
        console.row("Nodes", node_count)
        console.line()
        console.heading("Argo CD Access")
        console.row("URL", config.argocd_url)
        console.row("Username", ARGOCD_ADMIN_USER)
        console.row("Password", self.admin_password or "(not yet available - run show-controller-password later)")
        console.line()
        console.heading("Alternative with Port-Forward")
        console.line(f"  kubectl port-forward svc/argocd-server -n {config.argocd_namespace} {config.argocd_ui_port}:443")
        console.line(f"  https://localhost:{config.argocd_ui_port}")
        console.line()
        console.heading("Useful Commands")
        for name, description in (
            ("status", "Show status of all services"),
            ("open-controller-ui", "Argo CD UI port-forward"),
            ("show-controller-password", "Show Argo CD password"),
            ("build-all", "Build all images"),
            ("logs-frontend", "Show frontend logs"),
            ("logs-backend", "Show backend logs"),
            ("clean", "Delete cluster"),
        ):
            console.line(f"  platform-bootstrap {name.ljust(26)}# {description}")
        console.line()
        console.heading("Image Registry")
        console.row("Registry", config.registry_url)
        for component in config.components:
            console.row(component.name.capitalize(), config.image_ref(component))
        if not self.token:
            console.line(console.color("  Credentials:   not available (no GitHub token)", YELLOW))
        console.line()
        console.line(console.color("Next Steps:", YELLOW))
        console.line("  1. Create application files (Frontend, Backend)")
        console.line("  2. Create Kubernetes manifests (Helm Charts)")
        console.line("  3. Create Argo CD Applications")
        console.line("  4. Deploy with: platform-bootstrap deploy")
        console.line()
