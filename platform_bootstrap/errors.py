from __future__ import annotations

from typing import Iterable, List


class BootstrapError(Exception):
    """Raised when a bootstrap step or command cannot continue."""


class MissingToolsError(BootstrapError):
    def __init__(self, missing: Iterable[str]) -> None:
        self.missing: List[str] = list(missing)
        super().__init__(f"[Deps] Missing required tools: {' '.join(self.missing)}")


class MissingTokenError(BootstrapError):
    def __init__(self, variable: str) -> None:
        self.variable = variable
        super().__init__(f"[Auth] {variable} environment variable is not set. Export {variable}=ghp_...")
