from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence


class CommandRunner:
    """Runs external tools with a private copy of the environment.

    The bootstrap points ``KUBECONFIG`` at the k3d cluster through
    :meth:`set_env` so the parent process environment is never touched.
    """

    def __init__(self, env: Optional[Dict[str, str]] = None, logger: Optional[logging.Logger] = None) -> None:
        self.env = dict(os.environ if env is None else env)
        self.logger = logger or logging.getLogger("platform_bootstrap")

    def set_env(self, key: str, value: str) -> None:
        self.env[key] = value

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name, path=self.env.get("PATH"))

    def run(
        self,
        cmd: Sequence[str],
        *,
        check: bool = True,
        capture_output: bool = False,
        input: Optional[str] = None,
        cwd: Optional[Path] = None,
    ) -> subprocess.CompletedProcess[str]:
        args: List[str] = [str(part) for part in cmd]
        self.logger.debug(f"[Exec] {shlex.join(args)}")
        return subprocess.run(
            args,
            check=check,
            text=True,
            capture_output=capture_output,
            input=input,
            cwd=cwd,
            env=self.env,
        )
