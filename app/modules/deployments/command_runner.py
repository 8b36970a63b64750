import os
import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from app.modules.deployments import process_registry
from app.modules.deployments.errors import CommandError, CommandTimeoutError, DeploymentCancelledError

logger = logging.getLogger(__name__)

ERROR_TAIL_LINES = 40
REDACTED = "***"


@dataclass
class CommandResult:
    args: List[str]
    returncode: int
    output: str


class CommandRunner:
    """
    Runs external tools (git, npm) for one deployment attempt.

    Each call blocks until the process exits or its deadline passes. The
    running process is registered under the deployment id so the cancel
    endpoint can terminate it. stdout and stderr are merged and captured;
    registered secrets are masked before anything is logged or raised.
    """

    def __init__(
        self,
        deployment_id: Optional[str] = None,
        secrets: Optional[List[str]] = None,
        extra_env: Optional[Dict[str, str]] = None,
    ):
        self.deployment_id = deployment_id
        self._secrets: List[str] = [s for s in (secrets or []) if s]
        self.extra_env = extra_env or {}

    def add_secret(self, secret: str) -> None:
        if secret and secret not in self._secrets:
            self._secrets.append(secret)

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    def _get_env(self) -> dict:
        env = os.environ.copy()
        # Never block on an interactive credential prompt
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["CI"] = "true"
        env.update(self.extra_env)
        return env

    def run(
        self,
        args: List[str],
        cwd: Optional[Union[str, Path]] = None,
        timeout: Optional[float] = None,
        check: bool = True,
    ) -> CommandResult:
        display = self.redact(" ".join(args))
        logger.info(f"Running: {display}" + (f" (cwd={cwd})" if cwd else ""))
        try:
            proc = subprocess.Popen(
                args,
                cwd=str(cwd) if cwd else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self._get_env(),
                bufsize=1,
            )
        except FileNotFoundError:
            raise CommandError(f"{args[0]} not found. Please install it and make sure it is on PATH")

        if self.deployment_id:
            process_registry.register(self.deployment_id, proc)

        lines: List[str] = []

        def stream_output():
            for line in iter(proc.stdout.readline, ''):
                line = line.rstrip()
                if line.strip():
                    lines.append(line)
                    logger.debug(self.redact(line))

        stream_thread = threading.Thread(target=stream_output, daemon=True)
        stream_thread.start()
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
            stream_thread.join(timeout=5)
            raise CommandTimeoutError(
                f"Command timed out after {timeout}s: {display}",
                output=self.redact("\n".join(lines)),
            )
        finally:
            if self.deployment_id:
                process_registry.unregister(self.deployment_id)
        stream_thread.join(timeout=5)

        output = self.redact("\n".join(lines))
        result = CommandResult(args=args, returncode=proc.returncode, output=output)

        if proc.returncode != 0 and self.deployment_id and process_registry.is_cancelled(self.deployment_id):
            raise DeploymentCancelledError("Deployment cancelled")
        if check and proc.returncode != 0:
            tail = "\n".join(output.splitlines()[-ERROR_TAIL_LINES:])
            message = f"Command failed with exit code {proc.returncode}: {display}"
            if tail:
                message += f"\n{tail}"
            raise CommandError(message, returncode=proc.returncode, output=output)
        return result
