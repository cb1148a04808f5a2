"""
Docker Compose integration.

Wraps the ``docker compose`` CLI: bring a stack up from a base file plus
override files, tear it down, and resolve published ports.
"""

from __future__ import annotations

import os
import subprocess
from typing import Callable, Mapping, Sequence
from urllib.parse import urlparse

import structlog

from otelsmoke.core.errors import OtelSmokeError

logger = structlog.get_logger()

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

_WILDCARD_HOSTS = {"0.0.0.0", "::", "[::]", ""}


class ComposeError(OtelSmokeError):
    """Raised when a ``docker compose`` invocation fails."""


def split_override_files(value: str | None) -> list[str]:
    """Split a comma-separated override list, dropping blank entries."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def docker_host() -> str:
    """Host that published container ports are reachable on."""
    parsed = urlparse(os.environ.get("DOCKER_HOST", ""))
    if parsed.scheme in ("tcp", "http", "https") and parsed.hostname:
        return parsed.hostname
    return "localhost"


class ComposeStack:
    """
    A Docker Compose project built from a base file and ordered overrides.

    The calling process's environment is passed through to ``docker compose``
    so variables referenced from compose files resolve.

    Example:
        stack = ComposeStack(["docker-compose.yaml", "ci.override.yaml"])
        stack.up()
        host, port = stack.port("otelcol", 8888)
        stack.down()
    """

    def __init__(
        self,
        files: Sequence[str],
        *,
        project_name: str | None = None,
        env: Mapping[str, str] | None = None,
        runner: Runner = subprocess.run,
        timeout: float | None = 600.0,
    ):
        if not files:
            raise ValueError("at least one compose file is required")
        self.files = list(files)
        self.project_name = project_name
        self.env = dict(os.environ if env is None else env)
        self.timeout = timeout
        self._runner = runner

    def command(self, *args: str) -> list[str]:
        """Full ``docker compose`` argv for a subcommand."""
        cmd = ["docker", "compose"]
        for path in self.files:
            cmd.extend(["-f", path])
        if self.project_name:
            cmd.extend(["--project-name", self.project_name])
        cmd.extend(args)
        return cmd

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = self.command(*args)
        try:
            result = self._runner(
                cmd,
                capture_output=True,
                text=True,
                env=self.env,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ComposeError("docker executable not found", {"command": args[0]}) from e
        except subprocess.TimeoutExpired as e:
            raise ComposeError(
                f"docker compose {args[0]} timed out after {self.timeout}s", {"command": args[0]}
            ) from e

        if result.returncode != 0:
            raise ComposeError(
                f"docker compose {args[0]} failed with exit code {result.returncode}",
                {"command": args[0], "stderr": (result.stderr or "").strip()},
            )
        return result

    def up(self) -> None:
        """Create and start every service in the background."""
        logger.info("compose_up", files=self.files, project=self.project_name)
        self._run("up", "-d", "--build")

    def down(self, remove_orphans: bool = True) -> None:
        """Stop and remove the stack's containers and networks."""
        logger.info("compose_down", files=self.files, project=self.project_name)
        args = ["down"]
        if remove_orphans:
            args.append("--remove-orphans")
        self._run(*args)

    def port(self, service: str, container_port: int) -> tuple[str, int]:
        """
        Resolve the externally reachable host and port for a service port.

        Returns:
            Tuple of (host, mapped_port)
        """
        result = self._run("port", service, str(container_port))
        binding = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
        host, _, mapped = binding.rpartition(":")
        if not mapped.isdigit() or int(mapped) == 0:
            raise ComposeError(
                f"Port {container_port} of service {service} is not published",
                {"service": service, "port": container_port, "output": binding},
            )
        if host in _WILDCARD_HOSTS:
            host = docker_host()
        return host, int(mapped)
