"""One-shot remote command execution over SSH.

Each call opens a fresh authenticated session, runs a single command
with stderr folded into stdout, and closes the session. Callers get the
combined output or one generic error; the reason for a failure is only
logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import asyncssh

from capsule.domain.models import CommandResult

logger = logging.getLogger(__name__)


class CommandExecutor:
    """Runs single commands on remote hosts with explicit deadlines.

    Args:
        connect_timeout: Seconds allowed for connection setup and login.
        command_timeout: Seconds allowed for the command to finish.
        allowed_hosts: Hosts that may be targeted. Empty means any host.
        known_hosts: Path to a known_hosts file. None uses the asyncssh
            default (``~/.ssh/known_hosts``).
        verify_host_keys: When False, host keys are not checked at all.
    """

    def __init__(
        self,
        connect_timeout: float = 10.0,
        command_timeout: float = 60.0,
        allowed_hosts: list[str] | None = None,
        known_hosts: str | None = None,
        verify_host_keys: bool = True,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._allowed_hosts = frozenset(allowed_hosts or ())
        self._known_hosts = known_hosts
        self._verify_host_keys = verify_host_keys
        if not self._allowed_hosts:
            logger.warning("No SSH host allow-list configured; any host may be targeted")
        if not verify_host_keys:
            logger.warning("SSH host key verification is disabled")

    def is_host_allowed(self, host: str) -> bool:
        return not self._allowed_hosts or host in self._allowed_hosts

    async def execute(
        self,
        host: str,
        username: str,
        password: str,
        command: str,
        port: int = 22,
    ) -> CommandResult:
        """Run ``command`` on ``host`` and return its combined output.

        Raises:
            CommandNotAllowedError: ``host`` is not on the allow-list.
            CommandExecutionError: Connecting, authenticating or running
                the command failed or timed out.
        """
        if not self.is_host_allowed(host):
            logger.warning("Rejected SSH command for host %s (not in allow-list)", host)
            raise CommandNotAllowedError(f"Host {host} is not allowed", host=host)

        try:
            conn = await asyncio.wait_for(
                asyncssh.connect(
                    host,
                    port=port,
                    username=username,
                    password=password,
                    **self._connect_options(),
                ),
                timeout=self._connect_timeout,
            )
        except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
            logger.warning("SSH session to %s@%s:%d failed to open: %r", username, host, port, e)
            raise CommandExecutionError("Remote command failed", host=host) from e

        async with conn:
            try:
                result = await asyncio.wait_for(
                    conn.run(command, stderr=asyncssh.STDOUT, check=False, errors="replace"),
                    timeout=self._command_timeout,
                )
            except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
                logger.warning("SSH command on %s failed: %r", host, e)
                raise CommandExecutionError("Remote command failed", host=host) from e

        # Undecodable bytes arrive as U+FFFD rather than failing the command
        output = result.stdout or ""
        logger.info(
            "Ran command on %s@%s (exit status %s, %d chars of output)",
            username, host, result.exit_status, len(output),
        )
        return CommandResult(output=output, exit_status=result.exit_status)

    def _connect_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"connect_timeout": self._connect_timeout}
        if not self._verify_host_keys:
            options["known_hosts"] = None
        elif self._known_hosts:
            options["known_hosts"] = self._known_hosts
        return options


class CommandExecutionError(Exception):
    """Raised when a remote command cannot be run, for any reason."""

    def __init__(self, message: str, host: str = "") -> None:
        super().__init__(message)
        self.host = host


class CommandNotAllowedError(CommandExecutionError):
    """Raised when the target host is not on the allow-list."""
