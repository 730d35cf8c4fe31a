"""
k3slab/utils/async_command_runner.py

Provides the asynchronous command runner every external tool call in k3slab
goes through: multipass on the host, shell snippets inside the VMs (via
`multipass exec`), package managers, nginx, systemctl and firewall tools.

Commands run once by default. Callers that talk to eventually-consistent
state wrap their own probe in `async_retry` instead of relying on blind
re-execution here, so installers are never launched twice by accident.

Usage example:
    from k3slab.utils.async_command_runner import run_command, CommandError

    try:
        output = await run_command(["multipass", "list"], sensitive=False)
        print(output)
    except CommandError as err:
        print(f"Command failed: {err}")
"""

from __future__ import annotations

import os
import asyncio
import logging
from typing import Dict, List, Optional

from k3slab.utils.async_retry import async_retry

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Represents a failure when executing a shell command.

    Attributes:
        message (str): The error message describing the command failure.
        return_code (Optional[int]): The exit code if available.
    """

    def __init__(self, message: str, return_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.return_code = return_code


async def run_command(
    command: List[str],
    *,
    sensitive: bool = True,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    input_data: Optional[str] = None,
    successful_return_codes: Optional[List[int]] = None,
    retries: int = 1,
    retry_delay: float = 1.0,
) -> str:
    """
    Executes a local command in a subprocess, asynchronously.

    If the command exits with a code outside `successful_return_codes`, we raise
    CommandError. When `sensitive=True`, the command line, stdout and stderr are
    left out of both the error message and the debug log, which is how commands
    carrying the cluster join token are run.

    Args:
        command (List[str]):
            The command and arguments to execute.
        sensitive (bool):
            If True, hides command details in the raised error and in logs.
        env (Optional[Dict[str, str]]):
            Additional environment variables to add or override.
        cwd (Optional[str]):
            Working directory for the command.
        input_data (Optional[str]):
            If provided, passed to stdin.
        successful_return_codes (Optional[List[int]]):
            Which return codes won't be treated as errors. Defaults to [0].
        retries (int):
            Total attempts. Defaults to 1 (no retry).
        retry_delay (float):
            Delay in seconds between attempts. Defaults to 1.0.

    Returns:
        str: The captured stdout of the command, stripped, on success.

    Raises:
        CommandError: If the executable is missing, or the command fails after all
            attempts with a code not in `successful_return_codes`.
    """
    ok_codes = successful_return_codes if successful_return_codes is not None else [0]

    @async_retry(retries=retries, delay=retry_delay, retry_on=(CommandError,))
    async def _inner_run_command() -> str:
        proc_env = None
        if env:
            proc_env = os.environ.copy()
            proc_env.update(env)

        stdin = (
            asyncio.subprocess.PIPE
            if input_data is not None
            else asyncio.subprocess.DEVNULL
        )

        if sensitive:
            logger.debug("Running %s (arguments hidden)", command[0])
        else:
            logger.debug("Running %s", " ".join(command))

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=proc_env,
                cwd=cwd,
            )
        except FileNotFoundError as exc:
            raise CommandError(f"Executable not found: {command[0]}") from exc

        stdout_bytes, stderr_bytes = await proc.communicate(
            input=input_data.encode() if input_data is not None else None
        )
        stdout_str = stdout_bytes.decode(errors="replace").strip()
        stderr_str = stderr_bytes.decode(errors="replace").strip()

        if proc.returncode not in ok_codes:
            detail = ""
            if not sensitive:
                detail = (
                    f"\nCommand: {' '.join(command)}"
                    f"\nStdout: {stdout_str}"
                    f"\nStderr: {stderr_str}"
                )
            raise CommandError(
                f"Command failed with return code {proc.returncode}.{detail}",
                proc.returncode,
            )

        return stdout_str

    return await _inner_run_command()
