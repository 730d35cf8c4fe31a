"""
k3slab/providers/multipass.py

VmProvider implementation backed by the `multipass` CLI.

Multipass is sometimes only usable as root (snap installs on Linux with a
restricted socket). The first call probes `multipass list` unprivileged and,
if that fails, every later call is prefixed with `sudo`, mirroring what an
operator would do by hand.
"""

from __future__ import annotations

import json
import shutil
import logging
from typing import Any, Dict, List, Optional

from k3slab.errors import PreconditionError
from k3slab.models.run_config import VmSizing
from k3slab.models.vm import VmInfo, VmState
from k3slab.providers.base import VmProvider
from k3slab.utils.async_command_runner import run_command, CommandError

logger = logging.getLogger(__name__)

INSTALL_HINT = (
    "multipass is not installed. Install it first:\n"
    "  snap install multipass\n"
    "  # or on macOS: brew install --cask multipass"
)


def parse_info_json(name: str, raw_json: str) -> VmInfo:
    """
    Parse `multipass info <name> --format json` output.

    The relevant shape is {"info": {"<name>": {"state": "Running", "ipv4": [...]}}}.
    A VM that has not obtained an address yet reports an empty ipv4 list.

    Raises:
        ValueError: If the output is not JSON of that shape for `name`.
    """
    parsed: Any = json.loads(raw_json)
    info = parsed.get("info") if isinstance(parsed, dict) else None
    entry = info.get(name) if isinstance(info, dict) else None
    if not isinstance(entry, dict):
        raise ValueError(f"multipass info output has no entry for '{name}'")
    raw_ipv4 = entry.get("ipv4") or []
    if not isinstance(raw_ipv4, list):
        raise ValueError(f"multipass info ipv4 for '{name}' is not a list")
    ipv4 = [ip for ip in raw_ipv4 if ip]
    return VmInfo(
        name=name,
        state=VmState.from_provider(str(entry.get("state", ""))),
        ipv4=ipv4,
    )


class MultipassProvider(VmProvider):
    """Drives Multipass VMs through its CLI."""

    def __init__(self, binary: str = "multipass") -> None:
        self.binary = binary
        self._prefix: Optional[List[str]] = None

    def check_installed(self) -> None:
        """Raise PreconditionError unless the multipass binary is on PATH."""
        if shutil.which(self.binary) is None:
            raise PreconditionError(INSTALL_HINT)

    async def _command_prefix(self) -> List[str]:
        if self._prefix is not None:
            return self._prefix
        self.check_installed()
        try:
            await run_command([self.binary, "list"], sensitive=False)
            self._prefix = [self.binary]
        except CommandError:
            if shutil.which("sudo") is None:
                raise PreconditionError("unable to run multipass (try with sudo).")
            logger.debug("multipass needs sudo on this host")
            self._prefix = ["sudo", self.binary]
        return self._prefix

    async def _run(self, args: List[str], *, sensitive: bool = False) -> str:
        prefix = await self._command_prefix()
        return await run_command(prefix + args, sensitive=sensitive)

    async def info(self, name: str) -> Optional[VmInfo]:
        try:
            raw = await self._run(["info", name, "--format", "json"])
        except CommandError:
            return None
        try:
            return parse_info_json(name, raw)
        except ValueError as exc:
            # JSONDecodeError and pydantic's ValidationError are ValueErrors too.
            raise CommandError(
                f"unexpected 'multipass info {name}' output: {exc}"
            ) from exc

    async def launch(self, name: str, sizing: VmSizing, image: str) -> None:
        await self._run(
            [
                "launch",
                image,
                "--name",
                name,
                "--cpus",
                str(sizing.cpus),
                "--memory",
                sizing.memory,
                "--disk",
                sizing.disk,
            ]
        )

    async def start(self, name: str) -> None:
        try:
            await self._run(["start", name])
        except CommandError as exc:
            # Starting an already-running VM is not an error worth aborting over.
            logger.debug("multipass start %s failed: %s", name, exc)

    async def exec(
        self,
        name: str,
        command: List[str],
        *,
        sensitive: bool = True,
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        env_part = ["env"] + [f"{k}={v}" for k, v in env.items()] if env else []
        return await self._run(
            ["exec", name, "--"] + env_part + command, sensitive=sensitive
        )

    async def list_vms(self) -> str:
        return await self._run(["list"])

    async def describe(self, name: str) -> str:
        return await self._run(["info", name])
