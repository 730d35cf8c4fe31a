"""
k3slab/host/shell.py

Host-side command and file access used by host integration.

Files are written directly (aiofiles/os) when the target is user-owned, and
through `sudo install -m` / `sudo tee` / `sudo mkdir -p` / `sudo ln -sf` /
`sudo rm -f` when it lives under a root-owned tree such as /etc/nginx. Every
write is a full overwrite ("last writer wins").
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Callable, List, Optional

import aiofiles
import aiofiles.ospath

from k3slab.utils.async_command_runner import run_command


def _mode_opener(mode: Optional[int]) -> Optional[Callable[[str, int], int]]:
    """open() opener that sets `mode` on the descriptor before any write."""
    if mode is None:
        return None

    def _opener(path: str, flags: int) -> int:
        fd = os.open(path, flags, mode)
        os.fchmod(fd, mode)
        return fd

    return _opener


class HostShell:
    """Runs host commands and touches host files, optionally through sudo."""

    def which(self, binary: str) -> Optional[str]:
        return shutil.which(binary)

    async def run(
        self,
        command: List[str],
        *,
        sudo: bool = False,
        sensitive: bool = False,
        input_data: Optional[str] = None,
    ) -> str:
        full = ["sudo"] + command if sudo else command
        return await run_command(full, sensitive=sensitive, input_data=input_data)

    async def exists(self, path: Path) -> bool:
        return bool(await aiofiles.ospath.exists(str(path)))

    async def makedirs(self, path: Path, *, sudo: bool = False) -> None:
        if sudo:
            await self.run(["mkdir", "-p", str(path)], sudo=True)
        else:
            os.makedirs(path, exist_ok=True)

    async def write_file(
        self,
        path: Path,
        content: str,
        *,
        mode: Optional[int] = None,
        sudo: bool = False,
        sensitive: bool = False,
    ) -> None:
        """
        Overwrite `path` with `content`. When `mode` is given the file carries
        it before any content lands, so secrets are never readable under the
        default umask.

        Args:
            path: Destination file.
            content: Full text to write.
            mode: Permission bits, e.g. 0o600.
            sudo: Write through `sudo tee` for root-owned locations.
            sensitive: Content is secret; keep it out of command errors.
        """
        if sudo:
            if mode is not None:
                await self.run(
                    ["install", "-m", format(mode, "o"), "/dev/null", str(path)],
                    sudo=True,
                )
            await self.run(
                ["tee", str(path)], sudo=True, sensitive=sensitive, input_data=content
            )
            return

        async with aiofiles.open(
            path, mode="w", encoding="utf-8", opener=_mode_opener(mode)
        ) as fout:
            await fout.write(content)

    async def symlink(self, target: Path, link: Path, *, sudo: bool = False) -> None:
        """Point `link` at `target`, replacing whatever `link` was."""
        if sudo:
            await self.run(["ln", "-sf", str(target), str(link)], sudo=True)
            return
        if os.path.lexists(link):
            os.remove(link)
        os.symlink(target, link)

    async def remove(self, path: Path, *, sudo: bool = False) -> None:
        """Remove `path` if present."""
        if sudo:
            await self.run(["rm", "-f", str(path)], sudo=True)
        elif os.path.lexists(path):
            os.remove(path)
