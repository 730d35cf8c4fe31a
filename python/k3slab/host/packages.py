"""
k3slab/host/packages.py

Detects the host package manager and installs the host binaries k3slab needs:
kubectl and helm for the exported kubeconfig, nginx for the reverse proxy.

Detection order is brew, snap, apt-get. apt-get is only used for nginx; the
kubectl/helm packages are not in the stock apt repositories, so an apt-only
host has to install those manually.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from k3slab.errors import PreconditionError
from k3slab.host.shell import HostShell

CLUSTER_TOOLS = ["kubectl", "helm"]
PROXY_SERVER = "nginx"


class PackageManager(str, Enum):
    brew = "brew"
    snap = "snap"
    apt = "apt-get"


class HostPackageManager:
    """Installs missing host binaries through whichever package manager exists."""

    def __init__(self, shell: HostShell) -> None:
        self.shell = shell

    def detect(self, allowed: List[PackageManager]) -> Optional[PackageManager]:
        """Return the first package manager in `allowed` present on PATH."""
        return next((pm for pm in allowed if self.shell.which(pm.value)), None)

    def missing(self, binaries: List[str]) -> List[str]:
        return [b for b in binaries if self.shell.which(b) is None]

    async def ensure_cluster_tools(self) -> None:
        """
        Install kubectl and helm if either is missing.

        Raises:
            PreconditionError: If something is missing and neither brew nor snap exists.
        """
        missing = self.missing(CLUSTER_TOOLS)
        if not missing:
            print("Host tools are ready: kubectl and helm are already installed.")
            return

        print("Installing missing host tools...")
        pm = self.detect([PackageManager.brew, PackageManager.snap])
        if pm is None:
            raise PreconditionError(
                "could not auto-install missing host tools "
                f"({', '.join(missing)}). Install kubectl and helm manually, "
                "then rerun."
            )
        for binary in missing:
            await self._install(pm, binary, classic=True)

    async def ensure_proxy_server(self) -> None:
        """
        Install nginx if it is missing.

        Raises:
            PreconditionError: If nginx is missing and no supported package manager exists.
        """
        if not self.missing([PROXY_SERVER]):
            print("NGINX is already installed on host.")
            return

        print("Installing NGINX on host...")
        pm = self.detect(
            [PackageManager.brew, PackageManager.snap, PackageManager.apt]
        )
        if pm is None:
            raise PreconditionError(
                "could not auto-install NGINX (no supported package manager found)."
            )
        await self._install(pm, PROXY_SERVER, classic=False)

    async def _install(self, pm: PackageManager, package: str, classic: bool) -> None:
        if pm is PackageManager.brew:
            await self.shell.run(["brew", "install", package])
        elif pm is PackageManager.snap:
            extra = ["--classic"] if classic else []
            await self.shell.run(["snap", "install", package] + extra, sudo=True)
        else:
            await self.shell.run(["apt-get", "update"], sudo=True)
            await self.shell.run(["apt-get", "install", "-y", package], sudo=True)
