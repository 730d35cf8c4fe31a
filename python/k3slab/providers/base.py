"""
k3slab/providers/base.py

Narrow capability interfaces the orchestration consumes:
  - VmProvider: launch/start/query/exec on named VMs
  - ClusterRuntimeInstaller: install and query K3s roles inside a VM

The pipeline only ever talks to these, so it can be exercised against fakes.
Real implementations live in k3slab.providers.multipass and
k3slab.providers.k3s.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from k3slab.models.run_config import VmSizing
from k3slab.models.vm import VmInfo


class VmProvider(ABC):
    """Abstract base class for a local VM manager."""

    @abstractmethod
    async def info(self, name: str) -> Optional[VmInfo]:
        """
        Report the current state of a VM.

        Returns:
            Optional[VmInfo]: None if no VM with this name exists.
        """
        pass

    @abstractmethod
    async def launch(self, name: str, sizing: VmSizing, image: str) -> None:
        """Create and boot a new VM."""
        pass

    @abstractmethod
    async def start(self, name: str) -> None:
        """Start an existing VM. A no-op for a running VM."""
        pass

    @abstractmethod
    async def exec(
        self,
        name: str,
        command: List[str],
        *,
        sensitive: bool = True,
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Run a command inside the VM and return its stdout.

        Args:
            name: VM name.
            command: Command tokens to run inside the VM.
            sensitive: Hide the command from errors and logs.
            env: Environment variables scoped to this one command.

        Raises:
            CommandError: If the command exits non-zero.
        """
        pass

    @abstractmethod
    async def list_vms(self) -> str:
        """Human-readable listing of all VMs."""
        pass

    @abstractmethod
    async def describe(self, name: str) -> str:
        """Human-readable details for one VM."""
        pass


class ClusterRuntimeInstaller(ABC):
    """Abstract base class for installing a lightweight Kubernetes inside VMs."""

    @abstractmethod
    async def install_server(self, vm: str) -> None:
        """Install (if missing) and persistently enable the server role."""
        pass

    @abstractmethod
    async def install_agent(self, vm: str, server_url: str, token: str) -> None:
        """Install (if missing) and persistently enable the agent role."""
        pass

    @abstractmethod
    async def read_node_token(self, vm: str) -> str:
        """Return the raw node-token file content from the server VM."""
        pass

    @abstractmethod
    async def read_kubeconfig(self, vm: str) -> str:
        """Return the admin kubeconfig from the server VM."""
        pass

    @abstractmethod
    async def node_ready(self, vm: str, node: str) -> bool:
        """Ask the control plane on `vm` whether `node` reports Ready."""
        pass

    @abstractmethod
    async def get_nodes(self, vm: str) -> str:
        """Human-readable node listing from the control plane on `vm`."""
        pass
