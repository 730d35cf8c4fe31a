"""
k3slab/providers/k3s.py

ClusterRuntimeInstaller for K3s, executed inside the VMs through a VmProvider.

Both installs are idempotent, and the systemd unit is enabled (and started) on
every run so the role survives a VM reboot. The server installer only runs
when the k3s binary is missing. The agent installer also re-runs whenever the
join parameters recorded in its service env file differ from the current
K3S_URL/K3S_TOKEN, so a worker follows a master whose address or token has
changed.
"""

from __future__ import annotations

import textwrap
from typing import List

from k3slab.providers.base import ClusterRuntimeInstaller, VmProvider
from k3slab.utils.async_command_runner import CommandError

INSTALL_SCRIPT_URL = "https://get.k3s.io"
NODE_TOKEN_PATH = "/var/lib/rancher/k3s/server/node-token"
KUBECONFIG_PATH = "/etc/rancher/k3s/k3s.yaml"
AGENT_ENV_FILE = "/etc/systemd/system/k3s-agent.service.env"
SERVER_SERVICE = "k3s"
AGENT_SERVICE = "k3s-agent"
READY_JSONPATH = '{.status.conditions[?(@.type=="Ready")].status}'


def _server_script() -> str:
    return textwrap.dedent(
        f"""\
        set -e
        if ! command -v k3s >/dev/null 2>&1; then
          curl -sfL {INSTALL_SCRIPT_URL} | sh -
        fi
        sudo systemctl enable --now {SERVER_SERVICE}
        """
    )


def agent_script(env_file: str = AGENT_ENV_FILE) -> str:
    """
    Agent install script. K3S_URL and K3S_TOKEN come from the environment; the
    installer is skipped only if k3s is present and `env_file` already holds
    exactly those values (the installer writes them quoted or bare).
    """
    return textwrap.dedent(
        f"""\
        set -e
        nl=$'\\n'
        joined=no
        if command -v k3s >/dev/null 2>&1; then
          current="$nl$(sudo cat '{env_file}' 2>/dev/null | tr -d "\\"'" || true)$nl"
          case "$current" in
            *"${{nl}}K3S_URL=${{K3S_URL}}${{nl}}"*)
              case "$current" in
                *"${{nl}}K3S_TOKEN=${{K3S_TOKEN}}${{nl}}"*) joined=yes ;;
              esac
              ;;
          esac
        fi
        if [ "$joined" != yes ]; then
          curl -sfL {INSTALL_SCRIPT_URL} | sh -
        fi
        sudo systemctl enable --now {AGENT_SERVICE}
        """
    )


class K3sInstaller(ClusterRuntimeInstaller):
    """Installs K3s server/agent roles by running shell inside Multipass VMs."""

    def __init__(self, provider: VmProvider) -> None:
        self.provider = provider

    async def install_server(self, vm: str) -> None:
        await self.provider.exec(
            vm, ["bash", "-lc", _server_script()], sensitive=False
        )

    async def install_agent(self, vm: str, server_url: str, token: str) -> None:
        # K3S_URL/K3S_TOKEN are scoped to this single command; it runs sensitive
        # so a failure never echoes the token.
        await self.provider.exec(
            vm,
            ["bash", "-lc", agent_script()],
            sensitive=True,
            env={"K3S_URL": server_url, "K3S_TOKEN": token},
        )

    async def read_node_token(self, vm: str) -> str:
        return await self.provider.exec(
            vm, ["sudo", "cat", NODE_TOKEN_PATH], sensitive=True
        )

    async def read_kubeconfig(self, vm: str) -> str:
        return await self.provider.exec(
            vm, ["sudo", "cat", KUBECONFIG_PATH], sensitive=True
        )

    async def node_ready(self, vm: str, node: str) -> bool:
        command: List[str] = [
            "sudo",
            "kubectl",
            "get",
            "node",
            node,
            "-o",
            f"jsonpath={READY_JSONPATH}",
        ]
        try:
            status = await self.provider.exec(vm, command, sensitive=False)
        except CommandError:
            # The node has not registered yet, or the API server is still starting.
            return False
        return status.strip() == "True"

    async def get_nodes(self, vm: str) -> str:
        return await self.provider.exec(
            vm, ["sudo", "kubectl", "get", "nodes", "-o", "wide"], sensitive=False
        )
