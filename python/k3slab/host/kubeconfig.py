"""
k3slab/host/kubeconfig.py

Exports the cluster's admin kubeconfig to the host.

K3s writes its kubeconfig with the API server at https://127.0.0.1:6443,
which is only valid inside the master VM. On export every occurrence of the
loopback literal is replaced with the master's address. This is a plain text
replacement, not a YAML rewrite, so the literal is replaced wherever it
appears in the file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml

from k3slab.host.shell import HostShell
from k3slab.models.host import LOOPBACK_ADDRESS
from k3slab.providers.base import ClusterRuntimeInstaller

KUBECONFIG_MODE = 0o600


def substitute_loopback(text: str, address: str) -> str:
    """Replace every occurrence of 127.0.0.1 in `text` with `address`."""
    return text.replace(LOOPBACK_ADDRESS, address)


def kubeconfig_servers(text: str) -> List[str]:
    """
    List the API server URLs a kubeconfig points at.

    Returns an empty list for text that is not a kubeconfig-shaped mapping.
    """
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError:
        return []
    if not isinstance(parsed, dict):
        return []
    clusters: List[Dict[str, Any]] = parsed.get("clusters") or []
    return [
        str(entry["cluster"]["server"])
        for entry in clusters
        if isinstance(entry, dict)
        and isinstance(entry.get("cluster"), dict)
        and "server" in entry["cluster"]
    ]


async def sync_kubeconfig(
    installer: ClusterRuntimeInstaller,
    master_vm: str,
    master_address: str,
    destination: Path,
    shell: HostShell,
) -> str:
    """
    Copy the master's kubeconfig to `destination` with the loopback address
    rewritten, leaving the file readable and writable by the owner only.

    Returns:
        str: The text that was written.
    """
    print(f"Configuring local kubeconfig at {destination} ...")
    raw = await installer.read_kubeconfig(master_vm)
    content = substitute_loopback(raw, master_address)
    if not content.endswith("\n"):
        content += "\n"

    await shell.makedirs(destination.parent)
    await shell.write_file(destination, content, mode=KUBECONFIG_MODE, sensitive=True)
    return content
