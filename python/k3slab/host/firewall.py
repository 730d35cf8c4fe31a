"""
k3slab/host/firewall.py

Opens host ports 80/443 for the reverse proxy on Linux. ufw wins if present;
otherwise firewalld is used, but only when it is actually running. With
neither available this is a warning, not an error.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from k3slab.host.shell import HostShell
from k3slab.utils.async_command_runner import CommandError


class FirewallTool(str, Enum):
    ufw = "ufw"
    firewalld = "firewall-cmd"


async def detect_firewall(shell: HostShell) -> Optional[FirewallTool]:
    """Return the first usable firewall tool, or None."""
    if shell.which(FirewallTool.ufw.value):
        return FirewallTool.ufw
    if shell.which(FirewallTool.firewalld.value):
        try:
            await shell.run(["firewall-cmd", "--state"], sudo=True)
            return FirewallTool.firewalld
        except CommandError:
            return None
    return None


async def open_http_https(shell: HostShell) -> Optional[FirewallTool]:
    """
    Allow inbound 80/tcp and 443/tcp.

    Returns:
        Optional[FirewallTool]: The tool that was used, or None if none was found.
    """
    print("Checking firewall rules for ports 80 and 443...")
    tool = await detect_firewall(shell)

    if tool is FirewallTool.ufw:
        await shell.run(["ufw", "allow", "80/tcp"], sudo=True)
        await shell.run(["ufw", "allow", "443/tcp"], sudo=True)
        try:
            print(await shell.run(["ufw", "status"], sudo=True))
        except CommandError:
            pass
    elif tool is FirewallTool.firewalld:
        await shell.run(
            ["firewall-cmd", "--add-service=http", "--permanent"], sudo=True
        )
        await shell.run(
            ["firewall-cmd", "--add-service=https", "--permanent"], sudo=True
        )
        await shell.run(["firewall-cmd", "--reload"], sudo=True)
        print(await shell.run(["firewall-cmd", "--list-services"], sudo=True))
    else:
        print(
            "Warning: no supported Linux firewall tool detected (ufw/firewalld). "
            "Open ports 80 and 443 manually if needed."
        )
    return tool
