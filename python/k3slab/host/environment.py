"""
k3slab/host/environment.py

Builds the HostEnvironment for the machine k3slab runs on:
  - Linux: Debian-style /etc/nginx/sites-available + sites-enabled, certs in
    /etc/nginx/certs, all written through sudo.
  - macOS: Homebrew's `<prefix>/etc/nginx/servers`, certs in ~/.nginx/certs,
    written as the invoking user.
  - Anything else: no proxy layout (the proxy step is skipped).
"""

from __future__ import annotations

import platform
from pathlib import Path
from typing import Optional

from k3slab.host.shell import HostShell
from k3slab.models.host import VHOST_NAME, HostEnvironment, ProxyLayout
from k3slab.utils.async_command_runner import CommandError

DEFAULT_BREW_PREFIX = "/opt/homebrew"


def linux_proxy_layout(nginx_root: Path = Path("/etc/nginx")) -> ProxyLayout:
    cert_dir = nginx_root / "certs"
    return ProxyLayout(
        vhost_path=nginx_root / "sites-available" / VHOST_NAME,
        enabled_link=nginx_root / "sites-enabled" / VHOST_NAME,
        default_site=nginx_root / "sites-enabled" / "default",
        cert_path=cert_dir / f"{VHOST_NAME}.crt",
        key_path=cert_dir / f"{VHOST_NAME}.key",
        privileged=True,
    )


def macos_proxy_layout(brew_prefix: Path, home: Path) -> ProxyLayout:
    cert_dir = home / ".nginx" / "certs"
    return ProxyLayout(
        vhost_path=brew_prefix / "etc" / "nginx" / "servers" / f"{VHOST_NAME}.conf",
        cert_path=cert_dir / f"{VHOST_NAME}.crt",
        key_path=cert_dir / f"{VHOST_NAME}.key",
        privileged=False,
    )


async def _brew_prefix(shell: HostShell) -> Path:
    if shell.which("brew") is None:
        return Path(DEFAULT_BREW_PREFIX)
    try:
        return Path(await shell.run(["brew", "--prefix"]) or DEFAULT_BREW_PREFIX)
    except CommandError:
        return Path(DEFAULT_BREW_PREFIX)


async def detect_host_environment(
    shell: HostShell,
    system: Optional[str] = None,
    home: Optional[Path] = None,
) -> HostEnvironment:
    """
    Describe the current host.

    Args:
        shell: Used to query Homebrew's prefix on macOS.
        system: Override for `platform.system()`.
        home: Override for the user's home directory.
    """
    system = system or platform.system()
    home = home or Path.home()

    proxy: Optional[ProxyLayout] = None
    if system == "Linux":
        proxy = linux_proxy_layout()
    elif system == "Darwin":
        proxy = macos_proxy_layout(await _brew_prefix(shell), home)

    return HostEnvironment(
        system=system,
        home=home,
        kubeconfig_path=home / ".kube" / "config",
        proxy=proxy,
    )
