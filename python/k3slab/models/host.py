"""
k3slab/models/host.py

Defines Pydantic models for host-side state k3slab writes:
 - ReverseProxyRule: one listen-port -> upstream mapping
 - ProxyLayout: where the proxy vhost and certificate live on this host
 - HostEnvironment: injectable host paths, so host integration never has to
   touch the real home directory or /etc in tests
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

LOOPBACK_ADDRESS = "127.0.0.1"
CERT_COMMON_NAME = "k3s.local"
VHOST_NAME = "k3s-reverse-proxy"


class ReverseProxyRule(BaseModel):
    """
    Maps a host listen port to the same port on the control-plane VM. With
    `tls` on, the host presents its self-signed certificate and re-encrypts to
    the upstream, forwarding SNI.
    """

    listen_port: int = Field(..., ge=1, le=65535)
    tls: bool
    upstream_host: str
    upstream_port: int = Field(..., ge=1, le=65535)

    class Config:
        frozen = True

    @property
    def upstream(self) -> str:
        scheme = "https" if self.tls else "http"
        return f"{scheme}://{self.upstream_host}:{self.upstream_port}"


class ProxyLayout(BaseModel):
    """
    Host paths for the NGINX reverse proxy.

    Attributes:
        vhost_path: The virtual-host file, overwritten on every run.
        enabled_link: Symlink to create pointing at vhost_path (Debian-style
            sites-enabled), or None where NGINX includes vhost_path directly.
        default_site: A stock site to remove so it does not shadow ours, or None.
        cert_path: Self-signed certificate, generated once.
        key_path: Private key for cert_path, generated once.
        privileged: Whether writes under these paths need sudo.
    """

    vhost_path: Path
    enabled_link: Optional[Path] = None
    default_site: Optional[Path] = None
    cert_path: Path
    key_path: Path
    privileged: bool = False

    @property
    def cert_dir(self) -> Path:
        return self.cert_path.parent


class HostEnvironment(BaseModel):
    """
    The host k3slab integrates with.

    Attributes:
        system: `platform.system()` value, e.g. "Linux" or "Darwin".
        home: The invoking user's home directory.
        kubeconfig_path: Where the exported kubeconfig is written (mode 0600).
        proxy: Reverse-proxy layout, or None if this OS is not supported.
    """

    system: str
    home: Path
    kubeconfig_path: Path
    proxy: Optional[ProxyLayout] = None

    @property
    def is_linux(self) -> bool:
        return self.system == "Linux"

    @property
    def is_macos(self) -> bool:
        return self.system == "Darwin"
