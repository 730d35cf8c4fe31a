"""
k3slab/host/proxy.py

Host NGINX reverse proxy in front of the control-plane VM:
  - 80  -> http://<master>:80
  - 443 -> https://<master>:443 (self-signed cert on the host, SNI forwarded)

The vhost file is regenerated and overwritten on every run, so manual edits
do not survive. The certificate is generated once and never regenerated,
even when the master's address changes.
"""

from __future__ import annotations

import datetime
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from k3slab.host.firewall import open_http_https
from k3slab.host.packages import HostPackageManager
from k3slab.host.shell import HostShell
from k3slab.models.host import (
    CERT_COMMON_NAME,
    HostEnvironment,
    ProxyLayout,
    ReverseProxyRule,
)
from k3slab.utils.async_command_runner import CommandError

CERT_VALID_DAYS = 365
RSA_KEY_BITS = 2048


def build_proxy_rules(address: str) -> List[ReverseProxyRule]:
    """HTTP and HTTPS rules forwarding to the same ports on `address`."""
    return [
        ReverseProxyRule(
            listen_port=80, tls=False, upstream_host=address, upstream_port=80
        ),
        ReverseProxyRule(
            listen_port=443, tls=True, upstream_host=address, upstream_port=443
        ),
    ]


def _server_block(rule: ReverseProxyRule, layout: ProxyLayout) -> str:
    lines = ["server {"]
    if rule.tls:
        lines += [
            f"  listen {rule.listen_port} ssl;",
            "  server_name _;",
            f"  ssl_certificate {layout.cert_path};",
            f"  ssl_certificate_key {layout.key_path};",
        ]
    else:
        lines += [f"  listen {rule.listen_port};", "  server_name _;"]
    lines += ["", "  location / {", f"    proxy_pass {rule.upstream};"]
    if rule.tls:
        lines.append("    proxy_ssl_server_name on;")
    lines += [
        "    proxy_set_header Host $host;",
        "    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;",
        "    proxy_set_header X-Forwarded-Proto $scheme;",
        "  }",
        "}",
    ]
    return "\n".join(lines) + "\n"


def render_vhost(rules: List[ReverseProxyRule], layout: ProxyLayout) -> str:
    """Render the NGINX virtual-host text for `rules`."""
    return "\n".join(_server_block(rule, layout) for rule in rules)


def generate_self_signed(
    common_name: str = CERT_COMMON_NAME, days: int = CERT_VALID_DAYS
) -> Tuple[str, str]:
    """
    Create an RSA key and a self-signed certificate for `common_name`.

    Returns:
        Tuple[str, str]: (certificate PEM, private key PEM)
    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_BITS)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=days))
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    return cert_pem, key_pem


async def ensure_certificate(layout: ProxyLayout, shell: HostShell) -> bool:
    """
    Generate the proxy certificate and key unless both already exist.

    Returns:
        bool: True if a new pair was written.
    """
    await shell.makedirs(layout.cert_dir, sudo=layout.privileged)
    if await shell.exists(layout.cert_path) and await shell.exists(layout.key_path):
        return False

    cert_pem, key_pem = generate_self_signed()
    await shell.write_file(
        layout.key_path, key_pem, mode=0o600, sudo=layout.privileged, sensitive=True
    )
    await shell.write_file(
        layout.cert_path, cert_pem, mode=0o644, sudo=layout.privileged
    )
    return True


async def write_vhost(address: str, layout: ProxyLayout, shell: HostShell) -> str:
    """Overwrite the vhost file for `address` and return its text."""
    text = render_vhost(build_proxy_rules(address), layout)
    await shell.makedirs(layout.vhost_path.parent, sudo=layout.privileged)
    await shell.write_file(layout.vhost_path, text, sudo=layout.privileged)
    if layout.enabled_link is not None:
        await shell.makedirs(layout.enabled_link.parent, sudo=layout.privileged)
        await shell.symlink(
            layout.vhost_path, layout.enabled_link, sudo=layout.privileged
        )
    if layout.default_site is not None:
        await shell.remove(layout.default_site, sudo=layout.privileged)
    return text


async def _reload_linux(shell: HostShell) -> None:
    await shell.run(["nginx", "-t"], sudo=True)
    await shell.run(["systemctl", "enable", "--now", "nginx"], sudo=True)
    try:
        await shell.run(["systemctl", "reload", "nginx"], sudo=True)
    except CommandError:
        print("Warning: reloading nginx failed; restarting it instead.")
        await shell.run(["systemctl", "restart", "nginx"], sudo=True)


async def _reload_macos(shell: HostShell) -> None:
    await shell.run(["nginx", "-t"])
    await shell.run(["brew", "services", "start", "nginx"])
    try:
        await shell.run(["nginx", "-s", "reload"])
    except CommandError:
        pass


async def configure_reverse_proxy(
    address: str,
    env: HostEnvironment,
    shell: HostShell,
    packages: HostPackageManager,
) -> Optional[List[str]]:
    """
    Point the host reverse proxy at `address`.

    Returns:
        Optional[List[str]]: "<listen> -> <upstream>" lines for each rule, or None
        if this OS is not supported and the step was skipped.

    Raises:
        PreconditionError: If nginx is missing and cannot be installed.
    """
    if env.proxy is None or not (env.is_linux or env.is_macos):
        print(f"Skipping NGINX reverse-proxy setup: unsupported OS '{env.system}'.")
        return None

    await packages.ensure_proxy_server()
    layout = env.proxy
    await ensure_certificate(layout, shell)
    await write_vhost(address, layout, shell)

    if env.is_linux:
        await _reload_linux(shell)
        await open_http_https(shell)
    else:
        await _reload_macos(shell)
        print(
            "Warning: macOS firewall is not auto-managed. Ensure inbound ports "
            "80 and 443 are allowed if needed."
        )

    return [f"{r.listen_port} -> {r.upstream}" for r in build_proxy_rules(address)]
