from __future__ import annotations

import asyncio
import stat
from pathlib import Path

from k3slab.host.kubeconfig import (
    kubeconfig_servers,
    substitute_loopback,
    sync_kubeconfig,
)
from k3slab.tests.fakes import K3S_YAML, FakeRuntimeInstaller, RecordingHostShell


def test_substitute_replaces_every_occurrence() -> None:
    text = "server: https://127.0.0.1:6443\n# also 127.0.0.1 here\n"
    out = substitute_loopback(text, "10.0.0.5")
    assert "127.0.0.1" not in out
    assert out.count("10.0.0.5") == 2


def test_kubeconfig_servers_lists_server_urls() -> None:
    assert kubeconfig_servers(K3S_YAML) == ["https://127.0.0.1:6443"]
    assert kubeconfig_servers("not: [valid") == []
    assert kubeconfig_servers("- just\n- a list\n") == []


def test_sync_writes_owner_only_file(tmp_path: Path) -> None:
    destination = tmp_path / "home" / ".kube" / "config"
    installer = FakeRuntimeInstaller(kubeconfig=K3S_YAML)

    content = asyncio.run(
        sync_kubeconfig(
            installer=installer,
            master_vm="k8s-master",
            master_address="10.0.0.5",
            destination=destination,
            shell=RecordingHostShell(),
        )
    )

    written = destination.read_text(encoding="utf-8")
    assert written == content
    assert "server: https://10.0.0.5:6443" in written
    assert "127.0.0.1" not in written
    assert stat.S_IMODE(destination.stat().st_mode) == 0o600


def test_sync_overwrites_previous_kubeconfig(tmp_path: Path) -> None:
    destination = tmp_path / "config"
    destination.write_text("stale", encoding="utf-8")
    destination.chmod(0o644)

    asyncio.run(
        sync_kubeconfig(
            installer=FakeRuntimeInstaller(kubeconfig=K3S_YAML),
            master_vm="k8s-master",
            master_address="10.0.0.9",
            destination=destination,
            shell=RecordingHostShell(),
        )
    )
    assert "stale" not in destination.read_text(encoding="utf-8")
    assert stat.S_IMODE(destination.stat().st_mode) == 0o600
