from __future__ import annotations

import asyncio

import pytest

from k3slab.errors import PreconditionError
from k3slab.host.packages import HostPackageManager
from k3slab.tests.fakes import RecordingHostShell


def test_present_tools_install_nothing() -> None:
    shell = RecordingHostShell(available={"kubectl", "helm", "brew"})
    asyncio.run(HostPackageManager(shell).ensure_cluster_tools())
    assert shell.commands == []


def test_brew_preferred_over_snap() -> None:
    shell = RecordingHostShell(available={"brew", "snap", "kubectl"})
    asyncio.run(HostPackageManager(shell).ensure_cluster_tools())
    assert shell.commands == [(False, ["brew", "install", "helm"])]


def test_snap_installs_classic_with_sudo() -> None:
    shell = RecordingHostShell(available={"snap"})
    asyncio.run(HostPackageManager(shell).ensure_cluster_tools())
    assert shell.commands == [
        (True, ["snap", "install", "kubectl", "--classic"]),
        (True, ["snap", "install", "helm", "--classic"]),
    ]


def test_apt_only_host_cannot_install_cluster_tools() -> None:
    shell = RecordingHostShell(available={"apt-get"})
    with pytest.raises(PreconditionError):
        asyncio.run(HostPackageManager(shell).ensure_cluster_tools())
    assert shell.commands == []


def test_nginx_via_apt() -> None:
    shell = RecordingHostShell(available={"apt-get"})
    asyncio.run(HostPackageManager(shell).ensure_proxy_server())
    assert shell.commands == [
        (True, ["apt-get", "update"]),
        (True, ["apt-get", "install", "-y", "nginx"]),
    ]
