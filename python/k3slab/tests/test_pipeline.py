from __future__ import annotations

import asyncio
import stat
from pathlib import Path

import pytest

from k3slab.deployment.pipeline import run_pipeline
from k3slab.errors import NodeNotReady, TokenUnavailable
from k3slab.models.run_config import LabTiming, RunConfig, WaitPolicy
from k3slab.models.vm import VmState
from k3slab.tests.fakes import (
    K3S_YAML,
    FakeRuntimeInstaller,
    FakeVmProvider,
    RecordingHostShell,
    tmp_host_environment,
)

FAST_TIMING = LabTiming(
    address=WaitPolicy(attempts=60, interval=0.0),
    ready=WaitPolicy(attempts=90, interval=0.0),
)
ADDRESSES = {"k8s-master": "10.0.0.5", "k8s-worker": "10.0.0.6"}


def _config(**overrides: object) -> RunConfig:
    return RunConfig(timing=FAST_TIMING, **overrides)  # type: ignore[arg-type]


def test_end_to_end_from_empty_environment(tmp_path: Path) -> None:
    provider = FakeVmProvider(addresses=ADDRESSES, address_delay=2)
    installer = FakeRuntimeInstaller(
        kubeconfig=K3S_YAML, ready_after={"k8s-master": 2, "k8s-worker": 4}
    )
    env = tmp_host_environment(tmp_path)
    shell = RecordingHostShell(available={"kubectl", "helm", "nginx", "ufw"})

    report = asyncio.run(run_pipeline(_config(), provider, installer, env, shell))

    assert provider.launched == ["k8s-master", "k8s-worker"]
    assert all(vm.state is VmState.running for vm in provider.vms.values())
    assert installer.call_names() == [
        "install_server",
        "read_node_token",
        "install_agent",
        "read_kubeconfig",
    ]
    assert installer.calls[2][2] == "https://10.0.0.5:6443"
    assert [n.ready for n in report.nodes] == [True, True]

    kubeconfig = env.kubeconfig_path.read_text(encoding="utf-8")
    assert "https://10.0.0.5:6443" in kubeconfig
    assert stat.S_IMODE(env.kubeconfig_path.stat().st_mode) == 0o600
    assert report.api_servers == ["https://10.0.0.5:6443"]

    assert env.proxy is not None
    assert "proxy_pass https://10.0.0.5:443;" in env.proxy.vhost_path.read_text(
        encoding="utf-8"
    )
    assert report.proxy_endpoints


def test_rerun_reuses_vms_and_keeps_certificate(tmp_path: Path) -> None:
    provider = FakeVmProvider(addresses=ADDRESSES)
    installer = FakeRuntimeInstaller(
        kubeconfig=K3S_YAML, ready_after={"k8s-master": 1, "k8s-worker": 1}
    )
    env = tmp_host_environment(tmp_path)
    shell = RecordingHostShell(available={"kubectl", "helm", "nginx"})

    async def scenario() -> None:
        await run_pipeline(_config(), provider, installer, env, shell, report=False)
        assert env.proxy is not None
        first_cert = env.proxy.cert_path.read_text(encoding="utf-8")
        await run_pipeline(_config(), provider, installer, env, shell, report=False)
        assert env.proxy.cert_path.read_text(encoding="utf-8") == first_cert

    asyncio.run(scenario())
    assert provider.launched == ["k8s-master", "k8s-worker"]
    assert len(provider.vms) == 2


def test_toggles_skip_host_integration(tmp_path: Path) -> None:
    provider = FakeVmProvider(addresses=ADDRESSES)
    installer = FakeRuntimeInstaller(ready_after={"k8s-master": 1, "k8s-worker": 1})
    env = tmp_host_environment(tmp_path)
    shell = RecordingHostShell()

    report = asyncio.run(
        run_pipeline(
            _config(configure_kubeconfig=False, setup_proxy=False),
            provider,
            installer,
            env,
            shell,
        )
    )

    assert report.kubeconfig_path is None
    assert report.proxy_endpoints == []
    assert not env.kubeconfig_path.exists()
    assert shell.commands == []
    assert "read_kubeconfig" not in installer.call_names()


def test_no_host_tools_skips_tool_install_only(tmp_path: Path) -> None:
    provider = FakeVmProvider(addresses=ADDRESSES)
    installer = FakeRuntimeInstaller(
        kubeconfig=K3S_YAML, ready_after={"k8s-master": 1, "k8s-worker": 1}
    )
    env = tmp_host_environment(tmp_path)
    # No kubectl/helm and no package manager: only fatal if tools were requested.
    shell = RecordingHostShell()

    asyncio.run(
        run_pipeline(
            _config(ensure_host_tools=False, setup_proxy=False),
            provider,
            installer,
            env,
            shell,
            report=False,
        )
    )
    assert env.kubeconfig_path.exists()


def test_empty_token_aborts_before_worker_install(tmp_path: Path) -> None:
    provider = FakeVmProvider(addresses=ADDRESSES)
    installer = FakeRuntimeInstaller(token="")
    env = tmp_host_environment(tmp_path)

    with pytest.raises(TokenUnavailable):
        asyncio.run(
            run_pipeline(_config(), provider, installer, env, RecordingHostShell())
        )
    assert "install_agent" not in installer.call_names()
    assert not env.kubeconfig_path.exists()


def test_worker_never_ready_aborts_run(tmp_path: Path) -> None:
    provider = FakeVmProvider(addresses=ADDRESSES)
    installer = FakeRuntimeInstaller(ready_after={"k8s-master": 1})
    env = tmp_host_environment(tmp_path)

    with pytest.raises(NodeNotReady):
        asyncio.run(
            run_pipeline(_config(), provider, installer, env, RecordingHostShell())
        )
    assert installer.probes["k8s-worker"] == 90
