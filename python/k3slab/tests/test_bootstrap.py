from __future__ import annotations

import asyncio
from typing import List

import pytest
from pydantic import SecretStr, ValidationError

from k3slab.deployment.k3s import ClusterBootstrapper
from k3slab.errors import NodeNotReady, TokenUnavailable
from k3slab.models.cluster import JoinCredential
from k3slab.models.run_config import WaitPolicy
from k3slab.tests.fakes import FakeRuntimeInstaller

FAST = WaitPolicy(attempts=90, interval=0.0)


def test_bootstrap_runs_steps_in_order() -> None:
    installer = FakeRuntimeInstaller(
        token="K10abc::server:xyz\n",
        ready_after={"k8s-master": 1, "k8s-worker": 3},
    )
    nodes = asyncio.run(
        ClusterBootstrapper(installer, FAST).bootstrap(
            "k8s-master", "k8s-worker", "10.0.0.5"
        )
    )

    assert installer.call_names() == [
        "install_server",
        "read_node_token",
        "install_agent",
    ]
    assert installer.calls[2] == (
        "install_agent",
        "k8s-worker",
        "https://10.0.0.5:6443",
        "K10abc::server:xyz",
    )
    assert [(n.node, n.ready) for n in nodes] == [
        ("k8s-master", True),
        ("k8s-worker", True),
    ]
    assert nodes[1].attempts == 3


@pytest.mark.parametrize("token", ["", "   \n"])
def test_empty_token_aborts_before_worker_install(token: str) -> None:
    installer = FakeRuntimeInstaller(token=token)

    with pytest.raises(TokenUnavailable):
        asyncio.run(
            ClusterBootstrapper(installer, FAST).bootstrap(
                "k8s-master", "k8s-worker", "10.0.0.5"
            )
        )
    assert "install_agent" not in installer.call_names()


def test_unreadable_token_is_not_retried() -> None:
    installer = FakeRuntimeInstaller(token_error=True)

    with pytest.raises(TokenUnavailable) as excinfo:
        asyncio.run(ClusterBootstrapper(installer, FAST).extract_token("k8s-master"))
    assert installer.call_names() == ["read_node_token"]
    assert "k8s-master" in str(excinfo.value)


def test_await_ready_times_out_after_ceiling(sleeps: List[float]) -> None:
    installer = FakeRuntimeInstaller(ready_after={})
    policy = WaitPolicy.from_timeout(180, 2.0)

    with pytest.raises(NodeNotReady) as excinfo:
        asyncio.run(
            ClusterBootstrapper(installer, policy).await_ready("k8s-master", "k8s-worker")
        )
    assert installer.probes["k8s-worker"] == 90
    assert excinfo.value.attempts == 90
    assert "node/k8s-worker" in str(excinfo.value)


def test_credential_is_redacted() -> None:
    credential = JoinCredential(token=SecretStr("K10supersecrettoken"), source_vm="m")
    assert "supersecret" not in repr(credential)
    assert "supersecret" not in str(credential)
    assert "supersecret" not in credential.redacted()
    assert credential.reveal() == "K10supersecrettoken"


def test_credential_rejects_blank_token() -> None:
    with pytest.raises(ValidationError):
        JoinCredential(token=SecretStr("  "), source_vm="m")


class _HangingInstaller(FakeRuntimeInstaller):
    async def node_ready(self, vm: str, node: str) -> bool:
        await asyncio.Event().wait()
        return True


def test_await_ready_deadline_covers_a_hung_check() -> None:
    policy = WaitPolicy(attempts=2, interval=0.05)
    assert policy.deadline == pytest.approx(0.1)
    with pytest.raises(NodeNotReady):
        asyncio.run(
            ClusterBootstrapper(_HangingInstaller(), policy).await_ready(
                "k8s-master", "k8s-worker"
            )
        )
