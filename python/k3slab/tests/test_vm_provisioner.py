from __future__ import annotations

import asyncio
from typing import List, Optional

import pytest

from k3slab.deployment.vm import VmProvisioner
from k3slab.errors import AddressTimeout
from k3slab.models.run_config import VmSizing, WaitPolicy
from k3slab.models.vm import VmHandle, VmInfo, VmState
from k3slab.tests.fakes import FakeVmProvider

SIZING = VmSizing(cpus=2, memory="5G", disk="50G")


def test_ensure_creates_absent_vm() -> None:
    provider = FakeVmProvider()
    handle = asyncio.run(VmProvisioner(provider).ensure("k8s-master", SIZING, "lts"))

    assert handle.name == "k8s-master"
    assert handle.state is VmState.running
    assert handle.created
    assert provider.launched == ["k8s-master"]
    assert provider.sizing["k8s-master"] == (SIZING, "lts")


def test_ensure_twice_yields_one_running_vm_and_ignores_new_sizing() -> None:
    provider = FakeVmProvider()
    provisioner = VmProvisioner(provider)

    async def scenario() -> None:
        await provisioner.ensure("k8s-master", SIZING, "lts")
        bigger = VmSizing(cpus=8, memory="16G", disk="100G")
        second = await provisioner.ensure("k8s-master", bigger, "jammy")
        assert second.state is VmState.running
        assert not second.created

    asyncio.run(scenario())
    assert provider.launched == ["k8s-master"]
    assert list(provider.vms) == ["k8s-master"]
    assert provider.sizing["k8s-master"] == (SIZING, "lts")


def test_ensure_starts_stopped_vm() -> None:
    provider = FakeVmProvider()
    provider.add_vm("k8s-worker", VmState.stopped)

    handle = asyncio.run(VmProvisioner(provider).ensure("k8s-worker", SIZING, "lts"))

    assert provider.started == ["k8s-worker"]
    assert provider.launched == []
    assert handle.state is VmState.running


def test_ensure_does_not_restart_running_vm() -> None:
    provider = FakeVmProvider()
    provider.add_vm("k8s-worker", VmState.running, ["10.0.0.6"])

    handle = asyncio.run(VmProvisioner(provider).ensure("k8s-worker", SIZING, "lts"))

    assert provider.started == []
    assert handle.address == "10.0.0.6"


def test_resolve_address_polls_until_reported(sleeps: List[float]) -> None:
    provider = FakeVmProvider(addresses={"k8s-master": "10.0.0.5"}, address_delay=3)
    provisioner = VmProvisioner(provider, WaitPolicy(attempts=60, interval=2.0))

    async def scenario() -> str:
        handle = await provisioner.ensure("k8s-master", SIZING, "lts")
        address = await provisioner.resolve_address(handle)
        assert handle.address == address
        return address

    assert asyncio.run(scenario()) == "10.0.0.5"
    assert provider.info_calls["k8s-master"] == 4
    assert sleeps == [2.0, 2.0, 2.0]


def test_resolve_address_times_out_after_attempt_ceiling(sleeps: List[float]) -> None:
    provider = FakeVmProvider()
    provisioner = VmProvisioner(provider, WaitPolicy(attempts=60, interval=2.0))

    async def scenario() -> None:
        handle = await provisioner.ensure("k8s-master", SIZING, "lts")
        await provisioner.resolve_address(handle)

    with pytest.raises(AddressTimeout) as excinfo:
        asyncio.run(scenario())

    assert provider.info_calls["k8s-master"] == 60
    assert sum(sleeps) == pytest.approx(118.0)
    assert excinfo.value.attempts == 60
    assert "k8s-master" in str(excinfo.value)


class _HangingProvider(FakeVmProvider):
    async def info(self, name: str) -> Optional[VmInfo]:
        await asyncio.Event().wait()
        return None


def test_resolve_address_deadline_covers_a_hung_check() -> None:
    provider = _HangingProvider()
    handle = VmHandle(name="k8s-master", state=VmState.running)
    provisioner = VmProvisioner(provider, WaitPolicy(attempts=2, interval=0.05))
    with pytest.raises(AddressTimeout):
        asyncio.run(provisioner.resolve_address(handle))
    assert handle.address is None
