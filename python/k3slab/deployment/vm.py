"""
k3slab/deployment/vm.py

Ensures the lab VMs exist and are running, and resolves their addresses.

Re-running is safe: an existing VM is reused as-is (and started if needed).
Sizing and image only apply when a VM is first created; they are never
reconciled against a VM that already exists, since that would mean a
destructive resize.
"""

from __future__ import annotations

import asyncio
import logging

from k3slab.errors import AddressTimeout
from k3slab.models.run_config import VmSizing, WaitPolicy
from k3slab.models.vm import VmHandle, VmState
from k3slab.providers.base import VmProvider
from k3slab.utils.async_retry import async_retry

logger = logging.getLogger(__name__)


class _AddressPending(Exception):
    """Raised by one address probe while the provider reports no IPv4 yet."""


class VmProvisioner:
    """Creates or reuses VMs through a VmProvider."""

    def __init__(
        self, provider: VmProvider, address_policy: WaitPolicy = WaitPolicy()
    ) -> None:
        self.provider = provider
        self.address_policy = address_policy

    async def ensure(self, name: str, sizing: VmSizing, image: str) -> VmHandle:
        """
        Make sure a VM named `name` exists and is running.

        Args:
            name: VM name.
            sizing: CPU/memory/disk, used only if the VM has to be created.
            image: Image/channel, used only if the VM has to be created.

        Returns:
            VmHandle: running VM; `created` tells whether this call launched it.
        """
        existing = await self.provider.info(name)
        if existing is not None:
            print(f"VM '{name}' already exists; reusing it.")
            logger.debug(
                "Requested sizing %s / image %s not applied to existing VM '%s'",
                sizing,
                image,
                name,
            )
            if existing.state is not VmState.running:
                await self.provider.start(name)
            return VmHandle(
                name=name, state=VmState.running, address=existing.address
            )

        print(f"Launching VM '{name}'...")
        await self.provider.launch(name, sizing, image)
        return VmHandle(name=name, state=VmState.running, created=True)

    async def resolve_address(self, handle: VmHandle) -> str:
        """
        Poll the provider until it reports an IPv4 address for `handle`.

        The handle's `address` is updated in place.

        Raises:
            AddressTimeout: If no address shows up within the attempt ceiling or
                the policy deadline.
        """
        policy = self.address_policy

        @async_retry(
            retries=policy.attempts,
            delay=policy.interval,
            retry_on=(_AddressPending,),
        )
        async def _probe() -> str:
            info = await self.provider.info(handle.name)
            if info is None or info.address is None:
                raise _AddressPending(handle.name)
            return info.address

        try:
            address = await asyncio.wait_for(_probe(), timeout=policy.deadline)
        except (_AddressPending, asyncio.TimeoutError):
            raise AddressTimeout(
                f"an IP address on '{handle.name}'", policy.attempts, policy.interval
            ) from None

        handle.address = address
        return address
