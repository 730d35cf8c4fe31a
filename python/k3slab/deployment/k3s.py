"""
Provides the K3s bootstrap for a 1 control-plane + 1 worker lab cluster.

The steps are strictly sequential because each one depends on an externally
observable effect of the previous one:
  1) Install and enable the K3s server on the master VM.
  2) Read the node token the server wrote (fatal if empty, no retry).
  3) Install and enable the K3s agent on the worker VM, joining
     https://<master>:6443 with that token.
  4) Poll the control plane until both nodes report Ready (bounded wait,
     fatal on timeout).

Every step is idempotent, so a failed run is resumed by running it again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List

from pydantic import SecretStr

from k3slab.errors import NodeNotReady, TokenUnavailable
from k3slab.models.cluster import JoinCredential, NodeReadiness, server_url
from k3slab.models.run_config import WaitPolicy
from k3slab.providers.base import ClusterRuntimeInstaller
from k3slab.utils.async_command_runner import CommandError
from k3slab.utils.async_retry import async_retry

logger = logging.getLogger(__name__)


class _NodePending(Exception):
    """Raised by one readiness probe while the node is not Ready yet."""


class ClusterBootstrapper:
    """Drives a ClusterRuntimeInstaller through the bootstrap sequence."""

    def __init__(
        self,
        installer: ClusterRuntimeInstaller,
        ready_policy: WaitPolicy = WaitPolicy.from_timeout(180, 2.0),
    ) -> None:
        self.installer = installer
        self.ready_policy = ready_policy

    async def install_control_plane(self, vm: str) -> None:
        print(f"Installing K3s server on {vm}...")
        await self.installer.install_server(vm)

    async def extract_token(self, vm: str) -> JoinCredential:
        """
        Read the node token from the control-plane VM.

        Raises:
            TokenUnavailable: If the token file is unreadable or empty. Not retried:
                a missing token means the server never initialised.
        """
        try:
            raw = await self.installer.read_node_token(vm)
        except CommandError as exc:
            raise TokenUnavailable(
                f"could not read K3s node token from {vm}: {exc}"
            ) from exc
        if not raw.strip():
            raise TokenUnavailable(f"could not read K3s node token from {vm} (empty).")
        credential = JoinCredential(token=SecretStr(raw.strip()), source_vm=vm)
        logger.debug("Read node token %s from %s", credential.redacted(), vm)
        return credential

    async def install_worker(
        self, vm: str, master_address: str, credential: JoinCredential
    ) -> None:
        print(f"Installing K3s agent on {vm}...")
        await self.installer.install_agent(
            vm, server_url(master_address), credential.reveal()
        )

    async def await_ready(self, control_plane_vm: str, node: str) -> NodeReadiness:
        """
        Block until `node` reports Ready, asking the control plane on
        `control_plane_vm`.

        Raises:
            NodeNotReady: If the node is still not Ready when the policy runs out
                of attempts or its deadline passes (a hung probe counts).
        """
        policy = self.ready_policy
        readiness = NodeReadiness(node=node)
        attempts = 0

        @async_retry(
            retries=policy.attempts,
            delay=policy.interval,
            retry_on=(_NodePending,),
        )
        async def _probe() -> None:
            nonlocal attempts
            attempts += 1
            if not await self.installer.node_ready(control_plane_vm, node):
                raise _NodePending(node)

        try:
            await asyncio.wait_for(_probe(), timeout=policy.deadline)
        except (_NodePending, asyncio.TimeoutError):
            raise NodeNotReady(
                f"node/{node} to become Ready", policy.attempts, policy.interval
            ) from None

        readiness.mark_ready(attempts)
        return readiness

    async def bootstrap(
        self, master: str, worker: str, master_address: str
    ) -> List[NodeReadiness]:
        """
        Run the full sequence. The token only lives for the duration of this call.

        Returns:
            List[NodeReadiness]: master first, then worker, both Ready.
        """
        await self.install_control_plane(master)
        credential = await self.extract_token(master)
        await self.install_worker(worker, master_address, credential)
        del credential

        print("Waiting for both nodes to become Ready...")
        return [
            await self.await_ready(master, master),
            await self.await_ready(master, worker),
        ]
