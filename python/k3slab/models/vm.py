"""
k3slab/models/vm.py

Defines Pydantic models for VMs managed through the VM provider:
 - VmState
 - VmInfo (a point-in-time provider report)
 - VmHandle (the provisioner's record of a VM it ensured)
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class VmState(str, Enum):
    absent = "absent"
    stopped = "stopped"
    running = "running"

    @classmethod
    def from_provider(cls, raw: str) -> "VmState":
        """
        Map a provider state string ("Running", "Stopped", "Suspended", ...) onto
        the three lifecycle states k3slab models. Anything that is not running
        is treated as stopped, since `start` is the remedy either way.
        """
        return cls.running if raw.strip().lower() == "running" else cls.stopped


class VmInfo(BaseModel):
    """
    What the provider currently reports about an existing VM.

    Attributes:
        name: VM name
        state: Lifecycle state
        ipv4: Addresses reported so far; empty while the VM is still booting
    """

    name: str
    state: VmState
    ipv4: List[str] = Field(default_factory=list)

    @property
    def address(self) -> Optional[str]:
        return self.ipv4[0] if self.ipv4 else None


class VmHandle(BaseModel):
    """
    A VM ensured by the provisioner. `state` and `address` are updated in place
    as the provisioner learns more; later stages only read them.
    """

    name: str
    state: VmState = VmState.absent
    address: Optional[str] = None
    created: bool = False
