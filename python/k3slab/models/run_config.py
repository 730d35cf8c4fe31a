"""
k3slab/models/run_config.py

Defines the immutable description of one provisioning run:
 - WaitPolicy: attempt ceiling, interval and overall deadline for a bounded wait
 - LabTiming: the two waits the pipeline performs
 - VmSizing: CPU/memory/disk applied when a VM is created
 - RunConfig: everything the pipeline needs, resolved once from the CLI
"""

from __future__ import annotations

import math
import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

_SIZE_RE = re.compile(r"^\d+(\.\d+)?([KMG](i?B)?)?$", re.IGNORECASE)
_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")


class WaitPolicy(BaseModel):
    """Fixed-interval polling with a hard attempt ceiling."""

    attempts: int = Field(default=60, ge=1)
    interval: float = Field(default=2.0, ge=0.0)

    class Config:
        frozen = True

    @classmethod
    def from_timeout(cls, timeout: float, interval: float) -> "WaitPolicy":
        """Build a policy whose attempts cover `timeout` seconds at `interval` spacing."""
        if interval <= 0:
            return cls(attempts=max(int(timeout), 1), interval=0.0)
        return cls(attempts=max(math.ceil(timeout / interval), 1), interval=interval)

    @property
    def deadline(self) -> Optional[float]:
        """Wall-clock ceiling for the whole wait; None when polling back-to-back."""
        total = self.attempts * self.interval
        return total if total > 0 else None


class LabTiming(BaseModel):
    """Wait policies for VM address resolution and node readiness."""

    address: WaitPolicy = WaitPolicy(attempts=60, interval=2.0)
    ready: WaitPolicy = WaitPolicy.from_timeout(180, 2.0)

    class Config:
        frozen = True


class VmSizing(BaseModel):
    """Sizing applied at VM creation time only. Existing VMs are never resized."""

    cpus: int = Field(default=2, ge=1)
    memory: str = "5G"
    disk: str = "50G"

    class Config:
        frozen = True

    @field_validator("memory", "disk")
    @classmethod
    def validate_size(cls, val: str) -> str:
        if not _SIZE_RE.match(val.strip()):
            raise ValueError(f"invalid size '{val}', expected e.g. 4G or 512M")
        return val.strip()


class RunConfig(BaseModel):
    """
    Immutable configuration for one pipeline run.

    Attributes:
        master_name: Control-plane VM name (also its cluster node name).
        worker_name: Worker VM name (also its cluster node name).
        sizing: CPU/memory/disk for newly created VMs.
        image: Multipass image or channel, e.g. "lts".
        ensure_host_tools: Install kubectl/helm on the host if missing.
        configure_kubeconfig: Export the cluster kubeconfig to the host.
        setup_proxy: Configure the host NGINX reverse proxy on 80/443.
        timing: Bounded-wait policies.
    """

    master_name: str = "k8s-master"
    worker_name: str = "k8s-worker"
    sizing: VmSizing = VmSizing()
    image: str = "lts"
    ensure_host_tools: bool = True
    configure_kubeconfig: bool = True
    setup_proxy: bool = True
    timing: LabTiming = LabTiming()

    class Config:
        frozen = True

    @field_validator("master_name", "worker_name")
    @classmethod
    def validate_vm_name(cls, val: str) -> str:
        if not _NAME_RE.match(val):
            raise ValueError(
                f"invalid VM name '{val}': use letters, digits and '-', starting with a letter"
            )
        return val

    @field_validator("image")
    @classmethod
    def validate_image(cls, val: str) -> str:
        if not val.strip():
            raise ValueError("image must be a non-empty string")
        return val.strip()

    @model_validator(mode="after")
    def validate_distinct_names(self) -> "RunConfig":
        if self.master_name == self.worker_name:
            raise ValueError("master and worker VM names must differ")
        return self
