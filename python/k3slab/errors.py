"""
k3slab/errors.py

Failure taxonomy for the provisioning pipeline. Every class here is fatal to
a run: the CLI reports the message on stderr and exits 1. Best-effort problems
(missing firewall tool, proxy reload fallback) are warnings and never raise.
"""

from __future__ import annotations


class LabError(Exception):
    """Base class for fatal k3slab errors."""


class PreconditionError(LabError):
    """A required external tool is missing or unusable on the host."""


class TokenUnavailable(LabError):
    """The control-plane node token is empty or could not be read."""


class WaitTimeout(LabError):
    """A bounded wait on eventually-consistent external state ran out.

    Attributes:
        what: Human description of what was awaited.
        attempts: The attempt ceiling that was reached.
        interval: Seconds between attempts.
    """

    def __init__(self, what: str, attempts: int, interval: float) -> None:
        self.what = what
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            f"Timed out waiting for {what} after {attempts} attempts "
            f"({attempts * interval:g}s at {interval:g}s intervals)."
        )


class AddressTimeout(WaitTimeout):
    """No IPv4 address was reported for a VM within the attempt ceiling."""


class NodeNotReady(WaitTimeout):
    """A cluster node did not report Ready within the timeout."""
