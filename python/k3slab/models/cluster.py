"""
k3slab/models/cluster.py

Defines Pydantic models for the K3s bootstrap:
 - JoinCredential: the node token, held as a secret
 - NodeReadiness: per-node Ready observation
 - ClusterReport: summary of a completed pipeline run
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

K3S_API_PORT = 6443


def server_url(address: str) -> str:
    """Join URL a K3s agent uses to reach the control plane."""
    return f"https://{address}:{K3S_API_PORT}"


class JoinCredential(BaseModel):
    """
    The K3s node token read from the control-plane VM. Single use per run: it
    is created after the server install and consumed by the agent install.
    `repr` and `str` never show the token; call `reveal()` to hand it on.
    """

    token: SecretStr
    source_vm: str

    class Config:
        frozen = True

    @field_validator("token")
    @classmethod
    def validate_token(cls, val: SecretStr) -> SecretStr:
        if not val.get_secret_value().strip():
            raise ValueError("node token must be non-empty")
        return val

    def reveal(self) -> str:
        return self.token.get_secret_value().strip()

    def redacted(self) -> str:
        """A log-safe rendering: the first few characters only."""
        return f"{self.reveal()[:6]}..."


class NodeReadiness(BaseModel):
    """A node observed Ready stays Ready for the rest of the run."""

    node: str
    ready: bool = False
    attempts: int = 0

    def mark_ready(self, attempts: int) -> None:
        self.ready = True
        self.attempts = attempts


class ClusterReport(BaseModel):
    """What a successful run produced, for the final operator summary."""

    master_name: str
    worker_name: str
    master_address: str
    worker_address: str
    nodes: List[NodeReadiness] = Field(default_factory=list)
    kubeconfig_path: Optional[str] = None
    api_servers: List[str] = Field(default_factory=list)
    proxy_endpoints: List[str] = Field(default_factory=list)
