# k3slab/models/settings.py

from pydantic_settings import BaseSettings


class LabSettings(BaseSettings):
    """
    Pydantic settings supplying the defaults for every CLI flag plus the timing
    knobs that have no flag. Fields map to environment variables prefixed with
    `K3SLAB_`, e.g. `K3SLAB_MASTER_NAME`, `K3SLAB_READY_TIMEOUT_SECONDS`.
    Explicit CLI flags always win over these values.
    """

    master_name: str = "k8s-master"
    worker_name: str = "k8s-worker"
    cpus: int = 2
    memory: str = "5G"
    disk: str = "50G"
    image: str = "lts"
    address_attempts: int = 60
    address_interval_seconds: float = 2.0
    ready_timeout_seconds: float = 180.0
    ready_interval_seconds: float = 2.0

    class Config:
        env_prefix = "K3SLAB_"
