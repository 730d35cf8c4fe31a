"""
k3slab/deployment/pipeline.py

The provisioning pipeline, end to end:
  1) Ensure both VMs exist and are running (create or reuse).
  2) Resolve both VM addresses (bounded wait).
  3) Bootstrap K3s: server -> token -> agent -> both nodes Ready.
  4) Host integration, each step gated by its RunConfig toggle:
       - kubectl/helm on the host (only together with kubeconfig export),
       - kubeconfig export with the master address substituted,
       - NGINX reverse proxy on 80/443 plus firewall rules.
  5) Print the final status.

Any failure aborts the run; nothing is rolled back. VMs that were already
created stay around and are reused by the next run.
"""

from __future__ import annotations

from typing import Optional

from k3slab.deployment.k3s import ClusterBootstrapper
from k3slab.deployment.report import print_report
from k3slab.deployment.vm import VmProvisioner
from k3slab.host.kubeconfig import kubeconfig_servers, sync_kubeconfig
from k3slab.host.packages import HostPackageManager
from k3slab.host.proxy import configure_reverse_proxy
from k3slab.host.shell import HostShell
from k3slab.models.cluster import ClusterReport
from k3slab.models.host import HostEnvironment
from k3slab.models.run_config import RunConfig
from k3slab.providers.base import ClusterRuntimeInstaller, VmProvider


async def run_pipeline(
    config: RunConfig,
    provider: VmProvider,
    installer: ClusterRuntimeInstaller,
    host_env: HostEnvironment,
    shell: HostShell,
    packages: Optional[HostPackageManager] = None,
    report: bool = True,
) -> ClusterReport:
    """
    Provision (or converge) the two-node lab cluster described by `config`.

    Args:
        config: The resolved, immutable run configuration.
        provider: VM provider capability.
        installer: Cluster runtime installer capability.
        host_env: Host paths for kubeconfig and proxy files.
        shell: Host command/file access.
        packages: Host package manager; built from `shell` if omitted.
        report: Print the final provider/cluster status.

    Returns:
        ClusterReport: Summary of what the run produced.

    Raises:
        LabError: On any fatal precondition, timeout or token failure.
        CommandError: If an external command fails outright.
    """
    packages = packages or HostPackageManager(shell)
    provisioner = VmProvisioner(provider, config.timing.address)
    bootstrapper = ClusterBootstrapper(installer, config.timing.ready)

    print("Creating or reusing VMs...")
    master = await provisioner.ensure(config.master_name, config.sizing, config.image)
    worker = await provisioner.ensure(config.worker_name, config.sizing, config.image)

    master_address = await provisioner.resolve_address(master)
    worker_address = await provisioner.resolve_address(worker)
    print(f"Master IP: {master_address}")
    print(f"Worker IP: {worker_address}")

    nodes = await bootstrapper.bootstrap(master.name, worker.name, master_address)

    result = ClusterReport(
        master_name=master.name,
        worker_name=worker.name,
        master_address=master_address,
        worker_address=worker_address,
        nodes=nodes,
    )

    if config.configure_kubeconfig:
        if config.ensure_host_tools:
            await packages.ensure_cluster_tools()
        content = await sync_kubeconfig(
            installer=installer,
            master_vm=master.name,
            master_address=master_address,
            destination=host_env.kubeconfig_path,
            shell=shell,
        )
        result.kubeconfig_path = str(host_env.kubeconfig_path)
        result.api_servers = kubeconfig_servers(content)

    if config.setup_proxy:
        print("Configuring host NGINX reverse proxy for ports 80 and 443...")
        endpoints = await configure_reverse_proxy(
            master_address, host_env, shell, packages
        )
        result.proxy_endpoints = endpoints or []

    if report:
        await print_report(result, provider, installer)
    return result
