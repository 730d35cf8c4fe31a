"""
k3slab/deployment/report.py

Final operator summary once the cluster is up: VM status from the provider,
node status from the control plane, and how to reach the cluster next.
"""

from __future__ import annotations

from typing import List

from k3slab.models.cluster import ClusterReport
from k3slab.providers.base import ClusterRuntimeInstaller, VmProvider


def follow_up_hints(report: ClusterReport) -> List[str]:
    """Commands and endpoints worth showing after a successful run."""
    lines = [
        "Check nodes again with:",
        f"  multipass exec {report.master_name} -- sudo kubectl get nodes -o wide",
    ]
    if report.kubeconfig_path is not None:
        lines += ["  kubectl get nodes -o wide", "  helm list -A"]
    if report.proxy_endpoints:
        lines += [
            "",
            "Reverse proxy endpoints:",
            f"  http://<HOST_IP_OR_DNS>   -> {report.master_address}:80",
            f"  https://<HOST_IP_OR_DNS>  -> {report.master_address}:443",
        ]
    return lines


async def print_report(
    report: ClusterReport,
    provider: VmProvider,
    installer: ClusterRuntimeInstaller,
) -> None:
    print("")
    print("Cluster is ready.")
    print("")
    print("Multipass status:")
    print(await provider.list_vms())
    print("")
    print(await provider.describe(report.master_name))
    print("")
    print(await provider.describe(report.worker_name))
    print("")
    print("K3s nodes:")
    print(await installer.get_nodes(report.master_name))
    print("")

    for server in report.api_servers:
        print(f"Kubeconfig API server: {server}")

    for line in follow_up_hints(report):
        print(line)
